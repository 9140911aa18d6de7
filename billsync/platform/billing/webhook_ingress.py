"""Hand-off of verified webhook events to a background worker.

The HTTP endpoint answers the provider as soon as an event is queued. A single
worker task, owned by the application lifespan rather than any request,
processes events in arrival order, so a client disconnect cannot cancel
processing.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional, Tuple

from billsync.core.logging import ContextualLogger, LoggerConfigurator
from billsync.schemas.webhook import WebhookEvent

EventProcessor = Callable[[WebhookEvent], Awaitable[Any]]


def _retrieve_outcome(future: asyncio.Future) -> None:
    # Nobody may await the future; the worker has already logged any failure
    if not future.cancelled():
        future.exception()


class WebhookIngress:
    """Bounded queue of webhook events drained by one worker task."""

    def __init__(
        self,
        process: EventProcessor,
        maxsize: int = 1000,
        log: Optional[ContextualLogger] = None,
    ):
        """Initialize the ingress.

        Args:
            process: Coroutine function run once per event. It owns its own
                database session.
            maxsize: Queue capacity; ``submit`` waits while the queue is full
            log: Logger for processing outcomes
        """
        self._process = process
        self._queue: asyncio.Queue[Tuple[WebhookEvent, asyncio.Future]] = asyncio.Queue(
            maxsize=maxsize
        )
        self._worker: Optional[asyncio.Task] = None
        self.logger = log or LoggerConfigurator.configure_logger(
            __name__, dimensions={"component": "webhook_ingress"}
        )

    @property
    def running(self) -> bool:
        """Whether the worker task is alive."""
        return self._worker is not None and not self._worker.done()

    @property
    def pending(self) -> int:
        """Number of events waiting to be processed."""
        return self._queue.qsize()

    async def start(self) -> None:
        """Start the worker task."""
        if self.running:
            return
        self._worker = asyncio.create_task(self._run(), name="webhook-ingress-worker")
        self.logger.info("Webhook ingress worker started")

    async def stop(self, drain: bool = True) -> None:
        """Stop the worker, by default after processing what is already queued."""
        if self._worker is None:
            return
        if drain:
            await self.drain()
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        self.logger.info("Webhook ingress worker stopped")

    async def submit(self, event: WebhookEvent) -> asyncio.Future:
        """Queue an event for processing.

        Returns a future that resolves with the processing result or fails
        with the processing error.
        """
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        future.add_done_callback(_retrieve_outcome)
        await self._queue.put((event, future))
        self.logger.with_context(event_id=event.id, event_type=event.type).info(
            f"Webhook event queued (pending: {self._queue.qsize()})"
        )
        return future

    async def drain(self) -> None:
        """Wait until every submitted event has been processed."""
        await self._queue.join()

    async def _run(self) -> None:
        while True:
            event, future = await self._queue.get()
            try:
                await self._handle(event, future)
            finally:
                self._queue.task_done()

    async def _handle(self, event: WebhookEvent, future: asyncio.Future) -> None:
        log = self.logger.with_context(event_id=event.id, event_type=event.type)
        try:
            result = await self._process(event)
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            log.error(f"Failed to process webhook event: {type(e).__name__}: {e}", exc_info=True)
            if not future.done():
                future.set_exception(e)
        else:
            if not future.done():
                future.set_result(result)
