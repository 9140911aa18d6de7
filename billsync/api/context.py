"""Application context for API requests.

Combines the resolved organization, request metadata and a contextual logger
into a single injectable dependency.
"""

from typing import Any, Dict

from pydantic import BaseModel

from billsync import schemas
from billsync.core.logging import ContextualLogger


class ApiContext(BaseModel):
    """Context for organization-scoped HTTP API requests.

    Not used by the webhook worker, which runs outside any request.
    """

    # Request metadata
    request_id: str

    # Organization resolved from the X-Organization-ID header
    organization: schemas.Organization

    # Contextual logger with all dimensions pre-configured
    logger: ContextualLogger

    model_config = {"arbitrary_types_allowed": True}

    def __str__(self) -> str:
        """String representation for logging."""
        return f"ApiContext(request_id={self.request_id[:8]}..., org={self.organization.id})"

    def to_serializable_dict(self) -> Dict[str, Any]:
        """Convert to a plain dict for logging or background hand-off."""
        return {
            "request_id": self.request_id,
            "organization_id": str(self.organization.id),
        }
