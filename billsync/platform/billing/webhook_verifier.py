"""Signature verification and decoding of billing provider webhooks."""

import hashlib
import hmac
from typing import Optional

from pydantic import ValidationError

from billsync.core.exceptions import (
    MalformedPayloadException,
    WebhookMisconfiguredException,
    WebhookUnauthorizedException,
)
from billsync.schemas.webhook import WebhookEvent

SIGNATURE_PREFIX = "sha256="


def compute_signature(payload: bytes, secret: str) -> str:
    """Signature header value for ``payload`` signed with ``secret``."""
    digest = hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_signature(
    payload: bytes, signature_header: Optional[str], secret: Optional[str]
) -> None:
    """Check that ``signature_header`` is a valid HMAC-SHA256 of ``payload``.

    Raises:
        WebhookMisconfiguredException: no secret is configured
        WebhookUnauthorizedException: the header is missing, malformed or wrong
    """
    if not secret:
        raise WebhookMisconfiguredException()
    if not signature_header:
        raise WebhookUnauthorizedException("Missing webhook signature")

    signature = signature_header.strip()
    if not signature.startswith(SIGNATURE_PREFIX):
        raise WebhookUnauthorizedException("Malformed webhook signature")

    expected = compute_signature(payload, secret)
    if not hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8")):
        raise WebhookUnauthorizedException()


def parse_event(payload: bytes) -> WebhookEvent:
    """Decode a verified webhook body into its event envelope.

    Raises:
        MalformedPayloadException: the body is not a JSON object with an id, a
            type and ``data.object``
    """
    try:
        return WebhookEvent.model_validate_json(payload)
    except ValidationError as e:
        raise MalformedPayloadException(
            f"Malformed webhook payload: {e.error_count()} error(s)"
        ) from e
