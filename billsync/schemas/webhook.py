"""Schemas for inbound billing provider webhooks."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class WebhookEventData(BaseModel):
    """Payload wrapper of a webhook event."""

    object: Dict[str, Any]
    previous_attributes: Optional[Dict[str, Any]] = None


class WebhookEvent(BaseModel):
    """Envelope of a provider webhook event."""

    model_config = {"extra": "allow"}

    id: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1)
    created: int = 0
    livemode: bool = False
    data: WebhookEventData
