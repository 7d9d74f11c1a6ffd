"""
Data models for outbound webhook delivery.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .enums import WebhookType
from .inventory import utc_now


class WebhookEnvelope(BaseModel):
    """JSON body POSTed to an automation endpoint."""

    type: WebhookType
    data: dict[str, Any]
    timestamp: datetime = Field(default_factory=utc_now)
    user_code: str
    priority: str | None = None
    metadata: dict[str, Any] | None = None

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready body; optional keys are left out when unset."""
        body = self.model_dump(mode="json")
        for key in ("priority", "metadata"):
            if body[key] is None:
                del body[key]
        return body


@dataclass
class BatchResult:
    """Outcome of a best-effort concurrent batch send."""

    total: int
    successful: int
    failed: int
