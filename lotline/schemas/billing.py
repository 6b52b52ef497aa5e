from __future__ import annotations

from pydantic import BaseModel


class BillingWebhookResponse(BaseModel):
    received: bool
    outcome: str
    event_type: str | None = None
