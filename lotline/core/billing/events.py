from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from lotline.core.errors import ValidationError

CHECKOUT_COMPLETED = "checkout.session.completed"
SUBSCRIPTION_CREATED = "customer.subscription.created"
SUBSCRIPTION_UPDATED = "customer.subscription.updated"
SUBSCRIPTION_DELETED = "customer.subscription.deleted"
INVOICE_PAYMENT_FAILED = "invoice.payment_failed"
INVOICE_PAYMENT_SUCCEEDED = "invoice.payment_succeeded"
INVOICE_PAID = "invoice.paid"

SUBSCRIPTION_EVENTS = frozenset({SUBSCRIPTION_CREATED, SUBSCRIPTION_UPDATED, SUBSCRIPTION_DELETED})


@dataclass(slots=True)
class BillingEventEnvelope:
    id: str
    type: str
    created: datetime
    object: dict[str, Any]
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def metadata(self) -> dict[str, Any]:
        return self.object.get("metadata") or {}

    @property
    def customer_id(self) -> str | None:
        return _as_id(self.object.get("customer"))

    @property
    def subscription_id(self) -> str | None:
        if self.type in SUBSCRIPTION_EVENTS:
            return _as_id(self.object.get("id"))
        legacy = _as_id(self.object.get("subscription"))
        if legacy:
            return legacy
        parent = self.object.get("parent") or {}
        details = parent.get("subscription_details") or {}
        return _as_id(details.get("subscription"))

    @property
    def price_id(self) -> str | None:
        if self.metadata.get("price_id"):
            return str(self.metadata["price_id"])
        first_item = _first_item(self.object.get("items")) or _first_item(self.object.get("line_items"))
        price = (first_item or {}).get("price")
        return _as_id(price)

    @property
    def organization_name_hint(self) -> str | None:
        return self.metadata.get("organization_name") or None

    @property
    def owner_email_hint(self) -> str | None:
        details = self.object.get("customer_details") or {}
        return (
            self.metadata.get("owner_email")
            or self.object.get("customer_email")
            or details.get("email")
            or None
        )

    @property
    def subscription_status(self) -> str | None:
        return self.object.get("status")

    def period_bounds(self) -> tuple[datetime | None, datetime | None]:
        start = self.object.get("current_period_start")
        end = self.object.get("current_period_end")
        if start is None and end is None:
            first_item = _first_item(self.object.get("items")) or {}
            start = first_item.get("current_period_start")
            end = first_item.get("current_period_end")
        return _from_timestamp(start), _from_timestamp(end)


def _as_id(value: Any) -> str | None:
    if isinstance(value, dict):
        value = value.get("id")
    if isinstance(value, str) and value:
        return value
    return None


def _first_item(collection: Any) -> dict[str, Any] | None:
    if not isinstance(collection, dict):
        return None
    items = collection.get("data") or []
    if items and isinstance(items[0], dict):
        return items[0]
    return None


def _from_timestamp(value: Any) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"Invalid timestamp value: {value!r}")
    return datetime.fromtimestamp(value, tz=timezone.utc)


def load_loose_payload(raw_payload: bytes) -> dict[str, Any]:
    """Best-effort decode used to ledger payloads that fail validation."""
    try:
        payload = json.loads(raw_payload)
    except (UnicodeDecodeError, json.JSONDecodeError):
        return {}
    return payload if isinstance(payload, dict) else {}


def parse_envelope(raw_payload: bytes) -> BillingEventEnvelope:
    try:
        payload = json.loads(raw_payload)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ValidationError("Billing event body is not valid JSON") from exc

    if not isinstance(payload, dict):
        raise ValidationError("Billing event body must be a JSON object")

    event_id = payload.get("id")
    event_type = payload.get("type")
    created = payload.get("created")
    data = payload.get("data")

    if not isinstance(event_id, str) or not event_id:
        raise ValidationError("Billing event is missing its id")
    if not isinstance(event_type, str) or not event_type:
        raise ValidationError("Billing event is missing its type")
    if isinstance(created, bool) or not isinstance(created, int):
        raise ValidationError("Billing event is missing its created timestamp")
    if not isinstance(data, dict) or not isinstance(data.get("object"), dict):
        raise ValidationError("Billing event is missing data.object")

    return BillingEventEnvelope(
        id=event_id,
        type=event_type,
        created=datetime.fromtimestamp(created, tz=timezone.utc),
        object=data["object"],
        payload=payload,
    )
