"""Process-wide logging setup.

Every record carries the organization and billing event being worked on, taken
from the request context, so webhook and admin traces can be followed per
tenant without threading identifiers through each log call.
"""

from __future__ import annotations

import logging

from lotline.core.context import get_current_billing_event_id, get_current_organization_id

LOG_FORMAT = (
    "%(asctime)s %(levelname)s %(name)s "
    "[org=%(organization_id)s event=%(billing_event_id)s] %(message)s"
)


class LicensingContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "organization_id"):
            organization_id = get_current_organization_id()
            record.organization_id = str(organization_id) if organization_id else "-"
        if not hasattr(record, "billing_event_id"):
            record.billing_event_id = get_current_billing_event_id() or "-"
        return True


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    for handler in root.handlers:
        if getattr(handler, "_lotline_handler", False):
            return

    handler = logging.StreamHandler()
    handler._lotline_handler = True  # type: ignore[attr-defined]
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(LicensingContextFilter())
    root.addHandler(handler)
    root.setLevel(level.upper())
