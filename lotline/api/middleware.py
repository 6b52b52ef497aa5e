from __future__ import annotations

from collections.abc import Awaitable, Callable

from fastapi import Request
from starlette.responses import Response

from lotline.core.context import (
    reset_current_billing_event_id,
    reset_current_organization_id,
    set_current_billing_event_id,
    set_current_organization_id,
)


async def licensing_context_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    organization_token = set_current_organization_id(None)
    event_token = set_current_billing_event_id(None)
    try:
        return await call_next(request)
    finally:
        reset_current_billing_event_id(event_token)
        reset_current_organization_id(organization_token)
