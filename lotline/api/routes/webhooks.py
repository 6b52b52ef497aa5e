from __future__ import annotations

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from lotline.api.dependencies import get_reconciliation_engine
from lotline.core.billing.reconciler import ReconciliationEngine
from lotline.core.errors import AuthenticationError, TransientError
from lotline.schemas.billing import BillingWebhookResponse

router = APIRouter(prefix="/billing", tags=["billing"])


@router.post("/webhook", response_model=BillingWebhookResponse)
async def billing_webhook(
    request: Request,
    engine: ReconciliationEngine = Depends(get_reconciliation_engine),
    stripe_signature: str | None = Header(default=None, alias="Stripe-Signature"),
) -> BillingWebhookResponse:
    raw_body = await request.body()
    try:
        result = await engine.apply_billing_event(raw_body, stripe_signature)
    except AuthenticationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message) from exc
    except TransientError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=exc.message) from exc

    return BillingWebhookResponse(
        received=True,
        outcome=result.outcome.value,
        event_type=result.event_type,
    )
