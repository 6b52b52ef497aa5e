from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from lotline.api.middleware import licensing_context_middleware
from lotline.api.routes import (
    admin_router,
    license_router,
    organizations_router,
    subscriptions_router,
    webhooks_router,
)
from lotline.core.billing.provider import StripeBillingClient
from lotline.core.billing.reconciler import ReconciliationEngine
from lotline.core.billing.signature import WebhookSignatureVerifier
from lotline.core.config import settings
from lotline.core.db import Database
from lotline.core.errors import (
    AuthenticationError,
    ConflictError,
    LicensingError,
    NotFoundError,
    TransientError,
    ValidationError,
)
from lotline.core.logging import configure_logging
from lotline.core.notifications import LicenseChangePublisher

ERROR_STATUS_CODES: dict[type[LicensingError], int] = {
    AuthenticationError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    TransientError: status.HTTP_503_SERVICE_UNAVAILABLE,
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    configure_logging(settings.log_level)

    database = Database.from_url(settings.database_url)
    publisher = LicenseChangePublisher.from_url(settings.redis_url)
    app.state.database = database
    app.state.license_publisher = publisher
    app.state.billing_client = StripeBillingClient.from_settings(settings)
    app.state.reconciliation_engine = ReconciliationEngine(
        database.session_factory,
        WebhookSignatureVerifier.from_settings(settings),
        publisher=publisher,
        apply_timeout_seconds=settings.webhook_apply_timeout_seconds,
    )
    try:
        yield
    finally:
        await publisher.close()
        await database.dispose()


async def licensing_error_handler(request: Request, exc: LicensingError) -> JSONResponse:
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_type, code in ERROR_STATUS_CODES.items():
        if isinstance(exc, error_type):
            status_code = code
            break
    return JSONResponse(status_code=status_code, content={"detail": exc.message})


def create_app() -> FastAPI:
    app = FastAPI(title="Lotline Licensing", lifespan=lifespan)
    app.middleware("http")(licensing_context_middleware)
    app.add_exception_handler(LicensingError, licensing_error_handler)

    app.include_router(webhooks_router, prefix="/api/v1")
    app.include_router(license_router, prefix="/api/v1")
    app.include_router(subscriptions_router, prefix="/api/v1")
    app.include_router(admin_router, prefix="/api/v1")
    app.include_router(organizations_router, prefix="/api/v1")

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()
