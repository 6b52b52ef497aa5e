from __future__ import annotations

import hashlib
import hmac
import json
import time
from collections.abc import AsyncIterator, Callable
from decimal import Decimal
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from lotline.core.billing.reconciler import ReconciliationEngine
from lotline.core.billing.signature import WebhookSignatureVerifier
from lotline.models import Base, LicenseTier, Organization, OrganizationLicense

WEBHOOK_SECRET = "whsec_unit_test_secret"

PRICE_IDS = {
    "starter": "price_starter",
    "professional": "price_professional",
    "business": "price_business",
    "enterprise": "price_enterprise",
}


def _enable_foreign_keys(dbapi_connection, _record) -> None:  # noqa: ANN001
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest_asyncio.fixture
async def session_factory() -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    event.listen(engine.sync_engine, "connect", _enable_foreign_keys)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)
    async with factory() as session:
        session.add_all(
            [
                LicenseTier(
                    tier_name="starter",
                    display_name="Starter",
                    car_limit=20,
                    monthly_price=Decimal("79.99"),
                    stripe_price_id=PRICE_IDS["starter"],
                    sort_order=1,
                ),
                LicenseTier(
                    tier_name="professional",
                    display_name="Professional",
                    car_limit=50,
                    monthly_price=Decimal("119.99"),
                    stripe_price_id=PRICE_IDS["professional"],
                    sort_order=2,
                ),
                LicenseTier(
                    tier_name="business",
                    display_name="Business",
                    car_limit=100,
                    monthly_price=Decimal("179.99"),
                    stripe_price_id=PRICE_IDS["business"],
                    sort_order=3,
                ),
                LicenseTier(
                    tier_name="enterprise",
                    display_name="Enterprise",
                    car_limit=10000,
                    monthly_price=Decimal("249.99"),
                    stripe_price_id=PRICE_IDS["enterprise"],
                    sort_order=4,
                ),
                LicenseTier(
                    tier_name="champion",
                    display_name="Champion",
                    car_limit=None,
                    monthly_price=Decimal("0.00"),
                    stripe_price_id=None,
                    is_available_online=False,
                    sort_order=5,
                ),
            ]
        )
        await session.commit()

    try:
        yield factory
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    async with session_factory() as value:
        yield value


@pytest.fixture
def create_licensed_organization(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[..., Any]:
    async def _create(
        name: str = "Acme Motors",
        *,
        tier_name: str | None = "starter",
        car_limit: int | None = 20,
        **license_fields: Any,
    ) -> tuple[Organization, OrganizationLicense]:
        async with session_factory() as session:
            organization = Organization(name=name, email=f"owner@{name.lower().replace(' ', '')}.test")
            session.add(organization)
            await session.flush()
            license = OrganizationLicense(
                organization_id=organization.id,
                tier_name=tier_name,
                car_limit=car_limit,
                **license_fields,
            )
            session.add(license)
            await session.commit()
            return organization, license

    return _create


@pytest.fixture
def sign_payload() -> Callable[..., tuple[bytes, str]]:
    def _sign(payload: dict[str, Any], *, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> tuple[bytes, str]:
        raw = json.dumps(payload).encode("utf-8")
        ts = int(time.time()) if timestamp is None else timestamp
        signature = hmac.new(secret.encode("utf-8"), f"{ts}.".encode("utf-8") + raw, hashlib.sha256).hexdigest()
        return raw, f"t={ts},v1={signature}"

    return _sign


@pytest.fixture
def billing_event() -> Callable[..., dict[str, Any]]:
    def _event(event_type: str, data_object: dict[str, Any], *, event_id: str, created: int) -> dict[str, Any]:
        return {
            "id": event_id,
            "object": "event",
            "type": event_type,
            "created": created,
            "data": {"object": data_object},
        }

    return _event


@pytest.fixture
def reconciliation_engine(session_factory: async_sessionmaker[AsyncSession]) -> ReconciliationEngine:
    return ReconciliationEngine(
        session_factory,
        WebhookSignatureVerifier([WEBHOOK_SECRET]),
        apply_timeout_seconds=5.0,
    )
