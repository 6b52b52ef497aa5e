from __future__ import annotations

from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from lotline.api.dependencies import get_billing_client, get_license_publisher, get_reconciliation_engine
from lotline.api.main import app
from lotline.api.routes.admin import get_license_administrator, get_tier_catalog
from lotline.core.auth import AuthContext, require_auth_context, require_super_admin
from lotline.core.billing.entitlements import can_create_resource
from lotline.core.billing.guards import LicenseState, get_license_state
from lotline.core.billing.provider import CheckoutSession, PortalSession
from lotline.core.billing.reconciler import ReconciliationOutcome, ReconciliationResult
from lotline.core.db import get_db_session
from lotline.core.errors import AuthenticationError, ConflictError, NotFoundError, TransientError
from lotline.core.tenants import DeletedCounts, DestroyReport


class _FakeSession:
    def __init__(self) -> None:
        self.committed = False

    async def commit(self) -> None:
        self.committed = True


class _FakePublisher:
    def __init__(self) -> None:
        self.changes: list = []

    async def publish(self, change) -> bool:  # noqa: ANN001
        self.changes.append(change)
        return True


def _license(**overrides) -> SimpleNamespace:  # noqa: ANN003
    values = {
        "organization_id": uuid4(),
        "tier_name": "starter",
        "car_limit": 20,
        "has_custom_car_limit": False,
        "is_active": True,
        "is_free_account": False,
        "free_reason": None,
        "stripe_customer_id": "cus_1",
        "stripe_subscription_id": "sub_1",
        "subscription_status": "active",
        "current_period_start": None,
        "current_period_end": None,
        "last_event_at": None,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def _tier(tier_name: str = "starter", car_limit: int | None = 20, price: str = "79.99") -> SimpleNamespace:
    return SimpleNamespace(
        tier_name=tier_name,
        display_name=tier_name.title(),
        car_limit=car_limit,
        monthly_price=Decimal(price),
        stripe_price_id=f"price_{tier_name}",
        is_available_online=True,
        sort_order=1,
        is_active=True,
    )


@pytest.fixture
def fake_session() -> _FakeSession:
    return _FakeSession()


@pytest.fixture
def publisher() -> _FakePublisher:
    return _FakePublisher()


@pytest.fixture
def client(fake_session: _FakeSession, publisher: _FakePublisher):
    admin_ctx = AuthContext(subject="boss", claims={"role": "super_admin"})

    async def _super_admin_override() -> AuthContext:
        return admin_ctx

    async def _db_override():
        yield fake_session

    app.dependency_overrides[require_super_admin] = _super_admin_override
    app.dependency_overrides[get_db_session] = _db_override
    app.dependency_overrides[get_license_publisher] = lambda: publisher
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def test_health_endpoint(client: TestClient) -> None:
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json() == {"status": "ok"}


def test_webhook_reports_outcome(client: TestClient) -> None:
    engine = AsyncMock()
    engine.apply_billing_event.return_value = ReconciliationResult(
        event_id="evt_1",
        event_type="invoice.paid",
        outcome=ReconciliationOutcome.APPLIED,
    )
    app.dependency_overrides[get_reconciliation_engine] = lambda: engine

    res = client.post(
        "/api/v1/billing/webhook",
        content=b'{"id": "evt_1"}',
        headers={"Stripe-Signature": "t=1,v1=abc"},
    )

    assert res.status_code == 200
    assert res.json() == {"received": True, "outcome": "applied", "event_type": "invoice.paid"}
    engine.apply_billing_event.assert_awaited_once_with(b'{"id": "evt_1"}', "t=1,v1=abc")


def test_webhook_bad_signature_returns_400(client: TestClient) -> None:
    engine = AsyncMock()
    engine.apply_billing_event.side_effect = AuthenticationError("Invalid signature")
    app.dependency_overrides[get_reconciliation_engine] = lambda: engine

    res = client.post("/api/v1/billing/webhook", content=b"{}")

    assert res.status_code == 400
    assert res.json()["detail"] == "Invalid signature"


def test_webhook_transient_failure_returns_503(client: TestClient) -> None:
    engine = AsyncMock()
    engine.apply_billing_event.side_effect = TransientError("Database unavailable")
    app.dependency_overrides[get_reconciliation_engine] = lambda: engine

    res = client.post("/api/v1/billing/webhook", content=b"{}", headers={"Stripe-Signature": "t=1,v1=abc"})

    assert res.status_code == 503


def test_webhook_unexpected_failure_returns_500(client: TestClient) -> None:
    engine = AsyncMock()
    engine.apply_billing_event.side_effect = RuntimeError("boom")
    app.dependency_overrides[get_reconciliation_engine] = lambda: engine

    failing_client = TestClient(app, raise_server_exceptions=False)
    res = failing_client.post("/api/v1/billing/webhook", content=b"{}", headers={"Stripe-Signature": "t=1,v1=abc"})

    assert res.status_code == 500


def test_license_info_and_car_guard(client: TestClient) -> None:
    license = _license(car_limit=20)
    state = LicenseState(
        license=license,
        tier=_tier(),
        current_car_count=15,
        entitlement=can_create_resource(license, 15),
    )

    async def _state_override() -> LicenseState:
        return state

    app.dependency_overrides[get_license_state] = _state_override

    res = client.get("/api/v1/license")
    assert res.status_code == 200
    body = res.json()
    assert body["tier_name"] == "starter"
    assert body["current_car_count"] == 15
    assert body["remaining"] == 5
    assert body["usage_percentage"] == 75.0
    assert body["allowed"] is True

    res = client.post("/api/v1/license/guards/car")
    assert res.status_code == 200
    assert res.json() == {"allowed": True, "remaining": 5, "usage_percentage": 75.0}


def test_car_guard_blocks_when_limit_reached(client: TestClient) -> None:
    license = _license(car_limit=20)
    state = LicenseState(
        license=license,
        tier=_tier(),
        current_car_count=20,
        entitlement=can_create_resource(license, 20),
    )

    async def _state_override() -> LicenseState:
        return state

    app.dependency_overrides[get_license_state] = _state_override

    res = client.post("/api/v1/license/guards/car")
    assert res.status_code == 403
    assert res.json()["detail"] == "Car limit reached (20/20). Upgrade your plan to add more cars."


def test_car_guard_blocks_inactive_license(client: TestClient) -> None:
    license = _license(is_active=False)
    state = LicenseState(
        license=license,
        tier=_tier(),
        current_car_count=0,
        entitlement=can_create_resource(license, 0),
    )

    async def _state_override() -> LicenseState:
        return state

    app.dependency_overrides[get_license_state] = _state_override

    res = client.post("/api/v1/license/guards/car")
    assert res.status_code == 403
    assert res.json()["detail"] == "Organization license is inactive"


def test_car_status_guard(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    from lotline.core.billing import guards

    license = _license(car_limit=20)
    cars = {"sold": uuid4(), "listed": uuid4()}

    class FakeCarRepo:
        def __init__(self, session):  # noqa: ANN001
            pass

        async def get(self, car_id):  # noqa: ANN001, ANN201
            if car_id == cars["sold"]:
                return SimpleNamespace(id=car_id, status="sold")
            if car_id == cars["listed"]:
                return SimpleNamespace(id=car_id, status="in_stock")
            return None

    async def _state_override() -> LicenseState:
        return LicenseState(
            license=license,
            tier=_tier(),
            current_car_count=20,
            entitlement=can_create_resource(license, 20),
        )

    monkeypatch.setattr(guards, "CarRepository", FakeCarRepo)
    app.dependency_overrides[get_license_state] = _state_override

    res = client.post(f"/api/v1/license/guards/cars/{cars['sold']}/status", json={"status": "in_stock"})
    assert res.status_code == 403
    assert res.json()["detail"] == (
        "Cannot change car status. Car limit reached (20/20). Upgrade your plan to add more cars."
    )

    res = client.post(f"/api/v1/license/guards/cars/{cars['listed']}/status", json={"status": "in_repair"})
    assert res.status_code == 200
    assert res.json()["remaining"] == 0

    res = client.post(f"/api/v1/license/guards/cars/{cars['sold']}/status", json={"status": "sold"})
    assert res.status_code == 200

    res = client.post(f"/api/v1/license/guards/cars/{uuid4()}/status", json={"status": "in_stock"})
    assert res.status_code == 404


def test_subscription_plans_and_checkout(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    from lotline.api.routes import subscriptions

    catalog = {"starter": _tier(), "business": _tier("business", 100, "179.99")}

    class FakeTierRepo:
        def __init__(self, session):  # noqa: ANN001
            pass

        async def list_active(self, online_only: bool = False):  # noqa: ANN201
            return list(catalog.values())

        async def get_by_name(self, tier_name: str):  # noqa: ANN201
            return catalog.get(tier_name)

    billing_client = AsyncMock()
    billing_client.create_checkout_session.return_value = CheckoutSession(
        id="cs_1", url="https://checkout.stripe.test/cs_1"
    )
    monkeypatch.setattr(subscriptions, "TierRepository", FakeTierRepo)
    app.dependency_overrides[get_billing_client] = lambda: billing_client

    res = client.get("/api/v1/subscriptions/plans")
    assert res.status_code == 200
    assert [plan["tier_name"] for plan in res.json()] == ["starter", "business"]

    checkout = {
        "tier_name": "business",
        "organization_name": "Bayside Autos",
        "owner_email": "owner@bayside.test",
        "success_url": "https://app.test/success",
        "cancel_url": "https://app.test/cancel",
    }
    res = client.post("/api/v1/subscriptions/checkout", json=checkout)
    assert res.status_code == 200
    assert res.json() == {"session_id": "cs_1", "url": "https://checkout.stripe.test/cs_1"}
    assert billing_client.create_checkout_session.await_args.kwargs["tier"] is catalog["business"]

    res = client.post("/api/v1/subscriptions/checkout", json={**checkout, "tier_name": "platinum"})
    assert res.status_code == 404


def test_subscription_portal_and_status(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    from lotline.api.routes import subscriptions

    organization_id = uuid4()
    licenses = {organization_id: _license(organization_id=organization_id)}

    class FakeLicenseRepo:
        def __init__(self, session):  # noqa: ANN001
            pass

        async def get_by_organization(self, org_id, *, for_update: bool = False):  # noqa: ANN001, ANN201
            return licenses.get(org_id)

    async def _member_override() -> AuthContext:
        return AuthContext(subject="owner", organization_id=organization_id)

    billing_client = AsyncMock()
    billing_client.create_portal_session.return_value = PortalSession(
        id="bps_1", url="https://billing.stripe.test/bps_1"
    )
    monkeypatch.setattr(subscriptions, "LicenseRepository", FakeLicenseRepo)
    app.dependency_overrides[require_auth_context] = _member_override
    app.dependency_overrides[get_billing_client] = lambda: billing_client

    res = client.get("/api/v1/subscriptions/status")
    assert res.status_code == 200
    assert res.json() == {
        "subscription_status": "active",
        "tier_name": "starter",
        "car_limit": 20,
        "is_free_account": False,
        "current_period_end": None,
        "has_stripe_customer": True,
        "has_stripe_subscription": True,
    }

    res = client.post("/api/v1/subscriptions/portal", json={"return_url": "https://app.test/billing"})
    assert res.status_code == 200
    assert res.json() == {"url": "https://billing.stripe.test/bps_1"}
    assert billing_client.create_portal_session.await_args.kwargs == {
        "customer_id": "cus_1",
        "return_url": "https://app.test/billing",
    }

    licenses[organization_id] = _license(
        organization_id=organization_id,
        tier_name="champion",
        is_free_account=True,
        stripe_customer_id=None,
        stripe_subscription_id=None,
        subscription_status=None,
    )
    res = client.post("/api/v1/subscriptions/portal", json={"return_url": "https://app.test/billing"})
    assert res.status_code == 404
    assert billing_client.create_portal_session.await_count == 1

    res = client.get("/api/v1/subscriptions/status")
    assert res.json()["is_free_account"] is True
    assert res.json()["has_stripe_customer"] is False

    licenses.clear()
    res = client.get("/api/v1/subscriptions/status")
    assert res.status_code == 404


def test_admin_free_license_commits_then_publishes(
    client: TestClient, fake_session: _FakeSession, publisher: _FakePublisher
) -> None:
    organization_id = uuid4()
    calls: dict = {}

    class FakeAdministrator:
        async def set_free_license(self, org_id, car_limit=None, reason=None):  # noqa: ANN001, ANN201
            calls.update(org_id=org_id, car_limit=car_limit, reason=reason)
            return _license(
                organization_id=org_id,
                tier_name="champion",
                car_limit=car_limit or 10000,
                has_custom_car_limit=True,
                is_free_account=True,
                free_reason=reason,
                stripe_customer_id=None,
                stripe_subscription_id=None,
                subscription_status=None,
            )

    app.dependency_overrides[get_license_administrator] = lambda: FakeAdministrator()

    res = client.post(
        "/api/v1/admin/licenses/free",
        json={"organization_id": str(organization_id), "car_limit": 250, "reason": "partner dealer"},
    )

    assert res.status_code == 200
    body = res.json()
    assert body["is_free_account"] is True
    assert body["car_limit"] == 250
    assert body["stripe_subscription_id"] is None
    assert calls == {"org_id": organization_id, "car_limit": 250, "reason": "partner dealer"}
    assert fake_session.committed is True
    assert publisher.changes[0].organization_id == str(organization_id)
    assert publisher.changes[0].tier_name == "champion"


def test_admin_update_toggle_and_read(client: TestClient, publisher: _FakePublisher) -> None:
    organization_id = uuid4()
    state = _license(organization_id=organization_id)

    class FakeAdministrator:
        async def update_license(self, org_id, **changes):  # noqa: ANN001, ANN003, ANN201
            if changes["car_limit"] is not None:
                state.car_limit = changes["car_limit"]
                state.has_custom_car_limit = True
            return state

        async def toggle_active(self, org_id, active):  # noqa: ANN001, ANN201
            state.is_active = active
            return state

        async def get_license(self, org_id):  # noqa: ANN001, ANN201
            if org_id != organization_id:
                raise NotFoundError("Organization has no license")
            return state

    app.dependency_overrides[get_license_administrator] = lambda: FakeAdministrator()

    res = client.patch(f"/api/v1/admin/licenses/{organization_id}", json={"car_limit": 35})
    assert res.status_code == 200
    assert res.json()["car_limit"] == 35
    assert res.json()["has_custom_car_limit"] is True

    res = client.patch(f"/api/v1/admin/organizations/{organization_id}/active", json={"active": False})
    assert res.status_code == 200
    assert res.json()["is_active"] is False
    assert [change.is_active for change in publisher.changes] == [True, False]

    res = client.get(f"/api/v1/admin/licenses/{organization_id}")
    assert res.status_code == 200
    assert res.json()["car_limit"] == 35

    res = client.get(f"/api/v1/admin/licenses/{uuid4()}")
    assert res.status_code == 404

    res = client.patch(f"/api/v1/admin/licenses/{organization_id}", json={"car_limit": -1})
    assert res.status_code == 422


def test_admin_tiers(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    from lotline.api.routes import admin

    class FakeTierRepo:
        def __init__(self, session):  # noqa: ANN001
            pass

        async def list_active(self, online_only: bool = False):  # noqa: ANN201
            return [_tier(), _tier("champion", None, "0")]

    monkeypatch.setattr(admin, "TierRepository", FakeTierRepo)

    res = client.get("/api/v1/admin/tiers")
    assert res.status_code == 200
    assert [tier["tier_name"] for tier in res.json()] == ["starter", "champion"]
    assert res.json()[1]["car_limit"] is None


def test_admin_tier_catalog_edits(client: TestClient, fake_session: _FakeSession) -> None:
    tiers = {"starter": _tier()}

    class FakeCatalog:
        async def get_tier(self, tier_name: str):  # noqa: ANN201
            if tier_name not in tiers:
                raise NotFoundError(f"Tier '{tier_name}' not found")
            return tiers[tier_name]

        async def create_tier(self, **fields):  # noqa: ANN003, ANN201
            if fields["tier_name"] in tiers:
                raise ConflictError(f"Tier '{fields['tier_name']}' already exists")
            tier = SimpleNamespace(**{**fields, "sort_order": fields["sort_order"] or 999, "is_active": True})
            tiers[tier.tier_name] = tier
            return tier

        async def update_tier(self, tier_name: str, changes: dict):  # noqa: ANN201
            tier = await self.get_tier(tier_name)
            for field_name, value in changes.items():
                setattr(tier, field_name, value)
            return tier

    app.dependency_overrides[get_tier_catalog] = FakeCatalog

    res = client.get("/api/v1/admin/tiers/starter")
    assert res.status_code == 200
    assert res.json()["car_limit"] == 20

    new_tier = {"tier_name": "fleet", "display_name": "Fleet", "car_limit": 300, "monthly_price": "299.00"}
    res = client.post("/api/v1/admin/tiers", json=new_tier)
    assert res.status_code == 201
    assert res.json()["is_available_online"] is True
    assert res.json()["sort_order"] == 999
    assert fake_session.committed is True

    res = client.post("/api/v1/admin/tiers", json=new_tier)
    assert res.status_code == 409

    res = client.put("/api/v1/admin/tiers/fleet", json={"car_limit": 350})
    assert res.status_code == 200
    assert res.json()["car_limit"] == 350
    assert res.json()["display_name"] == "Fleet"

    res = client.put("/api/v1/admin/tiers/platinum", json={"car_limit": 5})
    assert res.status_code == 404

    res = client.put("/api/v1/admin/tiers/fleet", json={"car_limit": -1})
    assert res.status_code == 422


def test_delete_organization(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    from lotline.api.routes import organizations

    organization_id = uuid4()

    async def _fake_destroy(session, org_id):  # noqa: ANN001, ANN202
        if org_id != organization_id:
            raise NotFoundError("Organization not found")
        return DestroyReport(
            organization_id=org_id,
            organization_name="Doomed Motors",
            deleted_counts=DeletedCounts(users=2, cars=3, maintenance_records=2, expenses=1),
        )

    monkeypatch.setattr(organizations, "destroy_organization", _fake_destroy)

    res = client.delete(f"/api/v1/organizations/{organization_id}")
    assert res.status_code == 200
    body = res.json()
    assert body["deleted_counts"] == {"users": 2, "cars": 3, "maintenance_records": 2, "expenses": 1}
    assert body["message"].startswith('Organization "Doomed Motors" deleted successfully.')

    res = client.delete(f"/api/v1/organizations/{uuid4()}")
    assert res.status_code == 404
