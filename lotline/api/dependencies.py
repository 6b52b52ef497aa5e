from __future__ import annotations

from fastapi import Request

from lotline.core.billing.provider import StripeBillingClient
from lotline.core.billing.reconciler import ReconciliationEngine
from lotline.core.notifications import LicenseChangePublisher


def get_reconciliation_engine(request: Request) -> ReconciliationEngine:
    return request.app.state.reconciliation_engine


def get_license_publisher(request: Request) -> LicenseChangePublisher:
    return request.app.state.license_publisher


def get_billing_client(request: Request) -> StripeBillingClient:
    return request.app.state.billing_client
