from lotline.core.billing.admin import LicenseAdministrator
from lotline.core.billing.catalog import TierCatalog
from lotline.core.billing.entitlements import Entitlement, can_create_resource, resolve_car_limit
from lotline.core.billing.events import BillingEventEnvelope, parse_envelope
from lotline.core.billing.provider import CheckoutSession, PortalSession, StripeBillingClient
from lotline.core.billing.provisioning import OrganizationProvisioner
from lotline.core.billing.reconciler import (
    ReconciliationEngine,
    ReconciliationOutcome,
    ReconciliationResult,
)
from lotline.core.billing.signature import WebhookSignatureVerifier

__all__ = [
    "LicenseAdministrator",
    "TierCatalog",
    "Entitlement",
    "can_create_resource",
    "resolve_car_limit",
    "BillingEventEnvelope",
    "parse_envelope",
    "CheckoutSession",
    "PortalSession",
    "StripeBillingClient",
    "OrganizationProvisioner",
    "ReconciliationEngine",
    "ReconciliationOutcome",
    "ReconciliationResult",
    "WebhookSignatureVerifier",
]
