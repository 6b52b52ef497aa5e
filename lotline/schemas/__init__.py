from lotline.schemas.admin import (
    AdminLicenseResponse,
    FreeLicenseRequest,
    LicenseUpdateRequest,
    OrganizationActiveRequest,
    TierCreateRequest,
    TierResponse,
    TierUpdateRequest,
)
from lotline.schemas.billing import BillingWebhookResponse
from lotline.schemas.license import CarGuardResponse, CarStatusChangeRequest, LicenseInfoResponse
from lotline.schemas.organization import DeletedCountsResponse, OrganizationDeleteResponse
from lotline.schemas.subscription import (
    CheckoutRequest,
    CheckoutResponse,
    PlanResponse,
    PortalRequest,
    PortalResponse,
    SubscriptionStatusResponse,
)

__all__ = [
    "AdminLicenseResponse",
    "FreeLicenseRequest",
    "LicenseUpdateRequest",
    "OrganizationActiveRequest",
    "TierCreateRequest",
    "TierResponse",
    "TierUpdateRequest",
    "BillingWebhookResponse",
    "CarGuardResponse",
    "CarStatusChangeRequest",
    "LicenseInfoResponse",
    "DeletedCountsResponse",
    "OrganizationDeleteResponse",
    "CheckoutRequest",
    "CheckoutResponse",
    "PlanResponse",
    "PortalRequest",
    "PortalResponse",
    "SubscriptionStatusResponse",
]
