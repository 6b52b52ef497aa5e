from lotline.core.repositories.base import OrganizationContextMissingError, OrganizationRepositoryBase
from lotline.core.repositories.billing_events import BillingEventRepository
from lotline.core.repositories.cars import CarRepository
from lotline.core.repositories.licenses import LicenseRepository
from lotline.core.repositories.organizations import OrganizationRepository
from lotline.core.repositories.tiers import TierRepository

__all__ = [
    "OrganizationContextMissingError",
    "OrganizationRepositoryBase",
    "BillingEventRepository",
    "CarRepository",
    "LicenseRepository",
    "OrganizationRepository",
    "TierRepository",
]
