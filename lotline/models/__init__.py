from lotline.models.base import Base, OrganizationScopedBase, TimestampedBase
from lotline.models.billing_event import BillingEvent, LedgerStatus
from lotline.models.car import Car, MaintenanceRecord
from lotline.models.expense import Expense, ExpenseCategory
from lotline.models.license import OrganizationLicense, SubscriptionStatus
from lotline.models.organization import Organization
from lotline.models.tier import LicenseTier
from lotline.models.user import User

__all__ = [
    "Base",
    "TimestampedBase",
    "OrganizationScopedBase",
    "Organization",
    "User",
    "Car",
    "MaintenanceRecord",
    "ExpenseCategory",
    "Expense",
    "LicenseTier",
    "OrganizationLicense",
    "SubscriptionStatus",
    "BillingEvent",
    "LedgerStatus",
]
