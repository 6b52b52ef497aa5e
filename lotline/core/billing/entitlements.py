from __future__ import annotations

from dataclasses import dataclass

from lotline.core.errors import ValidationError
from lotline.models.license import OrganizationLicense
from lotline.models.tier import LicenseTier


@dataclass(slots=True, frozen=True)
class Entitlement:
    allowed: bool
    remaining: int
    usage_percent: float


def can_create_resource(license: OrganizationLicense | None, current_count: int) -> Entitlement:
    if license is None:
        return Entitlement(allowed=False, remaining=0, usage_percent=100.0)

    car_limit = license.car_limit or 0
    if car_limit <= 0:
        return Entitlement(allowed=False, remaining=0, usage_percent=100.0)

    return Entitlement(
        allowed=bool(license.is_active) and current_count < car_limit,
        remaining=max(car_limit - current_count, 0),
        usage_percent=round(current_count * 100.0 / car_limit, 2),
    )


def resolve_car_limit(
    tier: LicenseTier,
    override: int | None = None,
    current: int | None = None,
) -> int:
    """Pick the car limit for a license moving onto ``tier``.

    An explicit override wins, then the tier's catalog limit. Tiers that
    publish no limit (comp tiers) keep whatever limit the license already
    had; with nothing to keep the caller must supply one.
    """
    if override is not None:
        if override < 0:
            raise ValidationError("Car limit cannot be negative")
        return override
    if tier.car_limit is not None:
        return tier.car_limit
    if current is not None:
        return current
    raise ValidationError(f"Tier '{tier.tier_name}' has no default car limit; one must be provided")
