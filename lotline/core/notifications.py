from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from uuid import UUID

import redis.asyncio as redis
from redis.exceptions import RedisError

from lotline.models.license import OrganizationLicense

logger = logging.getLogger(__name__)


def license_channel(organization_id: UUID | str) -> str:
    return f"license:changed:{organization_id}"


@dataclass(slots=True)
class LicenseChange:
    organization_id: str
    is_active: bool
    car_limit: int | None
    tier_name: str | None
    subscription_status: str | None

    @classmethod
    def from_license(cls, license: OrganizationLicense) -> "LicenseChange":
        return cls(
            organization_id=str(license.organization_id),
            is_active=bool(license.is_active),
            car_limit=license.car_limit,
            tier_name=license.tier_name,
            subscription_status=license.subscription_status,
        )


class LicenseChangePublisher:
    """Announces committed license changes so other workers drop cached entitlements."""

    def __init__(self, redis_client: redis.Redis | None) -> None:
        self._redis = redis_client

    @classmethod
    def from_url(cls, redis_url: str) -> "LicenseChangePublisher":
        if not redis_url:
            return cls(None)
        return cls(redis.from_url(redis_url, decode_responses=True))

    @property
    def enabled(self) -> bool:
        return self._redis is not None

    async def publish(self, change: LicenseChange) -> bool:
        if self._redis is None:
            return False
        try:
            await self._redis.publish(license_channel(change.organization_id), json.dumps(asdict(change)))
        except RedisError:
            # The license row is already committed at this point.
            logger.exception("Failed to publish license change for organization %s", change.organization_id)
            return False
        return True

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
