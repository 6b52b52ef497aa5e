"""Applies Stripe billing events to organization licenses.

Every event is verified, checked against the billing event ledger, resolved
to one license row (locked for the rest of the transaction) and applied in
the same transaction that marks the ledger entry processed. Events older than
the license's ``last_event_at`` are recorded as superseded; checkout
completions only link identifiers and sit outside that ordering. Free accounts
are never touched. Failures after verification are written to the ledger in
a separate transaction.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lotline.core.billing import events as billing_events
from lotline.core.billing.entitlements import resolve_car_limit
from lotline.core.billing.events import BillingEventEnvelope, load_loose_payload, parse_envelope
from lotline.core.billing.provisioning import OrganizationProvisioner
from lotline.core.billing.signature import WebhookSignatureVerifier
from lotline.core.context import reset_current_billing_event_id, set_current_billing_event_id
from lotline.core.errors import ConflictError, NotFoundError, TransientError, ValidationError
from lotline.core.notifications import LicenseChange, LicenseChangePublisher
from lotline.core.repositories.billing_events import BillingEventRepository
from lotline.core.repositories.licenses import LicenseRepository
from lotline.core.repositories.organizations import OrganizationRepository
from lotline.core.repositories.tiers import TierRepository
from lotline.models.base import ensure_utc, utcnow
from lotline.models.billing_event import BillingEvent, LedgerStatus
from lotline.models.license import OrganizationLicense, SubscriptionStatus
from lotline.models.tier import LicenseTier

logger = logging.getLogger(__name__)

MAX_ERROR_MESSAGE_LENGTH = 2000

# Carry identifiers and the purchased price but no subscription status or period,
# so they neither consult nor advance last_event_at.
LINKING_EVENT_TYPES = frozenset({billing_events.CHECKOUT_COMPLETED})


class ReconciliationOutcome(str, enum.Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    SUPERSEDED = "superseded"
    SKIPPED_FREE_ACCOUNT = "skipped_free_account"
    IGNORED = "ignored"
    FAILED = "failed"


@dataclass(slots=True)
class ReconciliationResult:
    event_id: str | None
    event_type: str | None
    outcome: ReconciliationOutcome
    organization_id: UUID | None = None
    detail: str | None = None


Resolver = Callable[[AsyncSession, BillingEventEnvelope], Awaitable[OrganizationLicense]]
Mutator = Callable[[AsyncSession, OrganizationLicense, BillingEventEnvelope], Awaitable[None]]


class ReconciliationEngine:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        verifier: WebhookSignatureVerifier,
        *,
        provisioner: OrganizationProvisioner | None = None,
        publisher: LicenseChangePublisher | None = None,
        clock: Callable[[], datetime] = utcnow,
        apply_timeout_seconds: float = 8.0,
    ) -> None:
        self.session_factory = session_factory
        self.verifier = verifier
        self.provisioner = provisioner or OrganizationProvisioner()
        self.publisher = publisher
        self.clock = clock
        self.apply_timeout_seconds = apply_timeout_seconds

        self._handlers: dict[str, tuple[Resolver, Mutator]] = {
            billing_events.CHECKOUT_COMPLETED: (self._resolve_checkout, self._apply_checkout),
            billing_events.SUBSCRIPTION_CREATED: (self._resolve_subscription, self._apply_subscription),
            billing_events.SUBSCRIPTION_UPDATED: (self._resolve_subscription, self._apply_subscription),
            billing_events.SUBSCRIPTION_DELETED: (self._resolve_subscription, self._apply_cancellation),
            billing_events.INVOICE_PAYMENT_FAILED: (self._resolve_invoice, self._apply_payment_failed),
            billing_events.INVOICE_PAYMENT_SUCCEEDED: (self._resolve_invoice, self._apply_payment_succeeded),
            billing_events.INVOICE_PAID: (self._resolve_invoice, self._apply_payment_succeeded),
        }

    async def apply_billing_event(
        self,
        raw_payload: bytes,
        signature_header: str | None,
    ) -> ReconciliationResult:
        self.verifier.verify(raw_payload, signature_header)

        try:
            event = parse_envelope(raw_payload)
        except ValidationError as exc:
            return await self._reject_malformed(raw_payload, exc)

        token = set_current_billing_event_id(event.id)
        try:
            logger.info("Received billing event type=%s", event.type)
            result, change = await self._apply_with_timeout(event)
        finally:
            reset_current_billing_event_id(token)

        if change is not None and self.publisher is not None:
            await self.publisher.publish(change)
        return result

    async def _reject_malformed(self, raw_payload: bytes, exc: ValidationError) -> ReconciliationResult:
        payload = load_loose_payload(raw_payload)
        event_id = payload.get("id") if isinstance(payload.get("id"), str) and payload.get("id") else None
        event_type = payload.get("type") if isinstance(payload.get("type"), str) else None
        if event_id is None:
            logger.warning("Discarding billing event without an id: %s", exc.message)
            return ReconciliationResult(
                event_id=None,
                event_type=event_type,
                outcome=ReconciliationOutcome.FAILED,
                detail=exc.message,
            )

        logger.warning("Malformed billing event %s: %s", event_id, exc.message)
        await self._record_failure(
            event_id=event_id,
            event_type=event_type or "unknown",
            payload=payload,
            event_created_at=None,
            message=exc.message,
        )
        return ReconciliationResult(
            event_id=event_id,
            event_type=event_type,
            outcome=ReconciliationOutcome.FAILED,
            detail=exc.message,
        )

    async def _apply_with_timeout(
        self, event: BillingEventEnvelope
    ) -> tuple[ReconciliationResult, LicenseChange | None]:
        try:
            return await asyncio.wait_for(self._apply(event), timeout=self.apply_timeout_seconds)
        except (ValidationError, NotFoundError) as exc:
            logger.warning("Billing event %s could not be applied: %s", event.id, exc.message)
            await self._record_event_failure(event, exc.message)
            return (
                ReconciliationResult(
                    event_id=event.id,
                    event_type=event.type,
                    outcome=ReconciliationOutcome.FAILED,
                    detail=exc.message,
                ),
                None,
            )
        except (asyncio.TimeoutError, OperationalError, InterfaceError) as exc:
            logger.warning("Billing event %s hit a transient storage failure: %r", event.id, exc)
            await self._record_event_failure(event, f"Transient failure: {exc!r}")
            raise TransientError("Billing event could not be applied right now; retry delivery") from exc
        except Exception as exc:
            logger.exception("Unexpected failure applying billing event %s", event.id)
            await self._record_event_failure(event, repr(exc))
            raise

    async def _apply(self, event: BillingEventEnvelope) -> tuple[ReconciliationResult, LicenseChange | None]:
        async with self.session_factory() as session:
            try:
                async with session.begin():
                    ledger = BillingEventRepository(session)
                    entry = await ledger.get_by_stripe_event_id(event.id)
                    if entry is not None and entry.status == LedgerStatus.PROCESSED.value:
                        logger.info("Billing event %s already processed", event.id)
                        return self._duplicate(event), None

                    license, outcome = await self._reconcile(session, event)

                    if entry is None:
                        entry = BillingEvent(
                            stripe_event_id=event.id,
                            event_type=event.type,
                            payload=event.payload,
                            event_created_at=event.created,
                            attempts=0,
                        )
                        session.add(entry)
                    entry.status = LedgerStatus.PROCESSED.value
                    entry.outcome = outcome.value
                    entry.error_message = None
                    entry.processed_at = self.clock()
                    entry.attempts = (entry.attempts or 0) + 1
                    if license is not None:
                        entry.organization_id = license.organization_id
                        entry.license_id = license.id
                    await session.flush()

                    change = None
                    if outcome == ReconciliationOutcome.APPLIED and license is not None:
                        change = LicenseChange.from_license(license)
            except IntegrityError:
                if await self._is_processed(event.id):
                    logger.info("Billing event %s was committed by a concurrent delivery", event.id)
                    return self._duplicate(event), None
                raise

        return (
            ReconciliationResult(
                event_id=event.id,
                event_type=event.type,
                outcome=outcome,
                organization_id=license.organization_id if license is not None else None,
            ),
            change,
        )

    async def _reconcile(
        self, session: AsyncSession, event: BillingEventEnvelope
    ) -> tuple[OrganizationLicense | None, ReconciliationOutcome]:
        handler = self._handlers.get(event.type)
        if handler is None:
            logger.info("Ignoring unhandled billing event type=%s", event.type)
            return None, ReconciliationOutcome.IGNORED

        resolve, mutate = handler
        license = await resolve(session, event)
        log_extra = {"organization_id": str(license.organization_id)}

        if license.is_free_account:
            logger.info("Skipping %s for free account", event.type, extra=log_extra)
            return license, ReconciliationOutcome.SKIPPED_FREE_ACCOUNT

        ordered = event.type not in LINKING_EVENT_TYPES
        if ordered:
            try:
                self._ensure_current(license, event)
            except ConflictError as exc:
                logger.info("Superseded billing event: %s", exc.message, extra=log_extra)
                return license, ReconciliationOutcome.SUPERSEDED

        await mutate(session, license, event)
        if ordered:
            license.last_event_at = event.created
        logger.info(
            "Applied %s: tier=%s car_limit=%s status=%s",
            event.type,
            license.tier_name,
            license.car_limit,
            license.subscription_status,
            extra=log_extra,
        )
        return license, ReconciliationOutcome.APPLIED

    @staticmethod
    def _ensure_current(license: OrganizationLicense, event: BillingEventEnvelope) -> None:
        last_event_at = ensure_utc(license.last_event_at)
        if last_event_at is not None and event.created < last_event_at:
            raise ConflictError(
                f"event {event.id} created {event.created.isoformat()} is older than "
                f"license state at {last_event_at.isoformat()}"
            )

    @staticmethod
    def _duplicate(event: BillingEventEnvelope) -> ReconciliationResult:
        return ReconciliationResult(
            event_id=event.id,
            event_type=event.type,
            outcome=ReconciliationOutcome.DUPLICATE,
        )

    async def _is_processed(self, event_id: str) -> bool:
        async with self.session_factory() as session:
            entry = await BillingEventRepository(session).get_by_stripe_event_id(event_id)
            return entry is not None and entry.status == LedgerStatus.PROCESSED.value

    async def _record_event_failure(self, event: BillingEventEnvelope, message: str) -> None:
        await self._record_failure(
            event_id=event.id,
            event_type=event.type,
            payload=event.payload,
            event_created_at=event.created,
            message=message,
        )

    async def _record_failure(
        self,
        *,
        event_id: str,
        event_type: str,
        payload: dict[str, Any],
        event_created_at: datetime | None,
        message: str,
    ) -> None:
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    ledger = BillingEventRepository(session)
                    entry = await ledger.get_by_stripe_event_id(event_id)
                    if entry is not None and entry.status == LedgerStatus.PROCESSED.value:
                        return
                    if entry is None:
                        entry = BillingEvent(
                            stripe_event_id=event_id,
                            event_type=event_type,
                            payload=payload,
                            event_created_at=event_created_at,
                            attempts=0,
                        )
                        session.add(entry)
                    entry.status = LedgerStatus.FAILED.value
                    entry.outcome = None
                    entry.error_message = message[:MAX_ERROR_MESSAGE_LENGTH]
                    entry.attempts = (entry.attempts or 0) + 1
        except SQLAlchemyError:
            logger.exception("Could not record failure for billing event %s", event_id)

    # Resolution

    async def _license_by_billing_ids(
        self, session: AsyncSession, event: BillingEventEnvelope
    ) -> OrganizationLicense | None:
        licenses = LicenseRepository(session)
        if event.subscription_id:
            license = await licenses.get_by_subscription_id(event.subscription_id, for_update=True)
            if license is not None:
                return license
        if event.customer_id:
            license = await licenses.get_by_customer_id(event.customer_id, for_update=True)
            if license is not None:
                return license
        return await licenses.get_free_by_released_ids(
            subscription_id=event.subscription_id,
            customer_id=event.customer_id,
            for_update=True,
        )

    async def _license_from_hints(
        self, session: AsyncSession, event: BillingEventEnvelope
    ) -> OrganizationLicense:
        name = event.organization_name_hint
        email = event.owner_email_hint
        if not name and not email:
            raise NotFoundError(
                f"No organization linked to customer {event.customer_id} and no organization hints on {event.type}"
            )

        organization = await OrganizationRepository(session).find_by_name_or_email(name=name, email=email)
        if organization is None:
            organization = await self.provisioner.provision(session, name=name, owner_email=email)

        licenses = LicenseRepository(session)
        license = await licenses.get_by_organization(organization.id, for_update=True)
        if license is not None:
            return license

        tier = await self._require_tier(session, event.price_id)
        logger.info("Creating %s license for organization %s", tier.tier_name, organization.id)
        return await licenses.add(
            OrganizationLicense(
                organization_id=organization.id,
                tier_name=tier.tier_name,
                car_limit=resolve_car_limit(tier),
                has_custom_car_limit=False,
                is_active=True,
                is_free_account=False,
                subscription_status=SubscriptionStatus.INCOMPLETE.value,
            )
        )

    async def _resolve_checkout(self, session: AsyncSession, event: BillingEventEnvelope) -> OrganizationLicense:
        if event.customer_id:
            licenses = LicenseRepository(session)
            license = await licenses.get_by_customer_id(event.customer_id, for_update=True)
            if license is None:
                license = await licenses.get_free_by_released_ids(
                    subscription_id=None,
                    customer_id=event.customer_id,
                    for_update=True,
                )
            if license is not None:
                return license
        return await self._license_from_hints(session, event)

    async def _resolve_subscription(
        self, session: AsyncSession, event: BillingEventEnvelope
    ) -> OrganizationLicense:
        license = await self._license_by_billing_ids(session, event)
        if license is not None:
            return license
        if event.type == billing_events.SUBSCRIPTION_CREATED:
            return await self._license_from_hints(session, event)
        raise NotFoundError(
            f"No license linked to subscription {event.subscription_id} or customer {event.customer_id}"
        )

    async def _resolve_invoice(self, session: AsyncSession, event: BillingEventEnvelope) -> OrganizationLicense:
        license = await self._license_by_billing_ids(session, event)
        if license is None:
            raise NotFoundError(
                f"No license linked to invoice subscription {event.subscription_id} "
                f"or customer {event.customer_id}"
            )
        return license

    # State derivation

    async def _apply_checkout(
        self, session: AsyncSession, license: OrganizationLicense, event: BillingEventEnvelope
    ) -> None:
        if event.customer_id:
            license.stripe_customer_id = event.customer_id
        if event.subscription_id:
            license.stripe_subscription_id = event.subscription_id
        if license.subscription_status is None:
            license.subscription_status = SubscriptionStatus.INCOMPLETE.value
        if license.last_event_at is None:
            await self._apply_tier(session, license, event.price_id)

    async def _apply_subscription(
        self, session: AsyncSession, license: OrganizationLicense, event: BillingEventEnvelope
    ) -> None:
        status = self._parse_status(event.subscription_status)
        period_start, period_end = event.period_bounds()

        if event.subscription_id:
            license.stripe_subscription_id = event.subscription_id
        if event.customer_id:
            license.stripe_customer_id = event.customer_id
        if status is not None:
            license.subscription_status = status.value
        if period_start is not None:
            license.current_period_start = period_start
        if period_end is not None:
            license.current_period_end = period_end
        await self._apply_tier(session, license, event.price_id)

    async def _apply_cancellation(
        self, session: AsyncSession, license: OrganizationLicense, event: BillingEventEnvelope
    ) -> None:
        license.subscription_status = SubscriptionStatus.CANCELED.value

    async def _apply_payment_failed(
        self, session: AsyncSession, license: OrganizationLicense, event: BillingEventEnvelope
    ) -> None:
        license.subscription_status = SubscriptionStatus.PAST_DUE.value

    async def _apply_payment_succeeded(
        self, session: AsyncSession, license: OrganizationLicense, event: BillingEventEnvelope
    ) -> None:
        license.subscription_status = SubscriptionStatus.ACTIVE.value

    async def _apply_tier(self, session: AsyncSession, license: OrganizationLicense, price_id: str | None) -> None:
        if not price_id:
            return
        tier = await TierRepository(session).get_by_price_id(price_id)
        if tier is None:
            logger.warning(
                "Unknown price %s; keeping tier %s",
                price_id,
                license.tier_name,
                extra={"organization_id": str(license.organization_id)},
            )
            return

        if tier.tier_name != license.tier_name:
            license.car_limit = resolve_car_limit(tier, current=license.car_limit)
            license.tier_name = tier.tier_name
            license.has_custom_car_limit = False
        elif not license.has_custom_car_limit and tier.car_limit is not None:
            license.car_limit = tier.car_limit

    async def _require_tier(self, session: AsyncSession, price_id: str | None) -> LicenseTier:
        if not price_id:
            raise NotFoundError("Billing event carries no price to derive a tier from")
        tier = await TierRepository(session).get_by_price_id(price_id)
        if tier is None:
            raise NotFoundError(f"No tier is linked to price {price_id}")
        return tier

    @staticmethod
    def _parse_status(value: Any) -> SubscriptionStatus | None:
        if value is None:
            return None
        try:
            return SubscriptionStatus(value)
        except ValueError as exc:
            raise ValidationError(f"Unknown subscription status: {value!r}") from exc
