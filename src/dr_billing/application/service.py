"""ResourceBillingService: pre-deduction, first-day proration and the daily tick.

All charges land on the requester's root account. Debits routed from a sub
account may overdraw the root account; debits on a main account's own
resources may not.
"""

import logging
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.dr_balance.application.schemas import BalanceResponse, BillItem
from src.dr_balance.application.service import BalanceService, Mutation
from src.dr_balance.domain.rules import plan_daily_charge, plan_debit, plan_reserve
from src.dr_billing.application.schemas import (
    BilledResourceResponse,
    DailyBillingSummaryResponse,
    InstanceQuotaResponse,
    ResourceRegistrationResponse,
)
from src.dr_billing.domain.models import BilledResource, DailyBillingSummary
from src.dr_billing.domain.proration import available_instance_count, prorate_first_day
from src.dr_billing.domain.repository import BilledResourceRepositoryProtocol
from src.dr_billing.infrastructure.persistence import BilledResourceRepository
from src.dr_common.datetime_utils import local_now, local_today
from src.dr_common.enums import BillingType, BusinessType
from src.dr_common.errors import (
    AppError,
    DuplicateResourceError,
    InsufficientQuotaError,
    ResourceNotFoundError,
    ValidationError,
)
from src.dr_common.money import ZERO, to_money
from src.dr_pricing.application.service import PricingService

logger = logging.getLogger(__name__)

_PRE_DEDUCTED_TYPES = {BusinessType.INSTANCE_MARKETING.value}


class ResourceBillingService:
    def __init__(
        self,
        balance: BalanceService | None = None,
        pricing: PricingService | None = None,
        repo: BilledResourceRepositoryProtocol | None = None,
        default_pre_deduct_price: Decimal | None = None,
        timezone_name: str | None = None,
        batch_size: int = 200,
    ) -> None:
        self._balance = balance or BalanceService()
        self._pricing = pricing or PricingService()
        self._repo: BilledResourceRepositoryProtocol = repo or BilledResourceRepository()
        self._default_pre_deduct = to_money(
            default_pre_deduct_price or settings.DEFAULT_INSTANCE_PRE_DEDUCT_PRICE
        )
        self._tz = timezone_name or settings.BILLING_TIMEZONE
        self._batch_size = batch_size

    async def pre_deduct_unit_price(self, db: AsyncSession) -> Decimal:
        config = await self._pricing.get_active(db, BusinessType.INSTANCE_PRE_DEDUCT.value)
        return config.dr_price if config is not None else self._default_pre_deduct

    # ------------------------------------------------------------------
    # Quota
    # ------------------------------------------------------------------

    async def get_available_marketing_instance_count(
        self, db: AsyncSession, user_id: str
    ) -> InstanceQuotaResponse:
        charge = await self._balance.org.resolve_charge_account(db, user_id)
        balance = await self._balance.get_or_create(db, charge.charge_user_id)
        unit_price = await self.pre_deduct_unit_price(db)
        return InstanceQuotaResponse(
            user_id=user_id,
            charge_user_id=charge.charge_user_id,
            available_balance=balance.available,
            unit_price=unit_price,
            available_count=available_instance_count(balance.available, unit_price),
        )

    # ------------------------------------------------------------------
    # Registration / release
    # ------------------------------------------------------------------

    async def register_resource(
        self,
        db: AsyncSession,
        request_user_id: str,
        resource_id: str,
        business_type: str = BusinessType.INSTANCE_MARKETING.value,
        operator_id: str | None = None,
        now: datetime | None = None,
    ) -> ResourceRegistrationResponse:
        """Quota check, reservation, first-day proration and registration in one transaction."""
        moment = now or local_now(self._tz)
        charge = await self._balance.org.resolve_charge_account(db, request_user_id)
        payer = charge.charge_user_id
        pre_deduct = business_type in _PRE_DEDUCTED_TYPES

        daily = await self._pricing.get_active(db, business_type)
        billing_type = daily.billing_type if daily is not None else BillingType.DAILY.value
        proration = ZERO
        if daily is not None and billing_type == BillingType.DAILY:
            proration = prorate_first_day(daily.dr_price, moment)

        unit_price = ZERO
        if pre_deduct:
            quota = await self.get_available_marketing_instance_count(db, request_user_id)
            # Reservation plus an unrouted first-day charge must fit the base balance
            required = quota.unit_price + (ZERO if charge.routed else proration)
            if quota.available_count < 1 or quota.available_balance < required:
                raise InsufficientQuotaError(payer)
            unit_price = quota.unit_price

        meta = {
            "business_id": resource_id,
            "operator_id": operator_id or request_user_id,
            "consumer": request_user_id,
        }

        async def attempt() -> tuple[BilledResource, Mutation | None, Mutation | None]:
            reservation = None
            if pre_deduct and unit_price > ZERO:
                reservation = await self._balance.mutate_in_transaction(
                    db,
                    payer,
                    lambda b: plan_reserve(b, unit_price),
                    business_type=BusinessType.INSTANCE_PRE_DEDUCT.value,
                    description=f"Pre-deduction for {business_type} {resource_id}",
                    **meta,
                )
            prorated = None
            if proration > ZERO:
                prorated = await self._balance.mutate_in_transaction(
                    db,
                    payer,
                    lambda b: plan_debit(b, proration, allow_overdraft=charge.routed),
                    business_type=business_type,
                    billing_type=BillingType.DAILY,
                    description=f"First-day proration for {resource_id}",
                    extra_data={"prorated_from": moment.isoformat()},
                    **meta,
                )
            resource = await self._repo.insert(
                db,
                BilledResource(
                    resource_id=resource_id,
                    owner_user_id=request_user_id,
                    charge_user_id=payer,
                    business_type=business_type,
                    billing_type=billing_type,
                    total_billed_days=1 if prorated else 0,
                    total_billed_amount=proration if prorated else ZERO,
                    last_billed_date=moment.date(),
                ),
            )
            if resource is None:
                raise DuplicateResourceError(resource_id)
            return resource, reservation, prorated

        resource, reservation, prorated = await self._balance.run_in_transaction(
            db, attempt, f"user_balances:{payer}"
        )
        logger.info(
            "Resource %s (%s) registered for %s billed to %s: reserved=%s prorated=%s",
            resource_id, business_type, request_user_id, payer,
            unit_price if reservation else ZERO, proration if prorated else ZERO,
        )
        last = prorated or reservation
        return ResourceRegistrationResponse(
            resource=BilledResourceResponse.from_resource(resource),
            pre_deduct_bill=BillItem.from_record(reservation.record) if reservation else None,
            proration_bill=BillItem.from_record(prorated.record) if prorated else None,
            balance=BalanceResponse.from_balance(last.balance) if last else None,
        )

    async def release_resource(self, db: AsyncSession, resource_id: str) -> BilledResourceResponse:
        try:
            released = await self._repo.release(db, resource_id)
            if released is None:
                existing = await self._repo.get(db, resource_id)
                if existing is None:
                    raise ResourceNotFoundError(resource_id)
                raise ValidationError(f"Resource {resource_id} is already {existing.status}")
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Resource %s released; daily billing stops", resource_id)
        return BilledResourceResponse.from_resource(released)

    async def get_resource(self, db: AsyncSession, resource_id: str) -> BilledResourceResponse:
        resource = await self._repo.get(db, resource_id)
        if resource is None:
            raise ResourceNotFoundError(resource_id)
        return BilledResourceResponse.from_resource(resource)

    # ------------------------------------------------------------------
    # Daily tick
    # ------------------------------------------------------------------

    async def bill_resource_for_day(
        self, db: AsyncSession, resource: BilledResource, price: Decimal, billing_date: date
    ) -> Mutation | None:
        """Charge one resource for one day. None when it was already billed for that date."""

        async def attempt() -> Mutation | None:
            marked = await self._repo.mark_billed(db, resource.resource_id, billing_date, price)
            if marked is None:
                return None
            return await self._balance.mutate_in_transaction(
                db,
                resource.charge_user_id,
                lambda b: plan_daily_charge(b, price, allow_overdraft=resource.routed),
                business_type=resource.business_type,
                business_id=resource.resource_id,
                billing_type=BillingType.DAILY,
                description=f"Daily billing {billing_date.isoformat()}",
                consumer=resource.owner_user_id,
                extra_data={"billing_date": billing_date.isoformat()},
            )

        return await self._balance.run_in_transaction(
            db, attempt, f"user_balances:{resource.charge_user_id}"
        )

    async def run_daily_billing(
        self, db: AsyncSession, billing_date: date | None = None
    ) -> DailyBillingSummaryResponse:
        day = billing_date or local_today(self._tz)
        summary = DailyBillingSummary(billing_date=day)
        prices: dict[str, Decimal | None] = {}
        after_id: str | None = None

        while True:
            batch = await self._repo.list_due(db, day, after_id, self._batch_size)
            if not batch:
                break
            after_id = batch[-1].resource_id
            for resource in batch:
                if resource.business_type not in prices:
                    config = await self._pricing.get_active(db, resource.business_type)
                    if config is None or config.dr_price <= ZERO:
                        prices[resource.business_type] = None
                        summary.skipped_business_types.append(resource.business_type)
                        logger.info(
                            "Daily billing skips %s: price config inactive or free",
                            resource.business_type,
                        )
                    else:
                        prices[resource.business_type] = config.dr_price
                price = prices[resource.business_type]
                if price is None:
                    continue
                try:
                    mutation = await self.bill_resource_for_day(db, resource, price, day)
                except (AppError, SQLAlchemyError) as exc:
                    summary.failed += 1
                    summary.failures[resource.resource_id] = str(exc)
                    logger.warning(
                        "Daily billing of %s on %s failed: %s",
                        resource.resource_id, resource.charge_user_id, exc,
                    )
                    continue
                if mutation is None:
                    summary.already_billed += 1
                else:
                    summary.charged += 1
                    summary.total_amount += price

        logger.info(
            "Daily billing %s: charged=%d already_billed=%d failed=%d total=%s skipped=%s",
            day, summary.charged, summary.already_billed, summary.failed,
            summary.total_amount, summary.skipped_business_types,
        )
        return DailyBillingSummaryResponse.from_summary(summary)
