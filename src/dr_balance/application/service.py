"""BalanceService: every credit and debit of DR points goes through here.

A mutation is one transaction: read the row, apply a pure rule, write it
back guarded by the version token, append the billing record. Commit only
after both writes; any exception rolls both back. `mutate_in_transaction`
is the uncommitted building block for composite operations (resource
registration, daily billing); the public operations wrap it in the
bounded CAS retry loop.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.dr_balance.application.schemas import (
    BalanceResponse,
    BillItem,
    BillListResponse,
    DeductDetailResponse,
    DeductResponse,
    MutationResponse,
    RechargeResponse,
)
from src.dr_balance.domain.models import UserBalance
from src.dr_balance.domain.repository import BalanceRepositoryProtocol
from src.dr_balance.domain.rules import (
    BalanceChange,
    plan_consume_reservation,
    plan_credit,
    plan_debit,
    plan_freeze,
    plan_manual_adjust,
    plan_refund,
    plan_reserve,
    plan_status_change,
    plan_unfreeze,
)
from src.dr_balance.infrastructure.persistence import BalanceRepository
from src.dr_commission.application.schemas import AccrualSummary
from src.dr_commission.application.service import CommissionService
from src.dr_commission.domain.models import AccrualResult
from src.dr_common.cursor import cursor_decode, cursor_encode
from src.dr_common.enums import BalanceStatus, BillingType, BusinessType
from src.dr_common.errors import AppError
from src.dr_common.optimistic import run_optimistic
from src.dr_ledger.application.recorder import LedgerRecorder
from src.dr_ledger.domain.models import BillingRecord, LedgerDraft
from src.dr_org.application.service import OrgDirectory
from src.dr_org.domain.models import ChargeAccount

logger = logging.getLogger(__name__)


class RechargeListener(Protocol):
    async def accrue_for_recharge(
        self, db: AsyncSession, recharge: BillingRecord
    ) -> AccrualResult: ...


@dataclass
class Mutation:
    balance: UserBalance
    record: BillingRecord


class BalanceService:
    def __init__(
        self,
        repo: BalanceRepositoryProtocol | None = None,
        recorder: LedgerRecorder | None = None,
        org: OrgDirectory | None = None,
        commission: RechargeListener | None = None,
        max_attempts: int | None = None,
    ) -> None:
        self._repo: BalanceRepositoryProtocol = repo or BalanceRepository()
        self._recorder = recorder or LedgerRecorder()
        self._org = org or OrgDirectory()
        self._commission: RechargeListener = commission or CommissionService(org=self._org)
        self._max_attempts = max_attempts or settings.BALANCE_CAS_MAX_ATTEMPTS

    @property
    def org(self) -> OrgDirectory:
        return self._org

    # ------------------------------------------------------------------
    # Core primitives
    # ------------------------------------------------------------------

    async def mutate_in_transaction(
        self,
        db: AsyncSession,
        user_id: str,
        plan: Callable[[UserBalance], BalanceChange],
        business_type: str,
        business_id: str | None = None,
        operator_id: str | None = None,
        billing_type: BillingType = BillingType.INSTANT,
        description: str | None = None,
        consumer: str | None = None,
        extra_data: dict[str, Any] | None = None,
    ) -> Mutation:
        """Versioned write + ledger append. Does NOT commit; raises StaleVersionError."""
        current = await self._repo.get_or_create(db, user_id)
        change = plan(current)
        updated = await self._repo.update_versioned(db, change.new, current.version)
        extra = {**(change.extra_data or {}), **(extra_data or {})} or None
        record = await self._recorder.record(
            db,
            LedgerDraft(
                user_id=user_id,
                bill_type=change.bill_type,
                amount=change.amount,
                balance_before=change.balance_before,
                balance_after=change.balance_after,
                balance_account=change.balance_account,
                business_type=business_type,
                billing_type=billing_type,
                business_id=business_id,
                operator_id=operator_id,
                description=description,
                consumer=consumer,
                extra_data=extra,
            ),
        )
        return Mutation(balance=updated, record=record)

    async def run_in_transaction(
        self, db: AsyncSession, attempt: Callable[[], Awaitable[Any]], resource: str
    ) -> Any:
        """Commit `attempt` with bounded CAS retries."""
        return await run_optimistic(db, attempt, self._max_attempts, resource)

    async def _mutate(
        self,
        db: AsyncSession,
        user_id: str,
        plan: Callable[[UserBalance], BalanceChange],
        **meta: Any,
    ) -> Mutation:
        mutation: Mutation = await self.run_in_transaction(
            db,
            lambda: self.mutate_in_transaction(db, user_id, plan, **meta),
            f"user_balances:{user_id}",
        )
        logger.info(
            "Balance %s: %s %s %s (%s) %s -> %s bill=%s",
            user_id,
            mutation.record.bill_type,
            mutation.record.balance_account,
            mutation.record.amount,
            mutation.record.business_type,
            mutation.record.balance_before,
            mutation.record.balance_after,
            mutation.record.bill_no,
        )
        return mutation

    async def get_or_create(self, db: AsyncSession, user_id: str) -> UserBalance:
        try:
            balance = await self._repo.get_or_create(db, user_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return balance

    async def credit(
        self, db: AsyncSession, user_id: str, amount: Decimal, business_type: str, **meta: Any
    ) -> Mutation:
        return await self._mutate(
            db, user_id, lambda b: plan_credit(b, amount), business_type=business_type, **meta
        )

    async def debit(
        self,
        db: AsyncSession,
        user_id: str,
        amount: Decimal,
        business_type: str,
        allow_overdraft: bool = False,
        **meta: Any,
    ) -> Mutation:
        return await self._mutate(
            db,
            user_id,
            lambda b: plan_debit(b, amount, allow_overdraft),
            business_type=business_type,
            **meta,
        )

    async def reserve(
        self,
        db: AsyncSession,
        user_id: str,
        amount: Decimal,
        business_type: str = BusinessType.INSTANCE_PRE_DEDUCT.value,
        **meta: Any,
    ) -> Mutation:
        return await self._mutate(
            db, user_id, lambda b: plan_reserve(b, amount), business_type=business_type, **meta
        )

    async def consume_reservation(
        self, db: AsyncSession, user_id: str, amount: Decimal, business_type: str, **meta: Any
    ) -> Mutation:
        return await self._mutate(
            db,
            user_id,
            lambda b: plan_consume_reservation(b, amount),
            business_type=business_type,
            **meta,
        )

    # ------------------------------------------------------------------
    # Exposed operations
    # ------------------------------------------------------------------

    async def get_balance(self, db: AsyncSession, user_id: str) -> BalanceResponse:
        return BalanceResponse.from_balance(await self.get_or_create(db, user_id))

    async def recharge(
        self,
        db: AsyncSession,
        user_id: str,
        amount: Decimal,
        operator_id: str | None = None,
        business_id: str | None = None,
        description: str | None = None,
    ) -> RechargeResponse:
        mutation = await self.credit(
            db,
            user_id,
            amount,
            BusinessType.RECHARGE.value,
            business_id=business_id,
            operator_id=operator_id,
            description=description or "Recharge",
        )
        # The recharge is committed; commission problems are reported, never undone.
        try:
            accrual = await self._commission.accrue_for_recharge(db, mutation.record)
        except (AppError, SQLAlchemyError) as exc:
            await db.rollback()
            logger.error(
                "Commission accrual for bill %s not started: %s (replay job will retry)",
                mutation.record.bill_id, exc,
            )
            accrual = AccrualResult(
                trigger_bill_id=mutation.record.bill_id,
                source_user_id=user_id,
                recharge_amount=mutation.record.amount,
                error=str(exc),
            )
        return RechargeResponse(
            balance=BalanceResponse.from_balance(mutation.balance),
            bill=BillItem.from_record(mutation.record),
            commission=AccrualSummary.from_result(accrual),
        )

    async def refund(
        self,
        db: AsyncSession,
        user_id: str,
        amount: Decimal,
        business_type: str,
        business_id: str | None = None,
        operator_id: str | None = None,
        description: str | None = None,
    ) -> MutationResponse:
        mutation = await self._mutate(
            db,
            user_id,
            lambda b: plan_refund(b, amount),
            business_type=business_type,
            business_id=business_id,
            operator_id=operator_id,
            description=description or "Refund",
        )
        return MutationResponse(
            balance=BalanceResponse.from_balance(mutation.balance),
            bill=BillItem.from_record(mutation.record),
        )

    async def _deduct(
        self,
        db: AsyncSession,
        request_user_id: str,
        amount: Decimal,
        business_type: str,
        business_id: str | None,
        operator_id: str | None,
        description: str | None,
        consumer: str | None,
    ) -> tuple[ChargeAccount, Mutation]:
        charge = await self._org.resolve_charge_account(db, request_user_id)
        mutation = await self.debit(
            db,
            charge.charge_user_id,
            amount,
            business_type,
            allow_overdraft=charge.routed,
            business_id=business_id,
            operator_id=operator_id or request_user_id,
            description=description,
            consumer=consumer or request_user_id,
            extra_data={"request_user_id": request_user_id} if charge.routed else None,
        )
        return charge, mutation

    async def deduct(
        self,
        db: AsyncSession,
        request_user_id: str,
        amount: Decimal,
        business_type: str,
        business_id: str | None = None,
        operator_id: str | None = None,
        description: str | None = None,
        consumer: str | None = None,
    ) -> DeductResponse:
        charge, mutation = await self._deduct(
            db, request_user_id, amount, business_type,
            business_id, operator_id, description, consumer,
        )
        return DeductResponse(
            success=True,
            charge_user_id=charge.charge_user_id,
            amount=mutation.record.amount,
            balance_after=mutation.balance.dr_balance,
        )

    async def deduct_with_details(
        self,
        db: AsyncSession,
        request_user_id: str,
        amount: Decimal,
        business_type: str,
        business_id: str | None = None,
        operator_id: str | None = None,
        description: str | None = None,
        consumer: str | None = None,
    ) -> DeductDetailResponse:
        charge, mutation = await self._deduct(
            db, request_user_id, amount, business_type,
            business_id, operator_id, description, consumer,
        )
        return DeductDetailResponse(
            request_user_id=request_user_id,
            charge_user_id=charge.charge_user_id,
            routed_to_main_account=charge.routed,
            balance=BalanceResponse.from_balance(mutation.balance),
            bill=BillItem.from_record(mutation.record),
        )

    async def manual_adjust(
        self,
        db: AsyncSession,
        user_id: str,
        signed_amount: Decimal,
        operator_id: str,
        remark: str | None = None,
    ) -> MutationResponse:
        mutation = await self._mutate(
            db,
            user_id,
            lambda b: plan_manual_adjust(b, signed_amount),
            business_type=BusinessType.MANUAL_ADJUST.value,
            operator_id=operator_id,
            description=remark or "Manual adjustment",
        )
        return MutationResponse(
            balance=BalanceResponse.from_balance(mutation.balance),
            bill=BillItem.from_record(mutation.record),
        )

    async def _update_without_bill(
        self, db: AsyncSession, user_id: str, plan: Callable[[UserBalance], UserBalance]
    ) -> UserBalance:
        """Versioned write for changes that move no money, so no billing record."""

        async def attempt() -> UserBalance:
            current = await self._repo.get_or_create(db, user_id)
            return await self._repo.update_versioned(db, plan(current), current.version)

        return await self.run_in_transaction(db, attempt, f"user_balances:{user_id}")

    async def set_status(
        self, db: AsyncSession, user_id: str, status: BalanceStatus
    ) -> BalanceResponse:
        balance = await self._update_without_bill(
            db, user_id, lambda b: plan_status_change(b, status)
        )
        logger.info("Balance %s status -> %s", user_id, status.value)
        return BalanceResponse.from_balance(balance)

    async def freeze(
        self, db: AsyncSession, user_id: str, amount: Decimal, operator_id: str | None = None
    ) -> BalanceResponse:
        balance = await self._update_without_bill(db, user_id, lambda b: plan_freeze(b, amount))
        logger.info(
            "Balance %s: froze %s by %s (frozen now %s)",
            user_id, amount, operator_id, balance.frozen_amount,
        )
        return BalanceResponse.from_balance(balance)

    async def unfreeze(
        self, db: AsyncSession, user_id: str, amount: Decimal, operator_id: str | None = None
    ) -> BalanceResponse:
        balance = await self._update_without_bill(
            db, user_id, lambda b: plan_unfreeze(b, amount)
        )
        logger.info(
            "Balance %s: unfroze %s by %s (frozen now %s)",
            user_id, amount, operator_id, balance.frozen_amount,
        )
        return BalanceResponse.from_balance(balance)

    async def list_bills(
        self,
        db: AsyncSession,
        user_id: str,
        cursor: str | None,
        limit: int,
        bill_type: str | None = None,
        business_type: str | None = None,
    ) -> BillListResponse:
        cursor_id = cursor_decode(cursor)
        records = await self._recorder.repo.list_for_user(
            db, user_id, cursor_id, limit + 1, bill_type, business_type
        )
        has_more = len(records) > limit
        page = records[:limit]
        next_cursor = cursor_encode(page[-1].bill_id) if has_more and page else None
        return BillListResponse(
            items=[BillItem.from_record(r) for r in page],
            next_cursor=next_cursor,
            has_more=has_more,
        )
