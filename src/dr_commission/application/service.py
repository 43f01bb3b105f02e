"""CommissionService: multi-level accrual on recharge, account views, adjustments.

Accrual fans out to up to COMMISSION_MAX_LEVELS agent ancestors. Every level
is its own transaction (record insert + versioned account update) keyed by
(trigger_bill_id, level), so a replay of the same recharge credits nothing
twice. Failed levels are reported in AccrualResult and picked up again by
`replay_recent_accruals`; the recharge itself is never touched.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.dr_commission.application.schemas import (
    AgentOverviewItem,
    CommissionAccountResponse,
    CommissionOverviewResponse,
    CommissionRecordItem,
    CommissionRecordListResponse,
    CommissionSummaryResponse,
    LevelTotalItem,
)
from src.dr_commission.domain.models import (
    AccrualResult,
    CommissionAccount,
    CommissionRecord,
    CommissionRecordDraft,
    LevelOutcome,
    ReplaySummary,
)
from src.dr_commission.domain.repository import CommissionRepositoryProtocol
from src.dr_commission.domain.rules import (
    CommissionChange,
    commission_for_level,
    plan_accrual,
    plan_manual_adjust,
)
from src.dr_commission.infrastructure.persistence import CommissionRepository
from src.dr_common.cursor import cursor_decode, cursor_encode
from src.dr_common.datetime_utils import utc_now
from src.dr_common.errors import AppError, InternalError, ValidationError
from src.dr_common.money import ZERO
from src.dr_common.optimistic import run_optimistic
from src.dr_ledger.domain.models import BillingRecord
from src.dr_ledger.domain.repository import LedgerRepositoryProtocol
from src.dr_ledger.infrastructure.persistence import LedgerRepository
from src.dr_org.application.service import OrgDirectory
from src.dr_pricing.application.service import PricingService

logger = logging.getLogger(__name__)

_RATE_BUSINESS_TYPES = {
    1: "AGENT_LEVEL1_COMMISSION",
    2: "AGENT_LEVEL2_COMMISSION",
    3: "AGENT_LEVEL3_COMMISSION",
}


class CommissionService:
    def __init__(
        self,
        repo: CommissionRepositoryProtocol | None = None,
        org: OrgDirectory | None = None,
        pricing: PricingService | None = None,
        ledger_repo: LedgerRepositoryProtocol | None = None,
        default_rates: dict[int, Decimal] | None = None,
        max_levels: int | None = None,
        level_attempts: int | None = None,
        cas_attempts: int | None = None,
    ) -> None:
        self._repo: CommissionRepositoryProtocol = repo or CommissionRepository()
        self._org = org or OrgDirectory()
        self._pricing = pricing or PricingService()
        self._ledger_repo: LedgerRepositoryProtocol = ledger_repo or LedgerRepository()
        self._default_rates = default_rates or {
            1: settings.COMMISSION_LEVEL1_RATE,
            2: settings.COMMISSION_LEVEL2_RATE,
            3: settings.COMMISSION_LEVEL3_RATE,
        }
        self._max_levels = max_levels or settings.COMMISSION_MAX_LEVELS
        self._level_attempts = level_attempts or settings.COMMISSION_LEVEL_MAX_ATTEMPTS
        self._cas_attempts = cas_attempts or settings.BALANCE_CAS_MAX_ATTEMPTS

    # ------------------------------------------------------------------
    # Accrual
    # ------------------------------------------------------------------

    async def level_rates(self, db: AsyncSession) -> dict[int, Decimal]:
        """Configured default rates, overridden by ACTIVE AGENT_LEVELn_COMMISSION prices."""
        rates = dict(self._default_rates)
        for level, business_type in _RATE_BUSINESS_TYPES.items():
            config = await self._pricing.get_active(db, business_type)
            if config is not None:
                rates[level] = config.dr_price
        return rates

    async def accrue_for_recharge(
        self, db: AsyncSession, recharge: BillingRecord
    ) -> AccrualResult:
        result = AccrualResult(
            trigger_bill_id=recharge.bill_id,
            source_user_id=recharge.user_id,
            recharge_amount=recharge.amount,
        )
        agents = await self._org.find_agent_ancestors(db, recharge.user_id, self._max_levels)
        if not agents:
            return result
        rates = await self.level_rates(db)

        for level, agent_user_id in enumerate(agents, start=1):
            amount = commission_for_level(recharge.amount, rates.get(level, ZERO))
            if amount <= ZERO:
                result.levels.append(LevelOutcome(level, agent_user_id, amount, "SKIPPED"))
                continue
            result.levels.append(
                await self._accrue_level(db, recharge, level, agent_user_id, amount)
            )

        if result.failed_levels:
            logger.error(
                "Commission accrual incomplete for bill %s: failed levels %s",
                recharge.bill_id, result.failed_levels,
            )
        else:
            logger.info(
                "Commission accrued for bill %s: %s across %d level(s)",
                recharge.bill_id, result.credited_total, len(result.levels),
            )
        return result

    async def _accrue_level(
        self,
        db: AsyncSession,
        recharge: BillingRecord,
        level: int,
        agent_user_id: str,
        amount: Decimal,
    ) -> LevelOutcome:
        last_error = ""
        for attempt in range(1, self._level_attempts + 1):
            try:
                return await run_optimistic(
                    db,
                    lambda: self._accrue_level_once(db, recharge, level, agent_user_id, amount),
                    self._cas_attempts,
                    f"commission_accounts:{agent_user_id}",
                )
            except (AppError, SQLAlchemyError) as exc:
                last_error = str(exc)
                logger.warning(
                    "Commission level %d for bill %s failed (attempt %d/%d): %s",
                    level, recharge.bill_id, attempt, self._level_attempts, exc,
                )
        return LevelOutcome(level, agent_user_id, amount, "FAILED", last_error)

    async def _accrue_level_once(
        self,
        db: AsyncSession,
        recharge: BillingRecord,
        level: int,
        agent_user_id: str,
        amount: Decimal,
    ) -> LevelOutcome:
        account = await self._repo.get_or_create_account(db, agent_user_id)
        if not account.is_normal:
            logger.warning(
                "Skipping commission for %s: account is %s", agent_user_id, account.status
            )
            return LevelOutcome(
                level, agent_user_id, amount, "SKIPPED", f"account {account.status}"
            )

        change = plan_accrual(account, amount)
        record = await self._repo.insert_record(
            db,
            CommissionRecordDraft(
                agent_user_id=agent_user_id,
                record_type=change.record_type,
                amount=change.amount,
                available_before=change.available_before,
                available_after=change.available_after,
                trigger_bill_id=recharge.bill_id,
                hierarchy_level=level,
                source_user_id=recharge.user_id,
                remark=f"Level {level} commission on recharge {recharge.bill_no}",
            ),
        )
        if record is None:
            return LevelOutcome(level, agent_user_id, amount, "DUPLICATE")
        await self._repo.update_account_versioned(db, change.new, account.version)
        return LevelOutcome(level, agent_user_id, amount, "CREDITED")

    async def replay_recent_accruals(
        self, db: AsyncSession, now: datetime | None = None, lookback_hours: int | None = None
    ) -> ReplaySummary:
        """Re-run accrual for recent recharges; already-applied levels are no-ops."""
        hours = lookback_hours or settings.COMMISSION_REPLAY_LOOKBACK_HOURS
        since = (now or utc_now()) - timedelta(hours=hours)
        recharges = await self._ledger_repo.list_recharges_since(db, since)
        summary = ReplaySummary()
        for recharge in recharges:
            summary.scanned += 1
            try:
                result = await self.accrue_for_recharge(db, recharge)
            except (AppError, SQLAlchemyError) as exc:
                await db.rollback()
                logger.error("Commission replay of bill %s failed: %s", recharge.bill_id, exc)
                summary.incomplete += 1
                continue
            summary.credited_levels += sum(1 for o in result.levels if o.status == "CREDITED")
            if not result.complete:
                summary.incomplete += 1
        logger.info(
            "Commission replay: scanned=%d credited_levels=%d incomplete=%d",
            summary.scanned, summary.credited_levels, summary.incomplete,
        )
        return summary

    # ------------------------------------------------------------------
    # Account mutations shared with the settlement workflow
    # ------------------------------------------------------------------

    async def change_in_transaction(
        self,
        db: AsyncSession,
        agent_user_id: str,
        plan: Callable[[CommissionAccount], CommissionChange],
        operator_id: str | None = None,
        settlement_id: int | None = None,
        remark: str | None = None,
    ) -> tuple[CommissionAccount, CommissionRecord]:
        """Versioned account write plus its commission record. Does not commit."""
        account = await self._repo.get_or_create_account(db, agent_user_id)
        change = plan(account)
        updated = await self._repo.update_account_versioned(db, change.new, account.version)
        record = await self._repo.insert_record(
            db,
            CommissionRecordDraft(
                agent_user_id=agent_user_id,
                record_type=change.record_type,
                amount=change.amount,
                available_before=change.available_before,
                available_after=change.available_after,
                settlement_id=settlement_id,
                operator_id=operator_id,
                remark=remark,
            ),
        )
        if record is None:
            raise InternalError("commission record insert returned no row")
        return updated, record

    async def manual_adjust_commission(
        self,
        db: AsyncSession,
        agent_user_id: str,
        signed_amount: Decimal,
        operator_id: str,
        remark: str | None,
    ) -> CommissionAccountResponse:
        if not await self._org.is_agent(db, agent_user_id):
            raise ValidationError(f"User {agent_user_id} is not an active agent")
        account, _ = await run_optimistic(
            db,
            lambda: self.change_in_transaction(
                db,
                agent_user_id,
                lambda acc: plan_manual_adjust(acc, signed_amount),
                operator_id=operator_id,
                remark=remark,
            ),
            self._cas_attempts,
            f"commission_accounts:{agent_user_id}",
        )
        logger.info(
            "Commission of %s manually adjusted by %s (%s) by operator %s",
            agent_user_id, signed_amount, remark, operator_id,
        )
        return CommissionAccountResponse.from_account(account)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_commission_account(
        self, db: AsyncSession, agent_user_id: str
    ) -> CommissionAccountResponse:
        account = await self._repo.get_account(db, agent_user_id)
        return CommissionAccountResponse.from_account(
            account or CommissionAccount(agent_user_id=agent_user_id)
        )

    async def get_commission_records(
        self,
        db: AsyncSession,
        agent_user_id: str,
        cursor: str | None,
        limit: int,
        record_type: str | None = None,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
        min_amount: Decimal | None = None,
        max_amount: Decimal | None = None,
    ) -> CommissionRecordListResponse:
        cursor_id = cursor_decode(cursor)
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        records = await self._repo.list_records(
            db, agent_user_id, cursor_id, limit + 1,
            record_type, start_time, end_time, min_amount, max_amount,
        )
        has_more = len(records) > limit
        page = records[:limit]
        next_cursor = cursor_encode(page[-1].record_id) if has_more and page else None
        return CommissionRecordListResponse(
            items=[CommissionRecordItem.from_record(r) for r in page],
            next_cursor=next_cursor,
            has_more=has_more,
        )

    async def get_commission_summary(
        self,
        db: AsyncSession,
        agent_user_id: str,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
    ) -> CommissionSummaryResponse:
        """Account totals plus recharge commission earned per hierarchy level."""
        account = await self._repo.get_account(db, agent_user_id) or CommissionAccount(
            agent_user_id=agent_user_id
        )
        by_level = await self._repo.sum_accruals_by_level(db, agent_user_id, start_time, end_time)
        return CommissionSummaryResponse(
            agent_user_id=agent_user_id,
            total_commission=account.total_commission,
            available_commission=account.available_commission,
            pending_settlement_commission=account.pending_settlement_commission,
            settled_commission=account.settled_commission,
            levels=[
                LevelTotalItem(level=level, amount=by_level.get(level, ZERO))
                for level in range(1, self._max_levels + 1)
            ],
        )

    async def sum_settled_commission(self, db: AsyncSession) -> Decimal:
        return await self._repo.sum_settled(db)

    async def get_commission_overview(
        self,
        db: AsyncSession,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
        min_amount: Decimal | None = None,
        max_amount: Decimal | None = None,
    ) -> CommissionOverviewResponse:
        """Every active agent and every agent holding an account, with range earnings."""
        accounts = {a.agent_user_id: a for a in await self._repo.list_accounts(db)}
        agent_ids = sorted(set(await self._org.list_agent_ids(db)) | set(accounts))
        earned = await self._repo.sum_accruals_by_agent(
            db, start_time, end_time, min_amount, max_amount
        )
        agents = [
            AgentOverviewItem(
                **CommissionAccountResponse.from_account(
                    accounts.get(agent_id) or CommissionAccount(agent_user_id=agent_id)
                ).model_dump(),
                earned_in_range=earned.get(agent_id, ZERO),
            )
            for agent_id in agent_ids
        ]
        return CommissionOverviewResponse(
            agent_count=len(agents),
            total_settled_commission=await self.sum_settled_commission(db),
            earned_in_range=sum((a.earned_in_range for a in agents), ZERO),
            agents=agents,
        )
