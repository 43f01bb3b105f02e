"""SettlementService: agent payout requests and admin decisions.

apply reserves the amount (pending_settlement_commission) in the same
transaction that creates the PENDING row, so concurrent applications can
never jointly exceed available commission. approve settles the approved
part and releases the rest; reject and cancel release everything.
"""

import logging
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.dr_commission.application.schemas import CommissionAccountResponse
from src.dr_commission.application.service import CommissionService
from src.dr_commission.domain.models import CommissionAccount
from src.dr_commission.domain.rules import (
    CommissionChange,
    plan_settlement_freeze,
    plan_settlement_payout,
    plan_settlement_release,
)
from src.dr_common.cursor import cursor_decode, cursor_encode
from src.dr_common.enums import SettlementStatus
from src.dr_common.errors import (
    InvalidStateTransitionError,
    PermissionDeniedError,
    SettlementNotFoundError,
)
from src.dr_common.money import require_positive
from src.dr_common.optimistic import run_optimistic
from src.dr_settlement.application.schemas import (
    SettlementActionResponse,
    SettlementListResponse,
    SettlementResponse,
)
from src.dr_settlement.domain.models import CommissionSettlement
from src.dr_settlement.domain.repository import SettlementRepositoryProtocol
from src.dr_settlement.domain.state_machine import ensure_transition, resolve_approved_amount
from src.dr_settlement.infrastructure.persistence import SettlementRepository

logger = logging.getLogger(__name__)


class SettlementService:
    def __init__(
        self,
        repo: SettlementRepositoryProtocol | None = None,
        commission: CommissionService | None = None,
        max_attempts: int | None = None,
    ) -> None:
        self._repo: SettlementRepositoryProtocol = repo or SettlementRepository()
        self._commission = commission or CommissionService()
        self._max_attempts = max_attempts or settings.BALANCE_CAS_MAX_ATTEMPTS

    async def _load(self, db: AsyncSession, settlement_id: int) -> CommissionSettlement:
        settlement = await self._repo.get(db, settlement_id)
        if settlement is None:
            raise SettlementNotFoundError(str(settlement_id))
        return settlement

    async def apply(
        self,
        db: AsyncSession,
        agent_user_id: str,
        amount: Decimal,
        operator_id: str | None = None,
        remark: str | None = None,
        network: str | None = None,
        address: str | None = None,
    ) -> SettlementActionResponse:
        amount = require_positive(amount)

        async def attempt() -> SettlementActionResponse:
            settlement = await self._repo.insert(
                db, agent_user_id, amount, operator_id or agent_user_id, remark, network, address
            )
            account, _ = await self._commission.change_in_transaction(
                db,
                agent_user_id,
                lambda acc: plan_settlement_freeze(acc, amount),
                operator_id=operator_id or agent_user_id,
                settlement_id=settlement.settlement_id,
                remark=remark,
            )
            return SettlementActionResponse(
                settlement=SettlementResponse.from_settlement(settlement),
                account=CommissionAccountResponse.from_account(account),
            )

        result: SettlementActionResponse = await run_optimistic(
            db, attempt, self._max_attempts, f"commission_accounts:{agent_user_id}"
        )
        logger.info(
            "Settlement %s applied by %s for %s",
            result.settlement.settlement_id, agent_user_id, amount,
        )
        return result

    async def _close(
        self,
        db: AsyncSession,
        settlement_id: int,
        target: SettlementStatus,
        operator_id: str | None,
        remark: str | None,
        approved_amount: Decimal | None = None,
        owner_user_id: str | None = None,
    ) -> SettlementActionResponse:
        async def attempt() -> SettlementActionResponse:
            current = await self._load(db, settlement_id)
            if owner_user_id is not None and current.agent_user_id != owner_user_id:
                raise PermissionDeniedError("Only the applying agent may cancel a settlement")
            ensure_transition(current, target)
            approved = (
                resolve_approved_amount(current, approved_amount)
                if target == SettlementStatus.APPROVED
                else None
            )
            closed = await self._repo.transition_from_pending(
                db, settlement_id, target.value, approved, operator_id, remark
            )
            if closed is None:
                # lost the race to another decision
                latest = await self._load(db, settlement_id)
                raise InvalidStateTransitionError(
                    str(settlement_id), latest.status, target.value.lower()
                )
            requested = current.requested_amount

            def plan(acc: CommissionAccount) -> CommissionChange:
                if approved is not None:
                    return plan_settlement_payout(acc, requested, approved)
                return plan_settlement_release(acc, requested)

            account, _ = await self._commission.change_in_transaction(
                db,
                current.agent_user_id,
                plan,
                operator_id=operator_id,
                settlement_id=settlement_id,
                remark=remark,
            )
            return SettlementActionResponse(
                settlement=SettlementResponse.from_settlement(closed),
                account=CommissionAccountResponse.from_account(account),
            )

        result: SettlementActionResponse = await run_optimistic(
            db, attempt, self._max_attempts, f"commission_settlements:{settlement_id}"
        )
        logger.info(
            "Settlement %s %s by %s (approved=%s)",
            settlement_id, target.value, operator_id, result.settlement.approved_amount,
        )
        return result

    async def approve(
        self,
        db: AsyncSession,
        settlement_id: int,
        operator_id: str,
        approved_amount: Decimal | None = None,
        remark: str | None = None,
    ) -> SettlementActionResponse:
        return await self._close(
            db, settlement_id, SettlementStatus.APPROVED, operator_id, remark, approved_amount
        )

    async def reject(
        self, db: AsyncSession, settlement_id: int, operator_id: str, remark: str | None = None
    ) -> SettlementActionResponse:
        return await self._close(db, settlement_id, SettlementStatus.REJECTED, operator_id, remark)

    async def cancel(
        self, db: AsyncSession, settlement_id: int, agent_user_id: str
    ) -> SettlementActionResponse:
        return await self._close(
            db,
            settlement_id,
            SettlementStatus.CANCELLED,
            agent_user_id,
            "Cancelled by agent",
            owner_user_id=agent_user_id,
        )

    async def get_settlement(self, db: AsyncSession, settlement_id: int) -> SettlementResponse:
        return SettlementResponse.from_settlement(await self._load(db, settlement_id))

    async def list_settlements(
        self,
        db: AsyncSession,
        statuses: list[SettlementStatus] | None,
        agent_user_id: str | None,
        cursor: str | None,
        limit: int,
    ) -> SettlementListResponse:
        cursor_id = cursor_decode(cursor)
        rows = await self._repo.list(
            db,
            [s.value for s in statuses] if statuses else None,
            agent_user_id,
            cursor_id,
            limit + 1,
        )
        has_more = len(rows) > limit
        page = rows[:limit]
        next_cursor = cursor_encode(page[-1].settlement_id) if has_more and page else None
        return SettlementListResponse(
            items=[SettlementResponse.from_settlement(s) for s in page],
            next_cursor=next_cursor,
            has_more=has_more,
        )
