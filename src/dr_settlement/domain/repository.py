from decimal import Decimal
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.dr_settlement.domain.models import CommissionSettlement


class SettlementRepositoryProtocol(Protocol):
    async def insert(
        self,
        db: AsyncSession,
        agent_user_id: str,
        requested_amount: Decimal,
        operator_id: str | None,
        remark: str | None,
        network: str | None,
        address: str | None,
    ) -> CommissionSettlement: ...

    async def get(self, db: AsyncSession, settlement_id: int) -> CommissionSettlement | None: ...

    async def transition_from_pending(
        self,
        db: AsyncSession,
        settlement_id: int,
        status: str,
        approved_amount: Decimal | None,
        operator_id: str | None,
        remark: str | None,
    ) -> CommissionSettlement | None:
        """Atomic PENDING -> status; None when the row is no longer PENDING."""
        ...

    async def list(
        self,
        db: AsyncSession,
        statuses: list[str] | None,
        agent_user_id: str | None,
        cursor_id: int | None,
        limit: int,
    ) -> list[CommissionSettlement]: ...
