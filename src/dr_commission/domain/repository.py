from datetime import datetime
from decimal import Decimal
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.dr_commission.domain.models import (
    CommissionAccount,
    CommissionRecord,
    CommissionRecordDraft,
)


class CommissionRepositoryProtocol(Protocol):
    async def get_account(
        self, db: AsyncSession, agent_user_id: str
    ) -> CommissionAccount | None: ...

    async def get_or_create_account(
        self, db: AsyncSession, agent_user_id: str
    ) -> CommissionAccount: ...

    async def update_account_versioned(
        self, db: AsyncSession, account: CommissionAccount, expected_version: int
    ) -> CommissionAccount: ...

    async def insert_record(
        self, db: AsyncSession, draft: CommissionRecordDraft
    ) -> CommissionRecord | None:
        """Returns None when (trigger_bill_id, hierarchy_level) already exists."""
        ...

    async def list_records(
        self,
        db: AsyncSession,
        agent_user_id: str,
        cursor_id: int | None,
        limit: int,
        record_type: str | None,
        start_time: datetime | None,
        end_time: datetime | None,
        min_amount: Decimal | None,
        max_amount: Decimal | None,
    ) -> list[CommissionRecord]: ...

    async def sum_accruals_by_level(
        self,
        db: AsyncSession,
        agent_user_id: str,
        start_time: datetime | None,
        end_time: datetime | None,
    ) -> dict[int, Decimal]: ...

    async def sum_accruals_by_agent(
        self,
        db: AsyncSession,
        start_time: datetime | None,
        end_time: datetime | None,
        min_amount: Decimal | None,
        max_amount: Decimal | None,
    ) -> dict[str, Decimal]:
        """Recharge commission per agent; the amount bounds filter individual records."""
        ...

    async def list_accounts(self, db: AsyncSession) -> list[CommissionAccount]: ...

    async def sum_settled(self, db: AsyncSession) -> Decimal: ...
