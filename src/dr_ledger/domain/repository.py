"""Repository Protocol for billing records.

Unit tests inject an in-memory fake that conforms to this Protocol.
"""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.dr_ledger.domain.models import BillingRecord, LedgerDraft


class LedgerRepositoryProtocol(Protocol):
    async def insert(
        self, db: AsyncSession, draft: LedgerDraft, bill_no: str
    ) -> BillingRecord: ...

    async def get(self, db: AsyncSession, bill_id: int) -> BillingRecord | None: ...

    async def list_for_user(
        self,
        db: AsyncSession,
        user_id: str,
        cursor_id: int | None,
        limit: int,
        bill_type: str | None,
        business_type: str | None,
    ) -> list[BillingRecord]: ...

    async def list_recharges_since(
        self, db: AsyncSession, since: datetime
    ) -> list[BillingRecord]: ...
