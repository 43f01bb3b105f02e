"""Repository Protocol for user_balances.

`update_versioned` is the compare-and-swap write: it raises
StaleVersionError when the row's version no longer equals
`expected_version`.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.dr_balance.domain.models import UserBalance


class BalanceRepositoryProtocol(Protocol):
    async def get(self, db: AsyncSession, user_id: str) -> UserBalance | None: ...

    async def get_or_create(self, db: AsyncSession, user_id: str) -> UserBalance: ...

    async def update_versioned(
        self, db: AsyncSession, balance: UserBalance, expected_version: int
    ) -> UserBalance: ...
