"""BalanceRepository: user_balances access.

Every write is `UPDATE ... WHERE user_id = :user_id AND version = :expected_version`.
Zero rows returned means another writer won the race; the caller's retry
loop re-reads and recomputes.
"""

from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.dr_balance.domain.models import UserBalance
from src.dr_common.errors import InternalError
from src.dr_common.optimistic import StaleVersionError

_COLUMNS = """
    user_id, dr_balance, pre_deducted_balance, frozen_amount,
    total_recharge, total_consume, total_refund, version, status,
    created_at, updated_at
"""

_GET_SQL = text(f"SELECT {_COLUMNS} FROM user_balances WHERE user_id = :user_id")

_INSERT_IF_ABSENT_SQL = text("""
    INSERT INTO user_balances (user_id)
    VALUES (:user_id)
    ON CONFLICT (user_id) DO NOTHING
""")

_UPDATE_VERSIONED_SQL = text(f"""
    UPDATE user_balances
    SET dr_balance           = :dr_balance,
        pre_deducted_balance = :pre_deducted_balance,
        frozen_amount        = :frozen_amount,
        total_recharge       = :total_recharge,
        total_consume        = :total_consume,
        total_refund         = :total_refund,
        status               = :status,
        version              = version + 1
    WHERE user_id = :user_id AND version = :expected_version
    RETURNING {_COLUMNS}
""")


def _row_to_balance(row: Any) -> UserBalance:
    return UserBalance(
        user_id=row.user_id,
        dr_balance=row.dr_balance,
        pre_deducted_balance=row.pre_deducted_balance,
        frozen_amount=row.frozen_amount,
        total_recharge=row.total_recharge,
        total_consume=row.total_consume,
        total_refund=row.total_refund,
        version=row.version,
        status=row.status,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class BalanceRepository:
    async def get(self, db: AsyncSession, user_id: str) -> UserBalance | None:
        result = await db.execute(_GET_SQL, {"user_id": user_id})
        row = result.fetchone()
        return _row_to_balance(row) if row else None

    async def get_or_create(self, db: AsyncSession, user_id: str) -> UserBalance:
        await db.execute(_INSERT_IF_ABSENT_SQL, {"user_id": user_id})
        balance = await self.get(db, user_id)
        if balance is None:
            raise InternalError(f"user_balances row for {user_id} vanished after insert")
        return balance

    async def update_versioned(
        self, db: AsyncSession, balance: UserBalance, expected_version: int
    ) -> UserBalance:
        result = await db.execute(
            _UPDATE_VERSIONED_SQL,
            {
                "user_id": balance.user_id,
                "dr_balance": balance.dr_balance,
                "pre_deducted_balance": balance.pre_deducted_balance,
                "frozen_amount": balance.frozen_amount,
                "total_recharge": balance.total_recharge,
                "total_consume": balance.total_consume,
                "total_refund": balance.total_refund,
                "status": balance.status,
                "expected_version": expected_version,
            },
        )
        row = result.fetchone()
        if row is None:
            raise StaleVersionError(f"user_balances:{balance.user_id}")
        return _row_to_balance(row)
