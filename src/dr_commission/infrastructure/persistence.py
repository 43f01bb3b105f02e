"""CommissionRepository: commission_accounts (versioned) and commission_records (append-only).

Accrual idempotency is enforced by the partial unique index
uq_commission_records_trigger_level on (trigger_bill_id, hierarchy_level):
a replayed insert hits ON CONFLICT DO NOTHING and returns no row.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.dr_commission.domain.models import (
    CommissionAccount,
    CommissionRecord,
    CommissionRecordDraft,
)
from src.dr_common.errors import InternalError
from src.dr_common.optimistic import StaleVersionError

_ACCOUNT_COLUMNS = """
    agent_user_id, total_commission, pending_settlement_commission,
    settled_commission, version, status, created_at, updated_at
"""

_RECORD_COLUMNS = """
    record_id, agent_user_id, record_type, amount, available_before,
    available_after, trigger_bill_id, hierarchy_level, source_user_id,
    settlement_id, operator_id, remark, created_at
"""

_GET_ACCOUNT_SQL = text(
    f"SELECT {_ACCOUNT_COLUMNS} FROM commission_accounts WHERE agent_user_id = :agent_user_id"
)

_INSERT_ACCOUNT_IF_ABSENT_SQL = text("""
    INSERT INTO commission_accounts (agent_user_id)
    VALUES (:agent_user_id)
    ON CONFLICT (agent_user_id) DO NOTHING
""")

_UPDATE_ACCOUNT_VERSIONED_SQL = text(f"""
    UPDATE commission_accounts
    SET total_commission              = :total_commission,
        pending_settlement_commission = :pending_settlement_commission,
        settled_commission            = :settled_commission,
        status                        = :status,
        version                       = version + 1
    WHERE agent_user_id = :agent_user_id AND version = :expected_version
    RETURNING {_ACCOUNT_COLUMNS}
""")

_INSERT_RECORD_SQL = text(f"""
    INSERT INTO commission_records
        (agent_user_id, record_type, amount, available_before, available_after,
         trigger_bill_id, hierarchy_level, source_user_id, settlement_id,
         operator_id, remark)
    VALUES
        (:agent_user_id, :record_type, :amount, :available_before, :available_after,
         :trigger_bill_id, :hierarchy_level, :source_user_id, :settlement_id,
         :operator_id, :remark)
    ON CONFLICT (trigger_bill_id, hierarchy_level)
        WHERE trigger_bill_id IS NOT NULL
        DO NOTHING
    RETURNING {_RECORD_COLUMNS}
""")

_LIST_RECORDS_SQL = text(f"""
    SELECT {_RECORD_COLUMNS}
    FROM commission_records
    WHERE agent_user_id = :agent_user_id
      AND (CAST(:cursor_id AS BIGINT) IS NULL OR record_id < :cursor_id)
      AND (CAST(:record_type AS VARCHAR) IS NULL OR record_type = :record_type)
      AND (CAST(:start_time AS TIMESTAMPTZ) IS NULL OR created_at >= :start_time)
      AND (CAST(:end_time AS TIMESTAMPTZ) IS NULL OR created_at < :end_time)
      AND (CAST(:min_amount AS NUMERIC) IS NULL OR amount >= :min_amount)
      AND (CAST(:max_amount AS NUMERIC) IS NULL OR amount <= :max_amount)
    ORDER BY record_id DESC
    LIMIT :limit
""")

_SUM_ACCRUALS_BY_LEVEL_SQL = text("""
    SELECT hierarchy_level, SUM(amount) AS total
    FROM commission_records
    WHERE agent_user_id = :agent_user_id
      AND record_type = 'RECHARGE_COMMISSION'
      AND (CAST(:start_time AS TIMESTAMPTZ) IS NULL OR created_at >= :start_time)
      AND (CAST(:end_time AS TIMESTAMPTZ) IS NULL OR created_at < :end_time)
    GROUP BY hierarchy_level
""")

_SUM_ACCRUALS_BY_AGENT_SQL = text("""
    SELECT agent_user_id, SUM(amount) AS total
    FROM commission_records
    WHERE record_type = 'RECHARGE_COMMISSION'
      AND (CAST(:start_time AS TIMESTAMPTZ) IS NULL OR created_at >= :start_time)
      AND (CAST(:end_time AS TIMESTAMPTZ) IS NULL OR created_at < :end_time)
      AND (CAST(:min_amount AS NUMERIC) IS NULL OR amount >= :min_amount)
      AND (CAST(:max_amount AS NUMERIC) IS NULL OR amount <= :max_amount)
    GROUP BY agent_user_id
""")

_LIST_ACCOUNTS_SQL = text(
    f"SELECT {_ACCOUNT_COLUMNS} FROM commission_accounts ORDER BY agent_user_id"
)

_SUM_SETTLED_SQL = text(
    "SELECT COALESCE(SUM(settled_commission), 0) AS total FROM commission_accounts"
)


def _row_to_account(row: Any) -> CommissionAccount:
    return CommissionAccount(
        agent_user_id=row.agent_user_id,
        total_commission=row.total_commission,
        pending_settlement_commission=row.pending_settlement_commission,
        settled_commission=row.settled_commission,
        version=row.version,
        status=row.status,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_record(row: Any) -> CommissionRecord:
    return CommissionRecord(
        record_id=row.record_id,
        agent_user_id=row.agent_user_id,
        record_type=row.record_type,
        amount=row.amount,
        available_before=row.available_before,
        available_after=row.available_after,
        trigger_bill_id=row.trigger_bill_id,
        hierarchy_level=row.hierarchy_level,
        source_user_id=row.source_user_id,
        settlement_id=row.settlement_id,
        operator_id=row.operator_id,
        remark=row.remark,
        created_at=row.created_at,
    )


class CommissionRepository:
    async def get_account(
        self, db: AsyncSession, agent_user_id: str
    ) -> CommissionAccount | None:
        result = await db.execute(_GET_ACCOUNT_SQL, {"agent_user_id": agent_user_id})
        row = result.fetchone()
        return _row_to_account(row) if row else None

    async def get_or_create_account(
        self, db: AsyncSession, agent_user_id: str
    ) -> CommissionAccount:
        await db.execute(_INSERT_ACCOUNT_IF_ABSENT_SQL, {"agent_user_id": agent_user_id})
        account = await self.get_account(db, agent_user_id)
        if account is None:
            raise InternalError(f"commission_accounts row for {agent_user_id} vanished")
        return account

    async def update_account_versioned(
        self, db: AsyncSession, account: CommissionAccount, expected_version: int
    ) -> CommissionAccount:
        result = await db.execute(
            _UPDATE_ACCOUNT_VERSIONED_SQL,
            {
                "agent_user_id": account.agent_user_id,
                "total_commission": account.total_commission,
                "pending_settlement_commission": account.pending_settlement_commission,
                "settled_commission": account.settled_commission,
                "status": account.status,
                "expected_version": expected_version,
            },
        )
        row = result.fetchone()
        if row is None:
            raise StaleVersionError(f"commission_accounts:{account.agent_user_id}")
        return _row_to_account(row)

    async def insert_record(
        self, db: AsyncSession, draft: CommissionRecordDraft
    ) -> CommissionRecord | None:
        result = await db.execute(
            _INSERT_RECORD_SQL,
            {
                "agent_user_id": draft.agent_user_id,
                "record_type": draft.record_type.value,
                "amount": draft.amount,
                "available_before": draft.available_before,
                "available_after": draft.available_after,
                "trigger_bill_id": draft.trigger_bill_id,
                "hierarchy_level": draft.hierarchy_level,
                "source_user_id": draft.source_user_id,
                "settlement_id": draft.settlement_id,
                "operator_id": draft.operator_id,
                "remark": draft.remark,
            },
        )
        row = result.fetchone()
        return _row_to_record(row) if row else None

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
    ) -> list[CommissionRecord]:
        result = await db.execute(
            _LIST_RECORDS_SQL,
            {
                "agent_user_id": agent_user_id,
                "cursor_id": cursor_id,
                "record_type": record_type,
                "start_time": start_time,
                "end_time": end_time,
                "min_amount": min_amount,
                "max_amount": max_amount,
                "limit": limit,
            },
        )
        return [_row_to_record(row) for row in result.fetchall()]

    async def sum_accruals_by_level(
        self,
        db: AsyncSession,
        agent_user_id: str,
        start_time: datetime | None,
        end_time: datetime | None,
    ) -> dict[int, Decimal]:
        result = await db.execute(
            _SUM_ACCRUALS_BY_LEVEL_SQL,
            {"agent_user_id": agent_user_id, "start_time": start_time, "end_time": end_time},
        )
        return {row.hierarchy_level: row.total for row in result.fetchall()}

    async def sum_accruals_by_agent(
        self,
        db: AsyncSession,
        start_time: datetime | None,
        end_time: datetime | None,
        min_amount: Decimal | None,
        max_amount: Decimal | None,
    ) -> dict[str, Decimal]:
        result = await db.execute(
            _SUM_ACCRUALS_BY_AGENT_SQL,
            {
                "start_time": start_time,
                "end_time": end_time,
                "min_amount": min_amount,
                "max_amount": max_amount,
            },
        )
        return {row.agent_user_id: row.total for row in result.fetchall()}

    async def list_accounts(self, db: AsyncSession) -> list[CommissionAccount]:
        result = await db.execute(_LIST_ACCOUNTS_SQL)
        return [_row_to_account(row) for row in result.fetchall()]

    async def sum_settled(self, db: AsyncSession) -> Decimal:
        result = await db.execute(_SUM_SETTLED_SQL)
        return result.scalar_one()
