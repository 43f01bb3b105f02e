"""LedgerRepository: append-only access to billing_records.

Rows are never updated or deleted. Inserts run inside the caller's transaction; the caller commits.
"""

import json
from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.dr_common.enums import BillType, BusinessType
from src.dr_common.errors import InternalError
from src.dr_ledger.domain.models import BillingRecord, LedgerDraft

_COLUMNS = """
    bill_id, bill_no, user_id, operator_id, bill_type, billing_type,
    business_type, business_id, amount, balance_before, balance_after,
    balance_account, description, extra_data, status, consumer, created_at
"""

_INSERT_SQL = text(f"""
    INSERT INTO billing_records
        (bill_no, user_id, operator_id, bill_type, billing_type,
         business_type, business_id, amount, balance_before, balance_after,
         balance_account, description, extra_data, consumer)
    VALUES
        (:bill_no, :user_id, :operator_id, :bill_type, :billing_type,
         :business_type, :business_id, :amount, :balance_before, :balance_after,
         :balance_account, :description, CAST(:extra_data AS JSONB), :consumer)
    RETURNING {_COLUMNS}
""")

_GET_SQL = text(f"SELECT {_COLUMNS} FROM billing_records WHERE bill_id = :bill_id")

_LIST_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM billing_records
    WHERE user_id = :user_id
      AND (CAST(:cursor_id AS BIGINT) IS NULL OR bill_id < :cursor_id)
      AND (CAST(:bill_type AS VARCHAR) IS NULL OR bill_type = :bill_type)
      AND (CAST(:business_type AS VARCHAR) IS NULL OR business_type = :business_type)
    ORDER BY bill_id DESC
    LIMIT :limit
""")

_LIST_RECHARGES_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM billing_records
    WHERE bill_type = :bill_type
      AND business_type = :business_type
      AND created_at >= :since
    ORDER BY bill_id
""")


def _row_to_record(row: Any) -> BillingRecord:
    extra = row.extra_data
    if isinstance(extra, str):
        extra = json.loads(extra)
    return BillingRecord(
        bill_id=row.bill_id,
        bill_no=row.bill_no,
        user_id=row.user_id,
        operator_id=row.operator_id,
        bill_type=row.bill_type,
        billing_type=row.billing_type,
        business_type=row.business_type,
        business_id=row.business_id,
        amount=row.amount,
        balance_before=row.balance_before,
        balance_after=row.balance_after,
        balance_account=row.balance_account,
        description=row.description,
        extra_data=extra,
        status=row.status,
        consumer=row.consumer,
        created_at=row.created_at,
    )


class LedgerRepository:
    async def insert(
        self, db: AsyncSession, draft: LedgerDraft, bill_no: str
    ) -> BillingRecord:
        result = await db.execute(
            _INSERT_SQL,
            {
                "bill_no": bill_no,
                "user_id": draft.user_id,
                "operator_id": draft.operator_id,
                "bill_type": draft.bill_type.value,
                "billing_type": draft.billing_type.value,
                "business_type": draft.business_type,
                "business_id": draft.business_id,
                "amount": draft.amount,
                "balance_before": draft.balance_before,
                "balance_after": draft.balance_after,
                "balance_account": draft.balance_account.value,
                "description": draft.description,
                "extra_data": (
                    json.dumps(draft.extra_data, default=str, ensure_ascii=False)
                    if draft.extra_data is not None
                    else None
                ),
                "consumer": draft.consumer,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("billing_records insert returned no rows")
        return _row_to_record(row)

    async def get(self, db: AsyncSession, bill_id: int) -> BillingRecord | None:
        result = await db.execute(_GET_SQL, {"bill_id": bill_id})
        row = result.fetchone()
        return _row_to_record(row) if row else None

    async def list_for_user(
        self,
        db: AsyncSession,
        user_id: str,
        cursor_id: int | None,
        limit: int,
        bill_type: str | None,
        business_type: str | None,
    ) -> list[BillingRecord]:
        result = await db.execute(
            _LIST_SQL,
            {
                "user_id": user_id,
                "cursor_id": cursor_id,
                "bill_type": bill_type,
                "business_type": business_type,
                "limit": limit,
            },
        )
        return [_row_to_record(row) for row in result.fetchall()]

    async def list_recharges_since(
        self, db: AsyncSession, since: datetime
    ) -> list[BillingRecord]:
        result = await db.execute(
            _LIST_RECHARGES_SQL,
            {
                "bill_type": BillType.RECHARGE.value,
                "business_type": BusinessType.RECHARGE.value,
                "since": since,
            },
        )
        return [_row_to_record(row) for row in result.fetchall()]
