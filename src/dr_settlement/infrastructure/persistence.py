"""SettlementRepository.

Transitions are `UPDATE ... WHERE status = 'PENDING'`: of two concurrent
approve/reject calls exactly one gets a row back.
"""

from decimal import Decimal
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.dr_common.errors import InternalError
from src.dr_settlement.domain.models import CommissionSettlement

_COLUMNS = """
    settlement_id, agent_user_id, requested_amount, approved_amount, status,
    operator_id, remark, network, address, created_at, updated_at, processed_at
"""

_INSERT_SQL = text(f"""
    INSERT INTO commission_settlements
        (agent_user_id, requested_amount, status, operator_id, remark, network, address)
    VALUES
        (:agent_user_id, :requested_amount, 'PENDING', :operator_id, :remark, :network, :address)
    RETURNING {_COLUMNS}
""")

_GET_SQL = text(
    f"SELECT {_COLUMNS} FROM commission_settlements WHERE settlement_id = :settlement_id"
)

_TRANSITION_SQL = text(f"""
    UPDATE commission_settlements
    SET status          = :status,
        approved_amount = :approved_amount,
        operator_id     = COALESCE(:operator_id, operator_id),
        remark          = COALESCE(:remark, remark),
        processed_at    = NOW()
    WHERE settlement_id = :settlement_id AND status = 'PENDING'
    RETURNING {_COLUMNS}
""")

_LIST_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM commission_settlements
    WHERE (CAST(:statuses AS VARCHAR[]) IS NULL OR status = ANY(CAST(:statuses AS VARCHAR[])))
      AND (CAST(:agent_user_id AS VARCHAR) IS NULL OR agent_user_id = :agent_user_id)
      AND (CAST(:cursor_id AS BIGINT) IS NULL OR settlement_id < :cursor_id)
    ORDER BY settlement_id DESC
    LIMIT :limit
""")


def _row_to_settlement(row: Any) -> CommissionSettlement:
    return CommissionSettlement(
        settlement_id=row.settlement_id,
        agent_user_id=row.agent_user_id,
        requested_amount=row.requested_amount,
        approved_amount=row.approved_amount,
        status=row.status,
        operator_id=row.operator_id,
        remark=row.remark,
        network=row.network,
        address=row.address,
        created_at=row.created_at,
        updated_at=row.updated_at,
        processed_at=row.processed_at,
    )


class SettlementRepository:
    async def insert(
        self,
        db: AsyncSession,
        agent_user_id: str,
        requested_amount: Decimal,
        operator_id: str | None,
        remark: str | None,
        network: str | None,
        address: str | None,
    ) -> CommissionSettlement:
        result = await db.execute(
            _INSERT_SQL,
            {
                "agent_user_id": agent_user_id,
                "requested_amount": requested_amount,
                "operator_id": operator_id,
                "remark": remark,
                "network": network,
                "address": address,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("commission_settlements insert returned no rows")
        return _row_to_settlement(row)

    async def get(self, db: AsyncSession, settlement_id: int) -> CommissionSettlement | None:
        result = await db.execute(_GET_SQL, {"settlement_id": settlement_id})
        row = result.fetchone()
        return _row_to_settlement(row) if row else None

    async def transition_from_pending(
        self,
        db: AsyncSession,
        settlement_id: int,
        status: str,
        approved_amount: Decimal | None,
        operator_id: str | None,
        remark: str | None,
    ) -> CommissionSettlement | None:
        result = await db.execute(
            _TRANSITION_SQL,
            {
                "settlement_id": settlement_id,
                "status": status,
                "approved_amount": approved_amount,
                "operator_id": operator_id,
                "remark": remark,
            },
        )
        row = result.fetchone()
        return _row_to_settlement(row) if row else None

    async def list(
        self,
        db: AsyncSession,
        statuses: list[str] | None,
        agent_user_id: str | None,
        cursor_id: int | None,
        limit: int,
    ) -> list[CommissionSettlement]:
        result = await db.execute(
            _LIST_SQL,
            {
                "statuses": statuses,
                "agent_user_id": agent_user_id,
                "cursor_id": cursor_id,
                "limit": limit,
            },
        )
        return [_row_to_settlement(row) for row in result.fetchall()]
