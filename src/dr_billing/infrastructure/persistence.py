"""BilledResourceRepository: billing-side view of resources charged over time.

`mark_billed` guards on last_billed_date so running the daily tick twice for
the same date charges each resource once.
"""

from datetime import date
from decimal import Decimal
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.dr_billing.domain.models import BilledResource

_COLUMNS = """
    resource_id, owner_user_id, charge_user_id, business_type, billing_type,
    status, total_billed_days, total_billed_amount, last_billed_date,
    created_at, released_at
"""

_INSERT_SQL = text(f"""
    INSERT INTO billed_resources
        (resource_id, owner_user_id, charge_user_id, business_type, billing_type,
         status, total_billed_days, total_billed_amount, last_billed_date)
    VALUES
        (:resource_id, :owner_user_id, :charge_user_id, :business_type, :billing_type,
         :status, :total_billed_days, :total_billed_amount, :last_billed_date)
    ON CONFLICT (resource_id) DO NOTHING
    RETURNING {_COLUMNS}
""")

_GET_SQL = text(f"SELECT {_COLUMNS} FROM billed_resources WHERE resource_id = :resource_id")

_RELEASE_SQL = text(f"""
    UPDATE billed_resources
    SET status = 'RELEASED', released_at = NOW()
    WHERE resource_id = :resource_id AND status = 'ACTIVE'
    RETURNING {_COLUMNS}
""")

_LIST_DUE_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM billed_resources
    WHERE status = 'ACTIVE'
      AND billing_type = 'DAILY'
      AND (last_billed_date IS NULL OR last_billed_date < :billing_date)
      AND (CAST(:after_id AS VARCHAR) IS NULL OR resource_id > :after_id)
    ORDER BY resource_id
    LIMIT :limit
""")

_MARK_BILLED_SQL = text(f"""
    UPDATE billed_resources
    SET total_billed_days   = total_billed_days + 1,
        total_billed_amount = total_billed_amount + :amount,
        last_billed_date    = :billing_date
    WHERE resource_id = :resource_id
      AND status = 'ACTIVE'
      AND (last_billed_date IS NULL OR last_billed_date < :billing_date)
    RETURNING {_COLUMNS}
""")


def _row_to_resource(row: Any) -> BilledResource:
    return BilledResource(
        resource_id=row.resource_id,
        owner_user_id=row.owner_user_id,
        charge_user_id=row.charge_user_id,
        business_type=row.business_type,
        billing_type=row.billing_type,
        status=row.status,
        total_billed_days=row.total_billed_days,
        total_billed_amount=row.total_billed_amount,
        last_billed_date=row.last_billed_date,
        created_at=row.created_at,
        released_at=row.released_at,
    )


class BilledResourceRepository:
    async def insert(self, db: AsyncSession, resource: BilledResource) -> BilledResource | None:
        result = await db.execute(
            _INSERT_SQL,
            {
                "resource_id": resource.resource_id,
                "owner_user_id": resource.owner_user_id,
                "charge_user_id": resource.charge_user_id,
                "business_type": resource.business_type,
                "billing_type": resource.billing_type,
                "status": resource.status,
                "total_billed_days": resource.total_billed_days,
                "total_billed_amount": resource.total_billed_amount,
                "last_billed_date": resource.last_billed_date,
            },
        )
        row = result.fetchone()
        return _row_to_resource(row) if row else None

    async def get(self, db: AsyncSession, resource_id: str) -> BilledResource | None:
        result = await db.execute(_GET_SQL, {"resource_id": resource_id})
        row = result.fetchone()
        return _row_to_resource(row) if row else None

    async def release(self, db: AsyncSession, resource_id: str) -> BilledResource | None:
        result = await db.execute(_RELEASE_SQL, {"resource_id": resource_id})
        row = result.fetchone()
        return _row_to_resource(row) if row else None

    async def list_due(
        self, db: AsyncSession, billing_date: date, after_resource_id: str | None, limit: int
    ) -> list[BilledResource]:
        result = await db.execute(
            _LIST_DUE_SQL,
            {"billing_date": billing_date, "after_id": after_resource_id, "limit": limit},
        )
        return [_row_to_resource(row) for row in result.fetchall()]

    async def mark_billed(
        self, db: AsyncSession, resource_id: str, billing_date: date, amount: Decimal
    ) -> BilledResource | None:
        result = await db.execute(
            _MARK_BILLED_SQL,
            {"resource_id": resource_id, "billing_date": billing_date, "amount": amount},
        )
        row = result.fetchone()
        return _row_to_resource(row) if row else None
