from decimal import Decimal
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.dr_pricing.domain.models import PriceConfig, normalize_price

_COLUMNS = "business_type, business_name, price_unit, dr_price, billing_type, status, updated_at"

_GET_SQL = text(f"SELECT {_COLUMNS} FROM price_configs WHERE business_type = :business_type")

_LIST_SQL = text(f"SELECT {_COLUMNS} FROM price_configs ORDER BY business_type")

_UPDATE_SQL = text(f"""
    UPDATE price_configs
    SET dr_price = COALESCE(:dr_price, dr_price),
        status   = COALESCE(:status, status)
    WHERE business_type = :business_type
    RETURNING {_COLUMNS}
""")


def _row_to_config(row: Any) -> PriceConfig:
    return PriceConfig(
        business_type=row.business_type,
        business_name=row.business_name,
        price_unit=row.price_unit,
        dr_price=normalize_price(row.business_type, row.dr_price),
        billing_type=row.billing_type,
        status=row.status,
        updated_at=row.updated_at,
    )


class PriceConfigRepository:
    async def get(self, db: AsyncSession, business_type: str) -> PriceConfig | None:
        result = await db.execute(_GET_SQL, {"business_type": business_type})
        row = result.fetchone()
        return _row_to_config(row) if row else None

    async def list_all(self, db: AsyncSession) -> list[PriceConfig]:
        result = await db.execute(_LIST_SQL)
        return [_row_to_config(row) for row in result.fetchall()]

    async def update(
        self,
        db: AsyncSession,
        business_type: str,
        dr_price: Decimal | None,
        status: str | None,
    ) -> PriceConfig | None:
        result = await db.execute(
            _UPDATE_SQL,
            {"business_type": business_type, "dr_price": dr_price, "status": status},
        )
        row = result.fetchone()
        return _row_to_config(row) if row else None
