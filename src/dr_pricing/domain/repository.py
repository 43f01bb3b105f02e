from decimal import Decimal
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.dr_pricing.domain.models import PriceConfig


class PriceConfigRepositoryProtocol(Protocol):
    async def get(self, db: AsyncSession, business_type: str) -> PriceConfig | None: ...

    async def list_all(self, db: AsyncSession) -> list[PriceConfig]: ...

    async def update(
        self,
        db: AsyncSession,
        business_type: str,
        dr_price: Decimal | None,
        status: str | None,
    ) -> PriceConfig | None: ...
