from datetime import date
from decimal import Decimal
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.dr_billing.domain.models import BilledResource


class BilledResourceRepositoryProtocol(Protocol):
    async def insert(self, db: AsyncSession, resource: BilledResource) -> BilledResource | None:
        """Returns None when resource_id is already registered."""
        ...

    async def get(self, db: AsyncSession, resource_id: str) -> BilledResource | None: ...

    async def release(self, db: AsyncSession, resource_id: str) -> BilledResource | None: ...

    async def list_due(
        self, db: AsyncSession, billing_date: date, after_resource_id: str | None, limit: int
    ) -> list[BilledResource]:
        """ACTIVE DAILY resources not yet billed for `billing_date`, ordered by resource_id."""
        ...

    async def mark_billed(
        self, db: AsyncSession, resource_id: str, billing_date: date, amount: Decimal
    ) -> BilledResource | None:
        """Advance counters; None when the resource was already billed for that date."""
        ...
