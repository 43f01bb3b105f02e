"""PricingService: read-mostly price catalog.

`get_active` is the lookup used by billing and commission: it returns None
for both a missing and an INACTIVE config, and callers decide whether that
means "skip" or "fall back to the configured default".
"""

import logging
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from src.dr_common.enums import PriceStatus
from src.dr_common.errors import PriceConfigNotFoundError, ValidationError
from src.dr_common.money import ZERO
from src.dr_pricing.domain.models import COMMISSION_RATE_TYPES, PriceConfig, normalize_price
from src.dr_pricing.domain.repository import PriceConfigRepositoryProtocol
from src.dr_pricing.infrastructure.persistence import PriceConfigRepository

logger = logging.getLogger(__name__)


class PricingService:
    def __init__(self, repo: PriceConfigRepositoryProtocol | None = None) -> None:
        self._repo: PriceConfigRepositoryProtocol = repo or PriceConfigRepository()

    async def get_active(self, db: AsyncSession, business_type: str) -> PriceConfig | None:
        config = await self._repo.get(db, business_type)
        if config is None or not config.is_active:
            return None
        return config

    async def get_price_config(self, db: AsyncSession, business_type: str) -> PriceConfig:
        config = await self._repo.get(db, business_type)
        if config is None:
            raise PriceConfigNotFoundError(business_type)
        return config

    async def list_price_configs(self, db: AsyncSession) -> list[PriceConfig]:
        return await self._repo.list_all(db)

    async def update_price_config(
        self,
        db: AsyncSession,
        business_type: str,
        dr_price: Decimal | None = None,
        status: PriceStatus | None = None,
    ) -> PriceConfig:
        if dr_price is not None:
            dr_price = normalize_price(business_type, dr_price)
            if dr_price < ZERO:
                raise ValidationError(f"dr_price must be >= 0, got {dr_price}")
            if business_type in COMMISSION_RATE_TYPES and dr_price > 1:
                raise ValidationError(f"Commission rate must be <= 1, got {dr_price}")
        try:
            config = await self._repo.update(
                db, business_type, dr_price, status.value if status else None
            )
            if config is None:
                raise PriceConfigNotFoundError(business_type)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Price config %s updated: price=%s status=%s",
            business_type, config.dr_price, config.status,
        )
        return config
