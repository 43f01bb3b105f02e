"""Pydantic schemas for dr_pricing API."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from src.dr_common.enums import PriceStatus
from src.dr_pricing.domain.models import PriceConfig


class UpdatePriceConfigRequest(BaseModel):
    dr_price: Decimal | None = Field(None, ge=0, decimal_places=4)
    status: PriceStatus | None = None


class PriceConfigResponse(BaseModel):
    business_type: str
    business_name: str
    price_unit: str
    dr_price: Decimal
    billing_type: str
    status: str
    updated_at: datetime | None

    @classmethod
    def from_config(cls, config: PriceConfig) -> "PriceConfigResponse":
        return cls(
            business_type=config.business_type,
            business_name=config.business_name,
            price_unit=config.price_unit,
            dr_price=config.dr_price,
            billing_type=config.billing_type,
            status=config.status,
            updated_at=config.updated_at,
        )


class PriceConfigListResponse(BaseModel):
    items: list[PriceConfigResponse]
