"""Domain models for dr_pricing, pure dataclasses."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from src.dr_common.enums import BusinessType, PriceStatus
from src.dr_common.money import to_money, to_rate

# Rows whose dr_price is a fraction of the recharge, not an amount of DR
COMMISSION_RATE_TYPES = frozenset({
    BusinessType.AGENT_LEVEL1_COMMISSION.value,
    BusinessType.AGENT_LEVEL2_COMMISSION.value,
    BusinessType.AGENT_LEVEL3_COMMISSION.value,
})


def normalize_price(business_type: str, value: Decimal) -> Decimal:
    """Rates keep four decimal places, prices two."""
    if business_type in COMMISSION_RATE_TYPES:
        return to_rate(value)
    return to_money(value)


@dataclass
class PriceConfig:
    business_type: str
    business_name: str
    price_unit: str
    dr_price: Decimal
    billing_type: str     # BillingType value
    status: str           # PriceStatus value
    updated_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status == PriceStatus.ACTIVE

    @property
    def is_rate(self) -> bool:
        return self.business_type in COMMISSION_RATE_TYPES
