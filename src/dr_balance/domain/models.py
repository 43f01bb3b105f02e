"""Domain models for dr_balance, pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from src.dr_common.enums import BalanceStatus
from src.dr_common.money import ZERO


@dataclass
class UserBalance:
    user_id: str
    dr_balance: Decimal = ZERO             # signed; < 0 only via routed overdraft
    pre_deducted_balance: Decimal = ZERO   # earmarked, >= 0
    frozen_amount: Decimal = ZERO          # >= 0
    total_recharge: Decimal = ZERO
    total_consume: Decimal = ZERO
    total_refund: Decimal = ZERO
    version: int = 0
    status: str = BalanceStatus.NORMAL.value
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def available(self) -> Decimal:
        return self.dr_balance - self.frozen_amount

    @property
    def total_available(self) -> Decimal:
        """Spendable plus earmarked funds."""
        return self.available + self.pre_deducted_balance

    @property
    def is_normal(self) -> bool:
        return self.status == BalanceStatus.NORMAL
