"""Domain models for dr_settlement, pure dataclasses."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from src.dr_common.enums import SettlementStatus


@dataclass
class CommissionSettlement:
    settlement_id: int
    agent_user_id: str
    requested_amount: Decimal
    status: str                          # SettlementStatus value
    approved_amount: Decimal | None = None
    operator_id: str | None = None
    remark: str | None = None
    network: str | None = None           # payout chain/network, e.g. TRC20
    address: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    processed_at: datetime | None = None

    @property
    def is_pending(self) -> bool:
        return self.status == SettlementStatus.PENDING
