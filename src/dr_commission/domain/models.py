"""Domain models for dr_commission, pure dataclasses."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from src.dr_common.enums import CommissionAccountStatus, CommissionRecordType
from src.dr_common.money import ZERO


@dataclass
class CommissionAccount:
    agent_user_id: str
    total_commission: Decimal = ZERO
    pending_settlement_commission: Decimal = ZERO   # reserved by PENDING settlements
    settled_commission: Decimal = ZERO
    version: int = 0
    status: str = CommissionAccountStatus.NORMAL.value
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def available_commission(self) -> Decimal:
        return self.total_commission - self.settled_commission - self.pending_settlement_commission

    @property
    def is_normal(self) -> bool:
        return self.status == CommissionAccountStatus.NORMAL


@dataclass
class CommissionRecord:
    record_id: int
    agent_user_id: str
    record_type: str                   # CommissionRecordType value
    amount: Decimal                    # magnitude, always > 0
    available_before: Decimal
    available_after: Decimal
    trigger_bill_id: int | None = None
    hierarchy_level: int | None = None
    source_user_id: str | None = None
    settlement_id: int | None = None
    operator_id: str | None = None
    remark: str | None = None
    created_at: datetime | None = None


@dataclass
class CommissionRecordDraft:
    agent_user_id: str
    record_type: CommissionRecordType
    amount: Decimal
    available_before: Decimal
    available_after: Decimal
    trigger_bill_id: int | None = None
    hierarchy_level: int | None = None
    source_user_id: str | None = None
    settlement_id: int | None = None
    operator_id: str | None = None
    remark: str | None = None


@dataclass
class LevelOutcome:
    level: int
    agent_user_id: str
    amount: Decimal
    status: str          # CREDITED | DUPLICATE | SKIPPED | FAILED
    error: str | None = None


@dataclass
class AccrualResult:
    trigger_bill_id: int
    source_user_id: str
    recharge_amount: Decimal
    levels: list[LevelOutcome] = field(default_factory=list)
    error: str | None = None   # set when the ancestor lookup itself failed

    @property
    def credited_total(self) -> Decimal:
        return sum((o.amount for o in self.levels if o.status == "CREDITED"), ZERO)

    @property
    def failed_levels(self) -> list[int]:
        return [o.level for o in self.levels if o.status == "FAILED"]

    @property
    def complete(self) -> bool:
        return self.error is None and not self.failed_levels


@dataclass
class ReplaySummary:
    scanned: int = 0
    credited_levels: int = 0
    incomplete: int = 0
