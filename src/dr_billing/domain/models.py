"""Domain models for dr_billing, pure dataclasses."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from src.dr_common.enums import ResourceStatus
from src.dr_common.money import ZERO


@dataclass
class BilledResource:
    resource_id: str
    owner_user_id: str            # requester, may be a sub account
    charge_user_id: str           # root account that pays
    business_type: str
    billing_type: str             # BillingType value
    status: str = ResourceStatus.ACTIVE.value
    total_billed_days: int = 0
    total_billed_amount: Decimal = ZERO
    last_billed_date: date | None = None
    created_at: datetime | None = None
    released_at: datetime | None = None

    @property
    def routed(self) -> bool:
        return self.owner_user_id != self.charge_user_id


@dataclass
class DailyBillingSummary:
    billing_date: date
    charged: int = 0
    already_billed: int = 0
    failed: int = 0
    skipped_business_types: list[str] = field(default_factory=list)
    total_amount: Decimal = ZERO
    failures: dict[str, str] = field(default_factory=dict)   # resource_id -> reason
