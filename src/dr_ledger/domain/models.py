"""Domain models for dr_ledger, pure dataclasses."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from src.dr_common.enums import BalanceAccount, BillingType, BillType


@dataclass
class BillingRecord:
    bill_id: int                      # BIGSERIAL
    bill_no: str                      # "DR" + snowflake
    user_id: str                      # account whose balance moved
    operator_id: str | None
    bill_type: str                    # BillType value
    billing_type: str                 # BillingType value
    business_type: str
    business_id: str | None
    amount: Decimal                   # always > 0, sign comes from bill_type
    balance_before: Decimal
    balance_after: Decimal
    balance_account: str = BalanceAccount.BASE.value
    description: str | None = None
    extra_data: dict[str, Any] | None = None
    status: str = "SUCCESS"
    consumer: str | None = None
    created_at: datetime | None = None

    @property
    def signed_amount(self) -> Decimal:
        if self.bill_type == BillType.CONSUME:
            return -self.amount
        return self.amount


@dataclass
class LedgerDraft:
    """Everything needed to append one billing record, minus the generated ids."""
    user_id: str
    bill_type: BillType
    amount: Decimal
    balance_before: Decimal
    balance_after: Decimal
    business_type: str
    balance_account: BalanceAccount = BalanceAccount.BASE
    billing_type: BillingType = BillingType.INSTANT
    business_id: str | None = None
    operator_id: str | None = None
    description: str | None = None
    consumer: str | None = None
    extra_data: dict[str, Any] | None = field(default=None)
