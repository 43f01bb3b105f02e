"""Pydantic schemas for dr_balance API.

Amounts are Decimal and serialize as strings (`model_dump(mode="json")`).
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from src.dr_balance.domain.models import UserBalance
from src.dr_commission.application.schemas import AccrualSummary
from src.dr_common.enums import BalanceStatus
from src.dr_common.money import money_display
from src.dr_ledger.domain.models import BillingRecord

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class RechargeRequest(BaseModel):
    user_id: str = Field(..., max_length=64)
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    business_id: str | None = Field(None, max_length=64, description="Payment order id")
    description: str | None = None


class DeductRequest(BaseModel):
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    business_type: str = Field(..., max_length=50)
    business_id: str | None = Field(None, max_length=64)
    description: str | None = None
    consumer: str | None = None


class RefundRequest(BaseModel):
    user_id: str = Field(..., max_length=64)
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    business_type: str = Field(..., max_length=50)
    business_id: str | None = Field(None, max_length=64, description="Original bill/business id")
    description: str | None = None


class ManualAdjustRequest(BaseModel):
    user_id: str = Field(..., max_length=64)
    amount: Decimal = Field(..., decimal_places=2, description="Signed; negative deducts")
    remark: str | None = None


class SetStatusRequest(BaseModel):
    status: BalanceStatus


class FreezeRequest(BaseModel):
    amount: Decimal = Field(..., gt=0, decimal_places=2)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class BalanceResponse(BaseModel):
    user_id: str
    dr_balance: Decimal
    pre_deducted_balance: Decimal
    frozen_amount: Decimal
    available_balance: Decimal
    available_balance_display: str
    total_recharge: Decimal
    total_consume: Decimal
    total_refund: Decimal
    status: str
    version: int

    @classmethod
    def from_balance(cls, b: UserBalance) -> "BalanceResponse":
        return cls(
            user_id=b.user_id,
            dr_balance=b.dr_balance,
            pre_deducted_balance=b.pre_deducted_balance,
            frozen_amount=b.frozen_amount,
            available_balance=b.available,
            available_balance_display=money_display(b.available),
            total_recharge=b.total_recharge,
            total_consume=b.total_consume,
            total_refund=b.total_refund,
            status=b.status,
            version=b.version,
        )


class BillItem(BaseModel):
    bill_id: int
    bill_no: str
    user_id: str
    operator_id: str | None
    bill_type: str
    billing_type: str
    business_type: str
    business_id: str | None
    amount: Decimal
    balance_before: Decimal
    balance_after: Decimal
    balance_account: str
    description: str | None
    extra_data: dict[str, Any] | None
    consumer: str | None
    created_at: datetime | None

    @classmethod
    def from_record(cls, r: BillingRecord) -> "BillItem":
        return cls(
            bill_id=r.bill_id,
            bill_no=r.bill_no,
            user_id=r.user_id,
            operator_id=r.operator_id,
            bill_type=r.bill_type,
            billing_type=r.billing_type,
            business_type=r.business_type,
            business_id=r.business_id,
            amount=r.amount,
            balance_before=r.balance_before,
            balance_after=r.balance_after,
            balance_account=r.balance_account,
            description=r.description,
            extra_data=r.extra_data,
            consumer=r.consumer,
            created_at=r.created_at,
        )


class BillListResponse(BaseModel):
    items: list[BillItem]
    next_cursor: str | None
    has_more: bool


class MutationResponse(BaseModel):
    balance: BalanceResponse
    bill: BillItem


class RechargeResponse(BaseModel):
    balance: BalanceResponse
    bill: BillItem
    commission: AccrualSummary | None


class DeductResponse(BaseModel):
    success: bool
    charge_user_id: str
    amount: Decimal
    balance_after: Decimal


class DeductDetailResponse(BaseModel):
    request_user_id: str
    charge_user_id: str
    routed_to_main_account: bool
    balance: BalanceResponse
    bill: BillItem
