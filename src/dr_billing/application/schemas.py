"""Pydantic schemas for dr_billing API."""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field

from src.dr_balance.application.schemas import BalanceResponse, BillItem
from src.dr_billing.domain.models import BilledResource, DailyBillingSummary


class RegisterResourceRequest(BaseModel):
    resource_id: str = Field(..., min_length=1, max_length=64)
    business_type: str = Field("INSTANCE_MARKETING", max_length=50)


class RunDailyBillingRequest(BaseModel):
    billing_date: date | None = None


class BilledResourceResponse(BaseModel):
    resource_id: str
    owner_user_id: str
    charge_user_id: str
    business_type: str
    billing_type: str
    status: str
    total_billed_days: int
    total_billed_amount: Decimal
    last_billed_date: date | None

    @classmethod
    def from_resource(cls, r: BilledResource) -> "BilledResourceResponse":
        return cls(
            resource_id=r.resource_id,
            owner_user_id=r.owner_user_id,
            charge_user_id=r.charge_user_id,
            business_type=r.business_type,
            billing_type=r.billing_type,
            status=r.status,
            total_billed_days=r.total_billed_days,
            total_billed_amount=r.total_billed_amount,
            last_billed_date=r.last_billed_date,
        )


class ResourceRegistrationResponse(BaseModel):
    resource: BilledResourceResponse
    pre_deduct_bill: BillItem | None
    proration_bill: BillItem | None
    balance: BalanceResponse | None


class InstanceQuotaResponse(BaseModel):
    user_id: str
    charge_user_id: str
    available_balance: Decimal
    unit_price: Decimal
    available_count: int


class DailyBillingSummaryResponse(BaseModel):
    billing_date: date
    charged: int
    already_billed: int
    failed: int
    skipped_business_types: list[str]
    total_amount: Decimal
    failures: dict[str, str]

    @classmethod
    def from_summary(cls, s: DailyBillingSummary) -> "DailyBillingSummaryResponse":
        return cls(
            billing_date=s.billing_date,
            charged=s.charged,
            already_billed=s.already_billed,
            failed=s.failed,
            skipped_business_types=s.skipped_business_types,
            total_amount=s.total_amount,
            failures=s.failures,
        )
