"""Pydantic schemas for dr_settlement API."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from src.dr_commission.application.schemas import CommissionAccountResponse
from src.dr_settlement.domain.models import CommissionSettlement


class ApplySettlementRequest(BaseModel):
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    remark: str | None = Field(None, max_length=500)
    network: str | None = Field(None, max_length=32)
    address: str | None = Field(None, max_length=128)


class ApproveSettlementRequest(BaseModel):
    approved_amount: Decimal | None = Field(
        None, gt=0, decimal_places=2, description="Defaults to the requested amount"
    )
    remark: str | None = Field(None, max_length=500)


class RejectSettlementRequest(BaseModel):
    remark: str | None = Field(None, max_length=500)


class SettlementResponse(BaseModel):
    settlement_id: int
    agent_user_id: str
    requested_amount: Decimal
    approved_amount: Decimal | None
    status: str
    operator_id: str | None
    remark: str | None
    network: str | None
    address: str | None
    created_at: datetime | None
    processed_at: datetime | None

    @classmethod
    def from_settlement(cls, s: CommissionSettlement) -> "SettlementResponse":
        return cls(
            settlement_id=s.settlement_id,
            agent_user_id=s.agent_user_id,
            requested_amount=s.requested_amount,
            approved_amount=s.approved_amount,
            status=s.status,
            operator_id=s.operator_id,
            remark=s.remark,
            network=s.network,
            address=s.address,
            created_at=s.created_at,
            processed_at=s.processed_at,
        )


class SettlementActionResponse(BaseModel):
    settlement: SettlementResponse
    account: CommissionAccountResponse


class SettlementListResponse(BaseModel):
    items: list[SettlementResponse]
    next_cursor: str | None
    has_more: bool
