"""Pydantic schemas for dr_commission API."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from src.dr_commission.domain.models import (
    AccrualResult,
    CommissionAccount,
    CommissionRecord,
    ReplaySummary,
)


class ManualAdjustCommissionRequest(BaseModel):
    amount: Decimal = Field(..., description="Signed amount; negative decreases")
    remark: str | None = Field(None, max_length=500)


class CommissionAccountResponse(BaseModel):
    agent_user_id: str
    total_commission: Decimal
    pending_settlement_commission: Decimal
    settled_commission: Decimal
    available_commission: Decimal
    status: str

    @classmethod
    def from_account(cls, account: CommissionAccount) -> "CommissionAccountResponse":
        return cls(
            agent_user_id=account.agent_user_id,
            total_commission=account.total_commission,
            pending_settlement_commission=account.pending_settlement_commission,
            settled_commission=account.settled_commission,
            available_commission=account.available_commission,
            status=account.status,
        )


class CommissionRecordItem(BaseModel):
    record_id: int
    record_type: str
    amount: Decimal
    available_before: Decimal
    available_after: Decimal
    trigger_bill_id: int | None
    hierarchy_level: int | None
    source_user_id: str | None
    settlement_id: int | None
    remark: str | None
    created_at: datetime | None

    @classmethod
    def from_record(cls, r: CommissionRecord) -> "CommissionRecordItem":
        return cls(
            record_id=r.record_id,
            record_type=r.record_type,
            amount=r.amount,
            available_before=r.available_before,
            available_after=r.available_after,
            trigger_bill_id=r.trigger_bill_id,
            hierarchy_level=r.hierarchy_level,
            source_user_id=r.source_user_id,
            settlement_id=r.settlement_id,
            remark=r.remark,
            created_at=r.created_at,
        )


class CommissionRecordListResponse(BaseModel):
    items: list[CommissionRecordItem]
    next_cursor: str | None
    has_more: bool


class LevelOutcomeItem(BaseModel):
    level: int
    agent_user_id: str
    amount: Decimal
    status: str
    error: str | None = None


class AccrualSummary(BaseModel):
    trigger_bill_id: int
    credited_total: Decimal
    complete: bool
    failed_levels: list[int]
    levels: list[LevelOutcomeItem]
    error: str | None = None

    @classmethod
    def from_result(cls, result: AccrualResult) -> "AccrualSummary":
        return cls(
            trigger_bill_id=result.trigger_bill_id,
            credited_total=result.credited_total,
            complete=result.complete,
            failed_levels=result.failed_levels,
            levels=[
                LevelOutcomeItem(
                    level=o.level,
                    agent_user_id=o.agent_user_id,
                    amount=o.amount,
                    status=o.status,
                    error=o.error,
                )
                for o in result.levels
            ],
            error=result.error,
        )


class ReplayResponse(BaseModel):
    scanned: int
    credited_levels: int
    incomplete: int

    @classmethod
    def from_summary(cls, s: ReplaySummary) -> "ReplayResponse":
        return cls(scanned=s.scanned, credited_levels=s.credited_levels, incomplete=s.incomplete)


class LevelTotalItem(BaseModel):
    level: int
    amount: Decimal


class CommissionSummaryResponse(BaseModel):
    agent_user_id: str
    total_commission: Decimal
    available_commission: Decimal
    pending_settlement_commission: Decimal
    settled_commission: Decimal
    levels: list[LevelTotalItem]


class AgentOverviewItem(CommissionAccountResponse):
    earned_in_range: Decimal


class CommissionOverviewResponse(BaseModel):
    agent_count: int
    total_settled_commission: Decimal
    earned_in_range: Decimal
    agents: list[AgentOverviewItem]
