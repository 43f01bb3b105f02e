"""dr_commission REST API."""

from datetime import datetime
from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.dr_commission.application.schemas import (
    ManualAdjustCommissionRequest,
    ReplayResponse,
)
from src.dr_commission.application.service import CommissionService
from src.dr_common.database import get_db_session
from src.dr_common.enums import CommissionRecordType
from src.dr_common.response import ApiResponse, success_response
from src.dr_gateway.auth.dependencies import CurrentUser, get_current_user, require_admin

router = APIRouter(prefix="/commission", tags=["commission"])

_service = CommissionService()


@router.get("/account")
async def get_commission_account(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_commission_account(db, current_user.id)
    return success_response(data.model_dump(mode="json"), request)


@router.get("/records")
async def get_commission_records(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    cursor: str | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    record_type: CommissionRecordType | None = Query(None),
    start_time: datetime | None = Query(None),
    end_time: datetime | None = Query(None),
    min_amount: Decimal | None = Query(None, ge=0),
    max_amount: Decimal | None = Query(None, ge=0),
) -> ApiResponse:
    data = await _service.get_commission_records(
        db,
        current_user.id,
        cursor,
        limit,
        record_type.value if record_type else None,
        start_time,
        end_time,
        min_amount,
        max_amount,
    )
    return success_response(data.model_dump(mode="json"), request)


@router.get("/agents/{agent_user_id}/account")
async def get_agent_account(
    agent_user_id: str,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_commission_account(db, agent_user_id)
    return success_response(data.model_dump(mode="json"), request)


@router.post("/agents/{agent_user_id}/manual-adjust")
async def manual_adjust_commission(
    agent_user_id: str,
    body: ManualAdjustCommissionRequest,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.manual_adjust_commission(
        db, agent_user_id, body.amount, admin.id, body.remark
    )
    return success_response(data.model_dump(mode="json"), request)


@router.post("/replay")
async def replay_recent_accruals(
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    lookback_hours: int | None = Query(None, ge=1, le=24 * 31),
) -> ApiResponse:
    summary = await _service.replay_recent_accruals(db, lookback_hours=lookback_hours)
    return success_response(ReplayResponse.from_summary(summary).model_dump(mode="json"), request)


@router.get("/summary")
async def get_commission_summary(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    start_time: datetime | None = Query(None),
    end_time: datetime | None = Query(None),
) -> ApiResponse:
    data = await _service.get_commission_summary(db, current_user.id, start_time, end_time)
    return success_response(data.model_dump(mode="json"), request)


@router.get("/agents/{agent_user_id}/summary")
async def get_agent_summary(
    agent_user_id: str,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    start_time: datetime | None = Query(None),
    end_time: datetime | None = Query(None),
) -> ApiResponse:
    data = await _service.get_commission_summary(db, agent_user_id, start_time, end_time)
    return success_response(data.model_dump(mode="json"), request)


@router.get("/overview")
async def get_commission_overview(
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    start_time: datetime | None = Query(None),
    end_time: datetime | None = Query(None),
    min_amount: Decimal | None = Query(None, ge=0),
    max_amount: Decimal | None = Query(None, ge=0),
) -> ApiResponse:
    data = await _service.get_commission_overview(
        db, start_time, end_time, min_amount, max_amount
    )
    return success_response(data.model_dump(mode="json"), request)


@router.get("/settled-total")
async def get_settled_total(
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    total = await _service.sum_settled_commission(db)
    return success_response({"settled_commission": str(total)}, request)
