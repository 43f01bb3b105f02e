"""dr_settlement REST API: agents apply/cancel, admins approve/reject."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.dr_common.database import get_db_session
from src.dr_common.enums import SettlementStatus
from src.dr_common.errors import PermissionDeniedError
from src.dr_common.response import ApiResponse, success_response
from src.dr_gateway.auth.dependencies import CurrentUser, get_current_user, require_admin
from src.dr_settlement.application.schemas import (
    ApplySettlementRequest,
    ApproveSettlementRequest,
    RejectSettlementRequest,
)
from src.dr_settlement.application.service import SettlementService

router = APIRouter(prefix="/settlements", tags=["settlements"])

_service = SettlementService()


@router.post("")
async def apply_settlement(
    body: ApplySettlementRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.apply(
        db,
        current_user.id,
        body.amount,
        operator_id=current_user.id,
        remark=body.remark,
        network=body.network,
        address=body.address,
    )
    return success_response(data.model_dump(mode="json"), request)


@router.get("")
async def list_settlements(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    status: list[SettlementStatus] | None = Query(None),
    agent_user_id: str | None = Query(None, description="Admin only; agents always see their own"),
    cursor: str | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
) -> ApiResponse:
    owner = agent_user_id if current_user.is_admin else current_user.id
    data = await _service.list_settlements(db, status, owner, cursor, limit)
    return success_response(data.model_dump(mode="json"), request)


@router.get("/{settlement_id}")
async def get_settlement(
    settlement_id: int,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_settlement(db, settlement_id)
    if not current_user.is_admin and data.agent_user_id != current_user.id:
        raise PermissionDeniedError("Settlement belongs to another agent")
    return success_response(data.model_dump(mode="json"), request)


@router.post("/{settlement_id}/cancel")
async def cancel_settlement(
    settlement_id: int,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.cancel(db, settlement_id, current_user.id)
    return success_response(data.model_dump(mode="json"), request)


@router.post("/{settlement_id}/approve")
async def approve_settlement(
    settlement_id: int,
    body: ApproveSettlementRequest,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.approve(
        db, settlement_id, admin.id, approved_amount=body.approved_amount, remark=body.remark
    )
    return success_response(data.model_dump(mode="json"), request)


@router.post("/{settlement_id}/reject")
async def reject_settlement(
    settlement_id: int,
    body: RejectSettlementRequest,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.reject(db, settlement_id, admin.id, remark=body.remark)
    return success_response(data.model_dump(mode="json"), request)
