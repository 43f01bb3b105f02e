"""dr_balance REST API.

Self-service endpoints act on the caller; recharge, refund, manual adjust,
status changes and freezes are admin operations (recharge is posted by the payment
back office once a payment clears).
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.dr_balance.application.schemas import (
    DeductRequest,
    FreezeRequest,
    ManualAdjustRequest,
    RechargeRequest,
    RefundRequest,
    SetStatusRequest,
)
from src.dr_balance.application.service import BalanceService
from src.dr_common.database import get_db_session
from src.dr_common.enums import BillType
from src.dr_common.response import ApiResponse, success_response
from src.dr_gateway.auth.dependencies import CurrentUser, get_current_user, require_admin

router = APIRouter(prefix="/balance", tags=["balance"])

_service = BalanceService()


@router.get("")
async def get_balance(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_balance(db, current_user.id)
    return success_response(data.model_dump(mode="json"), request)


@router.get("/bills")
async def list_bills(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100),
    bill_type: BillType | None = Query(None),
    business_type: str | None = Query(None, max_length=50),
) -> ApiResponse:
    data = await _service.list_bills(
        db,
        current_user.id,
        cursor,
        limit,
        bill_type.value if bill_type else None,
        business_type,
    )
    return success_response(data.model_dump(mode="json"), request)


@router.post("/deduct")
async def deduct(
    body: DeductRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.deduct(
        db,
        current_user.id,
        body.amount,
        body.business_type,
        business_id=body.business_id,
        description=body.description,
        consumer=body.consumer,
    )
    return success_response(data.model_dump(mode="json"), request)


@router.post("/deduct/details")
async def deduct_with_details(
    body: DeductRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.deduct_with_details(
        db,
        current_user.id,
        body.amount,
        body.business_type,
        business_id=body.business_id,
        description=body.description,
        consumer=body.consumer,
    )
    return success_response(data.model_dump(mode="json"), request)


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


@router.post("/recharge")
async def recharge(
    body: RechargeRequest,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.recharge(
        db,
        body.user_id,
        body.amount,
        operator_id=admin.id,
        business_id=body.business_id,
        description=body.description,
    )
    return success_response(data.model_dump(mode="json"), request)


@router.post("/refund")
async def refund(
    body: RefundRequest,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.refund(
        db,
        body.user_id,
        body.amount,
        body.business_type,
        business_id=body.business_id,
        operator_id=admin.id,
        description=body.description,
    )
    return success_response(data.model_dump(mode="json"), request)


@router.post("/manual-adjust")
async def manual_adjust(
    body: ManualAdjustRequest,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.manual_adjust(db, body.user_id, body.amount, admin.id, body.remark)
    return success_response(data.model_dump(mode="json"), request)


@router.get("/users/{user_id}")
async def get_user_balance(
    user_id: str,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_balance(db, user_id)
    return success_response(data.model_dump(mode="json"), request)


@router.put("/users/{user_id}/status")
async def set_status(
    user_id: str,
    body: SetStatusRequest,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.set_status(db, user_id, body.status)
    return success_response(data.model_dump(mode="json"), request)


@router.post("/users/{user_id}/freeze")
async def freeze(
    user_id: str,
    body: FreezeRequest,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.freeze(db, user_id, body.amount, operator_id=admin.id)
    return success_response(data.model_dump(mode="json"), request)


@router.post("/users/{user_id}/unfreeze")
async def unfreeze(
    user_id: str,
    body: FreezeRequest,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.unfreeze(db, user_id, body.amount, operator_id=admin.id)
    return success_response(data.model_dump(mode="json"), request)
