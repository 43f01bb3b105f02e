"""dr_billing REST API: instance quota, resource registration, daily run."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.dr_billing.application.schemas import RegisterResourceRequest, RunDailyBillingRequest
from src.dr_billing.application.service import ResourceBillingService
from src.dr_common.database import get_db_session
from src.dr_common.response import ApiResponse, success_response
from src.dr_gateway.auth.dependencies import CurrentUser, get_current_user, require_admin

router = APIRouter(prefix="/billing", tags=["billing"])

_service = ResourceBillingService()


@router.get("/instance-quota")
async def get_instance_quota(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_available_marketing_instance_count(db, current_user.id)
    return success_response(data.model_dump(mode="json"), request)


@router.post("/resources")
async def register_resource(
    body: RegisterResourceRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.register_resource(
        db, current_user.id, body.resource_id, body.business_type
    )
    return success_response(data.model_dump(mode="json"), request)


@router.get("/resources/{resource_id}")
async def get_resource(
    resource_id: str,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_resource(db, resource_id)
    return success_response(data.model_dump(mode="json"), request)


@router.post("/resources/{resource_id}/release")
async def release_resource(
    resource_id: str,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.release_resource(db, resource_id)
    return success_response(data.model_dump(mode="json"), request)


@router.post("/daily-run")
async def run_daily_billing(
    body: RunDailyBillingRequest,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.run_daily_billing(db, body.billing_date)
    return success_response(data.model_dump(mode="json"), request)
