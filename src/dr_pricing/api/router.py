"""dr_pricing REST API: price catalog reads, admin updates."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.dr_common.database import get_db_session
from src.dr_common.response import ApiResponse, success_response
from src.dr_gateway.auth.dependencies import CurrentUser, get_current_user, require_admin
from src.dr_pricing.application.schemas import (
    PriceConfigListResponse,
    PriceConfigResponse,
    UpdatePriceConfigRequest,
)
from src.dr_pricing.application.service import PricingService

router = APIRouter(prefix="/prices", tags=["pricing"])

_service = PricingService()


@router.get("")
async def list_price_configs(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    configs = await _service.list_price_configs(db)
    data = PriceConfigListResponse(items=[PriceConfigResponse.from_config(c) for c in configs])
    return success_response(data.model_dump(mode="json"), request)


@router.get("/{business_type}")
async def get_price_config(
    business_type: str,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    config = await _service.get_price_config(db, business_type)
    return success_response(PriceConfigResponse.from_config(config).model_dump(mode="json"), request)


@router.put("/{business_type}")
async def update_price_config(
    business_type: str,
    body: UpdatePriceConfigRequest,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    config = await _service.update_price_config(db, business_type, body.dr_price, body.status)
    return success_response(PriceConfigResponse.from_config(config).model_dump(mode="json"), request)
