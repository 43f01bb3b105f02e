"""Ledger admin API: single bill lookup and balance vs. ledger reconciliation."""
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.dr_balance.application.schemas import BillItem
from src.dr_common.database import get_db_session
from src.dr_common.errors import BillNotFoundError
from src.dr_common.response import ApiResponse, success_response
from src.dr_gateway.auth.dependencies import CurrentUser, require_admin
from src.dr_ledger.domain.reconciliation import verify_balance_reconciliation
from src.dr_ledger.infrastructure.persistence import LedgerRepository

router = APIRouter(prefix="/ledger", tags=["ledger"])

_repo = LedgerRepository()


@router.get("/bills/{bill_id}")
async def get_bill(
    bill_id: int,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    record = await _repo.get(db, bill_id)
    if record is None:
        raise BillNotFoundError(str(bill_id))
    return success_response(BillItem.from_record(record).model_dump(mode="json"), request)


@router.get("/reconciliation")
async def reconcile(
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    user_id: str | None = Query(None, description="Check one user; omit for all"),
) -> ApiResponse:
    violations = await verify_balance_reconciliation(db, user_id)
    return success_response(
        {"user_id": user_id, "ok": not violations, "violations": violations}, request
    )
