"""Settlement state machine: PENDING -> {APPROVED, REJECTED, CANCELLED}, all terminal."""

from decimal import Decimal

from src.dr_common.enums import SettlementStatus
from src.dr_common.errors import InvalidStateTransitionError, ValidationError
from src.dr_common.money import ZERO, to_money
from src.dr_settlement.domain.models import CommissionSettlement

_ACTIONS = {
    SettlementStatus.APPROVED: "approved",
    SettlementStatus.REJECTED: "rejected",
    SettlementStatus.CANCELLED: "cancelled",
}


def ensure_transition(settlement: CommissionSettlement, target: SettlementStatus) -> None:
    if target == SettlementStatus.PENDING or not settlement.is_pending:
        raise InvalidStateTransitionError(
            str(settlement.settlement_id), settlement.status, _ACTIONS.get(target, target.value)
        )


def resolve_approved_amount(
    settlement: CommissionSettlement, approved_amount: Decimal | None
) -> Decimal:
    """Defaults to the requested amount; must satisfy 0 < approved <= requested."""
    if approved_amount is None:
        return settlement.requested_amount
    approved = to_money(approved_amount)
    if approved <= ZERO or approved > settlement.requested_amount:
        raise ValidationError(
            f"Approved amount must be in (0, {settlement.requested_amount}], got {approved}"
        )
    return approved
