"""Pure commission-account rules.

Each rule returns the next account state and the magnitude moved, plus
available-commission snapshots for the commission record.
available = total - settled - pending_settlement.
"""

from dataclasses import dataclass, replace
from decimal import Decimal

from src.dr_commission.domain.models import CommissionAccount
from src.dr_common.enums import CommissionRecordType
from src.dr_common.errors import (
    CommissionAccountInactiveError,
    InsufficientCommissionError,
    InternalError,
    ValidationError,
)
from src.dr_common.money import ZERO, require_positive, to_money


@dataclass
class CommissionChange:
    new: CommissionAccount
    record_type: CommissionRecordType
    amount: Decimal
    available_before: Decimal
    available_after: Decimal


def commission_for_level(recharge_amount: Decimal, rate: Decimal) -> Decimal:
    """Each level rounds on its own; no remainder carries to the next level."""
    return to_money(recharge_amount * rate)


def _change(
    old: CommissionAccount, new: CommissionAccount, kind: CommissionRecordType, amount: Decimal
) -> CommissionChange:
    return CommissionChange(new, kind, amount, old.available_commission, new.available_commission)


def plan_accrual(account: CommissionAccount, amount: Decimal) -> CommissionChange:
    amount = require_positive(amount, "commission")
    new = replace(account, total_commission=account.total_commission + amount)
    return _change(account, new, CommissionRecordType.RECHARGE_COMMISSION, amount)


def plan_settlement_freeze(account: CommissionAccount, amount: Decimal) -> CommissionChange:
    amount = require_positive(amount)
    if not account.is_normal:
        raise CommissionAccountInactiveError(account.agent_user_id, account.status)
    if amount > account.available_commission:
        raise InsufficientCommissionError(amount, account.available_commission)
    new = replace(
        account,
        pending_settlement_commission=account.pending_settlement_commission + amount,
    )
    return _change(account, new, CommissionRecordType.SETTLEMENT_FREEZE, amount)


def _release_pending(account: CommissionAccount, requested: Decimal) -> Decimal:
    if account.pending_settlement_commission < requested:
        raise InternalError(
            f"Pending settlement of {account.agent_user_id} is "
            f"{account.pending_settlement_commission}, cannot release {requested}"
        )
    return account.pending_settlement_commission - requested


def plan_settlement_payout(
    account: CommissionAccount, requested: Decimal, approved: Decimal
) -> CommissionChange:
    """Close a reservation: `approved` becomes settled, the rest is released."""
    new = replace(
        account,
        pending_settlement_commission=_release_pending(account, requested),
        settled_commission=account.settled_commission + approved,
    )
    return _change(account, new, CommissionRecordType.SETTLEMENT_PAYOUT, approved)


def plan_settlement_release(account: CommissionAccount, requested: Decimal) -> CommissionChange:
    new = replace(account, pending_settlement_commission=_release_pending(account, requested))
    return _change(account, new, CommissionRecordType.SETTLEMENT_ROLLBACK, requested)


def plan_manual_adjust(account: CommissionAccount, signed_amount: Decimal) -> CommissionChange:
    """Increase total, or decrease it clamped to what is still available."""
    signed_amount = to_money(signed_amount)
    if signed_amount == ZERO:
        raise ValidationError("Adjustment amount must not be 0")
    if signed_amount > ZERO:
        new = replace(account, total_commission=account.total_commission + signed_amount)
        return _change(account, new, CommissionRecordType.MANUAL_ADJUST, signed_amount)
    deduct = min(-signed_amount, max(account.available_commission, ZERO))
    if deduct <= ZERO:
        raise ValidationError(
            f"Nothing to deduct: available commission of {account.agent_user_id} is "
            f"{account.available_commission}"
        )
    new = replace(account, total_commission=account.total_commission - deduct)
    return _change(account, new, CommissionRecordType.MANUAL_ADJUST, deduct)
