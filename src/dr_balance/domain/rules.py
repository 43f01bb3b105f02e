"""Pure balance mutation rules.

Each rule takes the current row and returns a BalanceChange: the next row
state plus the bill type, bucket and snapshot for the one billing record
that must accompany it. Rules never touch the database, so the service can
re-run them against a fresh row after a lost version race.
"""

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any

from src.dr_balance.domain.models import UserBalance
from src.dr_common.enums import BalanceAccount, BalanceStatus, BillType
from src.dr_common.errors import (
    BalanceAccountInactiveError,
    InsufficientBalanceError,
    InsufficientFrozenAmountError,
    InsufficientReservedBalanceError,
    ValidationError,
)
from src.dr_common.money import ZERO, require_positive, to_money


@dataclass
class BalanceChange:
    new: UserBalance
    bill_type: BillType
    amount: Decimal
    balance_before: Decimal
    balance_after: Decimal
    balance_account: BalanceAccount = BalanceAccount.BASE
    extra_data: dict[str, Any] | None = None


def ensure_normal(balance: UserBalance) -> None:
    if not balance.is_normal:
        raise BalanceAccountInactiveError(balance.user_id, balance.status)


def plan_credit(balance: UserBalance, amount: Decimal) -> BalanceChange:
    amount = require_positive(amount)
    ensure_normal(balance)
    new = replace(
        balance,
        dr_balance=balance.dr_balance + amount,
        total_recharge=balance.total_recharge + amount,
    )
    return BalanceChange(new, BillType.RECHARGE, amount, balance.dr_balance, new.dr_balance)


def plan_refund(balance: UserBalance, amount: Decimal) -> BalanceChange:
    amount = require_positive(amount)
    ensure_normal(balance)
    new = replace(
        balance,
        dr_balance=balance.dr_balance + amount,
        total_refund=balance.total_refund + amount,
    )
    return BalanceChange(new, BillType.REFUND, amount, balance.dr_balance, new.dr_balance)


def plan_debit(
    balance: UserBalance, amount: Decimal, allow_overdraft: bool = False
) -> BalanceChange:
    amount = require_positive(amount)
    ensure_normal(balance)
    if not allow_overdraft and balance.available < amount:
        raise InsufficientBalanceError(amount, balance.available)
    new = replace(
        balance,
        dr_balance=balance.dr_balance - amount,
        total_consume=balance.total_consume + amount,
    )
    return BalanceChange(new, BillType.CONSUME, amount, balance.dr_balance, new.dr_balance)


def plan_reserve(balance: UserBalance, amount: Decimal) -> BalanceChange:
    """dr_balance -> pre_deducted_balance. Counted as consumption on BASE."""
    amount = require_positive(amount)
    ensure_normal(balance)
    if balance.available < amount:
        raise InsufficientBalanceError(amount, balance.available)
    new = replace(
        balance,
        dr_balance=balance.dr_balance - amount,
        pre_deducted_balance=balance.pre_deducted_balance + amount,
        total_consume=balance.total_consume + amount,
    )
    return BalanceChange(
        new,
        BillType.CONSUME,
        amount,
        balance.dr_balance,
        new.dr_balance,
        extra_data={
            "pre_deducted_before": str(balance.pre_deducted_balance),
            "pre_deducted_after": str(new.pre_deducted_balance),
        },
    )


def plan_consume_reservation(balance: UserBalance, amount: Decimal) -> BalanceChange:
    """Draw from pre_deducted_balance; totals were counted at reserve time."""
    amount = require_positive(amount)
    ensure_normal(balance)
    if balance.pre_deducted_balance < amount:
        raise InsufficientReservedBalanceError(amount, balance.pre_deducted_balance)
    new = replace(balance, pre_deducted_balance=balance.pre_deducted_balance - amount)
    return BalanceChange(
        new,
        BillType.CONSUME,
        amount,
        balance.pre_deducted_balance,
        new.pre_deducted_balance,
        balance_account=BalanceAccount.RESERVED,
    )


def plan_daily_charge(
    balance: UserBalance, price: Decimal, allow_overdraft: bool
) -> BalanceChange:
    """Draw a full day from the reservation when it covers the price, else from base."""
    price = require_positive(price)
    if balance.pre_deducted_balance >= price:
        return plan_consume_reservation(balance, price)
    return plan_debit(balance, price, allow_overdraft=allow_overdraft)


def plan_manual_adjust(balance: UserBalance, signed_amount: Decimal) -> BalanceChange:
    """Administrative adjustment; ignores status and availability.

    A decrease is clamped to the positive part of dr_balance so an
    adjustment can never create or deepen a negative balance.
    """
    signed_amount = to_money(signed_amount)
    if signed_amount == ZERO:
        raise ValidationError("Adjustment amount must not be 0")
    if signed_amount > ZERO:
        new = replace(
            balance,
            dr_balance=balance.dr_balance + signed_amount,
            total_recharge=balance.total_recharge + signed_amount,
        )
        return BalanceChange(
            new, BillType.RECHARGE, signed_amount, balance.dr_balance, new.dr_balance
        )

    deduct = min(-signed_amount, max(balance.dr_balance, ZERO))
    if deduct <= ZERO:
        raise ValidationError(
            f"Nothing to deduct: balance of {balance.user_id} is {balance.dr_balance}"
        )
    new = replace(
        balance,
        dr_balance=balance.dr_balance - deduct,
        total_consume=balance.total_consume + deduct,
    )
    return BalanceChange(
        new,
        BillType.CONSUME,
        deduct,
        balance.dr_balance,
        new.dr_balance,
        extra_data={"requested": str(signed_amount), "clamped": deduct != -signed_amount},
    )


def plan_status_change(balance: UserBalance, status: BalanceStatus) -> UserBalance:
    if balance.status == status.value:
        raise ValidationError(f"Balance of {balance.user_id} is already {status.value}")
    return replace(balance, status=status.value)


def plan_freeze(balance: UserBalance, amount: Decimal) -> UserBalance:
    """Hold part of dr_balance; held funds stay on the row but are not available."""
    amount = require_positive(amount)
    ensure_normal(balance)
    if balance.available < amount:
        raise InsufficientBalanceError(amount, balance.available)
    return replace(balance, frozen_amount=balance.frozen_amount + amount)


def plan_unfreeze(balance: UserBalance, amount: Decimal) -> UserBalance:
    amount = require_positive(amount)
    if balance.frozen_amount < amount:
        raise InsufficientFrozenAmountError(amount, balance.frozen_amount)
    return replace(balance, frozen_amount=balance.frozen_amount - amount)
