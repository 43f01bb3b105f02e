"""Tests for the pure balance rules in dr_balance.domain.rules."""

from decimal import Decimal

import pytest

from src.dr_balance.domain.models import UserBalance
from src.dr_balance.domain.rules import (
    plan_consume_reservation,
    plan_credit,
    plan_daily_charge,
    plan_debit,
    plan_freeze,
    plan_manual_adjust,
    plan_refund,
    plan_reserve,
    plan_status_change,
    plan_unfreeze,
)
from src.dr_common.enums import BalanceAccount, BalanceStatus, BillType
from src.dr_common.errors import (
    BalanceAccountInactiveError,
    InsufficientBalanceError,
    InsufficientFrozenAmountError,
    InsufficientReservedBalanceError,
    ValidationError,
)


def _balance(dr: str = "100.00", pre: str = "0.00", frozen: str = "0.00", **kw) -> UserBalance:
    return UserBalance(
        user_id="u1",
        dr_balance=Decimal(dr),
        pre_deducted_balance=Decimal(pre),
        frozen_amount=Decimal(frozen),
        total_recharge=Decimal(dr),
        **kw,
    )


class TestCredit:
    def test_credit_increases_balance_and_recharge_total(self) -> None:
        change = plan_credit(_balance("100.00"), Decimal("50"))
        assert change.new.dr_balance == Decimal("150.00")
        assert change.new.total_recharge == Decimal("150.00")
        assert change.bill_type == BillType.RECHARGE
        assert (change.balance_before, change.balance_after) == (Decimal("100.00"), Decimal("150.00"))

    def test_credit_rejects_zero(self) -> None:
        with pytest.raises(ValidationError):
            plan_credit(_balance(), Decimal("0"))

    def test_credit_on_frozen_account_rejected(self) -> None:
        with pytest.raises(BalanceAccountInactiveError):
            plan_credit(_balance(status=BalanceStatus.FROZEN.value), Decimal("1"))

    def test_input_row_is_not_mutated(self) -> None:
        original = _balance("100.00")
        plan_credit(original, Decimal("1"))
        assert original.dr_balance == Decimal("100.00")


class TestRefund:
    def test_refund_counts_in_refund_total(self) -> None:
        change = plan_refund(_balance("10.00"), Decimal("2.50"))
        assert change.new.dr_balance == Decimal("12.50")
        assert change.new.total_refund == Decimal("2.50")
        assert change.new.total_recharge == Decimal("10.00")
        assert change.bill_type == BillType.REFUND


class TestDebit:
    def test_debit_within_available(self) -> None:
        change = plan_debit(_balance("100.00"), Decimal("40"))
        assert change.new.dr_balance == Decimal("60.00")
        assert change.new.total_consume == Decimal("40.00")
        assert change.bill_type == BillType.CONSUME

    def test_debit_respects_frozen_amount(self) -> None:
        with pytest.raises(InsufficientBalanceError) as exc_info:
            plan_debit(_balance("100.00", frozen="70.00"), Decimal("40"))
        assert exc_info.value.available == Decimal("30.00")
        assert exc_info.value.required == Decimal("40.00")

    def test_overdraft_only_when_allowed(self) -> None:
        with pytest.raises(InsufficientBalanceError):
            plan_debit(_balance("10.00"), Decimal("50"))
        change = plan_debit(_balance("10.00"), Decimal("50"), allow_overdraft=True)
        assert change.new.dr_balance == Decimal("-40.00")

    def test_exact_balance_can_be_spent(self) -> None:
        change = plan_debit(_balance("25.00"), Decimal("25.00"))
        assert change.new.dr_balance == Decimal("0.00")


class TestReservation:
    def test_reserve_moves_base_into_pre_deducted(self) -> None:
        change = plan_reserve(_balance("250.00"), Decimal("100"))
        assert change.new.dr_balance == Decimal("150.00")
        assert change.new.pre_deducted_balance == Decimal("100.00")
        assert change.new.total_consume == Decimal("100.00")
        assert change.balance_account == BalanceAccount.BASE
        assert change.extra_data == {"pre_deducted_before": "0.00", "pre_deducted_after": "100.00"}

    def test_reserve_needs_available_funds(self) -> None:
        with pytest.raises(InsufficientBalanceError):
            plan_reserve(_balance("99.99"), Decimal("100"))

    def test_consume_reservation_snapshots_reserved_bucket(self) -> None:
        change = plan_consume_reservation(_balance("5.00", pre="100.00"), Decimal("6"))
        assert change.new.pre_deducted_balance == Decimal("94.00")
        assert change.new.dr_balance == Decimal("5.00")
        assert change.new.total_consume == Decimal("0.00")
        assert change.balance_account == BalanceAccount.RESERVED
        assert (change.balance_before, change.balance_after) == (Decimal("100.00"), Decimal("94.00"))

    def test_consume_reservation_beyond_reserved_fails(self) -> None:
        with pytest.raises(InsufficientReservedBalanceError) as exc_info:
            plan_consume_reservation(_balance(pre="3.00"), Decimal("6"))
        assert exc_info.value.code == 2004


class TestDailyCharge:
    def test_uses_reservation_when_it_covers_price(self) -> None:
        change = plan_daily_charge(_balance("0.00", pre="6.00"), Decimal("6.00"), False)
        assert change.balance_account == BalanceAccount.RESERVED
        assert change.new.pre_deducted_balance == Decimal("0.00")

    def test_falls_back_to_base_without_splitting(self) -> None:
        change = plan_daily_charge(_balance("20.00", pre="5.00"), Decimal("6.00"), False)
        assert change.balance_account == BalanceAccount.BASE
        assert change.new.dr_balance == Decimal("14.00")
        assert change.new.pre_deducted_balance == Decimal("5.00")

    def test_routed_charge_may_overdraw(self) -> None:
        change = plan_daily_charge(_balance("1.00"), Decimal("6.00"), True)
        assert change.new.dr_balance == Decimal("-5.00")

    def test_unrouted_charge_may_not_overdraw(self) -> None:
        with pytest.raises(InsufficientBalanceError):
            plan_daily_charge(_balance("1.00"), Decimal("6.00"), False)


class TestManualAdjust:
    def test_increase_counts_as_recharge(self) -> None:
        change = plan_manual_adjust(_balance("10.00"), Decimal("5"))
        assert change.bill_type == BillType.RECHARGE
        assert change.new.dr_balance == Decimal("15.00")

    def test_decrease_clamped_to_positive_balance(self) -> None:
        change = plan_manual_adjust(_balance("30.00"), Decimal("-50"))
        assert change.amount == Decimal("30.00")
        assert change.new.dr_balance == Decimal("0.00")
        assert change.extra_data == {"requested": "-50.00", "clamped": True}

    def test_decrease_on_negative_balance_rejected(self) -> None:
        with pytest.raises(ValidationError):
            plan_manual_adjust(_balance("-5.00"), Decimal("-1"))

    def test_zero_rejected(self) -> None:
        with pytest.raises(ValidationError):
            plan_manual_adjust(_balance(), Decimal("0"))

    def test_ignores_account_status(self) -> None:
        change = plan_manual_adjust(_balance(status=BalanceStatus.FROZEN.value), Decimal("1"))
        assert change.new.dr_balance == Decimal("101.00")


class TestStatusChange:
    def test_changes_status(self) -> None:
        assert plan_status_change(_balance(), BalanceStatus.FROZEN).status == "FROZEN"

    def test_same_status_rejected(self) -> None:
        with pytest.raises(ValidationError):
            plan_status_change(_balance(), BalanceStatus.NORMAL)


class TestFreeze:
    def test_freeze_reduces_available_only(self) -> None:
        new = plan_freeze(_balance("100.00", frozen="10.00"), Decimal("30"))
        assert new.frozen_amount == Decimal("40.00")
        assert new.dr_balance == Decimal("100.00")
        assert new.available == Decimal("60.00")

    def test_freeze_beyond_available_rejected(self) -> None:
        with pytest.raises(InsufficientBalanceError):
            plan_freeze(_balance("100.00", frozen="80.00"), Decimal("20.01"))

    def test_freeze_on_inactive_account_rejected(self) -> None:
        with pytest.raises(BalanceAccountInactiveError):
            plan_freeze(_balance(status=BalanceStatus.FROZEN.value), Decimal("1"))

    def test_unfreeze_releases_hold(self) -> None:
        new = plan_unfreeze(_balance("100.00", frozen="40.00"), Decimal("40"))
        assert new.frozen_amount == Decimal("0.00")
        assert new.available == Decimal("100.00")

    def test_unfreeze_more_than_frozen_rejected(self) -> None:
        with pytest.raises(InsufficientFrozenAmountError) as exc_info:
            plan_unfreeze(_balance(frozen="5.00"), Decimal("5.01"))
        assert exc_info.value.code == 2006
