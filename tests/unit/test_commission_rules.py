"""Tests for the pure commission rules."""

from decimal import Decimal

import pytest

from src.dr_commission.domain.models import CommissionAccount
from src.dr_commission.domain.rules import (
    commission_for_level,
    plan_accrual,
    plan_manual_adjust,
    plan_settlement_freeze,
    plan_settlement_payout,
    plan_settlement_release,
)
from src.dr_common.enums import CommissionAccountStatus, CommissionRecordType
from src.dr_common.errors import (
    CommissionAccountInactiveError,
    InsufficientCommissionError,
    InternalError,
    ValidationError,
)


def _account(total: str = "300.00", pending: str = "0.00", settled: str = "0.00", **kw):
    return CommissionAccount(
        agent_user_id="agent1",
        total_commission=Decimal(total),
        pending_settlement_commission=Decimal(pending),
        settled_commission=Decimal(settled),
        **kw,
    )


class TestCommissionForLevel:
    def test_standard_rates(self) -> None:
        amount = Decimal("1000.00")
        assert commission_for_level(amount, Decimal("0.30")) == Decimal("300.00")
        assert commission_for_level(amount, Decimal("0.20")) == Decimal("200.00")
        assert commission_for_level(amount, Decimal("0.10")) == Decimal("100.00")

    def test_each_level_rounds_half_up(self) -> None:
        # 0.05 x 0.30 = 0.015 -> 0.02, 0.05 x 0.10 = 0.005 -> 0.01
        assert commission_for_level(Decimal("0.05"), Decimal("0.30")) == Decimal("0.02")
        assert commission_for_level(Decimal("0.05"), Decimal("0.10")) == Decimal("0.01")


class TestAccrual:
    def test_accrual_raises_total_and_available(self) -> None:
        change = plan_accrual(_account("100.00"), Decimal("30"))
        assert change.new.total_commission == Decimal("130.00")
        assert change.available_before == Decimal("100.00")
        assert change.available_after == Decimal("130.00")
        assert change.record_type == CommissionRecordType.RECHARGE_COMMISSION


class TestSettlementRules:
    def test_freeze_reserves_available(self) -> None:
        change = plan_settlement_freeze(_account("300.00"), Decimal("100"))
        assert change.new.pending_settlement_commission == Decimal("100.00")
        assert change.new.available_commission == Decimal("200.00")

    def test_freeze_beyond_available_rejected(self) -> None:
        with pytest.raises(InsufficientCommissionError):
            plan_settlement_freeze(_account("300.00", pending="250.00"), Decimal("60"))

    def test_freeze_on_frozen_account_rejected(self) -> None:
        account = _account(status=CommissionAccountStatus.FROZEN.value)
        with pytest.raises(CommissionAccountInactiveError):
            plan_settlement_freeze(account, Decimal("1"))

    def test_partial_payout_returns_remainder_to_available(self) -> None:
        change = plan_settlement_payout(
            _account("300.00", pending="100.00"), Decimal("100.00"), Decimal("80.00")
        )
        assert change.new.pending_settlement_commission == Decimal("0.00")
        assert change.new.settled_commission == Decimal("80.00")
        assert change.new.available_commission == Decimal("220.00")
        assert change.amount == Decimal("80.00")

    def test_release_restores_available(self) -> None:
        change = plan_settlement_release(_account("300.00", pending="100.00"), Decimal("100.00"))
        assert change.new.available_commission == Decimal("300.00")
        assert change.record_type == CommissionRecordType.SETTLEMENT_ROLLBACK

    def test_release_more_than_pending_is_internal_error(self) -> None:
        with pytest.raises(InternalError):
            plan_settlement_release(_account(pending="10.00"), Decimal("20.00"))


class TestManualAdjust:
    def test_increase(self) -> None:
        assert plan_manual_adjust(_account("0.00"), Decimal("12.5")).new.total_commission == Decimal(
            "12.50"
        )

    def test_decrease_clamped_to_available(self) -> None:
        change = plan_manual_adjust(_account("300.00", pending="100.00"), Decimal("-500"))
        assert change.amount == Decimal("200.00")
        assert change.new.total_commission == Decimal("100.00")
        assert change.new.available_commission == Decimal("0.00")

    def test_decrease_with_nothing_available_rejected(self) -> None:
        with pytest.raises(ValidationError):
            plan_manual_adjust(_account("100.00", pending="100.00"), Decimal("-1"))
