"""Service-level tests for BalanceService on in-memory stores."""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError

from src.dr_common.enums import BalanceAccount, BalanceStatus, BillType, BusinessType
from src.dr_common.errors import (
    BalanceAccountInactiveError,
    ConcurrencyConflictError,
    InsufficientBalanceError,
    ValidationError,
)
from tests.unit.fakes import build_world, funded


class TestRecharge:
    async def test_recharge_credits_and_pays_three_levels(self) -> None:
        w = build_world()

        resp = await w.balance.recharge(w.db, "main", Decimal("1000.00"), operator_id="admin")

        assert resp.balance.dr_balance == Decimal("1000.00")
        assert resp.bill.bill_type == BillType.RECHARGE
        assert resp.commission is not None
        assert resp.commission.complete is True
        assert resp.commission.credited_total == Decimal("600.00")
        assert w.commissions.accounts["agent1"].total_commission == Decimal("300.00")
        assert w.commissions.accounts["agent2"].total_commission == Decimal("200.00")
        assert w.commissions.accounts["agent3"].total_commission == Decimal("100.00")

    async def test_recharge_of_user_without_agents_pays_nothing(self) -> None:
        w = build_world()
        resp = await w.balance.recharge(w.db, "agent3", Decimal("50.00"))
        assert resp.commission.levels == []
        assert w.commissions.records == []

    async def test_recharge_kept_when_commission_lookup_fails(self) -> None:
        w = build_world()

        async def broken(db, user_id, max_levels):
            raise ValidationError("org tree unavailable")

        w.org.find_agent_ancestors = broken  # type: ignore[method-assign]
        resp = await w.balance.recharge(w.db, "main", Decimal("10.00"))

        assert w.balances.rows["main"].dr_balance == Decimal("10.00")
        assert resp.commission.complete is False
        assert resp.commission.error == "org tree unavailable"

    async def test_recharge_kept_when_rate_lookup_hits_database_error(self) -> None:
        w = build_world()
        w.pricing.get_active = AsyncMock(  # type: ignore[method-assign]
            side_effect=OperationalError("SELECT price_configs", {}, Exception("connection reset"))
        )

        resp = await w.balance.recharge(w.db, "main", Decimal("10.00"))

        assert w.balances.rows["main"].dr_balance == Decimal("10.00")
        assert len(w.ledger.for_user("main")) == 1
        assert resp.commission.complete is False
        assert "connection reset" in resp.commission.error
        assert w.db.rollbacks == 1


class TestDeduct:
    async def test_sub_account_routed_to_main_with_overdraft(self) -> None:
        w = build_world()

        resp = await w.balance.deduct_with_details(w.db, "sub", Decimal("50.00"), "SMS")

        assert resp.charge_user_id == "main"
        assert resp.routed_to_main_account is True
        assert resp.balance.dr_balance == Decimal("-50.00")
        record = w.ledger.for_user("main")[0]
        assert record.consumer == "sub"
        assert record.extra_data == {"request_user_id": "sub"}
        assert w.ledger.for_user("sub") == []

    async def test_main_account_cannot_overdraw(self) -> None:
        w = build_world(balances=[funded("main", "10.00")])

        with pytest.raises(InsufficientBalanceError):
            await w.balance.deduct(w.db, "main", Decimal("10.01"), "SMS")

        assert w.balances.rows["main"].dr_balance == Decimal("10.00")
        assert w.ledger.records == []
        assert w.db.rollbacks == 1

    async def test_long_consumer_is_cut_to_column_width(self) -> None:
        w = build_world(balances=[funded("main", "10.00")])
        await w.balance.deduct(w.db, "main", Decimal("1.00"), "SMS", consumer="c" * 300)
        assert len(w.ledger.for_user("main")[0].consumer) == 64

    async def test_deduct_returns_remaining_balance(self) -> None:
        w = build_world(balances=[funded("main", "10.00")])
        resp = await w.balance.deduct(w.db, "main", Decimal("2.50"), "SMS")
        assert resp.success is True
        assert resp.balance_after == Decimal("7.50")
        assert w.balances.rows["main"].total_consume == Decimal("2.50")

    async def test_frozen_account_rejected(self) -> None:
        w = build_world(balances=[funded("main", "10.00")])
        await w.balance.set_status(w.db, "main", BalanceStatus.FROZEN)
        with pytest.raises(BalanceAccountInactiveError):
            await w.balance.deduct(w.db, "main", Decimal("1.00"), "SMS")


class TestAtomicity:
    async def test_ledger_failure_rolls_back_balance_write(self) -> None:
        w = build_world(balances=[funded("main", "10.00")])
        before = w.balances.rows["main"]
        w.ledger.insert = AsyncMock(  # type: ignore[method-assign]
            side_effect=OperationalError("INSERT INTO billing_records", {}, Exception("disk full"))
        )

        with pytest.raises(OperationalError):
            await w.balance.deduct(w.db, "main", Decimal("4.00"), "SMS")

        assert w.balances.rows["main"] == before
        assert w.ledger.records == []
        assert w.db.rollbacks == 1
        assert w.db.commits == 0


class TestOptimisticRetry:
    async def test_lost_races_are_retried(self) -> None:
        w = build_world(balances=[funded("main", "10.00")])
        w.balances.stale_writes = 2

        await w.balance.deduct(w.db, "main", Decimal("1.00"), "SMS")

        assert w.balances.rows["main"].dr_balance == Decimal("9.00")
        assert w.db.rollbacks == 2
        assert len(w.ledger.records) == 1

    async def test_gives_up_after_budget(self) -> None:
        w = build_world(balances=[funded("main", "10.00")])
        w.balances.stale_writes = 3

        with pytest.raises(ConcurrencyConflictError):
            await w.balance.deduct(w.db, "main", Decimal("1.00"), "SMS")

        assert w.balances.rows["main"].dr_balance == Decimal("10.00")
        assert w.ledger.records == []


class TestReservation:
    async def test_reserve_then_consume(self) -> None:
        w = build_world(balances=[funded("main", "200.00")])

        await w.balance.reserve(w.db, "main", Decimal("100.00"))
        mutation = await w.balance.consume_reservation(
            w.db, "main", Decimal("6.00"), BusinessType.INSTANCE_MARKETING.value
        )

        assert mutation.balance.dr_balance == Decimal("100.00")
        assert mutation.balance.pre_deducted_balance == Decimal("94.00")
        assert mutation.record.balance_account == BalanceAccount.RESERVED
        assert (mutation.record.balance_before, mutation.record.balance_after) == (
            Decimal("100.00"),
            Decimal("94.00"),
        )


class TestAdminOperations:
    async def test_refund(self) -> None:
        w = build_world(balances=[funded("main", "10.00")])
        resp = await w.balance.refund(w.db, "main", Decimal("3.00"), "SMS", business_id="bill-1")
        assert resp.balance.dr_balance == Decimal("13.00")
        assert resp.balance.total_refund == Decimal("3.00")
        assert resp.balance.available_balance_display == "13.00"
        assert resp.bill.bill_type == BillType.REFUND

    async def test_manual_adjust_clamps_to_balance(self) -> None:
        w = build_world(balances=[funded("main", "30.00")])
        resp = await w.balance.manual_adjust(w.db, "main", Decimal("-50.00"), "admin", "fix")
        assert resp.balance.dr_balance == Decimal("0.00")
        assert resp.bill.amount == Decimal("30.00")
        assert resp.bill.operator_id == "admin"
        assert resp.bill.extra_data == {"requested": "-50.00", "clamped": True}

    async def test_manual_credit_pays_no_commission(self) -> None:
        w = build_world()
        await w.balance.manual_adjust(w.db, "main", Decimal("100.00"), "admin")
        assert w.commissions.records == []

    async def test_set_status_writes_no_bill(self) -> None:
        w = build_world(balances=[funded("main", "10.00")])
        resp = await w.balance.set_status(w.db, "main", BalanceStatus.FROZEN)
        assert resp.status == BalanceStatus.FROZEN
        assert w.ledger.records == []

    async def test_set_same_status_rejected(self) -> None:
        w = build_world(balances=[funded("main", "10.00")])
        with pytest.raises(ValidationError):
            await w.balance.set_status(w.db, "main", BalanceStatus.NORMAL)


class TestFreeze:
    async def test_frozen_funds_cannot_be_spent(self) -> None:
        w = build_world(balances=[funded("main", "100.00")])

        resp = await w.balance.freeze(w.db, "main", Decimal("70.00"), operator_id="admin")

        assert resp.frozen_amount == Decimal("70.00")
        assert resp.available_balance == Decimal("30.00")
        assert w.ledger.records == []
        with pytest.raises(InsufficientBalanceError):
            await w.balance.deduct(w.db, "main", Decimal("40.00"), "SMS")
        assert w.balances.rows["main"].dr_balance == Decimal("100.00")

    async def test_unfreeze_restores_spending(self) -> None:
        w = build_world(balances=[funded("main", "100.00")])
        await w.balance.freeze(w.db, "main", Decimal("70.00"))
        await w.balance.unfreeze(w.db, "main", Decimal("70.00"))

        resp = await w.balance.deduct(w.db, "main", Decimal("40.00"), "SMS")

        assert resp.balance_after == Decimal("60.00")
        assert w.balances.rows["main"].frozen_amount == Decimal("0.00")

    async def test_frozen_funds_shrink_instance_quota(self) -> None:
        w = build_world(balances=[funded("main", "250.00")])
        await w.balance.freeze(w.db, "main", Decimal("100.00"))
        quota = await w.billing.get_available_marketing_instance_count(w.db, "main")
        assert quota.available_count == 1

    async def test_freeze_is_retried_on_lost_race(self) -> None:
        w = build_world(balances=[funded("main", "100.00")])
        w.balances.stale_writes = 1
        await w.balance.freeze(w.db, "main", Decimal("1.00"))
        assert w.balances.rows["main"].frozen_amount == Decimal("1.00")
        assert w.db.rollbacks == 1


class TestBills:
    async def test_get_balance_creates_empty_row(self) -> None:
        w = build_world()
        resp = await w.balance.get_balance(w.db, "newcomer")
        assert resp.dr_balance == Decimal("0")
        assert "newcomer" in w.balances.rows

    async def test_list_bills_pages_newest_first(self) -> None:
        w = build_world(balances=[funded("main", "100.00")])
        for amount in ("1.00", "2.00", "3.00"):
            await w.balance.deduct(w.db, "main", Decimal(amount), "SMS")

        first = await w.balance.list_bills(w.db, "main", None, 2)
        assert [i.amount for i in first.items] == [Decimal("3.00"), Decimal("2.00")]
        assert first.has_more is True

        second = await w.balance.list_bills(w.db, "main", first.next_cursor, 2)
        assert [i.amount for i in second.items] == [Decimal("1.00")]
        assert second.has_more is False
        assert second.next_cursor is None

    async def test_list_bills_filters_by_type(self) -> None:
        w = build_world(balances=[funded("main", "100.00")])
        await w.balance.deduct(w.db, "main", Decimal("1.00"), "SMS")
        await w.balance.refund(w.db, "main", Decimal("1.00"), "SMS")
        page = await w.balance.list_bills(w.db, "main", None, 10, bill_type="REFUND")
        assert [i.bill_type for i in page.items] == ["REFUND"]
