"""Tests for dr_ledger: text bounds, LedgerRecorder checks and reconciliation."""

import json
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.dr_common.enums import BalanceAccount, BillType
from src.dr_common.errors import InternalError, ValidationError
from src.dr_ledger.application.recorder import LedgerRecorder
from src.dr_ledger.domain.models import LedgerDraft
from src.dr_ledger.domain.reconciliation import verify_balance_reconciliation
from src.dr_ledger.domain.truncation import (
    BUSINESS_ID_MAX_LENGTH,
    CONSUMER_MAX_LENGTH,
    DESCRIPTION_MAX_LENGTH,
    bound_extra_data,
    truncate_text,
)
from tests.unit.fakes import InMemoryLedgerRepository


def _draft(**overrides) -> LedgerDraft:
    fields = {
        "user_id": "u1",
        "bill_type": BillType.CONSUME,
        "amount": Decimal("6.00"),
        "balance_before": Decimal("100.00"),
        "balance_after": Decimal("94.00"),
        "business_type": "SMS",
    }
    fields.update(overrides)
    return LedgerDraft(**fields)


class TestTruncation:
    def test_short_text_untouched(self) -> None:
        assert truncate_text("hello", 10) == "hello"
        assert truncate_text(None, 10) is None

    def test_long_text_cut_with_ellipsis(self) -> None:
        cut = truncate_text("x" * 20, 10)
        assert cut == "x" * 7 + "..."
        assert len(cut) == 10

    def test_tiny_limit_hard_cut(self) -> None:
        assert truncate_text("abcdef", 2) == "ab"

    def test_small_extra_kept(self) -> None:
        extra = {"request_user_id": "sub"}
        assert bound_extra_data(extra, 2000) is extra

    def test_oversized_extra_replaced_by_bounded_preview(self) -> None:
        bounded = bound_extra_data({"blob": "y" * 5000}, 200)
        assert bounded is not None
        assert bounded["truncated"] is True
        assert len(json.dumps(bounded)) <= 200


class TestLedgerRecorder:
    async def test_records_consume_with_generated_bill_no(self) -> None:
        repo = InMemoryLedgerRepository()
        recorder = LedgerRecorder(repo=repo)

        record = await recorder.record(MagicMock(), _draft())

        assert record.bill_no.startswith("DR")
        assert record.signed_amount == Decimal("-6.00")
        assert repo.records == [record]

    async def test_bill_numbers_are_unique(self) -> None:
        recorder = LedgerRecorder(repo=InMemoryLedgerRepository())
        first = await recorder.record(MagicMock(), _draft())
        second = await recorder.record(MagicMock(), _draft())
        assert first.bill_no != second.bill_no

    async def test_rejects_non_positive_amount(self) -> None:
        recorder = LedgerRecorder(repo=InMemoryLedgerRepository())
        with pytest.raises(ValidationError):
            await recorder.record(
                MagicMock(),
                _draft(amount=Decimal("0.00"), balance_after=Decimal("100.00")),
            )

    async def test_rejects_inconsistent_snapshot(self) -> None:
        recorder = LedgerRecorder(repo=InMemoryLedgerRepository())
        with pytest.raises(InternalError):
            await recorder.record(MagicMock(), _draft(balance_after=Decimal("95.00")))

    async def test_recharge_snapshot_adds(self) -> None:
        recorder = LedgerRecorder(repo=InMemoryLedgerRepository())
        record = await recorder.record(
            MagicMock(),
            _draft(
                bill_type=BillType.RECHARGE,
                balance_before=Decimal("0.00"),
                balance_after=Decimal("6.00"),
            ),
        )
        assert record.bill_type == "RECHARGE"

    async def test_reserved_bucket_is_recorded(self) -> None:
        recorder = LedgerRecorder(repo=InMemoryLedgerRepository())
        record = await recorder.record(
            MagicMock(), _draft(balance_account=BalanceAccount.RESERVED)
        )
        assert record.balance_account == "RESERVED"

    async def test_text_fields_truncated_before_insert(self) -> None:
        recorder = LedgerRecorder(
            repo=InMemoryLedgerRepository(), text_max_length=20, extra_max_length=100
        )
        record = await recorder.record(
            MagicMock(),
            _draft(description="d" * 50, consumer="c" * 50, extra_data={"k": "v" * 500}),
        )
        assert len(record.description) == 20
        assert record.consumer == "c" * 50
        assert record.extra_data["truncated"] is True

    async def test_text_fields_fit_their_columns(self) -> None:
        recorder = LedgerRecorder(repo=InMemoryLedgerRepository(), text_max_length=5000)
        record = await recorder.record(
            MagicMock(),
            _draft(description="d" * 900, consumer="c" * 300, business_id="b" * 300),
        )
        assert len(record.description) <= DESCRIPTION_MAX_LENGTH == 512
        assert len(record.consumer) <= CONSUMER_MAX_LENGTH == 64
        assert len(record.business_id) <= BUSINESS_ID_MAX_LENGTH == 128
        assert record.consumer.endswith("...")


class TestReconciliation:
    @staticmethod
    def _db(*rows: SimpleNamespace) -> AsyncMock:
        db = AsyncMock()
        result = MagicMock()
        result.fetchall.return_value = list(rows)
        db.execute.return_value = result
        return db

    @staticmethod
    def _row(**kw) -> SimpleNamespace:
        base = {
            "user_id": "u1",
            "dr_balance": Decimal("94.00"),
            "pre_deducted_balance": Decimal("100.00"),
            "counters_net": Decimal("94.00"),
            "base_net": Decimal("94.00"),
            "reserved_net": Decimal("100.00"),
        }
        base.update(kw)
        return SimpleNamespace(**base)

    async def test_consistent_rows_pass(self) -> None:
        assert await verify_balance_reconciliation(self._db(self._row())) == []

    async def test_each_mismatch_reported(self) -> None:
        db = self._db(
            self._row(dr_balance=Decimal("90.00")),
            self._row(user_id="u2", reserved_net=Decimal("94.00")),
        )
        violations = await verify_balance_reconciliation(db, None)
        assert len(violations) == 2
        assert "u1" in violations[0] and "dr_balance" in violations[0]
        assert "u2" in violations[1] and "pre_deducted_balance" in violations[1]

    async def test_user_filter_is_passed_to_query(self) -> None:
        db = self._db()
        await verify_balance_reconciliation(db, "u9")
        assert db.execute.await_args.args[1] == {"user_id": "u9"}
