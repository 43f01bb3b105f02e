"""Tests for the bounded compare-and-swap retry loop."""

from unittest.mock import AsyncMock

import pytest

from src.dr_common.errors import ConcurrencyConflictError, ValidationError
from src.dr_common.optimistic import StaleVersionError, run_optimistic


def _flaky(failures: int, result: str = "done"):
    calls = {"n": 0}

    async def attempt() -> str:
        calls["n"] += 1
        if calls["n"] <= failures:
            raise StaleVersionError("user_balances:u1")
        return result

    return attempt, calls


async def test_commits_on_first_success() -> None:
    db = AsyncMock()
    attempt, calls = _flaky(0)
    assert await run_optimistic(db, attempt, 3, "r") == "done"
    assert calls["n"] == 1
    db.commit.assert_awaited_once()
    db.rollback.assert_not_awaited()


async def test_retries_after_stale_version() -> None:
    db = AsyncMock()
    attempt, calls = _flaky(2)
    assert await run_optimistic(db, attempt, 3, "r") == "done"
    assert calls["n"] == 3
    assert db.rollback.await_count == 2
    db.commit.assert_awaited_once()


async def test_gives_up_after_budget() -> None:
    db = AsyncMock()
    attempt, calls = _flaky(10)
    with pytest.raises(ConcurrencyConflictError) as exc_info:
        await run_optimistic(db, attempt, 3, "user_balances:u1")
    assert calls["n"] == 3
    assert exc_info.value.code == 9003
    assert "user_balances:u1" in exc_info.value.message
    db.commit.assert_not_awaited()


async def test_other_errors_roll_back_and_propagate() -> None:
    db = AsyncMock()

    async def attempt() -> None:
        raise ValidationError("bad")

    with pytest.raises(ValidationError):
        await run_optimistic(db, attempt, 5, "r")
    db.rollback.assert_awaited_once()
    db.commit.assert_not_awaited()
