"""Tests for background job wiring and the job bodies."""

import logging
from contextlib import asynccontextmanager
from datetime import date
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from src.dr_jobs.scheduler import (
    COMMISSION_REPLAY_JOB_ID,
    DAILY_BILLING_JOB_ID,
    build_scheduler,
    run_commission_replay_job,
    run_daily_billing_job,
)


def _fake_scope(db: MagicMock):
    @asynccontextmanager
    async def scope():
        yield db

    return scope


class TestBuildScheduler:
    def test_registers_both_jobs(self) -> None:
        scheduler = build_scheduler()
        jobs = {job.id: job for job in scheduler.get_jobs()}

        assert set(jobs) == {DAILY_BILLING_JOB_ID, COMMISSION_REPLAY_JOB_ID}
        assert isinstance(jobs[DAILY_BILLING_JOB_ID].trigger, CronTrigger)
        assert isinstance(jobs[COMMISSION_REPLAY_JOB_ID].trigger, IntervalTrigger)
        assert jobs[DAILY_BILLING_JOB_ID].max_instances == 1
        assert jobs[COMMISSION_REPLAY_JOB_ID].coalesce is True


class TestDailyBillingJob:
    async def test_runs_billing_then_reconciliation(self) -> None:
        db = MagicMock()
        service = MagicMock()
        service.run_daily_billing = AsyncMock(
            return_value=SimpleNamespace(billing_date=date(2026, 10, 20), failed=0)
        )
        reconcile = AsyncMock(return_value=[])

        with (
            patch("src.dr_jobs.scheduler.session_scope", _fake_scope(db)),
            patch("src.dr_jobs.scheduler.verify_balance_reconciliation", reconcile),
        ):
            await run_daily_billing_job(service)

        service.run_daily_billing.assert_awaited_once_with(db)
        reconcile.assert_awaited_once_with(db)

    async def test_failures_are_logged(self, caplog) -> None:
        service = MagicMock()
        service.run_daily_billing = AsyncMock(
            return_value=SimpleNamespace(billing_date=date(2026, 10, 20), failed=2)
        )
        reconcile = AsyncMock(return_value=["user u1: mismatch"])

        with (
            patch("src.dr_jobs.scheduler.session_scope", _fake_scope(MagicMock())),
            patch("src.dr_jobs.scheduler.verify_balance_reconciliation", reconcile),
            caplog.at_level(logging.ERROR, logger="src.dr_jobs.scheduler"),
        ):
            await run_daily_billing_job(service)

        assert "2 failure(s), 1 reconciliation violation(s)" in caplog.text


class TestCommissionReplayJob:
    async def test_replays_in_own_session(self, caplog) -> None:
        db = MagicMock()
        service = MagicMock()
        service.replay_recent_accruals = AsyncMock(
            return_value=SimpleNamespace(scanned=3, credited_levels=1, incomplete=1)
        )

        with (
            patch("src.dr_jobs.scheduler.session_scope", _fake_scope(db)),
            caplog.at_level(logging.WARNING, logger="src.dr_jobs.scheduler"),
        ):
            await run_commission_replay_job(service)

        service.replay_recent_accruals.assert_awaited_once_with(db)
        assert "1 recharge(s) incomplete" in caplog.text
