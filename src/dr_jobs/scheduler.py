"""Background jobs: the daily billing tick and the hourly commission replay.

Both jobs open their own session and are safe to run more than once for the
same period: daily billing is keyed by (resource, date) and commission
accrual by (recharge bill, level).
"""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from config.settings import settings
from src.dr_billing.application.service import ResourceBillingService
from src.dr_commission.application.service import CommissionService
from src.dr_common.database import session_scope
from src.dr_ledger.domain.reconciliation import verify_balance_reconciliation

logger = logging.getLogger(__name__)

DAILY_BILLING_JOB_ID = "daily_billing"
COMMISSION_REPLAY_JOB_ID = "commission_replay"


async def run_daily_billing_job(service: ResourceBillingService | None = None) -> None:
    service = service or ResourceBillingService()
    async with session_scope() as db:
        summary = await service.run_daily_billing(db)
        violations = await verify_balance_reconciliation(db)
    if summary.failed or violations:
        logger.error(
            "Daily billing %s finished with %d failure(s), %d reconciliation violation(s)",
            summary.billing_date, summary.failed, len(violations),
        )


async def run_commission_replay_job(service: CommissionService | None = None) -> None:
    service = service or CommissionService()
    async with session_scope() as db:
        summary = await service.replay_recent_accruals(db)
    if summary.incomplete:
        logger.warning("Commission replay left %d recharge(s) incomplete", summary.incomplete)


def build_scheduler() -> AsyncIOScheduler:
    scheduler = AsyncIOScheduler(timezone=settings.BILLING_TIMEZONE)
    scheduler.add_job(
        run_daily_billing_job,
        CronTrigger(
            hour=settings.DAILY_BILLING_HOUR,
            minute=settings.DAILY_BILLING_MINUTE,
            timezone=settings.BILLING_TIMEZONE,
        ),
        id=DAILY_BILLING_JOB_ID,
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    scheduler.add_job(
        run_commission_replay_job,
        IntervalTrigger(hours=1),
        id=COMMISSION_REPLAY_JOB_ID,
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    logger.info(
        "Scheduler configured: daily billing at %02d:%02d %s, commission replay hourly",
        settings.DAILY_BILLING_HOUR, settings.DAILY_BILLING_MINUTE, settings.BILLING_TIMEZONE,
    )
    return scheduler
