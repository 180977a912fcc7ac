"""
Scheduler module: APScheduler setup for background jobs
"""
import logging
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ptstudio import config
from ptstudio.tasks.balance_jobs import job_reconcile_balances

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler()


def start_scheduler():
    """Register all jobs and start the scheduler."""
    if config.RECONCILE_INTERVAL_MINUTES <= 0:
        logger.info("Balance reconciliation disabled")
        return

    # Rebuild cached client balances from the purchase ledger
    scheduler.add_job(
        job_reconcile_balances,
        trigger=IntervalTrigger(minutes=config.RECONCILE_INTERVAL_MINUTES),
        id="reconcile_balances",
        name="Reconcile client session balances",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    scheduler.start()
    logger.info("Scheduler started with %d jobs", len(scheduler.get_jobs()))


def stop_scheduler():
    """Shutdown the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
