# ABOUTME: Cron-based wallet backup scheduling using APScheduler.
# ABOUTME: Validates the cron expression up front and logs a status summary after every run.

import logging
import signal
import sys
from collections import Counter
from typing import Callable

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

from .config import Config, ConfigError

logger = logging.getLogger(__name__)

JOB_ID = "nft_rescue_backup"

BackupFn = Callable[[Config], list[dict]]


def build_trigger(schedule: str) -> CronTrigger:
    """Parse a five-field crontab expression.

    Raises:
        ConfigError: If APScheduler rejects the expression.
    """
    try:
        return CronTrigger.from_crontab(schedule)
    except ValueError as e:
        raise ConfigError(f"Invalid schedule '{schedule}': {e}") from e


def run_scheduled_backup(config: Config, backup_fn: BackupFn) -> None:
    """One scheduled run. Errors are logged so the scheduler keeps going."""
    try:
        results = backup_fn(config)
    except Exception as e:
        logger.error(f"Scheduled backup failed: {e}")
        return

    statuses = Counter(r.get("status", "unknown") for r in results)
    summary = ", ".join(f"{count} {status}" for status, count in sorted(statuses.items()))
    logger.info(f"Scheduled backup finished for {len(results)} wallet(s): {summary or 'nothing to do'}")


def run_scheduler(config: Config, backup_fn: BackupFn) -> None:
    """Run the backup scheduler indefinitely.

    Args:
        config: Application configuration with schedule.
        backup_fn: Runs one backup over all configured wallets.
    """
    trigger = build_trigger(config.schedule)
    scheduler = BlockingScheduler()
    scheduler.add_job(
        run_scheduled_backup,
        trigger,
        args=(config, backup_fn),
        id=JOB_ID,
        # One run at a time; manifest writes per wallet are not locked
        max_instances=1,
        coalesce=True,
    )

    def shutdown(signum, frame):
        logger.info("Received shutdown signal, stopping scheduler...")
        scheduler.shutdown(wait=False)
        sys.exit(0)

    signal.signal(signal.SIGTERM, shutdown)
    signal.signal(signal.SIGINT, shutdown)

    logger.info(f"Starting scheduler with schedule '{config.schedule}' for {len(config.wallets)} wallet(s)")
    scheduler.start()
