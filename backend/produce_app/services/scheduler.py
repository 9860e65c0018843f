"""
Background jobs (APScheduler): nightly copy of the SQLite database.
"""

import os
import shutil
import logging
from datetime import datetime
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from produce_app.core.config import settings

logger = logging.getLogger(__name__)

BACKUP_PREFIX = "auto_backup_"

scheduler: Optional[AsyncIOScheduler] = None


def get_db_path() -> str:
    db_url = settings.SQLITE_DATABASE_URI
    for prefix in ("sqlite+aiosqlite:///", "sqlite:///"):
        if db_url.startswith(prefix):
            return db_url[len(prefix):]
    return "./produce.db"


def get_backup_dir() -> str:
    backup_dir = os.path.join(os.path.dirname(os.path.abspath(get_db_path())), "backups")
    os.makedirs(backup_dir, exist_ok=True)
    return backup_dir


def auto_backup() -> Optional[str]:
    """Copy the database file into backups/ and prune old copies.

    Returns the backup filename, or None when nothing was written.
    """
    db_path = get_db_path()
    if not os.path.exists(db_path):
        logger.warning(f"Database file not found, skipping backup: {db_path}")
        return None

    try:
        backup_dir = get_backup_dir()
        backup_filename = f"{BACKUP_PREFIX}{datetime.now().strftime('%Y%m%d_%H%M%S')}.db"
        backup_path = os.path.join(backup_dir, backup_filename)
        shutil.copy2(db_path, backup_path)

        size_mb = os.stat(backup_path).st_size / 1024 / 1024
        logger.info(f"Database backup written: {backup_filename} ({size_mb:.2f} MB)")

        cleanup_old_backups(backup_dir, keep_count=settings.AUTO_BACKUP_KEEP_COUNT)
        return backup_filename
    except OSError as e:
        logger.error(f"Database backup failed: {e}")
        return None


def cleanup_old_backups(backup_dir: str, keep_count: int = 7) -> int:
    """Keep the newest `keep_count` automatic backups; returns how many were removed."""
    backups = []
    for filename in os.listdir(backup_dir):
        if filename.startswith(BACKUP_PREFIX) and filename.endswith(".db"):
            filepath = os.path.join(backup_dir, filename)
            backups.append((os.stat(filepath).st_mtime, filename, filepath))

    backups.sort(reverse=True)
    removed = 0
    for _, filename, filepath in backups[keep_count:]:
        try:
            os.remove(filepath)
            removed += 1
            logger.info(f"Removed old backup: {filename}")
        except OSError as e:
            logger.warning(f"Could not remove old backup {filename}: {e}")
    return removed


def init_scheduler() -> None:
    global scheduler

    if not settings.AUTO_BACKUP_ENABLED:
        logger.info("Automatic backup disabled")
        return

    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        auto_backup,
        trigger=CronTrigger(hour=settings.AUTO_BACKUP_HOUR, minute=settings.AUTO_BACKUP_MINUTE),
        id="auto_backup",
        name="Nightly database backup",
        replace_existing=True,
    )
    scheduler.start()
    logger.info(f"Scheduler started, backup daily at "
                f"{settings.AUTO_BACKUP_HOUR:02d}:{settings.AUTO_BACKUP_MINUTE:02d}")


def shutdown_scheduler() -> None:
    global scheduler
    if scheduler:
        scheduler.shutdown()
        scheduler = None
        logger.info("Scheduler stopped")


def get_scheduler_status() -> dict:
    if not scheduler:
        return {"enabled": settings.AUTO_BACKUP_ENABLED, "running": False, "jobs": []}

    return {
        "enabled": settings.AUTO_BACKUP_ENABLED,
        "running": scheduler.running,
        "jobs": [
            {
                "id": job.id,
                "name": job.name,
                "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
            }
            for job in scheduler.get_jobs()
        ],
    }
