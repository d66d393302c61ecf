"""
Scheduled maintenance jobs for Atelier.

Uses APScheduler BackgroundScheduler. Only one worker per host starts the
scheduler (file-lock guard), the others skip it.
"""

import os
import atexit
import fcntl
import tempfile

from apscheduler.schedulers.background import BackgroundScheduler

from atelier.config import get_config
from atelier.core.utils.logging_config import get_logger

logger = get_logger('atelier.tasks.scheduler')

scheduler = BackgroundScheduler(daemon=True)
_lock_file = None

LOCK_PATH = os.path.join(tempfile.gettempdir(), 'atelier-scheduler.lock')


def cleanup_old_notifications():
    """Delete read notifications older than the retention window."""
    days = get_config().NOTIFICATION_RETENTION_DAYS
    try:
        from atelier.core.notifications.repositories import NotificationRepository
        count = NotificationRepository().delete_old(days=days)
        if count > 0:
            logger.info(f"Cleanup: deleted {count} read notifications (>{days} days)")
    except Exception as e:
        logger.error(f"Notification cleanup task failed: {e}")


def _acquire_scheduler_lock(lock_path=LOCK_PATH):
    """Try to take an exclusive file lock. Returns True if this process won."""
    global _lock_file
    try:
        _lock_file = open(lock_path, 'w')
        fcntl.flock(_lock_file.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        _lock_file.write(str(os.getpid()))
        _lock_file.flush()
        return True
    except OSError:
        if _lock_file:
            _lock_file.close()
            _lock_file = None
        return False


def start_scheduler():
    """Start the background scheduler unless another worker already runs it."""
    if scheduler.running:
        return

    if not _acquire_scheduler_lock():
        logger.debug(f"Scheduler lock held by another worker, skipping (pid={os.getpid()})")
        return

    scheduler.add_job(
        cleanup_old_notifications,
        'cron',
        hour=1,
        minute=0,
        id='cleanup_notifications',
        replace_existing=True,
        misfire_grace_time=300,
        coalesce=True,
    )

    scheduler.start()
    atexit.register(stop_scheduler)
    logger.info(f"Background scheduler started (pid={os.getpid()})")


def stop_scheduler():
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Background scheduler stopped")
