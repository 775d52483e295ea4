# File: app/core/scheduler.py
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from app.core.config import settings
import logging

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler()

def start_scheduler():
    """Start all scheduled jobs"""
    from app.tasks.queue_snapshots import broadcast_queue_snapshots

    interval = settings.QUEUE_SNAPSHOT_BROADCAST_SECONDS
    if interval <= 0:
        logger.info("Queue snapshot broadcast disabled")
        return

    try:
        scheduler.add_job(
            broadcast_queue_snapshots,
            trigger=IntervalTrigger(seconds=interval),
            id='queue_snapshot_broadcast',
            name='Broadcast queue snapshots to subscribers',
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )

        scheduler.start()
        logger.info("✅ Scheduler started successfully")
        logger.info(f"Active jobs: {len(scheduler.get_jobs())}")
    except Exception as e:
        logger.error(f"Failed to start scheduler: {e}")

def stop_scheduler():
    """Stop scheduler gracefully"""
    if not scheduler.running:
        return
    try:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
    except Exception as e:
        logger.error(f"Error stopping scheduler: {e}")
