# File: app/tasks/queue_snapshots.py
import logging
from app.core.exceptions import QueueError
from app.core.websocket_manager import queue_broadcaster
from app.db.database import SessionLocal
from app.services.queue_engine import queue_engine

logger = logging.getLogger(__name__)

def broadcast_queue_snapshots(broadcaster=None, session_factory=None) -> int:
    """Push a fresh snapshot to every event that has subscribers.

    Backstop for pushes a client missed; clients merge it like any snapshot.
    Returns the number of events refreshed.
    """
    broadcaster = broadcaster or queue_broadcaster
    session_factory = session_factory or SessionLocal

    event_ids = broadcaster.subscribed_events()
    if not event_ids:
        return 0

    refreshed = 0
    db = session_factory()
    try:
        for event_id in event_ids:
            try:
                message = queue_engine.snapshot_message(db, event_id)
            except QueueError as e:
                logger.warning(f"Skipping snapshot for event {event_id}: {e.message}")
                continue
            broadcaster.publish(event_id, message)
            refreshed += 1
    finally:
        db.close()

    logger.debug(f"Broadcast queue snapshots for {refreshed} event(s)")
    return refreshed
