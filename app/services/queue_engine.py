# File: app/services/queue_engine.py
"""Consultation queue engine.

Sole writer of token status. Enforces the token state machine, derives
queue statistics from the token store on every call, and pushes every
successful change to the realtime broadcaster after it is committed.

    WAITING      -> IN_PROGRESS | NO_SHOW
    IN_PROGRESS  -> DONE | NO_SHOW

Staff may call any WAITING token; serving order is not enforced, but
`token_no` always records arrival order.
"""
from collections import Counter
from typing import Any, Dict, Iterable, Optional, Tuple
import logging

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import EventNotFound, InvalidTransition, QueuePaused, VisitorNotFound
from app.core.websocket_manager import queue_broadcaster
from app.crud import event as event_store
from app.crud import token as token_store
from app.crud import visitor as visitor_store
from app.models.event import Event
from app.models.token import ACTIVE_STATUSES, Token, TokenStatus
from app.schemas.queue import QueueChange, QueueSnapshot, QueueStats
from app.schemas.token import Token as TokenSchema
from app.services.queue_notifier import queue_notifier

logger = logging.getLogger(__name__)

TOKEN_CREATED = "token_created"
TOKEN_CHANGED = "token_changed"
QUEUE_PAUSED = "queue_paused"
SNAPSHOT = "snapshot"


class QueueEngine:

    def __init__(self, broadcaster=None, notifier=None, store=None):
        self.broadcaster = broadcaster or queue_broadcaster
        self.notifier = notifier or queue_notifier
        self.store = store or token_store

    # -------------------- commands --------------------

    def create_token(self, db: Session, *, event_id: int, visitor_id: int) -> Tuple[Token, bool]:
        """Create-or-return the visitor's active token for the event"""
        event = self.get_event(db, event_id)
        if visitor_store.get_for_event(db, visitor_id=visitor_id, event_id=event_id) is None:
            raise VisitorNotFound(visitor_id, event_id)

        if event.queue_paused:
            # Paused intake still hands back a spot the visitor already holds.
            existing = self.store.get_latest_for_visitor(db, event_id=event_id, visitor_id=visitor_id)
            if existing is not None and existing.status in ACTIVE_STATUSES:
                return existing, False
            raise QueuePaused(event_id)

        token, created = self.store.create_token(db, event_id=event_id, visitor_id=visitor_id)
        if not created:
            logger.info(f"Visitor {visitor_id} already holds token #{token.token_no} for event {event_id}")
            return token, False

        logger.info(f"Issued token #{token.token_no} (id={token.id}) to visitor {visitor_id} for event {event_id}")
        self._publish_change(db, TOKEN_CREATED, token)
        self.notifier.token_created(db, token)
        return token, True

    def change_status(
        self,
        db: Session,
        *,
        token_id: int,
        new_status: TokenStatus,
        actor: Optional[str] = None,
    ) -> Token:
        try:
            token, previous = self.store.update_status(
                db, token_id=token_id, new_status=new_status, changed_by=actor
            )
        except InvalidTransition as e:
            logger.warning(f"Rejected transition by {actor or 'unknown'}: {e.message}")
            raise

        logger.info(
            f"Token #{token.token_no} (id={token.id}, event {token.event_id}) "
            f"{previous.value} -> {token.status.value} by {actor or 'unknown'}"
        )
        self._publish_change(db, TOKEN_CHANGED, token)
        self.notifier.status_changed(db, token)
        return token

    def set_paused(self, db: Session, *, event_id: int, paused: bool) -> Event:
        event = self.get_event(db, event_id)
        event = event_store.set_queue_paused(db, event=event, paused=paused)
        logger.info(f"Token intake for event {event_id} {'paused' if paused else 'resumed'}")
        self._publish(event_id, {"type": QUEUE_PAUSED, "event_id": event_id, "paused": event.queue_paused})
        return event

    def link_consultation(self, db: Session, *, token_id: int, consultation_id: str) -> Token:
        token = self.store.link_consultation(db, token_id=token_id, consultation_id=consultation_id)
        logger.info(f"Token {token_id} linked to consultation {consultation_id}")
        return token

    # -------------------- queries --------------------

    def get_event(self, db: Session, event_id: int) -> Event:
        event = event_store.get(db, event_id)
        if event is None:
            raise EventNotFound(event_id)
        return event

    def get_token(self, db: Session, token_id: int) -> Token:
        return self.store.get_token(db, token_id)

    def stats(self, db: Session, event_id: int) -> QueueStats:
        return QueueStats.from_counts(self.store.count_by_status(db, event_id=event_id))

    def now_serving(self, db: Session, event_id: int) -> Optional[Token]:
        return self.store.get_lowest_in_progress(db, event_id=event_id)

    def snapshot(
        self,
        db: Session,
        event_id: int,
        statuses: Optional[Iterable[TokenStatus]] = None,
    ) -> QueueSnapshot:
        event = self.get_event(db, event_id)
        tokens = self.store.list_tokens(db, event_id=event_id, statuses=statuses)
        if statuses:
            stats = self.stats(db, event_id)
            now_serving = self.now_serving(db, event_id)
        else:
            # Full list: derive from the same read so tokens and stats agree.
            stats = QueueStats.from_counts(Counter(t.status for t in tokens))
            now_serving = next((t for t in tokens if t.status == TokenStatus.IN_PROGRESS), None)
        return QueueSnapshot(
            event_id=event_id,
            tokens=[TokenSchema.model_validate(t) for t in tokens],
            stats=stats,
            now_serving=TokenSchema.model_validate(now_serving) if now_serving else None,
            paused=bool(event.queue_paused),
        )

    def snapshot_message(self, db: Session, event_id: int) -> Dict[str, Any]:
        message = {"type": SNAPSHOT}
        message.update(self.snapshot(db, event_id).model_dump(mode="json"))
        return message

    # -------------------- realtime --------------------

    def _publish_change(self, db: Session, change_type: str, token: Token) -> None:
        try:
            change = QueueChange(
                type=change_type,
                event_id=token.event_id,
                token=TokenSchema.model_validate(token),
                stats=self.stats(db, token.event_id),
            )
        except Exception:
            logger.exception(f"Could not build {change_type} message for token {token.id}")
            return
        self._publish(token.event_id, change.model_dump(mode="json"))

    def _publish(self, event_id: int, message: Dict[str, Any]) -> None:
        if not settings.ENABLE_WEBSOCKET_NOTIFICATIONS:
            return
        try:
            self.broadcaster.publish(event_id, message)
        except Exception:
            # The write is already committed; delivery is best effort.
            logger.exception(f"Failed to publish {message.get('type')} for event {event_id}")


queue_engine = QueueEngine()
