# File: app/services/queue_notifier.py
from dataclasses import dataclass, field
from typing import Dict, List, Optional
import logging

from sqlalchemy.orm import Session

from app.core.config import settings
from app.crud import token as token_store
from app.models.token import Token, TokenStatus

logger = logging.getLogger(__name__)

TOKEN_BOOKED = "token_booked"
CONSULTATION_READY = "consultation_ready"
CONSULTATION_GET_READY = "consultation_get_ready"
THANK_YOU_FEEDBACK = "thank_you_feedback"


@dataclass(frozen=True)
class QueueNotice:
    template: str
    event_id: int
    visitor_id: int
    token_no: int
    params: Dict[str, str] = field(default_factory=dict)


class LoggingNotificationSender:
    """Default sender; messaging providers plug in with the same `send`."""

    def send(self, notice: QueueNotice) -> None:
        logger.info(
            f"Queue notice {notice.template} -> visitor {notice.visitor_id} "
            f"(event {notice.event_id}, token #{notice.token_no}): {notice.params}"
        )


class QueueNotifier:
    """Decides who hears about a queue change and hands notices to a sender.

    Best effort: a failing sender is logged and never affects the command
    that triggered it.
    """

    def __init__(self, sender=None, enabled: Optional[bool] = None):
        self.sender = sender or LoggingNotificationSender()
        self.enabled = settings.QUEUE_NOTIFICATIONS_ENABLED if enabled is None else enabled

    def token_created(self, db: Session, token: Token) -> List[QueueNotice]:
        try:
            notices = [self._notice(TOKEN_BOOKED, token)]
        except Exception:
            logger.exception(f"Could not prepare booking notice for token {token.id}")
            return []
        return self._dispatch(notices)

    def status_changed(self, db: Session, token: Token) -> List[QueueNotice]:
        notices: List[QueueNotice] = []
        try:
            if token.status == TokenStatus.IN_PROGRESS:
                notices.append(self._notice(CONSULTATION_READY, token))
                next_token = token_store.get_next_waiting(
                    db, event_id=token.event_id, after_token_no=token.token_no
                )
                if next_token is not None:
                    notices.append(self._notice(CONSULTATION_GET_READY, next_token))
            elif token.status == TokenStatus.DONE:
                event = token.event
                link = (event.feedback_link if event else None) or settings.DEFAULT_FEEDBACK_LINK
                notices.append(self._notice(
                    THANK_YOU_FEEDBACK,
                    token,
                    event_name=event.name if event else "",
                    feedback_link=link,
                ))
        except Exception:
            logger.exception(f"Could not prepare notices for token {token.id}")
            return []
        return self._dispatch(notices)

    def _notice(self, template: str, token: Token, **extra: str) -> QueueNotice:
        params = {
            "name": token.visitor.name if token.visitor else "",
            "token_no": str(token.token_no),
        }
        params.update(extra)
        return QueueNotice(
            template=template,
            event_id=token.event_id,
            visitor_id=token.visitor_id,
            token_no=token.token_no,
            params=params,
        )

    def _dispatch(self, notices: List[QueueNotice]) -> List[QueueNotice]:
        if not self.enabled:
            return []
        sent = []
        for notice in notices:
            try:
                self.sender.send(notice)
                sent.append(notice)
            except Exception as e:
                logger.error(f"Failed to send {notice.template} to visitor {notice.visitor_id}: {e}")
        return sent


queue_notifier = QueueNotifier()
