# File: app/crud/token.py
"""Token store.

Durable queue tokens. Numbering is serialized per event so concurrent
requests never share a `token_no`, and status changes are compare-and-set
so two staff members racing on one token produce exactly one winner.
"""
from typing import Dict, Iterable, List, Optional, Tuple
import logging
import threading

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import InvalidTransition, TokenNotFound, TransientStoreFailure
from app.crud.base import CRUDBase, TRANSIENT_ERRORS, retry_read
from app.models.event import Event
from app.models.token import (
    ACTIVE_STATUSES,
    Token,
    TokenStatus,
    TokenStatusChange,
    can_transition,
)
from app.schemas.token import TokenCreate

logger = logging.getLogger(__name__)


class _EventLocks:
    """One lock per event id; serializes numbering inside this process."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[int, threading.Lock] = {}

    def for_event(self, event_id: int) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(event_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[event_id] = lock
            return lock


class CRUDToken(CRUDBase[Token, TokenCreate, TokenCreate]):

    def __init__(self, model):
        super().__init__(model)
        self._event_locks = _EventLocks()

    # -------------------- reads --------------------

    @retry_read
    def get_token(self, db: Session, token_id: int) -> Token:
        token = db.query(Token).filter(Token.id == token_id).first()
        if token is None:
            raise TokenNotFound(token_id)
        return token

    @retry_read
    def list_tokens(
        self,
        db: Session,
        *,
        event_id: int,
        statuses: Optional[Iterable[TokenStatus]] = None,
    ) -> List[Token]:
        query = db.query(Token).filter(Token.event_id == event_id)
        if statuses:
            query = query.filter(Token.status.in_(list(statuses)))
        return query.order_by(Token.token_no.asc()).all()

    @retry_read
    def count_by_status(self, db: Session, *, event_id: int) -> Dict[TokenStatus, int]:
        rows = (
            db.query(Token.status, func.count(Token.id))
            .filter(Token.event_id == event_id)
            .group_by(Token.status)
            .all()
        )
        return {status: count for status, count in rows}

    @retry_read
    def get_lowest_in_progress(self, db: Session, *, event_id: int) -> Optional[Token]:
        return (
            db.query(Token)
            .filter(Token.event_id == event_id, Token.status == TokenStatus.IN_PROGRESS)
            .order_by(Token.token_no.asc())
            .first()
        )

    @retry_read
    def get_next_waiting(self, db: Session, *, event_id: int, after_token_no: int) -> Optional[Token]:
        return (
            db.query(Token)
            .filter(
                Token.event_id == event_id,
                Token.status == TokenStatus.WAITING,
                Token.token_no > after_token_no,
            )
            .order_by(Token.token_no.asc())
            .first()
        )

    @retry_read
    def get_latest_for_visitor(self, db: Session, *, event_id: int, visitor_id: int) -> Optional[Token]:
        """Visitor's active token if any, otherwise their most recent one"""
        tokens = (
            db.query(Token)
            .filter(Token.event_id == event_id, Token.visitor_id == visitor_id)
            .order_by(Token.token_no.desc())
            .all()
        )
        for token in tokens:
            if token.status in ACTIVE_STATUSES:
                return token
        return tokens[0] if tokens else None

    @retry_read
    def count_waiting_ahead(self, db: Session, *, event_id: int, token_no: int) -> int:
        return (
            db.query(func.count(Token.id))
            .filter(
                Token.event_id == event_id,
                Token.status == TokenStatus.WAITING,
                Token.token_no < token_no,
            )
            .scalar()
        )

    def _find_active(self, db: Session, *, event_id: int, visitor_id: int) -> Optional[Token]:
        return (
            db.query(Token)
            .filter(
                Token.event_id == event_id,
                Token.visitor_id == visitor_id,
                Token.status.in_(ACTIVE_STATUSES),
            )
            .order_by(Token.token_no.desc())
            .first()
        )

    def _next_token_no(self, db: Session, *, event_id: int) -> int:
        last_no = (
            db.query(func.max(Token.token_no))
            .filter(Token.event_id == event_id)
            .scalar()
        )
        return (last_no or 0) + 1

    # -------------------- writes --------------------

    def create_token(self, db: Session, *, event_id: int, visitor_id: int) -> Tuple[Token, bool]:
        """Reserve a queue spot for the visitor.

        Returns `(token, created)`. When the visitor already holds a WAITING
        or IN_PROGRESS token for the event, that token is returned with
        `created=False` and no number is consumed.
        """
        with self._event_locks.for_event(event_id):
            attempts = max(1, settings.TOKEN_CREATE_MAX_ATTEMPTS)
            for attempt in range(1, attempts + 1):
                try:
                    # Row lock on the event serializes numbering across processes.
                    db.query(Event.id).filter(Event.id == event_id).with_for_update().first()

                    existing = self._find_active(db, event_id=event_id, visitor_id=visitor_id)
                    if existing is not None:
                        db.commit()
                        return existing, False

                    token = Token(
                        event_id=event_id,
                        visitor_id=visitor_id,
                        token_no=self._next_token_no(db, event_id=event_id),
                        status=TokenStatus.WAITING,
                    )
                    db.add(token)
                    db.commit()
                    db.refresh(token)
                    return token, True
                except IntegrityError as e:
                    # Another writer took this number first; recompute.
                    db.rollback()
                    logger.warning(
                        f"token_no conflict on event {event_id} (attempt {attempt}/{attempts}): {e.orig}"
                    )
                except TRANSIENT_ERRORS as e:
                    db.rollback()
                    raise TransientStoreFailure(
                        "Token store unavailable while creating token; re-check before retrying"
                    ) from e

        raise TransientStoreFailure(f"Could not allocate a token number for event {event_id}")

    def update_status(
        self,
        db: Session,
        *,
        token_id: int,
        new_status: TokenStatus,
        changed_by: Optional[str] = None,
    ) -> Tuple[Token, TokenStatus]:
        """Move a token to `new_status`. Returns `(token, previous_status)`."""
        token = self.get_token(db, token_id)
        current = token.status
        if not can_transition(current, new_status):
            raise InvalidTransition(token_id, current.value, new_status.value)

        try:
            result = db.execute(
                update(Token)
                .where(Token.id == token_id, Token.status == current)
                .values(status=new_status, updated_at=func.now())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                # Lost the race: someone moved the token after we read it.
                db.rollback()
                db.expire(token)
                latest = self.get_token(db, token_id)
                raise InvalidTransition(token_id, latest.status.value, new_status.value)

            db.add(TokenStatusChange(
                token_id=token_id,
                from_status=current,
                to_status=new_status,
                changed_by=changed_by,
            ))
            db.commit()
        except TRANSIENT_ERRORS as e:
            db.rollback()
            raise TransientStoreFailure(
                "Token store unavailable while updating status; re-check before retrying"
            ) from e

        db.refresh(token)
        return token, current

    def link_consultation(self, db: Session, *, token_id: int, consultation_id: str) -> Token:
        token = self.get_token(db, token_id)
        try:
            token.consultation_id = consultation_id
            db.commit()
        except TRANSIENT_ERRORS as e:
            db.rollback()
            raise TransientStoreFailure("Token store unavailable while linking consultation") from e
        db.refresh(token)
        return token


token = CRUDToken(Token)
