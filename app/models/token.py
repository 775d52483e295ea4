# File: app/models/token.py
from sqlalchemy import Column, String, Integer, ForeignKey, Enum, UniqueConstraint, Index
from sqlalchemy.orm import relationship
from app.models.base import BaseModel
import enum

class TokenStatus(enum.Enum):
    WAITING = "WAITING"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"
    NO_SHOW = "NO_SHOW"

    @property
    def is_terminal(self) -> bool:
        return self in (TokenStatus.DONE, TokenStatus.NO_SHOW)

ACTIVE_STATUSES = (TokenStatus.WAITING, TokenStatus.IN_PROGRESS)

# The only legal moves. Terminal states have no outgoing edges.
ALLOWED_TRANSITIONS = {
    TokenStatus.WAITING: frozenset({TokenStatus.IN_PROGRESS, TokenStatus.NO_SHOW}),
    TokenStatus.IN_PROGRESS: frozenset({TokenStatus.DONE, TokenStatus.NO_SHOW}),
    TokenStatus.DONE: frozenset(),
    TokenStatus.NO_SHOW: frozenset(),
}

def can_transition(current: TokenStatus, target: TokenStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())

token_status_enum = Enum(
    TokenStatus,
    name="token_status",
    values_callable=lambda obj: [e.value for e in obj],
)

class Token(BaseModel):
    __tablename__ = "tokens"
    __table_args__ = (
        # tokenNo assignment is serialized by this constraint
        UniqueConstraint("event_id", "token_no", name="uq_tokens_event_token_no"),
        Index("ix_tokens_event_status", "event_id", "status"),
        Index("ix_tokens_event_visitor", "event_id", "visitor_id"),
    )
    
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False)
    visitor_id = Column(Integer, ForeignKey("visitors.id"), nullable=False)
    token_no = Column(Integer, nullable=False)
    status = Column(token_status_enum, nullable=False, default=TokenStatus.WAITING)
    
    # Set by the expert workspace; opaque to the queue
    consultation_id = Column(String(64), nullable=True)
    
    # Relationships
    event = relationship("Event", back_populates="tokens")
    visitor = relationship("Visitor", back_populates="tokens")
    status_changes = relationship(
        "TokenStatusChange",
        back_populates="token",
        order_by="TokenStatusChange.id",
    )

class TokenStatusChange(BaseModel):
    __tablename__ = "token_status_changes"
    
    token_id = Column(Integer, ForeignKey("tokens.id"), nullable=False, index=True)
    from_status = Column(token_status_enum, nullable=False)
    to_status = Column(token_status_enum, nullable=False)
    changed_by = Column(String(255), nullable=True)
    
    # Relationships
    token = relationship("Token", back_populates="status_changes")
