# File: app/schemas/queue.py
from pydantic import BaseModel
from typing import Dict, List, Optional
from app.models.token import TokenStatus
from app.schemas.token import Token

class QueueStats(BaseModel):
    waiting: int = 0
    in_progress: int = 0
    completed: int = 0
    no_show: int = 0
    total: int = 0

    @classmethod
    def from_counts(cls, counts: Dict[TokenStatus, int]) -> "QueueStats":
        waiting = counts.get(TokenStatus.WAITING, 0)
        in_progress = counts.get(TokenStatus.IN_PROGRESS, 0)
        completed = counts.get(TokenStatus.DONE, 0)
        no_show = counts.get(TokenStatus.NO_SHOW, 0)
        return cls(
            waiting=waiting,
            in_progress=in_progress,
            completed=completed,
            no_show=no_show,
            total=waiting + in_progress + completed + no_show,
        )

class QueueSnapshot(BaseModel):
    event_id: int
    tokens: List[Token]
    stats: QueueStats
    now_serving: Optional[Token] = None
    paused: bool = False

class QueueChange(BaseModel):
    """Realtime message published after every token creation or transition"""
    type: str  # "token_created" | "token_changed"
    event_id: int
    token: Token
    stats: QueueStats

class PauseRequest(BaseModel):
    paused: bool

class ExpertQueueEntry(BaseModel):
    token: Token
    allowed_statuses: List[TokenStatus]

class ExpertQueueView(BaseModel):
    event_id: int
    tokens: List[ExpertQueueEntry]
    stats: QueueStats
    now_serving: Optional[Token] = None

class AdminQueueView(ExpertQueueView):
    paused: bool
    can_toggle_pause: bool = True

class VisitorQueueView(BaseModel):
    event_id: int
    visitor_id: int
    token: Optional[Token] = None
    tokens_ahead: int = 0
    now_serving_token_no: Optional[int] = None
    stats: QueueStats
    paused: bool = False
    can_create_token: bool = False
