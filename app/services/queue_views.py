# File: app/services/queue_views.py
"""Per-role renderings of a queue snapshot.

Visitor, expert and admin consoles read the same snapshot; they differ only
in which commands they may issue and what they show.
"""
from typing import Dict, FrozenSet, List, Optional
import enum

from app.models.token import ALLOWED_TRANSITIONS, TokenStatus
from app.models.user import UserRole
from app.schemas.queue import (
    AdminQueueView,
    ExpertQueueEntry,
    ExpertQueueView,
    QueueSnapshot,
    VisitorQueueView,
)
from app.schemas.token import Token

class QueueCommand(enum.Enum):
    CREATE_TOKEN = "create_token"
    CALL = "call"                # WAITING -> IN_PROGRESS
    COMPLETE = "complete"        # IN_PROGRESS -> DONE
    MARK_NO_SHOW = "mark_no_show"
    TOGGLE_PAUSE = "toggle_pause"

COMMAND_TARGETS: Dict[QueueCommand, TokenStatus] = {
    QueueCommand.CALL: TokenStatus.IN_PROGRESS,
    QueueCommand.COMPLETE: TokenStatus.DONE,
    QueueCommand.MARK_NO_SHOW: TokenStatus.NO_SHOW,
}

_STAFF_COMMANDS = frozenset({QueueCommand.CALL, QueueCommand.COMPLETE, QueueCommand.MARK_NO_SHOW})

# Visitors are not staff users; they are keyed by None here.
ROLE_COMMANDS: Dict[Optional[UserRole], FrozenSet[QueueCommand]] = {
    None: frozenset({QueueCommand.CREATE_TOKEN}),
    UserRole.EXPERT: _STAFF_COMMANDS,
    UserRole.ADMIN: _STAFF_COMMANDS | {QueueCommand.TOGGLE_PAUSE},
    UserRole.SALES: frozenset(),
}

_STATUS_ORDER = [TokenStatus.WAITING, TokenStatus.IN_PROGRESS, TokenStatus.DONE, TokenStatus.NO_SHOW]


def commands_for(role: Optional[UserRole]) -> FrozenSet[QueueCommand]:
    return ROLE_COMMANDS.get(role, frozenset())


def can_set_status(role: Optional[UserRole], target: TokenStatus) -> bool:
    """Whether the role may ever issue a transition into `target`"""
    return any(COMMAND_TARGETS.get(c) == target for c in commands_for(role))


def can_toggle_pause(role: Optional[UserRole]) -> bool:
    return QueueCommand.TOGGLE_PAUSE in commands_for(role)


def allowed_statuses(role: Optional[UserRole], current: TokenStatus) -> List[TokenStatus]:
    """Targets the role may move a token to from `current`, in display order"""
    reachable = ALLOWED_TRANSITIONS.get(current, frozenset())
    return [s for s in _STATUS_ORDER if s in reachable and can_set_status(role, s)]


def expert_view(snapshot: QueueSnapshot, role: UserRole = UserRole.EXPERT) -> ExpertQueueView:
    return ExpertQueueView(
        event_id=snapshot.event_id,
        tokens=[
            ExpertQueueEntry(token=t, allowed_statuses=allowed_statuses(role, t.status))
            for t in sorted(snapshot.tokens, key=lambda t: t.token_no)
        ],
        stats=snapshot.stats,
        now_serving=snapshot.now_serving,
    )


def admin_view(snapshot: QueueSnapshot) -> AdminQueueView:
    base = expert_view(snapshot, role=UserRole.ADMIN)
    return AdminQueueView(
        **base.model_dump(),
        paused=snapshot.paused,
        can_toggle_pause=can_toggle_pause(UserRole.ADMIN),
    )


def _visitor_token(tokens: List[Token], visitor_id: int) -> Optional[Token]:
    mine = sorted((t for t in tokens if t.visitor_id == visitor_id), key=lambda t: t.token_no, reverse=True)
    for t in mine:
        if not t.status.is_terminal:
            return t
    return mine[0] if mine else None


def visitor_view(snapshot: QueueSnapshot, visitor_id: int) -> VisitorQueueView:
    token = _visitor_token(snapshot.tokens, visitor_id)
    tokens_ahead = 0
    if token is not None and token.status == TokenStatus.WAITING:
        tokens_ahead = sum(
            1 for t in snapshot.tokens
            if t.status == TokenStatus.WAITING and t.token_no < token.token_no
        )
    holds_active = token is not None and not token.status.is_terminal
    return VisitorQueueView(
        event_id=snapshot.event_id,
        visitor_id=visitor_id,
        token=token,
        tokens_ahead=tokens_ahead,
        now_serving_token_no=snapshot.now_serving.token_no if snapshot.now_serving else None,
        stats=snapshot.stats,
        paused=snapshot.paused,
        can_create_token=not holds_active and not snapshot.paused,
    )
