from .base import BaseModel
from .event import Event
from .visitor import Visitor
from .user import User, UserRole
from .token import (
    Token, TokenStatus, TokenStatusChange, ACTIVE_STATUSES, ALLOWED_TRANSITIONS, can_transition
)

__all__ = [
    "BaseModel", "Event", "Visitor", "User", "UserRole",
    "Token", "TokenStatus", "TokenStatusChange", "ACTIVE_STATUSES",
    "ALLOWED_TRANSITIONS", "can_transition",
]
