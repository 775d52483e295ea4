from .event import event, visitor
from .user import user
from .token import token
