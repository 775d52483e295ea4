from .token import Token, TokenCreate, TokenStatusUpdate, ConsultationLink
from .queue import (
    QueueStats, QueueSnapshot, QueueChange, PauseRequest,
    ExpertQueueEntry, ExpertQueueView, AdminQueueView, VisitorQueueView
)
from .event import Event, EventCreate, VisitorCreate
