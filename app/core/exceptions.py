# File: app/core/exceptions.py
"""Queue error taxonomy.

Every error carries a stable `code` and the HTTP status it maps to, so the
API layer renders them in one place (see `app.main`).
"""
from typing import Any, Dict, Optional


class QueueError(Exception):
    code = "queue_error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_response(self) -> Dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            "status_code": self.status_code,
        }


class NotFound(QueueError):
    code = "not_found"
    status_code = 404


class TokenNotFound(NotFound):
    def __init__(self, token_id: Any):
        super().__init__(f"Token {token_id} not found")
        self.token_id = token_id


class EventNotFound(NotFound):
    def __init__(self, event_id: Any):
        super().__init__(f"Event {event_id} not found")
        self.event_id = event_id


class VisitorNotFound(NotFound):
    def __init__(self, visitor_id: Any, event_id: Any):
        super().__init__(f"Visitor {visitor_id} not found or does not belong to event {event_id}")
        self.visitor_id = visitor_id
        self.event_id = event_id


class InvalidTransition(QueueError):
    code = "invalid_transition"
    status_code = 409

    def __init__(self, token_id: Any, current: Optional[str], requested: str):
        super().__init__(f"Token {token_id} cannot move from {current} to {requested}")
        self.token_id = token_id
        self.current = current
        self.requested = requested

    def to_response(self) -> Dict[str, Any]:
        body = super().to_response()
        body["current_status"] = self.current
        body["requested_status"] = self.requested
        return body


class QueuePaused(QueueError):
    code = "queue_paused"
    status_code = 409

    def __init__(self, event_id: Any):
        super().__init__(f"Token intake is paused for event {event_id}")
        self.event_id = event_id


class TransientStoreFailure(QueueError):
    code = "store_unavailable"
    status_code = 503
