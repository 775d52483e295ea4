# File: app/api/v1/endpoints/queue.py
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session
from app.api.deps import require_admin, require_queue_staff
from app.db.database import get_db
from app.models.token import TokenStatus
from app.models.user import User
from app.schemas.queue import (
    AdminQueueView, ExpertQueueView, PauseRequest, QueueSnapshot, VisitorQueueView
)
from app.schemas.token import ConsultationLink, Token, TokenCreate, TokenStatusUpdate
from app.services import queue_views
from app.services.queue_engine import queue_engine

router = APIRouter()

# Visitor surface

@router.post("/events/{event_id}/tokens", response_model=Token, status_code=status.HTTP_201_CREATED)
def create_token(
    event_id: int,
    token_in: TokenCreate,
    response: Response,
    db: Session = Depends(get_db),
):
    """Reserve a queue spot; returns the visitor's existing active token if any"""
    token, created = queue_engine.create_token(db, event_id=event_id, visitor_id=token_in.visitor_id)
    if not created:
        response.status_code = status.HTTP_200_OK
    return token

@router.get("/events/{event_id}/queue", response_model=QueueSnapshot)
def get_queue_snapshot(event_id: int, db: Session = Depends(get_db)):
    """Full snapshot; clients call this on connect, reconnect and poll"""
    return queue_engine.snapshot(db, event_id)

@router.get("/events/{event_id}/visitors/{visitor_id}/token", response_model=VisitorQueueView)
def get_visitor_queue_view(event_id: int, visitor_id: int, db: Session = Depends(get_db)):
    snapshot = queue_engine.snapshot(db, event_id)
    return queue_views.visitor_view(snapshot, visitor_id)

@router.get("/tokens/{token_id}", response_model=Token)
def get_token(token_id: int, db: Session = Depends(get_db)):
    return queue_engine.get_token(db, token_id)

# Staff surface

@router.get("/expert/queue", response_model=ExpertQueueView)
def get_expert_queue(
    event_id: int = Query(...),
    token_status: Optional[List[TokenStatus]] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_queue_staff),
):
    """Tokens ordered by number with live stats and the commands allowed per token"""
    snapshot = queue_engine.snapshot(db, event_id, statuses=token_status)
    return queue_views.expert_view(snapshot, role=current_user.role)

@router.patch("/tokens/{token_id}/status", response_model=Token)
def update_token_status(
    token_id: int,
    status_in: TokenStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_queue_staff),
):
    target = status_in.status
    # Targets no command produces (e.g. WAITING) are rejected by the state machine as 409.
    if target in queue_views.COMMAND_TARGETS.values() and not queue_views.can_set_status(current_user.role, target):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized")
    return queue_engine.change_status(
        db, token_id=token_id, new_status=status_in.status, actor=current_user.email
    )

@router.put("/tokens/{token_id}/consultation", response_model=Token)
def link_token_consultation(
    token_id: int,
    link_in: ConsultationLink,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_queue_staff),
):
    return queue_engine.link_consultation(db, token_id=token_id, consultation_id=link_in.consultation_id)

# Admin surface

@router.get("/admin/events/{event_id}/queue", response_model=AdminQueueView)
def get_admin_queue(
    event_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    return queue_views.admin_view(queue_engine.snapshot(db, event_id))

@router.put("/admin/events/{event_id}/queue/pause", response_model=AdminQueueView)
def set_queue_paused(
    event_id: int,
    pause_in: PauseRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """Pause or resume token intake; existing tokens keep moving"""
    queue_engine.set_paused(db, event_id=event_id, paused=pause_in.paused)
    return queue_views.admin_view(queue_engine.snapshot(db, event_id))
