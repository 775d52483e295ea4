# File: app/crud/event.py
from typing import Optional
from sqlalchemy.orm import Session
from app.crud.base import CRUDBase, retry_read
from app.models.event import Event
from app.models.visitor import Visitor
from app.schemas.event import EventCreate, VisitorCreate

class CRUDEvent(CRUDBase[Event, EventCreate, EventCreate]):
    
    def set_queue_paused(self, db: Session, *, event: Event, paused: bool) -> Event:
        event.queue_paused = paused
        db.commit()
        db.refresh(event)
        return event

    def add_visitor(self, db: Session, *, event_id: int, obj_in: VisitorCreate) -> Visitor:
        visitor_data = obj_in.model_dump()
        visitor_data["event_id"] = event_id
        return visitor.create(db, obj_in=visitor_data)

class CRUDVisitor(CRUDBase[Visitor, VisitorCreate, VisitorCreate]):
    
    @retry_read
    def get_for_event(self, db: Session, *, visitor_id: int, event_id: int) -> Optional[Visitor]:
        return (
            db.query(Visitor)
            .filter(Visitor.id == visitor_id, Visitor.event_id == event_id)
            .first()
        )

event = CRUDEvent(Event)
visitor = CRUDVisitor(Visitor)
