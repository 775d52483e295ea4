# File: app/schemas/event.py
from pydantic import BaseModel
from typing import Optional
from datetime import datetime

class EventBase(BaseModel):
    name: str
    status: Optional[str] = "Draft"
    feedback_link: Optional[str] = None

class EventCreate(EventBase):
    pass

class Event(EventBase):
    id: int
    queue_paused: bool
    created_at: datetime
    updated_at: Optional[datetime] = None
    
    class Config:
        from_attributes = True

class VisitorCreate(BaseModel):
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
