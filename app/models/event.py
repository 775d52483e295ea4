# File: app/models/event.py
from sqlalchemy import Column, String, Boolean
from sqlalchemy.orm import relationship
from app.models.base import BaseModel

class Event(BaseModel):
    __tablename__ = "events"
    
    name = Column(String(255), nullable=False)
    status = Column(String(50), default='Draft')
    
    # Queue intake
    queue_paused = Column(Boolean, nullable=False, default=False)
    
    # Sent with the thank-you message once a consultation is done
    feedback_link = Column(String(500), nullable=True)
    
    # Relationships
    visitors = relationship("Visitor", back_populates="event")
    tokens = relationship("Token", back_populates="event")
