# File: app/models/visitor.py
from sqlalchemy import Column, String, Integer, ForeignKey
from sqlalchemy.orm import relationship
from app.models.base import BaseModel

class Visitor(BaseModel):
    __tablename__ = "visitors"
    
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=True)
    email = Column(String(255), nullable=True)
    
    # Relationships
    event = relationship("Event", back_populates="visitors")
    tokens = relationship("Token", back_populates="visitor")
