# File: app/schemas/token.py
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from app.models.token import TokenStatus

class TokenCreate(BaseModel):
    visitor_id: int

class TokenStatusUpdate(BaseModel):
    status: TokenStatus

class ConsultationLink(BaseModel):
    consultation_id: str = Field(..., min_length=1, max_length=64)

class Token(BaseModel):
    id: int
    event_id: int
    visitor_id: int
    token_no: int
    status: TokenStatus
    consultation_id: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    
    class Config:
        from_attributes = True
