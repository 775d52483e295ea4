# File: app/models/user.py
from sqlalchemy import Column, String, Boolean, Enum
from app.models.base import BaseModel
import enum

class UserRole(enum.Enum):
    ADMIN = "ADMIN"
    EXPERT = "EXPERT"
    SALES = "SALES"

class User(BaseModel):
    """Event staff member. Visitors are not users; see `Visitor`."""
    __tablename__ = "users"
    
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=False)
    role = Column(Enum(UserRole, values_callable=lambda obj: [e.value for e in obj]), nullable=False)
    is_active = Column(Boolean, default=True)
