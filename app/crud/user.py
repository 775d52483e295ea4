# File: app/crud/user.py
from typing import Optional
from sqlalchemy.orm import Session
from pydantic import BaseModel
from app.crud.base import CRUDBase, retry_read
from app.models.user import User, UserRole

class StaffUserCreate(BaseModel):
    email: str
    full_name: str
    role: UserRole
    is_active: bool = True

class CRUDUser(CRUDBase[User, StaffUserCreate, StaffUserCreate]):
    
    @retry_read
    def get_by_email(self, db: Session, *, email: str) -> Optional[User]:
        return db.query(User).filter(User.email == email).first()

user = CRUDUser(User)
