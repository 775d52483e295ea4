# File: scripts/create_initial_data.py
"""
Script to create initial data for testing
Run this after setting up the database
"""
import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(__file__)))

from app.db.database import SessionLocal
from app import crud, schemas
from app.core.security import create_access_token
from app.crud.user import StaffUserCreate
from app.models.user import UserRole

STAFF = [
    ("admin@consultation-queue.local", "Queue Administrator", UserRole.ADMIN),
    ("expert@consultation-queue.local", "Consultation Expert", UserRole.EXPERT),
]

VISITORS = [
    ("Amina Wanjiru", "+254700000001"),
    ("Brian Otieno", "+254700000002"),
    ("Carol Njeri", "+254700000003"),
]

def create_initial_data():
    db = SessionLocal()

    try:
        for email, full_name, role in STAFF:
            existing = crud.user.get_by_email(db, email=email)
            if not existing:
                staff = crud.user.create(db, obj_in=StaffUserCreate(email=email, full_name=full_name, role=role))
                print(f"Created {role.value.lower()}: {staff.email}")
            else:
                staff = existing
                print(f"{role.value.title()} already exists: {staff.email}")
            print(f"  Bearer token: {create_access_token(staff.email, staff.role.value)}")

        event = crud.event.create(
            db,
            obj_in=schemas.EventCreate(
                name="Consultation Day",
                status="Published",
                feedback_link="https://example.com/feedback",
            ),
        )
        print(f"Created event: {event.name} (id={event.id})")

        for name, phone in VISITORS:
            visitor = crud.event.add_visitor(
                db, event_id=event.id, obj_in=schemas.VisitorCreate(name=name, phone=phone)
            )
            print(f"  Registered visitor {visitor.name} (id={visitor.id})")

        print("✅ Initial data created")
    except Exception as e:
        print(f"❌ Error creating initial data: {e}")
        db.rollback()
    finally:
        db.close()

if __name__ == "__main__":
    create_initial_data()
