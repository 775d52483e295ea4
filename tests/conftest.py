import os
import tempfile

# Settings are read at import time; point them at a throwaway database first.
_db_dir = tempfile.mkdtemp(prefix="consultation-queue-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_db_dir, 'queue.db')}"
os.environ["AUTO_CREATE_TABLES"] = "true"
os.environ["QUEUE_SNAPSHOT_BROADCAST_SECONDS"] = "0"
os.environ["STORE_RETRY_BACKOFF_SECONDS"] = "0"
os.environ["ENVIRONMENT"] = "test"
os.environ["SECRET_KEY"] = "test-secret-key"

import pytest
from fastapi.testclient import TestClient

from app import crud
from app.core.security import create_access_token
from app.crud.user import StaffUserCreate
from app.db.database import Base, SessionLocal, engine, get_db
from app.main import app
from app.models import Event, User, UserRole, Visitor  # noqa: F401  registers tables
from app.schemas import EventCreate, VisitorCreate


def override_get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(autouse=True)
def fresh_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def event(db):
    return crud.event.create(
        db,
        obj_in=EventCreate(name="Consultation Day", status="Published", feedback_link="https://example.com/fb"),
    )


@pytest.fixture
def other_event(db):
    return crud.event.create(db, obj_in=EventCreate(name="Second Day"))


@pytest.fixture
def visitors(db, event):
    return [
        crud.event.add_visitor(db, event_id=event.id, obj_in=VisitorCreate(name=name, phone=f"+25470000000{i}"))
        for i, name in enumerate(["Amina", "Brian", "Carol"], start=1)
    ]


def _staff(db, email, role):
    return crud.user.create(db, obj_in=StaffUserCreate(email=email, full_name=email.split("@")[0], role=role))


@pytest.fixture
def expert(db):
    return _staff(db, "expert@example.com", UserRole.EXPERT)


@pytest.fixture
def admin(db):
    return _staff(db, "admin@example.com", UserRole.ADMIN)


@pytest.fixture
def sales(db):
    return _staff(db, "sales@example.com", UserRole.SALES)


def _auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(user.email, user.role.value)}"}


@pytest.fixture
def expert_headers(expert):
    return _auth_headers(expert)


@pytest.fixture
def admin_headers(admin):
    return _auth_headers(admin)


@pytest.fixture
def sales_headers(sales):
    return _auth_headers(sales)
