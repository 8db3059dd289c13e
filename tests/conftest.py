"""Test fixtures: in-memory SQLite database, staff roster and a task factory"""

import os
from datetime import timedelta

os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("SECRET_KEY", "test-secret")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import teamflow.models  # noqa: F401 - register tables
from teamflow.database import Base
from teamflow.models import StaffRole, TaskPriority, User
from teamflow.services.task_service import TaskService
from teamflow.utils.clock import utcnow


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


STAFF = [
    ("manager", "DTC Manager", "manager@dtc.com", StaffRole.MANAGER),
    ("designer", "Designer Tu", "tu@dtc.com", StaffRole.DESIGNER),
    ("designer2", "Designer Lan", "lan@dtc.com", StaffRole.DESIGNER),
    ("seller", "Seller Huyen", "huyen@dtc.com", StaffRole.SELLER),
    ("cs", "CS Dao", "dao@dtc.com", StaffRole.CS),
    ("cs2", "CS Thao", "thao@dtc.com", StaffRole.CS),
]


@pytest.fixture
def staff(db):
    """Staff roster keyed by short name"""
    users = {}
    for key, name, email, role in STAFF:
        user = User(name=name, email=email, hashed_password="not-a-real-hash", role=role)
        db.add(user)
        users[key] = user
    db.commit()
    for user in users.values():
        db.refresh(user)
    return users


@pytest.fixture
def service(db):
    return TaskService(db)


@pytest.fixture
def make_task(service, staff):
    """Create a task through the service as the manager"""

    def _make(assignee="designer", deadline=None, **overrides):
        assignee_user = staff[assignee]
        data = {
            "title": "Check file Fulfillment",
            "purpose": "Keep daily fulfillment on schedule",
            "description": "Clone file, redesign, scale temp",
            "role": assignee_user.role,
            "priority": TaskPriority.HIGH,
            "assigned_to": assignee_user.id,
            "deadline": deadline or (utcnow() + timedelta(days=1)),
        }
        data.update(overrides)
        return service.create_task(staff["manager"], data)

    return _make
