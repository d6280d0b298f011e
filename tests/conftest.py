"""Shared test fixtures."""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["PUSH_ENABLED"] = "false"

import itertools
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from servicehub import models_appointment, models_calendar  # noqa: F401
from servicehub.auth import create_access_token
from servicehub.database import Base, get_db
from servicehub.domain.calendar.opening_hours import OpeningHoursResolver
from servicehub.domain.calendar.repository import CalendarStore
from servicehub.domain.scheduling.service import AppointmentService
from servicehub.main import app
from servicehub.models import User
from servicehub.models_appointment import Appointment
from servicehub.services.notification_service import Notifier
from servicehub.shared.clock import utc_now

# Monday 2026-02-16, 10:00 in Berlin (standard season)
NOW = datetime(2026, 2, 16, 9, 0, tzinfo=timezone.utc)

_emails = itertools.count(1)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_user(db):
    """Create a user with the given role."""
    def _create(role: str = "customer", **kwargs) -> User:
        n = next(_emails)
        user = User(
            email=kwargs.pop("email", f"user{n}@example.com"),
            first_name=kwargs.pop("first_name", "Test"),
            last_name=kwargs.pop("last_name", f"User{n}"),
            role=role,
            is_active=kwargs.pop("is_active", True),
            **kwargs,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _create


@pytest.fixture
def customer(make_user):
    return make_user("customer", first_name="Erika", last_name="Muster")


@pytest.fixture
def other_customer(make_user):
    return make_user("customer")


@pytest.fixture
def admin(make_user):
    return make_user("admin")


@pytest.fixture
def super_admin(make_user):
    return make_user("super_admin")


@pytest.fixture
def service_manager(make_user):
    return make_user("service_manager", first_name="Sam", last_name="Service")


@pytest.fixture
def robby_manager(make_user):
    return make_user("robby_manager")


@pytest.fixture
def make_appointment(db, customer):
    """Insert an appointment directly, bypassing validation."""
    def _create(**kwargs) -> Appointment:
        data = {
            "customer_id": customer.id,
            "title": "Bike service",
            "type": "service",
            "status": "pending",
        }
        data.update(kwargs)
        appointment = Appointment(**data)
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment
    return _create


@pytest.fixture
def store(db):
    return CalendarStore(db)


@pytest.fixture
def resolver(store):
    return OpeningHoursResolver(store, tz="Europe/Berlin")


@pytest.fixture
def notifier(db):
    """Real notifier without push delivery; notifications land in the test database."""
    return Notifier(db, push_sender=None)


@pytest.fixture
def service(db, notifier, resolver):
    return AppointmentService(db, notifier=notifier, resolver=resolver, clock=lambda: NOW)


@pytest.fixture
def client(db):
    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[utc_now] = lambda: NOW
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _headers(user: User) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}
    return _headers
