import os

# Settings are read once at import time; point them at test values first.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SLOT_EVENTS_ENABLED"] = "false"
os.environ["SLOT_MUTATIONS_PER_SECOND"] = "0"
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ["DEFAULT_TIMEZONE"] = "UTC"

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from lessonbook.api.dependencies import create_access_token
from lessonbook.config.database import get_db
from lessonbook.main import app
from lessonbook.models import Base, LessonSlot, Profile, SlotSource, SlotStatus, UserRole


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
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_profile(db):
    def _make(role=UserRole.STUDENT, **kwargs):
        profile = Profile(role=role, **kwargs)
        db.add(profile)
        db.commit()
        db.refresh(profile)
        return profile
    return _make


@pytest.fixture
def tutor(make_profile):
    return make_profile(
        UserRole.TUTOR,
        display_name="Ada Tutor",
        timezone="Europe/London",
        hourly_rate_cents=3000,
    )


@pytest.fixture
def student(make_profile):
    return make_profile(UserRole.STUDENT, display_name="Sam Student", avatar_url="https://img.test/sam.png")


@pytest.fixture
def other_student(make_profile):
    return make_profile(UserRole.STUDENT, full_name="Bea Other")


@pytest.fixture
def next_hour():
    """Top of an hour two days out, so slots are comfortably in the future."""
    now = datetime.now(timezone.utc)
    return now.replace(minute=0, second=0, microsecond=0) + timedelta(days=2)


@pytest.fixture
def make_slot(db, tutor):
    def _make(starts_at, minutes=60, **kwargs):
        values = {
            "tutor_id": tutor.id,
            "starts_at": starts_at,
            "ends_at": starts_at + timedelta(minutes=minutes),
            "price_cents": 3000,
            "status": SlotStatus.AVAILABLE.value,
            "source": SlotSource.MANUAL.value,
        }
        values.update(kwargs)
        slot = LessonSlot(**values)
        db.add(slot)
        db.commit()
        db.refresh(slot)
        return slot
    return _make


@pytest.fixture
def auth_headers():
    def _headers(profile):
        token = create_access_token({"sub": str(profile.id)})
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
