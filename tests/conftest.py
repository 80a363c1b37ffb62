import os

os.environ.setdefault("BLOCKVOTE_DATABASE_URL", "sqlite://")
os.environ.setdefault("BLOCKVOTE_SECRET_KEY", "test-secret-key")
os.environ.pop("BLOCKVOTE_ADMIN_USERNAME", None)
os.environ.pop("BLOCKVOTE_ADMIN_PASSWORD", None)

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from blockvote import models  # noqa: F401
from blockvote.auth import create_access_token, hash_password
from blockvote.database import Base, SessionLocal, engine, utcnow
from blockvote.main import app
from blockvote.models import AdminUser, Candidate, Election


class RecordingAudit:
    def __init__(self, fail=False):
        self.events = []
        self.fail = fail

    def record(self, actor_type, action, resource_type, details=None, user_id=None):
        if self.fail:
            raise RuntimeError("audit store unavailable")
        self.events.append(
            {"actor_type": actor_type, "action": action, "resource_type": resource_type, "details": details}
        )

    def actions(self):
        return [e["action"] for e in self.events]


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    return TestClient(app)


@pytest.fixture
def audit():
    return RecordingAudit()


def _make_election(db, status="active", start=None, end=None, title="Student Council"):
    now = utcnow()
    election = Election(
        title=title,
        status=status,
        start_date=start or now - timedelta(days=1),
        end_date=end or now + timedelta(days=1),
    )
    db.add(election)
    db.commit()
    return election


def _make_candidate(db, election, name="Ada", is_active=True, display_order=0, party=None):
    candidate = Candidate(
        election_id=election.id, name=name, is_active=is_active, display_order=display_order, party=party
    )
    db.add(candidate)
    db.commit()
    return candidate


@pytest.fixture
def election(db):
    return _make_election(db)


@pytest.fixture
def candidate(db, election):
    return _make_candidate(db, election)


@pytest.fixture
def admin(db):
    user = AdminUser(username="root", password_hash=hash_password("s3cret-pass"), role="super_admin")
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def admin_headers(admin):
    token = create_access_token({"sub": admin.username, "role": admin.role})
    return {"Authorization": f"Bearer {token}"}


class UnreadableSession:
    """Session whose primary-key reads fail as if the database file were gone."""

    def __init__(self, db):
        self._db = db

    def get(self, *args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("unable to open database file"))

    def __getattr__(self, name):
        return getattr(self._db, name)


@pytest.fixture
def unreadable_db(db):
    return UnreadableSession(db)


@pytest.fixture
def failing_audit():
    return RecordingAudit(fail=True)


@pytest.fixture
def election_factory(db):
    return lambda **kwargs: _make_election(db, **kwargs)


@pytest.fixture
def candidate_factory(db):
    return lambda election, **kwargs: _make_candidate(db, election, **kwargs)
