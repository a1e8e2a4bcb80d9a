import os

# Keep imports of the database module away from the on-disk default
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from datetime import date, datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from remindcare.application.services.context import WorkflowContext
from remindcare.config import Settings
from remindcare.core.clock import tz
from remindcare.core.exceptions import TransportError
from remindcare.domain.models.subject import Subject
from remindcare.domain.workflow import SubjectPhase
from remindcare.infrastructure.database import create_tables
from remindcare.infrastructure.repositories.subject_repository import SQLAlchemySubjectRepository


def at(year, month, day, hour=9, minute=0):
    """Aware datetime in the configured zone."""
    return tz.localize(datetime(year, month, day, hour, minute))


class FakeTransport:
    """Records every send; flip ``fail_texts`` / ``fail_polls`` to simulate a dead channel."""

    def __init__(self):
        self.sent = []
        self.fail_texts = False
        self.fail_polls = False
        self._counter = 0

    def _next_id(self):
        self._counter += 1
        return f"MSG{self._counter}"

    async def send_text(self, address, text, apply_rate_limit=False):
        if self.fail_texts:
            raise TransportError("channel down")
        message_id = self._next_id()
        self.sent.append({"kind": "text", "to": address, "text": text, "id": message_id})
        return message_id

    async def send_poll(self, address, question, options, apply_rate_limit=False):
        if self.fail_polls:
            raise TransportError("channel down")
        message_id = self._next_id()
        self.sent.append(
            {"kind": "poll", "to": address, "text": question, "options": list(options), "id": message_id}
        )
        return message_id

    def texts(self, address=None):
        return [m["text"] for m in self.sent if m["kind"] == "text" and (address is None or m["to"] == address)]

    def polls(self, address=None):
        return [m for m in self.sent if m["kind"] == "poll" and (address is None or m["to"] == address)]

    def clear(self):
        self.sent.clear()


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    create_tables(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        DATABASE_URL="sqlite://",
        ENFORCE_ALLOWLIST=False,
        ADMIN_WA_IDS="6280000000001",
        ALLOWLIST_WA_IDS="",
        POLL_MAX_RESPONSES_PER_DAY=2,
        RETRY_BASE_DELAY_SECONDS=60,
        RETRY_MAX_DELAY_SECONDS=3600,
        SCHEDULER_MAX_CONCURRENCY=2,
        SEND_MIN_DELAY_SECONDS=0,
        SEND_MAX_DELAY_SECONDS=0,
    )


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def make_context(db, transport, settings):
    def _make(now):
        return WorkflowContext.for_session(db, transport, settings, now)

    return _make


@pytest.fixture
def make_subject(db):
    """Create an active, fully onboarded subject; keyword arguments override columns."""

    def _make(wa_id="628111111111@c.us", **fields):
        repo = SQLAlchemySubjectRepository(db, Subject)
        subject, _ = repo.ensure(wa_id)
        values = {
            "phase": SubjectPhase.ACTIVE.value,
            "onboarding_step": 0,
            "name": "Sari",
            "hpht": "01-01-2024",
            "hpht_date": date(2024, 1, 1),
            "allow_reminders": True,
            "reminder_time": "08:00",
        }
        values.update(fields)
        return repo.update(subject, values)

    return _make
