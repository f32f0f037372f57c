# pylint: disable=redefined-outer-name
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from lab_results.adapters import orm
from lab_results.adapters.cache import InMemoryCache
from lab_results.adapters.documents import TextReportGenerator
from lab_results.adapters.notifications import AbstractNotifications
from lab_results.adapters.redis_adapter import AbstractEventPublisher
from lab_results.adapters.repository import AbstractRepository
from lab_results.domain.clock import AbstractClock
from lab_results.domain.exceptions import ConcurrencyConflict, InfrastructureFailure
from lab_results.domain.value_objects import parse_uuid
from lab_results.service_layer.unit_of_work import AbstractUnitOfWork

FIXED_NOW = datetime(2026, 3, 14, 9, 30, tzinfo=timezone.utc)


class FixedClock(AbstractClock):
    """Deterministic clock; random numbers come from a list or a counter."""

    def __init__(self, now=FIXED_NOW, numbers=None):
        self.current = now
        self.numbers = list(numbers or [])
        self.counter = 0

    def now(self):
        return self.current

    def randint(self, low, high):
        if self.numbers:
            return self.numbers.pop(0)
        self.counter += 1
        return low + self.counter

    def advance(self, **kwargs):
        self.current += timedelta(**kwargs)


class FakeRepository(AbstractRepository):
    def __init__(self, samples=()):
        super().__init__()
        self._samples = {s.sample_id: replace(s, events=()) for s in samples}

    def _add(self, sample):
        if sample.sample_id in self._samples or self._get_by_code(sample.code.value):
            raise InfrastructureFailure(f"Duplicate sample {sample.code}")
        self._samples[sample.sample_id] = replace(sample, events=())

    def _update(self, sample):
        current = self._samples.get(sample.sample_id)
        if current is None or current.version_number != sample.version_number:
            raise ConcurrencyConflict(sample.sample_id, sample.version_number)
        stored = replace(sample, version_number=sample.version_number + 1)
        self._samples[sample.sample_id] = replace(stored, events=())
        return stored

    def _get(self, sample_id):
        return self._samples.get(parse_uuid(sample_id, "Sample id"))

    def _get_by_code(self, code):
        return next((s for s in self._samples.values() if s.code.value == code), None)

    def _get_by_patient(self, patient_id):
        return [s for s in self._samples.values() if s.patient_id.value == patient_id]

    def _get_pending_validation(self):
        return [s for s in self._samples.values() if s.status.value == "Completed"]


class FakeNotifications(AbstractNotifications):
    def __init__(self):
        self.results_ready = []
        self.abnormal_alerts = []

    def send_result_ready(self, patient_email, patient_name, sample_code):
        self.results_ready.append((patient_email, patient_name, sample_code))

    def send_abnormal_alert(self, doctor_email, sample_code, analysis_type):
        self.abnormal_alerts.append((doctor_email, sample_code, analysis_type))


class FakePublisher(AbstractEventPublisher):
    def __init__(self):
        self.published = []

    def publish(self, channel, event):
        self.published.append((channel, event))


class FakeUnitOfWork(AbstractUnitOfWork):
    def __init__(self):
        self.samples = FakeRepository()
        self.documents = TextReportGenerator(self.samples)
        self.notifications = FakeNotifications()
        self.cache = InMemoryCache()
        self.publisher = FakePublisher()
        self.clock = FixedClock()
        self.commit_count = 0

    def _commit(self):
        self.commit_count += 1

    def rollback(self):
        pass


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def uow():
    return FakeUnitOfWork()


@pytest.fixture
def patient_id() -> UUID:
    return uuid4()


@pytest.fixture
def doctor_id() -> UUID:
    return uuid4()


@pytest.fixture
def sqlite_session_factory():
    """Create SQLite in-memory database for fast testing."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    orm.create_tables(engine)

    yield sessionmaker(bind=engine)

    orm.metadata.drop_all(engine)
    engine.dispose()
