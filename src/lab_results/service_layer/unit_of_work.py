# pylint: disable=attribute-defined-outside-init
from __future__ import annotations
import abc
import logging

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.session import Session

import config
from lab_results.adapters import cache, documents, notifications, redis_adapter, repository
from lab_results.domain.clock import AbstractClock, SystemClock
from lab_results.domain.exceptions import InfrastructureFailure

logger = logging.getLogger(__name__)


class AbstractUnitOfWork(abc.ABC):
    samples: repository.AbstractRepository
    documents: documents.AbstractDocumentGenerator
    notifications: notifications.AbstractNotifications
    cache: cache.AbstractCache
    publisher: redis_adapter.AbstractEventPublisher
    clock: AbstractClock

    committed = False

    def __enter__(self) -> AbstractUnitOfWork:
        self.committed = False
        return self

    def __exit__(self, *args):
        self.rollback()

    def commit(self):
        self._commit()
        self.committed = True

    def collect_new_events(self):
        # Events of an uncommitted transaction stay on their samples
        if not self.committed:
            return
        for sample_id, sample in list(self.samples.seen.items()):
            drained, events = sample.drain_events()
            self.samples.seen[sample_id] = drained
            yield from events

    @abc.abstractmethod
    def _commit(self):
        raise NotImplementedError

    @abc.abstractmethod
    def rollback(self):
        raise NotImplementedError


DEFAULT_SESSION_FACTORY = sessionmaker(
    bind=create_engine(
        config.get_postgres_uri(),
        isolation_level="REPEATABLE READ",
    )
)


class SqlAlchemyUnitOfWork(AbstractUnitOfWork):
    def __init__(
        self,
        session_factory=DEFAULT_SESSION_FACTORY,
        notifications_impl=None,
        cache_impl=None,
        publisher_impl=None,
        clock=None,
    ):
        self.session_factory = session_factory
        self.notifications = notifications_impl or notifications.LoggingNotifications()
        self.cache = cache_impl or cache.RedisCache(redis_adapter.r, config.get_cache_ttl_seconds())
        self.publisher = publisher_impl or redis_adapter.RedisEventPublisher(redis_adapter.r)
        self.clock = clock or SystemClock()

    def __enter__(self):
        self.session = self.session_factory()  # type: Session
        self.samples = repository.SqlAlchemyRepository(self.session)
        self.documents = documents.TextReportGenerator(self.samples)
        return super().__enter__()

    def __exit__(self, *args):
        super().__exit__(*args)
        self.session.close()

    def _commit(self):
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Commit failed: {e}")
            raise InfrastructureFailure("Could not commit lab results transaction") from e

    def rollback(self):
        self.session.rollback()
