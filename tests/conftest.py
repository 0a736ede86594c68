from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002
from sqlalchemy.orm import Session, sessionmaker

from venuecal.adapters.sqlalchemy import SqlAlchemyEventStore
from venuecal.adapters.sqlalchemy.migrations import upgrade_head
from venuecal.resilience import ExecutorConfig, ResilientExecutor
from tests.support.fakes import InMemoryEventStore, RecordingSleep

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    upgrade_head(engine=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_session_factory(sqlite_engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=sqlite_engine, expire_on_commit=False)


@pytest.fixture
def sqlite_store(sqlite_session_factory: sessionmaker[Session]) -> SqlAlchemyEventStore:
    return SqlAlchemyEventStore(sqlite_session_factory)


@pytest.fixture
def memory_store() -> InMemoryEventStore:
    return InMemoryEventStore()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def executor(recording_sleep: RecordingSleep) -> ResilientExecutor:
    return ResilientExecutor(
        ExecutorConfig(max_retries=3, base_delay_ms=10, circuit_breaker_threshold=50),
        sleep=recording_sleep,
    )
