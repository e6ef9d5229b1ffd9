from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002

from deploywatch.adapters.sqlalchemy import start_mappers
from deploywatch.adapters.sqlalchemy.mappings import create_all_tables
from deploywatch.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyNotificationUnitOfWork,
    shutdown,
    startup,
)
from deploywatch.domain.dedup import DedupCache
from deploywatch.domain.reconciler import RecordReconciler
from tests.helpers.workloads import (
    FakeNotifier,
    FakeUnitOfWork,
    FakeWorkloadReader,
    InMemoryRecordRepository,
)

os.environ.setdefault("DEPLOYWATCH_DATABASE_URI", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("DEPLOYWATCH_WEBHOOK_URL", "http://notifications.test/hook")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from pathlib import Path


@pytest.fixture
def sqlite_engine(tmp_path: Path) -> Iterator[Engine]:
    # A file database so that separate sessions see each other's commits.
    engine = create_engine(f"sqlite+pysqlite:///{tmp_path / 'records.db'}", future=True)
    start_mappers()
    create_all_tables(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_unit_of_work(
    sqlite_engine: Engine,
) -> Iterator[Callable[[], SqlAlchemyNotificationUnitOfWork]]:
    startup(engine=sqlite_engine, force=True)

    def factory() -> SqlAlchemyNotificationUnitOfWork:
        return SqlAlchemyNotificationUnitOfWork()

    try:
        yield factory
    finally:
        shutdown()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def reader() -> FakeWorkloadReader:
    return FakeWorkloadReader()


@pytest.fixture
def records() -> InMemoryRecordRepository:
    return InMemoryRecordRepository()


@pytest.fixture
def dedup() -> DedupCache:
    return DedupCache()


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def reconciler(
    reader: FakeWorkloadReader,
    notifier: FakeNotifier,
    records: InMemoryRecordRepository,
    dedup: DedupCache,
    sleeps: list[float],
) -> RecordReconciler:
    return RecordReconciler(
        reader=reader,
        notifier=notifier,
        unit_of_work_factory=lambda: FakeUnitOfWork(records),
        dedup=dedup,
        sleep=sleeps.append,
    )
