"""Domain port definitions for adapters."""

from __future__ import annotations

from .notifying import Notifier
from .persistence import NotificationRecordRepository
from .resources import WorkloadReader
from .unit_of_work import (
    NotificationRepositories,
    NotificationUnitOfWork,
    RepositoryCollection,
    UnitOfWork,
)

__all__ = [
    "NotificationRecordRepository",
    "NotificationRepositories",
    "NotificationUnitOfWork",
    "Notifier",
    "RepositoryCollection",
    "UnitOfWork",
    "WorkloadReader",
]
