"""SQLAlchemy adapter package."""

from __future__ import annotations

from .mappings import create_all_tables, mapper_registry, notification_record_table, start_mappers
from .repositories import SqlAlchemyNotificationRecordRepository
from .unit_of_work import (
    SqlAlchemyNotificationUnitOfWork,
    StartupError,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyNotificationRecordRepository",
    "SqlAlchemyNotificationUnitOfWork",
    "StartupError",
    "create_all_tables",
    "mapper_registry",
    "notification_record_table",
    "shutdown",
    "start_mappers",
    "startup",
]
