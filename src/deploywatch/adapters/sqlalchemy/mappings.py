"""SQLAlchemy mapping metadata for notification records."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from functools import cache
from typing import TYPE_CHECKING

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Dialect,
    Enum,
    Integer,
    String,
    Table,
    Text,
    TypeDecorator,
    orm,
)
from sqlalchemy.orm import configure_mappers

from deploywatch.domain.model import NotificationRecord, TransitionKind

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

# Kubernetes limits namespaces and object names to 253 characters.
_NAME_LENGTH = 253


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

notification_record_table = Table(
    "notification_record",
    mapper_registry.metadata,
    Column("namespace", String(_NAME_LENGTH), primary_key=True),
    Column("name", String(_NAME_LENGTH), primary_key=True),
    Column("message", Text, nullable=False),
    Column("spec_generation", Integer, nullable=False),
    Column("spec", JSON, nullable=False),
    Column("ready_generation", Integer, nullable=True),
    Column(
        "pending",
        Enum(
            TransitionKind,
            native_enum=False,
            length=16,
            values_callable=lambda kinds: [kind.value for kind in kinds],
        ),
        nullable=True,
    ),
    Column("updated_at", UTCDateTime(), nullable=False),
    Column("deleted_at", UTCDateTime(), nullable=True),
    Column("version", Integer, nullable=False),
)


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain model."""

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(
        NotificationRecord,
        notification_record_table,
        version_id_col=notification_record_table.c.version,
    )

    configure_mappers()
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the mapped metadata."""

    log.info("Creating all tables")
    mapper_registry.metadata.create_all(engine)
