"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING, cast

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from deploywatch.adapters.sqlalchemy.mappings import notification_record_table
from deploywatch.domain.errors import ConflictError, FetchError, RecordExistsError
from deploywatch.domain.model import NotificationRecord

if TYPE_CHECKING:
    from sqlalchemy.engine import CursorResult
    from sqlalchemy.orm import Session

    from deploywatch.domain.model import Identity


class SqlAlchemyNotificationRecordRepository:
    """Notification records keyed by (namespace, name).

    The mapper's ``version_id_col`` makes every UPDATE conditional on the
    version that was read, so a concurrent writer surfaces as ``StaleDataError``.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, identity: Identity) -> NotificationRecord | None:
        try:
            return self.session.get(NotificationRecord, (identity.namespace, identity.name))
        except SQLAlchemyError as exc:
            raise FetchError(f"Unable to load notification record for {identity}") from exc

    def add(self, record: NotificationRecord) -> None:
        self.session.add(record)
        try:
            self.session.flush()
        except IntegrityError as exc:
            self.session.rollback()
            raise RecordExistsError(record.identity) from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise FetchError(f"Unable to create notification record for {record.identity}") from exc

    def update(self, record: NotificationRecord) -> None:
        try:
            if record not in self.session:
                self.session.merge(record)
            self.session.flush()
        except StaleDataError as exc:
            self.session.rollback()
            raise ConflictError(record.identity) from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise FetchError(f"Unable to update notification record for {record.identity}") from exc

    def remove(self, identity: Identity) -> bool:
        stmt = (
            delete(notification_record_table)
            .where(notification_record_table.c.namespace == identity.namespace)
            .where(notification_record_table.c.name == identity.name)
        )
        try:
            result = cast("CursorResult[object]", self.session.execute(stmt))
        except SQLAlchemyError as exc:
            raise FetchError(f"Unable to remove notification record for {identity}") from exc
        return result.rowcount > 0


if TYPE_CHECKING:
    from deploywatch.domain.ports.persistence import NotificationRecordRepository

    _session_stub = cast("Session", object())
    _repo_check: NotificationRecordRepository = SqlAlchemyNotificationRecordRepository(
        _session_stub
    )
