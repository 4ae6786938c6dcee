from __future__ import annotations

import logging
import threading
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import PersistenceError, ResourceNotFoundError
from app.models.timetable import Timetable

logger = logging.getLogger(__name__)

# Serialises activation within this process. Across processes the partial
# unique index on timetables.is_active rejects a second active row.
_activation_lock = threading.Lock()

UPDATABLE_FIELDS = ("name", "semester", "academic_year")


class TimetableRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def _commit(self, action: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Failed to %s timetable", action)
            raise PersistenceError(f"Failed to {action} timetable: {exc.__class__.__name__}") from exc

    def _deactivate_others(self, keep_id: str | None = None) -> None:
        statement = update(Timetable).where(Timetable.is_active.is_(True))
        if keep_id is not None:
            statement = statement.where(Timetable.id != keep_id)
        self.db.execute(
            statement
            .values(is_active=False)
            .execution_options(synchronize_session="fetch")
        )

    def save(self, record: Timetable) -> Timetable:
        with _activation_lock:
            try:
                # Others are cleared before the insert so the unique index never sees two.
                if record.is_active:
                    self._deactivate_others()
                self.db.add(record)
                self.db.flush()
            except SQLAlchemyError as exc:
                self.db.rollback()
                logger.exception("Failed to stage timetable %s", record.name)
                raise PersistenceError(f"Failed to save timetable: {exc.__class__.__name__}") from exc
            self._commit("save")
        self.db.refresh(record)
        logger.info("Saved timetable %s (active=%s)", record.id, record.is_active)
        return record

    def activate_exclusively(self, timetable_id: str) -> Timetable:
        with _activation_lock:
            record = self.get(timetable_id)
            try:
                self._deactivate_others(record.id)
                record.is_active = True
            except SQLAlchemyError as exc:
                self.db.rollback()
                raise PersistenceError(f"Failed to activate timetable: {exc.__class__.__name__}") from exc
            self._commit("activate")
        self.db.refresh(record)
        logger.info("Activated timetable %s", record.id)
        return record

    def get(self, timetable_id: str) -> Timetable:
        record = self.db.get(Timetable, timetable_id)
        if record is None:
            raise ResourceNotFoundError("Timetable", timetable_id)
        return record

    def get_active(self) -> Timetable | None:
        """The active record, or the most recently created one when none is active."""
        record = self.db.execute(
            select(Timetable).where(Timetable.is_active.is_(True)).order_by(Timetable.created_at.desc()).limit(1)
        ).scalar_one_or_none()
        if record is not None:
            return record
        return self.db.execute(
            select(Timetable).order_by(Timetable.created_at.desc()).limit(1)
        ).scalar_one_or_none()

    def list(self, is_active: bool | None = None) -> list[Timetable]:
        statement = select(Timetable).order_by(Timetable.created_at.desc())
        if is_active is not None:
            statement = statement.where(Timetable.is_active.is_(is_active))
        return list(self.db.execute(statement).scalars())

    def update(self, timetable_id: str, patch: dict[str, Any]) -> Timetable:
        record = self.get(timetable_id)
        for key in UPDATABLE_FIELDS:
            value = patch.get(key)
            if value:
                setattr(record, key, value)

        is_active = patch.get("is_active")
        if is_active is True:
            return self.activate_exclusively(timetable_id)
        if is_active is False:
            record.is_active = False
        self._commit("update")
        self.db.refresh(record)
        return record

    def delete(self, timetable_id: str) -> None:
        record = self.get(timetable_id)
        self.db.delete(record)
        self._commit("delete")
        logger.info("Deleted timetable %s", timetable_id)

    def count_active(self) -> int:
        return len(self.db.execute(select(Timetable.id).where(Timetable.is_active.is_(True))).scalars().all())
