from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from app.models.activity_log import ActivityLog
from app.models.timetable import Timetable
from app.models.user import User

logger = logging.getLogger(__name__)


def log_activity(
    db: Session,
    *,
    actor: User | None,
    action: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    details: dict | None = None,
) -> ActivityLog:
    """Stage an activity row; it is written by the caller's next commit."""
    entry = ActivityLog(
        user_id=actor.id if actor is not None else None,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details or {},
    )
    db.add(entry)
    logger.info("Activity %s by %s on %s %s", action, actor.id if actor else "system", entity_type, entity_id)
    return entry


def log_timetable_activity(db: Session, *, actor: User | None, action: str, record: Timetable, **details) -> ActivityLog:
    return log_activity(
        db,
        actor=actor,
        action=f"timetable.{action}",
        entity_type="timetable",
        entity_id=record.id,
        details={"name": record.name, **details},
    )
