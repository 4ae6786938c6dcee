import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Index, JSON, String, text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Timetable(Base):
    __tablename__ = "timetables"
    __table_args__ = (
        # At most one active timetable, enforced by the database across workers.
        Index(
            "uq_timetables_single_active",
            "is_active",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active"),
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    semester: Mapped[str | None] = mapped_column(String(50), nullable=True)
    academic_year: Mapped[str | None] = mapped_column(String(20), nullable=True)
    input_data: Mapped[dict] = mapped_column(JSON, nullable=False)
    generated_data: Mapped[dict] = mapped_column(JSON, nullable=False)
    assignments: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    faculty_timetables: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    student_timetables: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    violations: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    # `metadata` is reserved on declarative classes.
    meta: Mapped[dict] = mapped_column("metadata", JSON, nullable=False, default=dict)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    created_by_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    # Application-side timestamp keeps sub-second ordering for "latest record" lookups.
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, onupdate=_utcnow)
