from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.course import Course
from app.models.user import User, UserRole


@dataclass(frozen=True)
class StudentRecord:
    id: str
    name: str
    email: str
    program: str | None = None
    semester: str | None = None
    availability: tuple[str, ...] = ()
    course_preferences: tuple[str, ...] = ()
    max_courses: int | None = None


@dataclass(frozen=True)
class TeacherRecord:
    id: str
    name: str
    email: str
    department: str | None = None
    availability: tuple[str, ...] = ()
    interests: tuple[str, ...] = ()
    working_hours: int | None = None


@dataclass(frozen=True)
class CourseRecord:
    id: str
    code: str
    name: str
    credits: int | None = None


@dataclass
class Roster:
    students: list[StudentRecord] = field(default_factory=list)
    teachers: list[TeacherRecord] = field(default_factory=list)
    courses: list[CourseRecord] = field(default_factory=list)
    class_capacity: int | None = None
    lab_capacity: int | None = None

    def empty_categories(self) -> list[str]:
        return [
            name
            for name, items in (("students", self.students), ("teachers", self.teachers), ("courses", self.courses))
            if not items
        ]


def preference_codes(raw_preferences: list | None) -> tuple[str, ...]:
    """Course codes from stored preferences, which use either ``courseCode`` or ``course_code``."""
    codes: list[str] = []
    for item in raw_preferences or []:
        if isinstance(item, str):
            value = item
        elif isinstance(item, dict):
            value = item.get("courseCode") or item.get("course_code") or ""
        else:
            continue
        normalized = str(value).strip().upper()
        if normalized and normalized not in codes:
            codes.append(normalized)
    return tuple(codes)


def _strings(values: list | None) -> tuple[str, ...]:
    return tuple(str(item).strip() for item in values or [] if str(item).strip())


def student_record(user: User) -> StudentRecord:
    return StudentRecord(
        id=user.id,
        name=user.name,
        email=user.email,
        program=(user.program or "").strip() or None,
        semester=(user.semester or "").strip() or None,
        availability=_strings(user.availability),
        course_preferences=preference_codes(user.course_preferences),
        max_courses=user.max_courses,
    )


def teacher_record(user: User) -> TeacherRecord:
    return TeacherRecord(
        id=user.id,
        name=user.name,
        email=user.email,
        department=(user.department or "").strip() or None,
        availability=_strings(user.availability),
        interests=_strings(user.interests),
        working_hours=user.working_hours,
    )


def _active_users(db: Session, role: UserRole) -> list[User]:
    statement = (
        select(User)
        .where(User.role == role, User.is_active.is_(True))
        .order_by(User.created_at.asc(), User.id.asc())
    )
    return list(db.execute(statement).scalars())


def load_roster(db: Session, admin: User | None = None) -> Roster:
    courses = db.execute(
        select(Course).where(Course.is_active.is_(True)).order_by(Course.created_at.asc(), Course.code.asc())
    ).scalars()
    return Roster(
        students=[student_record(item) for item in _active_users(db, UserRole.student)],
        teachers=[teacher_record(item) for item in _active_users(db, UserRole.teacher)],
        courses=[CourseRecord(id=item.id, code=item.code, name=item.name, credits=item.credits) for item in courses],
        class_capacity=admin.class_capacity if admin is not None else None,
        lab_capacity=admin.lab_capacity if admin is not None else None,
    )
