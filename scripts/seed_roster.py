"""Seed a small demo roster that the timetable generator can run against.

Run:
  PYTHONPATH=backend python scripts/seed_roster.py
"""

from __future__ import annotations

import os

from sqlalchemy import func, select

from app.core.security import get_password_hash
from app.db.bootstrap import ensure_runtime_schema_compatibility
from app.db.session import SessionLocal
from app.models.course import Course
from app.models.user import User, UserRole

DEFAULT_PASSWORD = os.getenv("SEED_DEFAULT_PASSWORD", "Timetable123!")
RESET_PASSWORDS = os.getenv("SEED_RESET_PASSWORDS", "true").strip().lower() in {"1", "true", "yes", "on"}
EMAIL_DOMAIN = os.getenv("SEED_EMAIL_DOMAIN", "university.edu").strip().lower() or "university.edu"

ADMIN_PROFILE = {
    "name": "Timetable Office",
    "email": f"admin@{EMAIL_DOMAIN}",
    "department": "Administration",
    "class_capacity": 60,
    "lab_capacity": 30,
}

TEACHER_PROFILES = [
    {
        "name": "Dr. Meera Iyer",
        "department": "CSE",
        "interests": ["CS201", "CS202"],
        "availability": ["Mon_09", "Mon_10", "Tue_09", "Tue_10", "Wed_11", "Thu_14"],
        "working_hours": 16,
    },
    {
        "name": "Dr. Arjun Nair",
        "department": "MAT",
        "interests": ["MA201"],
        "availability": ["Mon_11", "Tue_11", "Wed_09", "Wed_10", "Fri_09"],
        "working_hours": 14,
    },
    {
        "name": "Prof. Kavya Menon",
        "department": "HSS",
        "interests": ["HS201"],
        "availability": ["Thu_09", "Thu_10", "Fri_10", "Fri_11"],
        "working_hours": 12,
    },
]

COURSES = [
    ("CS201", "Data Structures", 4),
    ("CS202", "Digital Systems", 3),
    ("MA201", "Discrete Mathematics", 4),
    ("HS201", "Technical Communication", 2),
]

STUDENT_NAMES = ["Aditi Sharma", "Rahul Verma", "Sneha Pillai", "Vikram Das", "Nisha Kurian", "Farhan Ali"]


def email_for(name: str) -> str:
    local = ".".join(part for part in name.lower().replace("dr.", "").replace("prof.", "").split() if part)
    return f"{local}@{EMAIL_DOMAIN}"


def upsert_user(session, *, name: str, email: str, role: UserRole, **fields) -> User:
    normalized_email = email.strip().lower()
    existing = session.execute(
        select(User).where(func.lower(User.email) == normalized_email)
    ).scalar_one_or_none()

    hashed_password = get_password_hash(DEFAULT_PASSWORD)
    if existing is None:
        existing = User(
            name=name,
            email=normalized_email,
            hashed_password=hashed_password,
            role=role,
            is_active=True,
        )
        session.add(existing)
    elif RESET_PASSWORDS:
        existing.hashed_password = hashed_password
    existing.name = name
    existing.role = role
    existing.is_active = True
    for key, value in fields.items():
        setattr(existing, key, value)
    session.flush()
    return existing


def upsert_courses(session) -> None:
    for code, name, credits in COURSES:
        course = session.execute(select(Course).where(Course.code == code)).scalar_one_or_none()
        if course is None:
            course = Course(code=code, name=name)
            session.add(course)
        course.name = name
        course.credits = credits
        course.is_active = True
    session.flush()


def seed_people(session) -> None:
    upsert_user(session, role=UserRole.admin, **ADMIN_PROFILE)
    for profile in TEACHER_PROFILES:
        upsert_user(session, email=email_for(profile["name"]), role=UserRole.teacher, **profile)
    for index, name in enumerate(STUDENT_NAMES):
        preferences = [{"course_code": code, "priority": 3} for code, _, _ in COURSES]
        upsert_user(
            session,
            name=name,
            email=email_for(name),
            role=UserRole.student,
            department="CSE",
            program="B.Tech CSE",
            semester="3",
            course_preferences=preferences,
            max_courses=4 if index % 2 == 0 else 3,
        )


def count_by_role(session) -> dict[str, int]:
    rows = session.execute(
        select(User.role, func.count(User.id)).group_by(User.role)
    ).all()
    return {role.value: int(count) for role, count in rows}


def main() -> None:
    ensure_runtime_schema_compatibility()
    with SessionLocal() as session:
        upsert_courses(session)
        seed_people(session)
        session.commit()

        role_counts = count_by_role(session)
        course_count = session.execute(select(func.count(Course.id))).scalar_one()

    print("Roster seeded successfully.")
    print(f"Course records: {course_count}")
    print(f"User counts by role: {role_counts}")
    print("")
    print("Login credentials for seeded users (all use same password):")
    print(f"  Password: {DEFAULT_PASSWORD}")
    print(f"  Admin:   {ADMIN_PROFILE['email']}")
    print(f"  Teacher: {email_for(TEACHER_PROFILES[0]['name'])}")
    print(f"  Student: {email_for(STUDENT_NAMES[0])}")


if __name__ == "__main__":
    main()
