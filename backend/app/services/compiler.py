from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from app.schemas.scheduling import (
    CourseChoices,
    CourseComponents,
    CourseSpec,
    FacultySpec,
    RoomSpec,
    SchedulingRequest,
    StudentGroupSpec,
)
from app.services.identifiers import IdentifierMapper
from app.services.roster import CourseRecord, Roster, StudentRecord, TeacherRecord
from app.services.slots import build_slot_domain, filter_valid_slots

logger = logging.getLogger(__name__)

DEFAULT_PROGRAM = "General"
DEFAULT_SEMESTER = "1"
THEORY_ROOM_ID = "R101"
LAB_ROOM_ID = "LAB1"


@dataclass
class CompiledRequest:
    request: SchedulingRequest
    identifiers: IdentifierMapper


@dataclass
class _GroupDraft:
    group_id: str
    program: str
    semester: str
    members: list[StudentRecord]
    student_ids: list[str]


def split_components(credit_hours: int) -> tuple[CourseComponents, bool]:
    """Theory/lab split: anything above three credits carries a one-hour lab."""
    if credit_hours > 3:
        return CourseComponents(theory=credit_hours - 1, lab=1), True
    return CourseComponents(theory=max(1, credit_hours)), False


def _term_matches(term: str, course_code: str) -> bool:
    needle = term.strip().lower()
    code = course_code.lower()
    if not needle:
        return False
    return needle in code or code in needle


def match_course_codes(terms: Iterable[str], course_codes: Sequence[str]) -> list[str]:
    """Course codes related to any term by case-insensitive containment either way."""
    terms = [term for term in terms if term and term.strip()]
    return [code for code in course_codes if any(_term_matches(term, code) for term in terms)]


def resolve_expertise(teacher: TeacherRecord, course_codes: Sequence[str]) -> list[str]:
    matched = match_course_codes(teacher.interests, course_codes)
    if matched:
        return matched
    if teacher.department:
        matched = match_course_codes([teacher.department], course_codes)
        if matched:
            return matched
    return list(course_codes)


class RequestCompiler:
    def __init__(
        self,
        *,
        default_time_limit: int = 10,
        default_max_hours: int = 20,
        default_credit_hours: int = 3,
        default_max_courses: int = 5,
        default_class_capacity: int = 60,
        default_lab_capacity: int = 32,
    ) -> None:
        self.default_time_limit = default_time_limit
        self.default_max_hours = default_max_hours
        self.default_credit_hours = default_credit_hours
        self.default_max_courses = default_max_courses
        self.default_class_capacity = default_class_capacity
        self.default_lab_capacity = default_lab_capacity

    @classmethod
    def from_settings(cls, settings) -> "RequestCompiler":
        return cls(
            default_time_limit=settings.default_time_limit_seconds,
            default_max_hours=settings.default_max_hours_per_week,
            default_credit_hours=settings.default_credit_hours,
            default_max_courses=settings.default_max_courses,
            default_class_capacity=settings.default_class_capacity,
            default_lab_capacity=settings.default_lab_capacity,
        )

    def compile(self, roster: Roster, *, time_limit: int | None = None) -> CompiledRequest:
        mapper = IdentifierMapper()
        time_slots = build_slot_domain(
            [student.availability for student in roster.students]
            + [teacher.availability for teacher in roster.teachers]
        )

        courses = self._unique_courses(roster.courses)
        course_codes = [code for code, _ in courses]

        mapper.assign_students(student.id for student in roster.students)
        faculty = self._build_faculty(roster.teachers, course_codes, time_slots, mapper)
        groups = [self._group_spec(group, course_codes) for group in self._build_groups(roster.students, mapper)]

        request = SchedulingRequest(
            time_slots=time_slots,
            time_limit=time_limit if time_limit and time_limit > 0 else self.default_time_limit,
            courses=[self._build_course(code, record, groups, faculty) for code, record in courses],
            faculty=faculty,
            rooms=self._build_rooms(roster, time_slots),
            student_groups=groups,
        )
        logger.info(
            "Compiled scheduling request: %d slots, %d courses, %d faculty, %d groups (%d students)",
            len(request.time_slots),
            len(request.courses),
            len(request.faculty),
            len(request.student_groups),
            len(roster.students),
        )
        return CompiledRequest(request=request, identifiers=mapper)

    def _credit_hours(self, course: CourseRecord) -> int:
        if course.credits is None or course.credits <= 0:
            return self.default_credit_hours
        return int(course.credits)

    def _unique_courses(self, courses: Iterable[CourseRecord]) -> list[tuple[str, CourseRecord]]:
        unique: list[tuple[str, CourseRecord]] = []
        seen: set[str] = set()
        for course in courses:
            code = (course.code or "").strip().upper()
            if not code or code in seen:
                continue
            seen.add(code)
            unique.append((code, course))
        return unique

    def _build_faculty(
        self,
        teachers: Iterable[TeacherRecord],
        course_codes: Sequence[str],
        time_slots: list[str],
        mapper: IdentifierMapper,
    ) -> list[FacultySpec]:
        domain = set(time_slots)
        faculty: list[FacultySpec] = []
        for teacher in teachers:
            available = [slot for slot in filter_valid_slots(teacher.availability) if slot in domain]
            hours = teacher.working_hours if teacher.working_hours and teacher.working_hours > 0 else None
            faculty.append(
                FacultySpec(
                    faculty_id=mapper.faculty_id(teacher.id),
                    name=teacher.name,
                    expertise=resolve_expertise(teacher, course_codes),
                    available_slots=available or list(time_slots),
                    max_hours_per_week=hours or self.default_max_hours,
                )
            )
        return faculty

    def _build_groups(self, students: Iterable[StudentRecord], mapper: IdentifierMapper) -> list[_GroupDraft]:
        drafts: dict[tuple[str, str], _GroupDraft] = {}
        for student in students:
            program = student.program or DEFAULT_PROGRAM
            semester = student.semester or DEFAULT_SEMESTER
            key = (program, semester)
            draft = drafts.get(key)
            if draft is None:
                draft = _GroupDraft(
                    group_id=mapper.group_id(f"{program}|{semester}"),
                    program=program,
                    semester=semester,
                    members=[],
                    student_ids=[],
                )
                drafts[key] = draft
            draft.members.append(student)
            draft.student_ids.append(mapper.student_id(student.id))
        return list(drafts.values())

    def _group_spec(self, group: _GroupDraft, course_codes: Sequence[str]) -> StudentGroupSpec:
        known = set(course_codes)
        declared = [code for member in group.members for code in member.course_preferences]
        if declared:
            major = list(dict.fromkeys(code for code in declared if code in known))
        else:
            limits = [member.max_courses for member in group.members if member.max_courses and member.max_courses > 0]
            major = list(course_codes[: max(limits) if limits else self.default_max_courses])
        return StudentGroupSpec(
            group_id=group.group_id,
            program=group.program,
            semester=group.semester,
            students=list(group.student_ids),
            course_choices=CourseChoices(major=major, minor=[], skill=[]),
        )

    def _build_course(
        self,
        code: str,
        record: CourseRecord,
        groups: Sequence[StudentGroupSpec],
        faculty: Sequence[FacultySpec],
    ) -> CourseSpec:
        credit_hours = self._credit_hours(record)
        components, lab_required = split_components(credit_hours)

        # A group takes every course in its major, declared or defaulted.
        interested = [group.group_id for group in groups if code in group.course_choices.major]
        teaching = [item.faculty_id for item in faculty if code in item.expertise]

        return CourseSpec(
            course_code=code,
            name=record.name,
            credit_hours=credit_hours,
            course_track="Major",
            components=components,
            student_groups=interested or [group.group_id for group in groups],
            possible_faculty=teaching or [item.faculty_id for item in faculty],
            lab_required=lab_required,
        )

    def _build_rooms(self, roster: Roster, time_slots: list[str]) -> list[RoomSpec]:
        class_capacity = roster.class_capacity if roster.class_capacity and roster.class_capacity > 0 else None
        lab_capacity = roster.lab_capacity if roster.lab_capacity and roster.lab_capacity > 0 else None
        return [
            RoomSpec(
                room_id=THEORY_ROOM_ID,
                type="theory",
                capacity=class_capacity or self.default_class_capacity,
                available_slots=list(time_slots),
            ),
            RoomSpec(
                room_id=LAB_ROOM_ID,
                type="lab",
                capacity=lab_capacity or self.default_lab_capacity,
                available_slots=list(time_slots),
            ),
        ]
