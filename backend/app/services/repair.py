"""Referential repair of a compiled scheduling request.

Each policy is a plain function ``policy(request, notes)`` that mutates the
request in place, appends a note for every change it makes and raises
:class:`~app.core.exceptions.ValidationError` only when a whole category
would be left empty. Policies run in the order of ``REPAIR_POLICIES`` and
are idempotent, so a repaired request passes through unchanged.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field

from app.core.exceptions import ValidationError
from app.schemas.scheduling import SchedulingRequest
from app.services.slots import filter_valid_slots

logger = logging.getLogger(__name__)

STUDENT_ID_PATTERN = re.compile(r"^S\d{3,}")
DEFAULT_MAX_HOURS_PER_WEEK = 20

RepairPolicy = Callable[[SchedulingRequest, list[str]], None]


@dataclass
class RepairReport:
    request: SchedulingRequest
    changes: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.changes)


def _note(notes: list[str], message: str) -> None:
    logger.warning("Repair: %s", message)
    notes.append(message)


def _dedupe(values: list[str]) -> list[str]:
    return list(dict.fromkeys(values))


def repair_time_slots(request: SchedulingRequest, notes: list[str]) -> None:
    valid = filter_valid_slots(request.time_slots, context="time_slots")
    if valid != request.time_slots:
        _note(notes, f"time_slots reduced from {len(request.time_slots)} to {len(valid)} valid entries")
        request.time_slots = valid
    if not request.time_slots:
        raise ValidationError("time_slots")

    domain = set(request.time_slots)
    for item in request.faculty:
        kept = [slot for slot in filter_valid_slots(item.available_slots, context=item.faculty_id) if slot in domain]
        if not kept:
            kept = list(request.time_slots)
        if kept != item.available_slots:
            _note(notes, f"faculty {item.faculty_id} available_slots restricted to {len(kept)} valid slot(s)")
            item.available_slots = kept
    for room in request.rooms:
        kept = [slot for slot in filter_valid_slots(room.available_slots, context=room.room_id) if slot in domain]
        if not kept:
            kept = list(request.time_slots)
        if kept != room.available_slots:
            _note(notes, f"room {room.room_id} available_slots restricted to {len(kept)} valid slot(s)")
            room.available_slots = kept


def drop_groups_without_students(request: SchedulingRequest, notes: list[str]) -> None:
    kept_groups = []
    seen: set[str] = set()
    for group in request.student_groups:
        if group.group_id in seen:
            _note(notes, f"dropped duplicate student group {group.group_id}")
            continue
        valid_students = _dedupe([sid for sid in group.students if STUDENT_ID_PATTERN.match(sid)])
        if valid_students != group.students:
            _note(notes, f"group {group.group_id} kept {len(valid_students)} of {len(group.students)} student id(s)")
            group.students = valid_students
        if not group.students:
            _note(notes, f"dropped student group {group.group_id} with no valid students")
            continue
        seen.add(group.group_id)
        kept_groups.append(group)
    request.student_groups = kept_groups
    if not request.student_groups:
        raise ValidationError("student_groups")


def _normalize_courses(request: SchedulingRequest, notes: list[str]) -> None:
    kept = []
    seen: set[str] = set()
    for course in request.courses:
        code = course.course_code.strip().upper()
        if code != course.course_code:
            course.course_code = code
        if code in seen:
            _note(notes, f"dropped duplicate course {code}")
            continue
        seen.add(code)
        if course.components.theory < 1:
            _note(notes, f"course {code} theory hours raised to 1")
            course.components.theory = 1
        if course.components.lab is not None and course.components.lab < 1:
            _note(notes, f"course {code} lab component removed")
            course.components.lab = None
            course.lab_required = False
        kept.append(course)
    request.courses = kept


def default_major_choices(request: SchedulingRequest, notes: list[str]) -> None:
    _normalize_courses(request, notes)
    if not request.courses:
        raise ValidationError("courses")

    codes = [course.course_code for course in request.courses]
    known = set(codes)
    for group in request.student_groups:
        choices = group.course_choices
        for track in ("major", "minor", "skill"):
            current = getattr(choices, track)
            filtered = _dedupe([code.strip().upper() for code in current if code.strip().upper() in known])
            if filtered != current:
                _note(notes, f"group {group.group_id} {track} choices filtered to known courses")
                setattr(choices, track, filtered)
        if not choices.major:
            _note(notes, f"group {group.group_id} had no major choices; defaulted to all {len(codes)} course(s)")
            choices.major = list(codes)


def restrict_course_groups(request: SchedulingRequest, notes: list[str]) -> None:
    group_ids = [group.group_id for group in request.student_groups]
    valid = set(group_ids)
    for course in request.courses:
        kept = _dedupe([gid for gid in course.student_groups if gid in valid])
        kept += [
            group.group_id
            for group in request.student_groups
            if course.course_code in group.course_choices.major and group.group_id not in kept
        ]
        if not kept:
            kept = list(group_ids)
        if kept != course.student_groups:
            _note(notes, f"course {course.course_code} student_groups set to {kept}")
            course.student_groups = kept


def restrict_course_faculty(request: SchedulingRequest, notes: list[str]) -> None:
    faculty = []
    seen: set[str] = set()
    for item in request.faculty:
        if item.faculty_id in seen:
            _note(notes, f"dropped duplicate faculty {item.faculty_id}")
            continue
        seen.add(item.faculty_id)
        faculty.append(item)
    request.faculty = faculty
    if not request.faculty:
        raise ValidationError("faculty")

    faculty_ids = [item.faculty_id for item in request.faculty]
    for course in request.courses:
        kept = _dedupe([fid for fid in course.possible_faculty if fid in seen])
        if not kept:
            kept = list(faculty_ids)
        if kept != course.possible_faculty:
            _note(notes, f"course {course.course_code} possible_faculty set to {kept}")
            course.possible_faculty = kept


def restrict_faculty_expertise(request: SchedulingRequest, notes: list[str]) -> None:
    codes = [course.course_code for course in request.courses]
    known = set(codes)
    for item in request.faculty:
        kept = _dedupe([code.strip().upper() for code in item.expertise if code.strip().upper() in known])
        if not kept:
            kept = list(codes)
        if kept != item.expertise:
            _note(notes, f"faculty {item.faculty_id} expertise set to {kept}")
            item.expertise = kept
        if item.max_hours_per_week is None or item.max_hours_per_week < 1:
            _note(
                notes,
                f"faculty {item.faculty_id} max_hours_per_week defaulted to {DEFAULT_MAX_HOURS_PER_WEEK}",
            )
            item.max_hours_per_week = DEFAULT_MAX_HOURS_PER_WEEK


REPAIR_POLICIES: tuple[RepairPolicy, ...] = (
    repair_time_slots,
    drop_groups_without_students,
    default_major_choices,
    restrict_course_groups,
    restrict_course_faculty,
    restrict_faculty_expertise,
)


def repair_request(request: SchedulingRequest) -> RepairReport:
    repaired = request.model_copy(deep=True)
    notes: list[str] = []
    for policy in REPAIR_POLICIES:
        policy(repaired, notes)
    if notes:
        logger.info("Repaired scheduling request with %d change(s)", len(notes))
    return RepairReport(request=repaired, changes=notes)
