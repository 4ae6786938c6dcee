"""Translate solver output back into per-user schedule views.

Engine responses are not keyed consistently: depending on how a record was
produced, a student's or teacher's timetable may sit under the synthetic id
sent to the engine, the internal user id, the e-mail address, or the display
name. Lookups therefore try an ordered list of candidate keys. This is a
compatibility shim for that output, not a general-purpose matcher.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from app.models.timetable import Timetable
from app.models.user import User, UserRole
from app.services.identifiers import IdentifierMapper

OWNER_FIELDS = ("student_id", "faculty_id")


def rekey_timetables(timetables: Mapping[str, Any] | None, identifiers: IdentifierMapper) -> dict[str, Any]:
    """Re-key a ``{synthetic id: slots}`` map by internal id; unknown keys pass through."""
    rekeyed: dict[str, Any] = {}
    for key, value in (timetables or {}).items():
        internal = identifiers.internal_id(key)
        rekeyed[internal or key] = value
    return rekeyed


def candidate_keys(user: User, identifiers: IdentifierMapper | None = None) -> list[str]:
    candidates: list[str] = []
    if identifiers is not None:
        space = identifiers.faculty if user.role == UserRole.teacher else identifiers.students
        synthetic = space.synthetic(user.id)
        if synthetic:
            candidates.append(synthetic)
    for value in (user.id, user.email, user.name):
        if value and value not in candidates:
            candidates.append(value)
    return candidates


def lookup(timetables: Mapping[str, Any] | None, candidates: Iterable[str]) -> Any | None:
    if not timetables:
        return None
    candidates = list(candidates)
    for key in candidates:
        value = timetables.get(key)
        if value is not None:
            return value
    wanted = set(candidates)
    for value in timetables.values():
        if not isinstance(value, Mapping):
            continue
        owners = [value.get(field) for field in OWNER_FIELDS]
        if any(isinstance(owner, str) and owner in wanted for owner in owners):
            return value
    return None


def find_user_timetable(record: Timetable, user: User) -> Any | None:
    if user.role == UserRole.student:
        reconciled, raw_key = record.student_timetables, "student_timetables"
    elif user.role == UserRole.teacher:
        reconciled, raw_key = record.faculty_timetables, "faculty_timetables"
    else:
        return None

    identifiers = IdentifierMapper.from_dict((record.meta or {}).get("identifiers"))
    candidates = candidate_keys(user, identifiers)
    found = lookup(reconciled, candidates)
    if found is not None:
        return found
    return lookup((record.generated_data or {}).get(raw_key), candidates)
