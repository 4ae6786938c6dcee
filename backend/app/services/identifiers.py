from __future__ import annotations

from collections.abc import Iterable

FACULTY_PREFIX = "F"
STUDENT_PREFIX = "S"
GROUP_PREFIX = "G"


class IdentifierSpace:
    """One-prefix bijection between internal ids and ``<prefix>###`` ids."""

    def __init__(self, prefix: str) -> None:
        self.prefix = prefix
        self._forward: dict[str, str] = {}
        self._reverse: dict[str, str] = {}

    def assign(self, internal_id: str) -> str:
        key = str(internal_id)
        existing = self._forward.get(key)
        if existing is not None:
            return existing
        synthetic = f"{self.prefix}{len(self._forward) + 1:03d}"
        self._forward[key] = synthetic
        self._reverse[synthetic] = key
        return synthetic

    def synthetic(self, internal_id: str) -> str | None:
        return self._forward.get(str(internal_id))

    def internal(self, synthetic_id: str) -> str | None:
        return self._reverse.get(synthetic_id)

    def as_dict(self) -> dict[str, str]:
        return dict(self._reverse)

    def __len__(self) -> int:
        return len(self._forward)


class IdentifierMapper:
    """Request-scoped id translation between the roster and the engine vocabulary.

    A fresh mapper is built for every compile; ids follow roster insertion
    order, so they are stable within one call only. The mapping is persisted
    with the generated record so results can be translated back later.
    """

    def __init__(self) -> None:
        self.faculty = IdentifierSpace(FACULTY_PREFIX)
        self.students = IdentifierSpace(STUDENT_PREFIX)
        self.groups = IdentifierSpace(GROUP_PREFIX)

    def faculty_id(self, teacher_id: str) -> str:
        return self.faculty.assign(teacher_id)

    def student_id(self, student_id: str) -> str:
        return self.students.assign(student_id)

    def group_id(self, group_key: str) -> str:
        return self.groups.assign(group_key)

    def assign_faculty(self, teacher_ids: Iterable[str]) -> list[str]:
        return [self.faculty_id(item) for item in teacher_ids]

    def assign_students(self, student_ids: Iterable[str]) -> list[str]:
        return [self.student_id(item) for item in student_ids]

    def internal_id(self, synthetic_id: str) -> str | None:
        if synthetic_id.startswith(FACULTY_PREFIX):
            return self.faculty.internal(synthetic_id)
        if synthetic_id.startswith(STUDENT_PREFIX):
            return self.students.internal(synthetic_id)
        return None

    def to_dict(self) -> dict[str, dict[str, str]]:
        return {"faculty": self.faculty.as_dict(), "students": self.students.as_dict()}

    @classmethod
    def from_dict(cls, data: dict | None) -> "IdentifierMapper":
        mapper = cls()
        data = data or {}
        for space, key in ((mapper.faculty, "faculty"), (mapper.students, "students")):
            entries = data.get(key) or {}
            # Replay in synthetic order so numbering matches the original compile.
            for synthetic_id in sorted(entries, key=lambda item: (len(item), item)):
                space.assign(entries[synthetic_id])
        return mapper
