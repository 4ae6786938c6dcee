"""Wire models for the external scheduling engine.

These mirror the JSON the engine accepts on ``/api/generate`` and
``/api/validate`` and the shape it returns. They are deliberately
permissive: structural problems (wrong types, missing required keys) are
rejected here, while referential gaps are left for the repair policies.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CourseComponents(BaseModel):
    theory: int
    lab: int | None = None


class CourseSpec(BaseModel):
    model_config = ConfigDict(extra="allow")

    course_code: str = Field(min_length=1)
    name: str = ""
    credit_hours: int = Field(ge=1)
    course_track: str | None = None
    components: CourseComponents
    student_groups: list[str] = Field(default_factory=list)
    possible_faculty: list[str] = Field(default_factory=list)
    lab_required: bool = False

    @field_validator("course_code")
    @classmethod
    def normalize_code(cls, value: str) -> str:
        return value.strip().upper()


class FacultySpec(BaseModel):
    model_config = ConfigDict(extra="allow")

    faculty_id: str = Field(min_length=1)
    name: str = ""
    expertise: list[str] = Field(default_factory=list)
    available_slots: list[str] = Field(default_factory=list)
    max_hours_per_week: int | None = None


class RoomSpec(BaseModel):
    model_config = ConfigDict(extra="allow")

    room_id: str = Field(min_length=1)
    type: Literal["theory", "lab"]
    capacity: int = Field(ge=1)
    available_slots: list[str] = Field(default_factory=list)


class CourseChoices(BaseModel):
    major: list[str] = Field(default_factory=list)
    minor: list[str] = Field(default_factory=list)
    skill: list[str] = Field(default_factory=list)


class StudentGroupSpec(BaseModel):
    model_config = ConfigDict(extra="allow")

    group_id: str = Field(min_length=1)
    program: str | None = None
    semester: str | None = None
    students: list[str] = Field(default_factory=list)
    course_choices: CourseChoices = Field(default_factory=CourseChoices)

    @field_validator("semester", mode="before")
    @classmethod
    def coerce_semester(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        return value


class SchedulingRequest(BaseModel):
    time_slots: list[str] = Field(default_factory=list)
    time_limit: int = Field(default=10, ge=1)
    courses: list[CourseSpec] = Field(default_factory=list)
    faculty: list[FacultySpec] = Field(default_factory=list)
    rooms: list[RoomSpec] = Field(default_factory=list)
    student_groups: list[StudentGroupSpec] = Field(default_factory=list)

    def to_payload(self) -> dict:
        """JSON body for the engine; optional components are omitted, not nulled."""
        return self.model_dump(mode="json", exclude_none=True)


class SchedulingResult(BaseModel):
    model_config = ConfigDict(extra="allow")

    assignments: dict[str, Any] = Field(default_factory=dict)
    faculty_timetables: dict[str, Any] = Field(default_factory=dict)
    student_timetables: dict[str, Any] = Field(default_factory=dict)
    violations: list[Any] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("assignments", "faculty_timetables", "student_timetables", "metadata", mode="before")
    @classmethod
    def none_as_empty_mapping(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("violations", mode="before")
    @classmethod
    def none_as_empty_list(cls, value: Any) -> Any:
        return [] if value is None else value
