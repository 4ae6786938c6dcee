from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


def _clean_label(value: str | None) -> str | None:
    if value is None:
        return None
    trimmed = value.strip()
    return trimmed or None


class TimetableLabels(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str | None = Field(default=None, max_length=200)
    semester: str | None = Field(default=None, max_length=50)
    academic_year: str | None = Field(
        default=None,
        max_length=20,
        validation_alias=AliasChoices("academic_year", "academicYear"),
    )

    @field_validator("name", "semester", "academic_year")
    @classmethod
    def normalize_label(cls, value: str | None) -> str | None:
        return _clean_label(value)


class AutoGenerateRequest(TimetableLabels):
    time_limit: int | None = Field(
        default=None,
        ge=1,
        le=3600,
        validation_alias=AliasChoices("time_limit", "timeLimit"),
    )


class GenerateFromInputRequest(TimetableLabels):
    # Parsed into a SchedulingRequest by the orchestrator so that structural
    # problems surface as client-input errors with field paths.
    input_data: dict[str, Any] = Field(validation_alias=AliasChoices("input_data", "inputData"))


class ValidateInputRequest(BaseModel):
    input_data: dict[str, Any] = Field(validation_alias=AliasChoices("input_data", "inputData"))


class TimetableUpdate(TimetableLabels):
    is_active: bool | None = Field(default=None, validation_alias=AliasChoices("is_active", "isActive"))


class TimetableSummary(BaseModel):
    id: str
    name: str
    semester: str | None = None
    academic_year: str | None = None
    is_active: bool
    created_by_id: str | None = None
    created_at: datetime
    updated_at: datetime | None = None
    metadata: dict[str, Any] = Field(default_factory=dict, validation_alias=AliasChoices("meta", "metadata"))

    model_config = {"from_attributes": True}


class TimetableOut(TimetableSummary):
    input_data: dict[str, Any] = Field(default_factory=dict)
    generated_data: dict[str, Any] = Field(default_factory=dict)
    assignments: dict[str, Any] = Field(default_factory=dict)
    faculty_timetables: dict[str, Any] = Field(default_factory=dict)
    student_timetables: dict[str, Any] = Field(default_factory=dict)
    violations: list[Any] = Field(default_factory=list)


class UserTimetableOut(BaseModel):
    user_id: str
    role: str
    timetable: TimetableSummary
    schedule: Any | None = None
