from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.models.user import UserRole


class CoursePreference(BaseModel):
    course_code: str = Field(min_length=1, max_length=50)
    priority: int = Field(default=3, ge=1, le=5)

    @field_validator("course_code")
    @classmethod
    def normalize_code(cls, value: str) -> str:
        return value.strip().upper()


class UserBase(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    email: EmailStr
    role: UserRole
    department: str | None = None
    program: str | None = Field(default=None, max_length=200)
    semester: str | None = Field(default=None, max_length=20)

    @field_validator("name")
    @classmethod
    def normalize_name(cls, value: str) -> str:
        trimmed = value.strip()
        if not trimmed:
            raise ValueError("Name cannot be empty")
        return trimmed

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("department", "program", "semester", mode="before")
    @classmethod
    def normalize_optional_text(cls, value):
        if value is None:
            return None
        trimmed = str(value).strip()
        return trimmed or None


class UserCreate(UserBase):
    password: str = Field(min_length=8, max_length=128)
    availability: list[str] = Field(default_factory=list, max_length=200)
    interests: list[str] = Field(default_factory=list, max_length=100)
    preferred_time_slots: list[str] = Field(default_factory=list, max_length=200)
    course_preferences: list[CoursePreference] = Field(default_factory=list, max_length=50)
    max_courses: int | None = Field(default=None, ge=1, le=20)
    working_hours: int | None = Field(default=None, ge=1, le=80)
    class_capacity: int | None = Field(default=None, ge=1, le=1000)
    lab_capacity: int | None = Field(default=None, ge=1, le=1000)

    @field_validator("availability", "interests", "preferred_time_slots")
    @classmethod
    def strip_entries(cls, value: list[str]) -> list[str]:
        return [item.strip() for item in value if item.strip()]


class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    role: UserRole | None = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class UserOut(UserBase):
    id: str
    is_active: bool
    availability: list[str] = Field(default_factory=list)
    interests: list[str] = Field(default_factory=list)
    preferred_time_slots: list[str] = Field(default_factory=list)
    max_courses: int | None = None
    working_hours: int | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class Token(BaseModel):
    access_token: str
    token_type: str
    user: UserOut
