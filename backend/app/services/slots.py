from __future__ import annotations

import logging
import re
from collections.abc import Iterable

logger = logging.getLogger(__name__)

SLOT_DAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
SLOT_HOURS = ("09", "10", "11", "12", "13", "14", "15", "16", "17", "18")
SLOT_PATTERN = re.compile(r"^(?P<day>[A-Za-z]{3})_(?P<hour>\d{2})$")

# Mon-Fri, 09-17 with the 13:00 lunch gap left out.
DEFAULT_CALENDAR_HOURS = ("09", "10", "11", "12", "14", "15", "16", "17")
DEFAULT_CALENDAR: tuple[str, ...] = tuple(
    f"{day}_{hour}" for day in SLOT_DAYS[:5] for hour in DEFAULT_CALENDAR_HOURS
)


def is_valid_slot(value: object) -> bool:
    if not isinstance(value, str):
        return False
    match = SLOT_PATTERN.match(value)
    if match is None:
        return False
    return match.group("day") in SLOT_DAYS and match.group("hour") in SLOT_HOURS


def filter_valid_slots(values: Iterable[object], *, context: str = "availability") -> list[str]:
    """Keep well-formed slots in first-seen order, warning about the rest."""
    kept: list[str] = []
    seen: set[str] = set()
    dropped: list[str] = []
    for value in values or []:
        if not is_valid_slot(value):
            dropped.append(repr(value))
            continue
        if value in seen:
            continue
        seen.add(value)
        kept.append(value)
    if dropped:
        logger.warning("Dropped %d malformed time slot(s) from %s: %s", len(dropped), context, ", ".join(dropped))
    return kept


def build_slot_domain(
    availabilities: Iterable[Iterable[object] | None],
    default_calendar: Iterable[str] = DEFAULT_CALENDAR,
) -> list[str]:
    collected: set[str] = set()
    for availability in availabilities:
        collected.update(filter_valid_slots(availability or []))

    if not collected:
        logger.info("No usable availability data; falling back to the default calendar")
        collected = set(filter_valid_slots(default_calendar, context="default calendar"))
    return sorted(collected)
