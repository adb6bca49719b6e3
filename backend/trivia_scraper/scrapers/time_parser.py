"""Schedule text parsing shared by all extractors.

Turns free text such as "Tuesdays, 6.30pm" or "Every Thursday at 8pm" into
a day of week (1-7, Monday = 1) and a 24-hour "HH:MM" start time.

Parsing never raises. When no time can be found the default start time is
used and a warning is logged.
"""

import logging
import re
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_TIME = "20:00"

DAYS = {
    "monday": 1,
    "tuesday": 2,
    "wednesday": 3,
    "thursday": 4,
    "friday": 5,
    "saturday": 6,
    "sunday": 7,
}

_DAY_RE = re.compile(r"(monday|tuesday|wednesday|thursday|friday|saturday|sunday)s?\b")
# "7-9pm", "7.30 - 10pm", "11am to 1pm": the start borrows the end's am/pm when it has none
_RANGE_RE = re.compile(
    r"\b(\d{1,2})(?:[:.](\d{2}))?\s*(am|pm)?\s*(?:-|–|to)\s*\d{1,2}(?:[:.]\d{2})?\s*(am|pm)"
)
_TIME_MERIDIEM_RE = re.compile(r"(\d{1,2})[:.](\d{2})\s*(am|pm)")
_HOUR_MERIDIEM_RE = re.compile(r"(\d{1,2})\s*(am|pm)")
_TIME_BARE_RE = re.compile(r"\b(\d{1,2})[:.](\d{2})\b")
_CUT_RE = re.compile(r"\(.*\)|\n|book:.*$", re.IGNORECASE)


@dataclass(frozen=True)
class ScheduleParse:
    day_of_week: int | None
    start_time: str
    frequency: str = "weekly"
    used_default: bool = False


def normalize_time_text(text: str) -> str:
    """Lowercase and strip filler words, commas and trailing booking notes."""
    normalized = text.lower()
    normalized = re.sub(r"every\s+", "", normalized)
    normalized = re.sub(r"\bat\s+", "", normalized)
    normalized = normalized.replace(",", "")
    normalized = _CUT_RE.split(normalized)[0]
    return normalized.strip()


def parse_day_of_week(text: str | None) -> int | None:
    if not text:
        return None
    match = _DAY_RE.search(text.lower())
    return DAYS[match.group(1)] if match else None


def _to_24h(hour: int, minutes: int, period: str) -> str | None:
    if not (1 <= hour <= 12 and 0 <= minutes <= 59):
        return None
    if period == "am":
        hour = 0 if hour == 12 else hour
    else:
        hour = 12 if hour == 12 else hour + 12
    return f"{hour:02d}:{minutes:02d}"


def parse_time(text: str | None) -> str | None:
    """Parse a start time into "HH:MM", or None if nothing recognizable is present."""
    if not text:
        return None
    text = text.lower()

    match = _RANGE_RE.search(text)
    if match:
        hour, minutes, start_period, end_period = match.groups()
        return _to_24h(int(hour), int(minutes or 0), start_period or end_period)

    match = _TIME_MERIDIEM_RE.search(text)
    if match:
        return _to_24h(int(match.group(1)), int(match.group(2)), match.group(3))

    match = _HOUR_MERIDIEM_RE.search(text)
    if match:
        return _to_24h(int(match.group(1)), 0, match.group(2))

    match = _TIME_BARE_RE.search(text)
    if match:
        raw_hour = match.group(1)
        hour, minutes = int(raw_hour), int(match.group(2))
        if hour > 23 or minutes > 59:
            return None
        # No am/pm marker: unpadded hours 1-11 are assumed to be evening.
        # Known heuristic, wrong for genuine morning events.
        if 1 <= hour <= 11 and not raw_hour.startswith("0"):
            hour += 12
        return f"{hour:02d}:{minutes:02d}"

    return None


def parse_time_text(time_text: str | None, context: str | None = None) -> ScheduleParse:
    """Parse a schedule string into day and start time.

    Falls back to ``DEFAULT_TIME`` with a logged warning when the time
    cannot be parsed. ``context`` (usually the venue URL) is included in the
    warning so the record can be found again.
    """
    normalized = normalize_time_text(time_text or "")
    day = parse_day_of_week(normalized)
    start_time = parse_time(normalized)

    if start_time is None:
        where = f" for {context}" if context else ""
        logger.warning(f"Could not parse time from '{time_text}'{where}, defaulting to {DEFAULT_TIME}")
        return ScheduleParse(day_of_week=day, start_time=DEFAULT_TIME, used_default=True)

    return ScheduleParse(day_of_week=day, start_time=start_time)


def format_time_text(day_of_week: int | None, start_time: str) -> str:
    """Inverse of parsing: (4, "19:00") -> "Thursday 19:00"."""
    names = {v: k.capitalize() for k, v in DAYS.items()}
    day = names.get(day_of_week) if day_of_week else None
    return f"{day} {start_time}" if day else start_time
