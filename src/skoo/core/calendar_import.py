"""ICS calendar import.

Parses school timetables exported as iCalendar (Hyperplanning, NetYParéo, ...)
and extracts the subject of every course:

- Hyperplanning puts it in DESCRIPTION (or X-ALT-DESC) as "Matière : <name>"
- NetYParéo prefixes the SUMMARY: "<name> - <room / lecturer>"
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any

import structlog
from icalendar import Calendar

from skoo.db import repository

logger = structlog.get_logger(__name__)

DEFAULT_TITLE = "Sans titre"
DEFAULT_DURATION = timedelta(hours=1)

# Tolerates "Matière :", "Matiere:", "MATIÈRE :" ...
SUBJECT_IN_DESCRIPTION = re.compile(r"mati[eè]re\s*:\s*([^\n\r]+)", re.IGNORECASE)


class CalendarImportError(Exception):
    """Error while reading an ICS file."""

    pass


@dataclass
class ParsedEvent:
    """A VEVENT ready to be stored."""

    title: str
    start: datetime
    end: datetime
    is_all_day: bool = False
    location: str | None = None
    subject_name: str | None = None

    def to_record(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "start_time": self.start.isoformat(),
            "end_time": self.end.isoformat(),
            "location": self.location,
            "is_all_day": self.is_all_day,
            "subject_name": self.subject_name,
        }


def extract_subject_from_description(description: str | None) -> str | None:
    if not description:
        return None
    match = SUBJECT_IN_DESCRIPTION.search(description)
    if match and match.group(1).strip():
        return match.group(1).strip()
    return None


def extract_subject_from_summary(summary: str | None) -> str | None:
    """First segment before " - ", or the whole summary."""
    if not summary:
        return None
    dash_index = summary.find(" - ")
    if dash_index > 0:
        return summary[:dash_index].strip()
    return summary.strip() or None


def _to_datetime(value: date | datetime) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def _text(component: Any, name: str) -> str | None:
    value = component.get(name)
    if value is None:
        return None
    return str(value)


def _parse_event(component: Any) -> ParsedEvent | None:
    title = _text(component, "summary") or DEFAULT_TITLE

    dtstart = component.get("dtstart")
    if dtstart is None:
        logger.warning("calendar_import.no_start", title=title)
        return None

    raw_start = dtstart.dt
    is_all_day = not isinstance(raw_start, datetime)
    start = _to_datetime(raw_start)

    dtend = component.get("dtend")
    duration = component.get("duration")
    if dtend is not None:
        end = _to_datetime(dtend.dt)
    elif duration is not None:
        end = start + duration.dt
    else:
        end = start + DEFAULT_DURATION

    subject_name = (
        extract_subject_from_description(_text(component, "description"))
        or extract_subject_from_description(_text(component, "x-alt-desc"))
        or extract_subject_from_summary(title)
    )

    return ParsedEvent(
        title=title,
        start=start,
        end=end,
        is_all_day=is_all_day,
        location=_text(component, "location") or None,
        subject_name=subject_name,
    )


def parse_ics(content: str | bytes) -> list[ParsedEvent]:
    """Parse every VEVENT of an ICS document.

    Events without a start or that fail to parse are skipped.

    Raises:
        CalendarImportError: If the document is not valid iCalendar
    """
    try:
        calendar = Calendar.from_ical(content)
    except ValueError as e:
        raise CalendarImportError(f"Fichier ICS invalide: {e}") from e

    events: list[ParsedEvent] = []
    vevents = [c for c in calendar.walk() if c.name == "VEVENT"]

    for component in vevents:
        try:
            event = _parse_event(component)
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning("calendar_import.event_failed", error=str(e))
            continue
        if event is not None:
            events.append(event)

    logger.info("calendar_import.parsed", vevents=len(vevents), events=len(events))
    return events


def import_events(
    user_id: str,
    events: list[ParsedEvent],
    calendar_name: str | None = None,
) -> int:
    """Store parsed events for a user. Returns the number stored."""
    if not events:
        return 0
    return repository.insert_calendar_events(
        user_id,
        [e.to_record() for e in events],
        calendar_name=calendar_name,
    )
