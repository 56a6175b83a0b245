"""
iCalendar (.ics) export.

We convert extracted events into a calendar file that can be subscribed to
or imported into Google Calendar, Outlook, Thunderbird, ...

Every content line is folded: at most 72 bytes of UTF-8 per physical
line, continuation lines start with a single space, all lines end with
CRLF. Multi-byte characters are never split.
"""

from __future__ import annotations

import io
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Iterable, List, Optional, Sequence

from icalnigma.identity import event_uid
from icalnigma.model import Event, Lecture

PRODUCT_ID = "-//Siphalor//DHiCalnigma//DE"
CONTACT_ADDRESS = "noreply@siphalor.de"
FOLD_WIDTH = 72

ICAL_DATETIME_FORMAT = "%Y%m%dT%H%M00Z"
GENERATED_FORMAT = "%d.%m.%Y %H:%M"

PRIVACY_NOTICE = "Dozent:innen sind aufgrund von Datenschutzbedenken der DHBW nicht mehr öffentlich!"


# ---------------------------------------------------------------------------
# Content lines
# ---------------------------------------------------------------------------


def escape_value(text: str) -> str:
    return text.replace(",", "\\,")


def unescape_value(text: str) -> str:
    return text.replace("\\,", ",")


def fold_line(line: str, width: int = FOLD_WIDTH) -> bytes:
    """
    Encode one logical content line into folded physical lines.
    """
    parts: List[bytes] = []
    current = b""
    for char in line:
        encoded = char.encode("utf-8")
        if len(current) + len(encoded) > width:
            parts.append(current)
            current = b""
        current += encoded
    if current:
        parts.append(current)

    return b"".join(
        (b" " if i else b"") + part + b"\r\n"
        for i, part in enumerate(parts)
    )


def unfold_lines(data: bytes) -> List[str]:
    """
    Join folded physical lines back into logical content lines.
    """
    lines: List[str] = []
    for physical in data.decode("utf-8").split("\r\n"):
        if physical.startswith(" ") and lines:
            lines[-1] += physical[1:]
        elif physical:
            lines.append(physical)
    return lines


def _ical_time(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime(ICAL_DATETIME_FORMAT)


class _Writer:
    def __init__(self, out: BinaryIO) -> None:
        self.out = out

    def line(self, line: str) -> None:
        # A raw line break would end the content line early
        line = line.replace("\r\n", " ").replace("\r", " ").replace("\n", " ")
        self.out.write(fold_line(line))

    def field(self, key: str, value: str) -> None:
        self.line(f"{key}:{escape_value(value)}")


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


def _description(event: Event) -> str:
    description = ""

    if isinstance(event.data, Lecture):
        if event.data.categories:
            description += ", ".join(event.data.categories) + "\\n\\n"
        if event.data.language is not None:
            description += f"Sprache: {event.data.language}\\n"
        if event.data.total_hours is not None:
            description += f"Insgesamte Stunden: {event.data.total_hours}\\n"

    if event.lecturers:
        names = ", ".join(lecturer.name for lecturer in event.lecturers)
        description += f"Dozent:innen: {names}\\n"
    else:
        description += PRIVACY_NOTICE

    return description


def write_event(writer: _Writer, event: Event) -> None:
    writer.line("BEGIN:VEVENT")
    writer.field("UID", event_uid(event))
    if event.creation is not None:
        writer.line(f"CREATED:{_ical_time(event.creation)}")
    writer.line(f"DTSTART:{_ical_time(event.begin)}")
    writer.line(f"DTEND:{_ical_time(event.end)}")
    writer.field("SUMMARY", event.title())

    if event.locations:
        writer.field("LOCATION", ", ".join(event.locations))

    if isinstance(event.data, Lecture) and event.data.categories:
        writer.line("CATEGORIES:" + ",".join(event.data.categories))

    if event.lecturers:
        writer.line(f'ORGANIZER;CN="{event.lecturers[0].name}":{CONTACT_ADDRESS}')
        for lecturer in event.lecturers:
            writer.line(f'ATTENDEE;CN="{lecturer.name}":{CONTACT_ADDRESS}')

    for course in event.courses:
        writer.line(f'ATTENDEE;CN="{course}":{CONTACT_ADDRESS}')

    writer.field("DESCRIPTION", _description(event))
    writer.line("END:VEVENT")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def write_calendar(out: BinaryIO, events: Iterable[Event], now: Optional[datetime] = None) -> int:
    """
    Write a complete calendar into a binary stream. Returns number of events.
    """
    generated = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    writer = _Writer(out)

    writer.line("BEGIN:VCALENDAR")
    writer.line("VERSION:2.0")
    writer.line(f"PRODID:{PRODUCT_ID}")
    writer.line(f"X-ICALNIGMA-TIME:{generated.strftime(GENERATED_FORMAT)}")

    count = 0
    for event in events:
        write_event(writer, event)
        count += 1

    writer.line("END:VCALENDAR")
    return count


def render_calendar(events: Iterable[Event], now: Optional[datetime] = None) -> bytes:
    buffer = io.BytesIO()
    write_calendar(buffer, events, now)
    return buffer.getvalue()


def export_events_to_ics(events: Sequence[Event], out_path: str | Path) -> int:
    """
    Export events to an .ics file, replacing any existing file.
    Returns number of exported events.
    """
    out = Path(out_path)
    out.parent.mkdir(parents=True, exist_ok=True)

    out.write_bytes(render_calendar(events))
    return len(events)
