"""
Parsing (Rapla HTML month view -> Event objects).

A Rapla export contains one <div class="calendar"> per month. Each month
is a table whose "month_cell" cells hold the events of a single day:

    <td class="month_cell">
      <div>7</div>                       <- day of month
      <div class="month_block">...</div> <- one event
      <div class="month_block">...</div>
    </td>

Two generations of markup exist for the event blocks:

- tooltip markup: the event link carries a hidden <span> with the event
  type, a metadata table and the creation / date range texts
- inline markup:  the event link only holds a text line like
  "08:00 - 09:30 INF-23A, Hörsaal 1"; the date comes from the day number
  and the month heading

Important rules:
- a broken event only drops that event
- a bad day number only drops the inline events of that day
- all times are Europe/Berlin wall clock and are converted to UTC
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple
from zoneinfo import ZoneInfo

from bs4 import Tag

from icalnigma.errors import ExtractionError
from icalnigma.model import Event, EventData, Exam, Lecture, Lecturer, Months, Other, period_key
from icalnigma.tree import attribute, child, children, content, has_class, require, rows, text_nodes


SOURCE_TZ = ZoneInfo("Europe/Berlin")

# Course / group codes look like "INF-23A" or "WWI-21 SEA"
COURSE_PATTERN = re.compile(r"^[A-Z]{3}-[A-Z0-9 ]+$")

# "05.01.24 10:30" right after the "erstellt am" prefix
CREATION_PATTERN = re.compile(r"(\d{1,2}\.\d{1,2}\.\d{2})\s*(\d{1,2}:\d{2})")

# "08:00 - 09:30 INF-23A, Hörsaal 1"
INLINE_PATTERN = re.compile(r"^\s*(\d{1,2}:\d{2})\s*-\s*(\d{1,2}:\d{2})\s*(.*)$", re.DOTALL)

CREATION_PREFIX = "erstellt am"
INLINE_PLACEHOLDER_NAME = "Termin"

GERMAN_MONTHS = {
    "januar": 1,
    "februar": 2,
    "märz": 3,
    "april": 4,
    "mai": 5,
    "juni": 6,
    "juli": 7,
    "august": 8,
    "september": 9,
    "oktober": 10,
    "november": 11,
    "dezember": 12,
}


# ---------------------------------------------------------------------------
# Text & time helpers
# ---------------------------------------------------------------------------


def collapse(text: Optional[str]) -> str:
    """
    Trim text and turn every run of whitespace (including line breaks) into one space.
    """
    if not text:
        return ""
    return " ".join(text.split())


def parse_local(text: str, fmt: str, field: str = "time") -> datetime:
    """
    Parse Berlin wall clock text and return the instant in UTC.

    Times that do not exist or exist twice (DST switches) are rejected.
    """
    try:
        naive = datetime.strptime(text, fmt)
    except ValueError as exc:
        raise ExtractionError(field, text, str(exc)) from exc

    local = naive.replace(tzinfo=SOURCE_TZ)
    utc = local.astimezone(timezone.utc)
    if utc.astimezone(SOURCE_TZ).replace(tzinfo=None) != naive:
        raise ExtractionError(field, text, "local time does not exist")
    if local.replace(fold=1).utcoffset() != local.utcoffset():
        raise ExtractionError(field, text, "ambiguous local time")
    return utc


def parse_creation(text: str, pattern: re.Pattern[str] = CREATION_PATTERN) -> datetime:
    """
    Parse "erstellt am dd.mm.yy HH:MM ..." into a UTC datetime.
    """
    stripped = text.lstrip()
    if not stripped.startswith(CREATION_PREFIX):
        raise ExtractionError("creation time", text, f"missing {CREATION_PREFIX!r} prefix")

    rest = stripped[len(CREATION_PREFIX):].lstrip()
    match = pattern.match(rest)
    if not match:
        raise ExtractionError("creation time", text, "expected dd.mm.yy HH:MM")
    return parse_local(match.group(1) + match.group(2), "%d.%m.%y%H:%M", "creation time")


def parse_date_range(text: str) -> Tuple[datetime, datetime]:
    """
    Parse "Mo 08.01.24 08:00-09:30" into (begin, end) in UTC.
    """
    tokens = [t for t in re.split(r"[\s-]+", text) if t]

    # First token is the day of week
    if len(tokens) < 4:
        raise ExtractionError("date range", text, "expected weekday, date, begin and end")
    _, day, begin_time, end_time = tokens[:4]

    begin = parse_local(day + begin_time, "%d.%m.%y%H:%M", "begin time")
    end = parse_local(day + end_time, "%d.%m.%y%H:%M", "end time")
    if end < begin:
        raise ExtractionError("date range", text, "event ends before it begins")
    return begin, end


def parse_month_heading(text: str) -> date:
    """
    Parse a month heading like "Januar 2024" into the first day of that month.
    """
    parts = text.split()
    if len(parts) != 2:
        raise ExtractionError("month heading", text)

    month = GERMAN_MONTHS.get(parts[0].lower())
    if month is None:
        raise ExtractionError("month heading", text, f"unknown month {parts[0]!r}")
    try:
        return date(int(parts[1]), month, 1)
    except ValueError as exc:
        raise ExtractionError("month heading", text, str(exc)) from exc


# ---------------------------------------------------------------------------
# Metadata & resources
# ---------------------------------------------------------------------------


def parse_metadata(table: Tag) -> Dict[str, str]:
    """
    Extracts key-value pairs from the tooltip's metadata table.
    """
    metadata: Dict[str, str] = {}

    for row in rows(table):
        cells = children(row, "td")

        # Rows need at least a key and a value cell
        if len(cells) < 2:
            continue

        key = collapse(content(cells[0])).removesuffix(":")
        value = collapse(content(cells[1]))
        if not value:
            continue

        metadata[key] = value

    return metadata


def split_list(text: Optional[str]) -> List[str]:
    if not text:
        return []
    return [collapse(part) for part in text.split(",") if part.strip()]


def classify_resources(
    text: Optional[str],
    pattern: re.Pattern[str] = COURSE_PATTERN,
) -> Tuple[List[str], List[str]]:
    """
    Split a Rapla resource list into (courses, locations).

    Every token that looks like a course code is a course, everything else
    is a location.
    """
    courses: List[str] = []
    locations: List[str] = []

    for resource in split_list(text):
        if pattern.match(resource):
            courses.append(resource)
        else:
            locations.append(resource)

    return courses, locations


def event_data(label: str, metadata: Dict[str, str]) -> EventData:
    """
    Map the Rapla event type label to the event data variant.
    """
    if label == "Lehrveranstaltung":
        hours = metadata.get("Soll-Stunden", "")
        return Lecture(
            number=metadata.get("Veranstaltungsnummer"),
            language=metadata.get("Sprache"),
            kind=metadata.get("Veranstaltungsart"),
            categories=tuple(split_list(metadata.get("Veranstaltungskategorie"))),
            total_hours=int(hours) if hours.isdecimal() else None,
        )
    if label == "Prüfung":
        return Exam()
    if label == "Sonstiger Termin":
        return Other()

    raise ExtractionError("event type", label, "unknown event type")


def _event_name(metadata: Dict[str, str]) -> str:
    for key in ("Veranstaltungsname", "Titel", "Name"):
        if key in metadata:
            return metadata[key]
    return ""


# ---------------------------------------------------------------------------
# Extraction strategies (one per markup generation)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DayCell:
    """
    Day number division of a month_cell plus the month from the heading.

    Only inline events need the date, so it is resolved on demand.
    """

    number_div: Tag
    month: Optional[date] = None

    def resolve(self) -> date:
        if self.month is None:
            raise ExtractionError("event date", detail="no month heading")

        text = collapse(self.number_div.get_text(" "))
        if not text.isdecimal():
            raise ExtractionError("day number", text)
        try:
            return self.month.replace(day=int(text))
        except ValueError as exc:
            raise ExtractionError("day number", text, str(exc)) from exc


class TooltipStrategy:
    """
    Event links with a hidden tooltip <span>:

        <a><span>
          <strong>Lehrveranstaltung</strong>
          <table>...metadata...</table>
          <div>erstellt am 05.01.24 10:30</div>
          <div>Mo 08.01.24 08:00-09:30</div>
        </span></a>
    """

    name = "tooltip"

    def matches(self, link: Tag) -> bool:
        return child(link, "span") is not None

    def extract(self, link: Tag, day: Optional[DayCell]) -> Event:
        tooltip = require(child(link, "span"), "tooltip")
        metadata_table = require(child(tooltip, "table"), "event metadata")

        tooltip_divs = children(tooltip, "div")
        if len(tooltip_divs) < 2:
            raise ExtractionError("event metadata", detail="missing creation or date information")

        creation_text = content(tooltip_divs[0])
        if creation_text is None:
            raise ExtractionError("creation time", detail="no text")
        date_text = content(tooltip_divs[1])
        if date_text is None:
            raise ExtractionError("date range", detail="no text")

        creation = parse_creation(creation_text)
        begin, end = parse_date_range(date_text)
        metadata = parse_metadata(metadata_table)

        # Without a type label the event kind field decides
        label = collapse(content(child(tooltip, "strong")))
        if not label:
            label = metadata.get("Veranstaltungsart", "")

        courses, locations = classify_resources(metadata.get("Ressourcen"))

        return Event(
            creation=creation,
            creator=metadata.get("reserviert von"),
            begin=begin,
            end=end,
            name=_event_name(metadata),
            lecturers=tuple(Lecturer(name) for name in split_list(metadata.get("Personen"))),
            locations=tuple(locations),
            courses=tuple(courses),
            data=event_data(label, metadata),
        )


class InlineStrategy:
    """
    Event links with a single text line "HH:MM - HH:MM resources".
    """

    name = "inline"

    def __init__(self, pattern: re.Pattern[str] = INLINE_PATTERN) -> None:
        self.pattern = pattern

    def matches(self, link: Tag) -> bool:
        return any(self.pattern.match(collapse(text)) for text in text_nodes(link))

    def extract(self, link: Tag, day: Optional[DayCell]) -> Event:
        times: Optional[Tuple[str, str, str]] = None
        name_parts: List[str] = []

        for text in text_nodes(link):
            text = collapse(text)
            if not text:
                continue
            match = self.pattern.match(text) if times is None else None
            if match:
                times = (match.group(1), match.group(2), match.group(3))
            else:
                name_parts.append(text)

        if times is None:
            raise ExtractionError("event time", " ".join(text_nodes(link)).strip(), "expected HH:MM - HH:MM")
        if day is None:
            raise ExtractionError("event date", detail="no day cell")

        day_text = day.resolve().strftime("%d.%m.%Y")
        begin = parse_local(day_text + times[0], "%d.%m.%Y%H:%M", "begin time")
        end = parse_local(day_text + times[1], "%d.%m.%Y%H:%M", "end time")
        if end < begin:
            raise ExtractionError("event time", f"{times[0]} - {times[1]}", "event ends before it begins")

        courses, locations = classify_resources(times[2])

        return Event(
            creation=None,
            creator=None,
            begin=begin,
            end=end,
            name=" ".join(name_parts) or INLINE_PLACEHOLDER_NAME,
            locations=tuple(locations),
            courses=tuple(courses),
            data=Other(),
        )


STRATEGIES = (TooltipStrategy(), InlineStrategy())


# ---------------------------------------------------------------------------
# Events, days & months
# ---------------------------------------------------------------------------


def process_event(block: Tag, day: Optional[DayCell] = None) -> Event:
    """
    Convert one <div class="month_block"> into an Event.
    """
    link = require(child(block, "a"), "event link")

    for strategy in STRATEGIES:
        if strategy.matches(link):
            return strategy.extract(link, day)

    raise ExtractionError("event", attribute(block, "class"), "no matching markup variant")


def load_day(cell: Tag, month: Optional[date] = None) -> Optional[List[Event]]:
    """
    Extract all events of one month_cell.

    Returns None when the cell holds no event blocks at all.
    """
    divs = children(cell, "div")

    # The first div always contains the number of the day
    if len(divs) < 2:
        return None

    blocks: List[Tag] = []
    for div in divs[1:]:
        if not has_class(div, "month_block"):
            logging.warning(
                "Skipping potential event, class=%r, content=%r",
                attribute(div, "class"),
                content(div),
            )
            continue
        blocks.append(div)

    if not blocks:
        return None

    # The date is only resolved by events that need it
    day = DayCell(divs[0], month)

    events: List[Event] = []
    for block in blocks:
        try:
            events.append(process_event(block, day))
        except ExtractionError as exc:
            logging.error("Error in event: %s", exc)

    return events


def _month_heading(table: Optional[Tag]) -> Optional[date]:
    """
    Find the "Januar 2024" heading of a month table, if it has one.
    """
    if table is None:
        return None

    # Weekday header cells are skipped, the first parsable cell wins
    header_rows = list(rows(child(table, "thead"))) + list(rows(table))
    for row in header_rows:
        for cell in children(row, "th") + children(row, "td"):
            if cell.name != "th" and not has_class(cell, "month_header"):
                continue
            try:
                return parse_month_heading(collapse(content(cell)))
            except ExtractionError as exc:
                logging.debug("Not a month heading: %s", exc)
    return None


def load_month(calendar: Tag) -> Optional[Tuple[str, List[Event]]]:
    """
    Extract all events of one <div class="calendar">.

    Returns (period key, events) or None if the month holds no events.
    """
    table = child(calendar, "table")
    month = _month_heading(table)

    events: List[Event] = []
    for row in rows(table):
        for cell in children(row, "td"):
            if not has_class(cell, "month_cell"):
                continue

            day_events = load_day(cell, month)
            if day_events:
                events.extend(day_events)

    if not events:
        return None
    return period_key(events[0]), events


def load_months(calendars: Iterable[Tag]) -> Months:
    """
    Extract all months, ordered by period key.
    """
    months: Months = {}

    for calendar in calendars:
        loaded = load_month(calendar)
        if loaded is None:
            continue
        key, events = loaded
        months[key] = events
        logging.info("Loaded %d events for %s", len(events), key)

    return dict(sorted(months.items()))
