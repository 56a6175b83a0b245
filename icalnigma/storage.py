"""
Persistent archive of previously scraped months.

Rapla only shows a limited range of months. To keep older events in the
calendar, every run can merge its fresh months into an archive file:

    {"202401": [ {event}, {event}, ... ], "202402": [ ... ]}

Merge rule:
- months in the fresh scrape REPLACE the archived month completely
- months only present in the archive are kept unchanged

Re-scraping a partially visible month therefore drops the archived
events of that month.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from icalnigma.errors import ArchiveError
from icalnigma.model import Event, EventData, Exam, Lecture, Lecturer, Months, Other


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------


def merge_months(fresh: Months, archived: Months) -> Months:
    """
    Combine archived months with freshly scraped ones (fresh wins per month).
    """
    merged: Months = {key: list(events) for key, events in archived.items()}
    for key, events in fresh.items():
        merged[key] = list(events)
    return dict(sorted(merged.items()))


# ---------------------------------------------------------------------------
# JSON encoding
# ---------------------------------------------------------------------------


def _time_to_json(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _time_from_json(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        raise ValueError(f"Timestamp without timezone: {value!r}")
    return parsed.astimezone(timezone.utc)


def _data_to_json(data: EventData) -> Any:
    if isinstance(data, Lecture):
        return {
            "Lecture": {
                "number": data.number,
                "language": data.language,
                "kind": data.kind,
                "categories": list(data.categories),
                "total_hours": data.total_hours,
            }
        }
    if isinstance(data, Exam):
        return "Exam"
    return "Other"


def _data_from_json(raw: Any) -> EventData:
    if raw == "Exam":
        return Exam()
    if raw == "Other":
        return Other()
    if isinstance(raw, dict) and "Lecture" in raw:
        lecture = raw["Lecture"]
        return Lecture(
            number=lecture.get("number"),
            language=lecture.get("language"),
            kind=lecture.get("kind"),
            categories=tuple(lecture.get("categories") or ()),
            total_hours=lecture.get("total_hours"),
        )
    raise ValueError(f"Unknown event data: {raw!r}")


def event_to_json(event: Event) -> Dict[str, Any]:
    return {
        "creation": _time_to_json(event.creation),
        "creator": event.creator,
        "begin": _time_to_json(event.begin),
        "end": _time_to_json(event.end),
        "name": event.name,
        "lecturers": [{"name": lecturer.name} for lecturer in event.lecturers],
        "locations": list(event.locations),
        "courses": list(event.courses),
        "data": _data_to_json(event.data),
    }


def event_from_json(raw: Dict[str, Any]) -> Event:
    return Event(
        creation=_time_from_json(raw.get("creation")),
        creator=raw.get("creator"),
        begin=_time_from_json(raw["begin"]),
        end=_time_from_json(raw["end"]),
        name=raw["name"],
        lecturers=tuple(Lecturer(lecturer["name"]) for lecturer in raw.get("lecturers", [])),
        locations=tuple(raw.get("locations", [])),
        courses=tuple(raw.get("courses", [])),
        data=_data_from_json(raw.get("data", "Other")),
    )


def months_to_json(months: Months) -> Dict[str, List[Dict[str, Any]]]:
    return {key: [event_to_json(e) for e in events] for key, events in sorted(months.items())}


def months_from_json(raw: Any) -> Months:
    if not isinstance(raw, dict):
        raise ValueError("Archive root must be an object")
    months: Months = {}
    for key, events in raw.items():
        if not isinstance(events, list):
            raise ValueError(f"Month {key!r} must hold a list of events")
        months[str(key)] = [event_from_json(e) for e in events]
    return dict(sorted(months.items()))


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------


def load_archive(path: str | Path) -> Months:
    """
    Load the archive file.

    Raises ArchiveError if the file is missing, unreadable or malformed.
    """
    archive_path = Path(path)

    try:
        text = archive_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ArchiveError(archive_path, f"failed to open archive file: {exc}") from exc

    try:
        return months_from_json(json.loads(text))
    except (json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError) as exc:
        raise ArchiveError(archive_path, f"failed to parse archive: {exc}") from exc


def save_archive(path: str | Path, months: Months) -> None:
    """
    Write the archive file, creating parent directories if needed.
    """
    archive_path = Path(path)

    try:
        archive_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ArchiveError(archive_path, f"failed to create archive directory: {exc}") from exc

    payload = json.dumps(months_to_json(months), ensure_ascii=False, indent=2)
    try:
        archive_path.write_text(payload, encoding="utf-8")
    except OSError as exc:
        raise ArchiveError(archive_path, f"failed to write archive file: {exc}") from exc
