"""
Central data model definitions used across the project.

This module defines the canonical structure of Event objects so that:
- the extractor, the archive and the iCalendar writer share the same fields
- events stay immutable once they were extracted
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Tuple, Union


@dataclass(frozen=True)
class Lecturer:
    name: str


@dataclass(frozen=True)
class Lecture:
    """
    Event data of a regular lecture as loaded from Rapla.

    The event number is not unique on its own!
    """

    number: Optional[str] = None
    language: Optional[str] = None
    kind: Optional[str] = None
    categories: Tuple[str, ...] = ()
    total_hours: Optional[int] = None


@dataclass(frozen=True)
class Exam:
    pass


@dataclass(frozen=True)
class Other:
    pass


EventData = Union[Lecture, Exam, Other]


@dataclass(frozen=True)
class Event:
    """
    Represents one calendar occurrence.

    begin, end and creation are timezone-aware and always in UTC.
    """

    creation: Optional[datetime]
    creator: Optional[str]
    begin: datetime
    end: datetime
    name: str
    lecturers: Tuple[Lecturer, ...] = ()
    locations: Tuple[str, ...] = ()
    courses: Tuple[str, ...] = ()
    data: EventData = Other()

    def title(self) -> str:
        if isinstance(self.data, Lecture) and self.data.kind:
            return f"{self.name} - {self.data.kind}"
        return self.name


# Period key "YYYYMM" -> events of that month
Months = Dict[str, List[Event]]


def period_key(event: Event) -> str:
    return event.end.strftime("%Y%m")
