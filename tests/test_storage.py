"""
Unit tests for the month archive.

Archive contract:
- fresh months replace archived months completely
- months only in the archive are kept
- missing/invalid file -> ArchiveError (the CLI decides what to do)
- JSON layout: {"YYYYMM": [event, ...]}
"""

import json
import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path

from icalnigma.errors import ArchiveError
from icalnigma.model import Event, Exam, Lecture, Lecturer, Other
from icalnigma.storage import load_archive, merge_months, months_from_json, months_to_json, save_archive


def make_event(name, day, month=1, data=None):
    return Event(
        creation=None,
        creator=None,
        begin=datetime(2024, month, day, 7, 0, tzinfo=timezone.utc),
        end=datetime(2024, month, day, 8, 30, tzinfo=timezone.utc),
        name=name,
        data=data if data is not None else Other(),
    )


A = make_event("A", 8)
B = make_event("B", 9)
C = make_event("C", 5, month=2)
D = make_event("D", 4, month=3)

FULL = Event(
    creation=datetime(2024, 1, 5, 9, 30, tzinfo=timezone.utc),
    creator="Sekretariat",
    begin=datetime(2024, 1, 8, 7, 0, tzinfo=timezone.utc),
    end=datetime(2024, 1, 8, 8, 30, tzinfo=timezone.utc),
    name="Mathematik I",
    lecturers=(Lecturer("Ada Lovelace"),),
    locations=("Hörsaal 1",),
    courses=("INF-23A",),
    data=Lecture(
        number="T3INF1001",
        language="Deutsch",
        kind="Vorlesung",
        categories=("Informatik",),
        total_hours=48,
    ),
)


class TestMerge(unittest.TestCase):
    def test_fresh_month_replaces_archived_month(self) -> None:
        self.assertEqual(merge_months({"202401": [B]}, {"202401": [A]}), {"202401": [B]})

    def test_archive_only_months_are_kept(self) -> None:
        merged = merge_months({"202402": [C]}, {"202401": [A], "202403": [D]})
        self.assertEqual(merged, {"202401": [A], "202402": [C], "202403": [D]})
        self.assertEqual(list(merged), ["202401", "202402", "202403"])

    def test_merge_is_idempotent(self) -> None:
        fresh = {"202401": [B], "202402": [C]}
        archived = {"202401": [A], "202403": [D]}
        once = merge_months(fresh, archived)
        self.assertEqual(merge_months(fresh, once), once)

    def test_merge_does_not_mutate_inputs(self) -> None:
        fresh = {"202401": [B]}
        archived = {"202401": [A]}
        merged = merge_months(fresh, archived)
        merged["202401"].append(C)
        self.assertEqual(archived, {"202401": [A]})
        self.assertEqual(fresh, {"202401": [B]})

    def test_empty_inputs(self) -> None:
        self.assertEqual(merge_months({}, {}), {})
        self.assertEqual(merge_months({"202401": [A]}, {}), {"202401": [A]})


class TestArchiveJson(unittest.TestCase):
    def test_event_fields_survive_json(self) -> None:
        months = {"202401": [FULL, make_event("Klausur", 9, data=Exam())]}
        self.assertEqual(months_from_json(json.loads(json.dumps(months_to_json(months)))), months)

    def test_layout(self) -> None:
        raw = months_to_json({"202401": [FULL]})
        event = raw["202401"][0]
        self.assertEqual(event["creation"], "2024-01-05T09:30:00Z")
        self.assertEqual(event["begin"], "2024-01-08T07:00:00Z")
        self.assertEqual(event["lecturers"], [{"name": "Ada Lovelace"}])
        self.assertEqual(event["data"]["Lecture"]["total_hours"], 48)
        self.assertEqual(months_to_json({"202401": [A]})["202401"][0]["data"], "Other")

    def test_reads_existing_archive_layout(self) -> None:
        raw = {
            "202401": [
                {
                    "creation": "2024-01-05T09:30:00Z",
                    "creator": "Sekretariat",
                    "begin": "2024-01-08T07:00:00Z",
                    "end": "2024-01-08T08:30:00Z",
                    "name": "Mathematik I",
                    "lecturers": [{"name": "Ada Lovelace"}],
                    "locations": ["Hörsaal 1"],
                    "courses": ["INF-23A"],
                    "data": {
                        "Lecture": {
                            "number": "T3INF1001",
                            "language": "Deutsch",
                            "kind": "Vorlesung",
                            "categories": ["Informatik"],
                            "total_hours": 48,
                        }
                    },
                }
            ]
        }
        self.assertEqual(months_from_json(raw), {"202401": [FULL]})

    def test_rejects_unknown_event_data(self) -> None:
        raw = months_to_json({"202401": [A]})
        raw["202401"][0]["data"] = "Party"
        with self.assertRaises(ValueError):
            months_from_json(raw)


class TestArchiveFiles(unittest.TestCase):
    def test_load_missing_file_raises(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            with self.assertRaises(ArchiveError) as ctx:
                load_archive(Path(d) / "missing.json")
            self.assertIn("failed to open", ctx.exception.reason)

    def test_load_corrupt_file_raises(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "archive.json"
            p.write_text("{not json", encoding="utf-8")
            with self.assertRaises(ArchiveError):
                load_archive(p)

            p.write_text(json.dumps({"202401": [{"name": "no dates"}]}), encoding="utf-8")
            with self.assertRaises(ArchiveError):
                load_archive(p)

    def test_save_and_load_roundtrip(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "data" / "archive.json"
            save_archive(p, {"202402": [C], "202401": [FULL]})
            self.assertEqual(load_archive(p), {"202401": [FULL], "202402": [C]})
            self.assertEqual(list(json.loads(p.read_text(encoding="utf-8"))), ["202401", "202402"])

    def test_save_into_file_path_fails(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            blocker = Path(d) / "blocker"
            blocker.write_text("", encoding="utf-8")
            with self.assertRaises(ArchiveError):
                save_archive(blocker / "archive.json", {})


if __name__ == "__main__":
    unittest.main()
