"""
icalnigma - Rapla HTML month views to iCalendar.
"""

from pathlib import Path

__version__ = (Path(__file__).resolve().parent / "VERSION").read_text(encoding="utf-8").strip()
