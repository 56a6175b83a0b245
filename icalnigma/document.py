"""
Document decoding (bytes -> text -> HTML tree).

Rapla writes its HTML exports in a fixed legacy single-byte encoding.
The raw file is decoded as a whole and then parsed with BeautifulSoup.

Problems on this level are fatal: without a readable document and its
<html><body> wrappers there is nothing to extract.
"""

from __future__ import annotations

import codecs
from typing import List, Tuple

from bs4 import BeautifulSoup, Tag

from icalnigma.errors import StructureError
from icalnigma.model import Months
from icalnigma.parse import load_months
from icalnigma.tree import child, children, has_class

SOURCE_ENCODING = "windows-1252"

# Browsers map the five bytes windows-1252 leaves undefined to C1 controls
C1_ERRORS = "icalnigma-c1"


def _c1_controls(exc: UnicodeDecodeError) -> Tuple[str, int]:
    undefined = exc.object[exc.start:exc.end]
    return "".join(chr(byte) for byte in undefined), exc.end


codecs.register_error(C1_ERRORS, _c1_controls)


def decode(raw: bytes, encoding: str = SOURCE_ENCODING) -> str:
    """
    Decode the raw export.

    windows-1252 never fails, other encodings are strict.
    """
    try:
        errors = C1_ERRORS if codecs.lookup(encoding).name == "cp1252" else "strict"
        return raw.decode(encoding, errors)
    except LookupError as exc:
        raise StructureError("document", f"unknown encoding {encoding!r}") from exc
    except UnicodeDecodeError as exc:
        raise StructureError("document", f"cannot decode input as {encoding}: {exc.reason}") from exc


def parse(text: str) -> BeautifulSoup:
    return BeautifulSoup(text, "html.parser")


def calendars(document: BeautifulSoup) -> List[Tag]:
    """
    Return all <div class="calendar"> elements of the document body.
    """
    html = child(document, "html")
    if html is None:
        raise StructureError("html", "document does not have an html tag")
    body = child(html, "body")
    if body is None:
        raise StructureError("body", "document does not have a body tag")

    return [div for div in children(body, "div") if has_class(div, "calendar")]


def load_events(raw: bytes, encoding: str = SOURCE_ENCODING) -> Months:
    """
    Full pipeline for one export: decode, parse and extract all months.
    """
    document = parse(decode(raw, encoding))
    return load_months(calendars(document))
