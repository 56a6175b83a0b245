"""
Small query layer over the parsed HTML tree.

All lookups only look at the DIRECT children of a node. Nested lookups
are composed by the extractor, e.g.

    tooltip = child(child(block, "a"), "span")

Missing nodes are returned as None (or an empty list). Only call sites
that really need a node turn absence into an error via require().
"""

from __future__ import annotations

from typing import Iterator, List, Optional

from bs4 import Comment, NavigableString, Tag

from icalnigma.errors import ExtractionError


def child(node: Optional[Tag], tag: str) -> Optional[Tag]:
    """
    Return the first direct child element with the given tag name.
    """
    if node is None:
        return None
    return node.find(tag, recursive=False)


def children(node: Optional[Tag], tag: str) -> List[Tag]:
    if node is None:
        return []
    return node.find_all(tag, recursive=False)


def attribute(node: Optional[Tag], name: str) -> Optional[str]:
    """
    Read an attribute value.

    BeautifulSoup splits multi-valued attributes like class into lists,
    they are joined back into the original space separated string.
    """
    if node is None:
        return None
    value = node.get(name)
    if value is None:
        return None
    if isinstance(value, list):
        return " ".join(value)
    return str(value)


def has_class(node: Optional[Tag], value: str) -> bool:
    return attribute(node, "class") == value


def text_nodes(node: Optional[Tag]) -> List[str]:
    if node is None:
        return []
    return [
        str(c)
        for c in node.children
        if isinstance(c, NavigableString) and not isinstance(c, Comment)
    ]


def content(node: Optional[Tag]) -> Optional[str]:
    """
    Return the first text node directly inside the node.
    """
    texts = text_nodes(node)
    return texts[0] if texts else None


def require(node: Optional[Tag], what: str) -> Tag:
    if node is None:
        raise ExtractionError(what, detail="node not found")
    return node


def rows(table: Optional[Tag]) -> Iterator[Tag]:
    """
    Yield the rows of a table.

    html.parser does not insert an implicit <tbody>, so rows may sit
    directly inside <table>.
    """
    body = child(table, "tbody")
    yield from children(body if body is not None else table, "tr")
