"""Shared text utilities for the engine."""

from __future__ import annotations

import re
from typing import List

from bs4 import BeautifulSoup, FeatureNotFound, NavigableString, Tag
from bs4.element import PreformattedString

_TOKEN_RE = re.compile(r"[\w']+")
_WHITESPACE_RE = re.compile(r"\s+")

# Tags whose text is never part of readable content
SKIP_TAGS: set[str] = {"script", "style", "noscript", "template", "head"}


def word_count(text: str) -> int:
    return len(_TOKEN_RE.findall(text))


def normalize_whitespace(text: str) -> str:
    """Collapse whitespace runs to single spaces and trim."""

    return _WHITESPACE_RE.sub(" ", text).strip()


def make_soup(html: str) -> BeautifulSoup:
    try:
        return BeautifulSoup(html, "lxml")
    except FeatureNotFound:
        # Fallback to html.parser if lxml isn't installed
        return BeautifulSoup(html, "html.parser")


def _in_skipped_tag(node: NavigableString, root: Tag) -> bool:
    parent = node.parent
    while parent is not None and parent is not root:
        if parent.name and parent.name.lower() in SKIP_TAGS:
            return True
        parent = parent.parent
    return False


def node_text(node: Tag) -> str:
    """Return the decoded, whitespace-normalized text of ``node``.

    ``<br>`` elements become spaces so words on either side do not merge,
    and comments or script/style content are ignored.
    """

    parts: List[str] = []
    for descendant in node.descendants:
        if isinstance(descendant, Tag):
            if descendant.name == "br":
                parts.append(" ")
            continue
        if isinstance(descendant, PreformattedString):
            continue
        if isinstance(descendant, NavigableString) and not _in_skipped_tag(descendant, node):
            parts.append(str(descendant))
    return normalize_whitespace("".join(parts))


def html_to_text(html: str) -> str:
    """Strip tags and decode entities from an HTML fragment."""

    if not html or not html.strip():
        return ""
    return node_text(make_soup(html))
