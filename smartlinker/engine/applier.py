"""Splice a hyperlink around an anchor phrase inside stored document markup."""

from __future__ import annotations

import html
import logging
import re
from typing import Iterable, List, Optional, Tuple

from .blocks import RAW_MARKUP_BLOCKS, BlockParseError, has_blocks, iter_blocks, parse_blocks
from .errors import LinkNotFound
from .types import ValidatedSuggestion

logger = logging.getLogger(__name__)

_OPEN_ANCHOR_RE = re.compile(r"<a[\s>]", re.IGNORECASE)
_CLOSE_ANCHOR_RE = re.compile(r"</a\s*>", re.IGNORECASE)

# Blocks whose markup never holds linkable paragraph text
NON_TEXT_BLOCKS = RAW_MARKUP_BLOCKS | {"core/heading"}


def _last_match_start(pattern: re.Pattern[str], text: str) -> int:
    last = -1
    for match in pattern.finditer(text):
        last = match.start()
    return last


def _is_linkable(content: str, position: int) -> bool:
    """False when ``position`` sits inside tag markup or an open ``<a>`` element."""

    prefix = content[:position]
    if prefix.rfind("<") > prefix.rfind(">"):
        return False
    return _last_match_start(_OPEN_ANCHOR_RE, prefix) <= _last_match_start(_CLOSE_ANCHOR_RE, prefix)


def _needles(anchor_text: str) -> List[str]:
    needles = [anchor_text]
    escaped = html.escape(anchor_text, quote=False)
    if escaped != anchor_text:
        needles.append(escaped)
    return needles


def _find(content: str, needle: str, spans: Iterable[Tuple[int, int]]) -> Optional[int]:
    for start, end in spans:
        position = content.find(needle, start, end)
        while position != -1:
            if _is_linkable(content, position):
                return position
            position = content.find(needle, position + 1, end)
    return None


def _block_spans(content: str) -> Optional[List[List[Tuple[int, int]]]]:
    """Return per-block spans in document order, or None for flat markup."""

    if not has_blocks(content):
        return None
    try:
        blocks = parse_blocks(content)
    except BlockParseError as exc:
        logger.info("Block structure unreadable (%s); inserting link as flat markup", exc)
        return None
    return [list(block.spans) for block in iter_blocks(blocks) if block.name not in NON_TEXT_BLOCKS]


def insert_link(content: str, anchor_text: str, url: str) -> str:
    """Wrap the first linkable occurrence of ``anchor_text`` in ``<a href=url>``.

    Block-structured content is searched block by block and only the first
    block holding the anchor is touched; flat markup is searched from the
    start. Everything outside the inserted tags is left byte-identical.

    Raises
    ------
    LinkNotFound
        When the anchor text cannot be located verbatim.
    """

    if not anchor_text:
        raise LinkNotFound("Anchor text is empty")

    block_spans = _block_spans(content)
    groups = block_spans if block_spans is not None else [[(0, len(content))]]

    for spans in groups:
        for needle in _needles(anchor_text):
            position = _find(content, needle, spans)
            if position is None:
                continue
            end = position + len(needle)
            link = f'<a href="{html.escape(url, quote=True)}">{needle}</a>'
            logger.debug("Inserting link for %r at offset %d", anchor_text, position)
            return content[:position] + link + content[end:]

    raise LinkNotFound(f"Could not find the exact text to link: {anchor_text!r}")


def apply_suggestion(content: str, suggestion: ValidatedSuggestion, url: str) -> str:
    """Return ``content`` with ``suggestion``'s anchor linked to ``url``."""

    return insert_link(content, suggestion.anchor_text, url)
