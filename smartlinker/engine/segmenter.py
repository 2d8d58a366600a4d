"""Split document markup into ordered heading and paragraph sections."""

from __future__ import annotations

import logging
import re
from typing import List

from bs4 import NavigableString, Tag
from bs4.element import PreformattedString

from .blocks import RAW_MARKUP_BLOCKS, Block, BlockParseError, has_blocks, parse_blocks
from .text import SKIP_TAGS, html_to_text, make_soup, node_text, normalize_whitespace, word_count
from .types import Section, SectionKind

logger = logging.getLogger(__name__)

MIN_PARAGRAPH_WORDS = 5

HEADING_TAGS: set[str] = {"h1", "h2", "h3", "h4", "h5", "h6"}

BLOCK_TAGS: set[str] = {
    "address", "article", "aside", "blockquote", "body", "dd", "details", "div", "dl", "dt",
    "fieldset", "figcaption", "figure", "footer", "form", "header", "html", "li", "main",
    "nav", "ol", "p", "pre", "section", "summary", "table", "tbody", "td", "tfoot", "th",
    "thead", "tr", "ul",
} | HEADING_TAGS

_HEADING_TAG_RE = re.compile(r"<h([1-6])[\s>]", re.IGNORECASE)
_BLANK_LINE_RE = re.compile(r"\n\s*\n")


class _SectionCollector:
    """Accumulates sections in emission order and tracks the current heading."""

    def __init__(self, min_words: int) -> None:
        self.min_words = min_words
        self.sections: List[Section] = []
        self.current_heading = ""

    def add_heading(self, text: str, level: int) -> None:
        text = normalize_whitespace(text)
        if not text:
            return
        self.current_heading = text
        self.sections.append(
            Section(
                index=len(self.sections),
                content=text,
                kind=SectionKind.HEADING,
                word_count=word_count(text),
                heading_level=level,
                heading=text,
            )
        )

    def add_paragraph(self, text: str) -> None:
        text = normalize_whitespace(text)
        count = word_count(text)
        if count < self.min_words:
            return
        self.sections.append(
            Section(
                index=len(self.sections),
                content=text,
                kind=SectionKind.PARAGRAPH,
                word_count=count,
                heading=self.current_heading,
            )
        )


def segment(raw_markup: str, *, min_words: int = MIN_PARAGRAPH_WORDS) -> List[Section]:
    """Return the ordered sections of ``raw_markup``.

    Block-delimited content is walked structurally first; when the block
    structure is malformed the whole document is re-read with DOM traversal.
    Paragraphs shorter than ``min_words`` are never emitted, headings always
    are. Markup that cannot be read at all yields an empty list.
    """

    if not raw_markup or not raw_markup.strip():
        return []

    try:
        if has_blocks(raw_markup):
            try:
                blocks = parse_blocks(raw_markup)
            except BlockParseError as exc:
                logger.info("Block structure unreadable (%s); falling back to DOM traversal", exc)
            else:
                collector = _SectionCollector(min_words)
                _collect_blocks(blocks, collector)
                return collector.sections

        collector = _SectionCollector(min_words)
        _collect_dom(raw_markup, collector)
        return collector.sections
    except Exception:  # noqa: BLE001 - segmentation must degrade, not crash the caller
        logger.exception("Content segmentation failed; treating document as empty")
        return []


def _block_heading_level(block: Block) -> int:
    level = block.attrs.get("level")
    if isinstance(level, int) and 1 <= level <= 6:
        return level
    match = _HEADING_TAG_RE.search(block.inner_html)
    return int(match.group(1)) if match else 2


def _collect_blocks(blocks: List[Block], collector: _SectionCollector) -> None:
    for block in blocks:
        if block.name is None:
            _collect_dom(block.inner_html, collector)
        elif block.name in RAW_MARKUP_BLOCKS:
            continue
        elif block.name == "core/heading":
            collector.add_heading(html_to_text(block.inner_html), _block_heading_level(block))
        elif block.name == "core/paragraph":
            collector.add_paragraph(html_to_text(block.inner_html))
        elif block.inner_blocks:
            # Children first, then whatever text the container carries itself.
            _collect_blocks(block.inner_blocks, collector)
            collector.add_paragraph(html_to_text(block.inner_html))
        else:
            _collect_dom(block.inner_html, collector)


def _collect_dom(html: str, collector: _SectionCollector) -> None:
    if not html or not html.strip():
        return
    soup = make_soup(html)
    _walk(soup.body or soup, collector)


def _contains_blocks(tag: Tag) -> bool:
    return any(isinstance(node, Tag) and node.name in BLOCK_TAGS for node in tag.descendants)


def _flush(loose: List[str], collector: _SectionCollector) -> None:
    for chunk in _BLANK_LINE_RE.split("".join(loose)):
        collector.add_paragraph(chunk)
    loose.clear()


def _walk(node: Tag, collector: _SectionCollector) -> None:
    """Emit sections for ``node``'s children in document order.

    Inline runs between block-level children are joined and split on blank
    lines into paragraphs.
    """

    loose: List[str] = []
    for child in node.children:
        if isinstance(child, PreformattedString):
            continue
        if isinstance(child, NavigableString):
            loose.append(str(child))
            continue
        if not isinstance(child, Tag):
            continue

        name = (child.name or "").lower()
        if name in SKIP_TAGS:
            continue
        if name in HEADING_TAGS:
            _flush(loose, collector)
            collector.add_heading(node_text(child), int(name[1]))
        elif name == "br":
            loose.append("\n")
        elif _contains_blocks(child):
            _flush(loose, collector)
            _walk(child, collector)
        elif name in BLOCK_TAGS:
            _flush(loose, collector)
            collector.add_paragraph(node_text(child))
        else:
            loose.append(child.get_text())

    _flush(loose, collector)
