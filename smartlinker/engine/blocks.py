"""Parser for block-delimited content (``<!-- wp:name {attrs} -->`` comments).

Blocks are returned as a tree in document order. Each block remembers the
character spans of its own markup in the source string, excluding the spans
of nested blocks, so callers can rewrite a single block in place without
touching anything else.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

# Blocks carrying raw markup or code; their text is never linked
RAW_MARKUP_BLOCKS: frozenset[str] = frozenset(
    {"core/html", "core/code", "core/preformatted", "core/shortcode"}
)

_DELIMITER_RE = re.compile(
    r"<!--\s+(?P<closer>/)?wp:(?P<name>[a-z][a-z0-9_-]*(?:/[a-z][a-z0-9_-]*)?)\s+"
    r"(?P<attrs>\{.*?\}\s+)?(?P<void>/)?-->",
    re.DOTALL,
)


class BlockParseError(ValueError):
    """Raised when block delimiters are unbalanced or carry invalid attributes."""


@dataclass
class Block:
    """A parsed block, or a run of freeform markup when ``name`` is None."""

    name: Optional[str]
    attrs: Dict[str, Any] = field(default_factory=dict)
    inner_blocks: List["Block"] = field(default_factory=list)
    spans: List[Tuple[int, int]] = field(default_factory=list)
    _parts: List[str] = field(default_factory=list, repr=False)

    @property
    def inner_html(self) -> str:
        return "".join(self._parts)

    def add_span(self, source: str, start: int, end: int) -> None:
        self.spans.append((start, end))
        self._parts.append(source[start:end])


def has_blocks(content: str) -> bool:
    return bool(content) and "<!-- wp:" in content


def _normalize_name(name: str) -> str:
    return name if "/" in name else f"core/{name}"


def _parse_attrs(raw: str | None) -> Dict[str, Any]:
    if not raw:
        return {}
    try:
        attrs = json.loads(raw)
    except ValueError as exc:
        raise BlockParseError(f"Invalid block attributes: {raw.strip()[:80]}") from exc
    if not isinstance(attrs, dict):
        raise BlockParseError("Block attributes must be a JSON object")
    return attrs


def parse_blocks(content: str) -> List[Block]:
    """Parse ``content`` into a list of top-level blocks.

    Freeform markup between top-level blocks becomes a block with
    ``name=None``. Whitespace-only runs at the top level are dropped.

    Raises
    ------
    BlockParseError
        When a closing delimiter does not match the open block, when blocks
        are left unclosed, or when attributes are not a JSON object.
    """

    top: List[Block] = []
    stack: List[Block] = []
    position = 0

    def attach(block: Block) -> None:
        if stack:
            stack[-1].inner_blocks.append(block)
        else:
            top.append(block)

    def add_text(start: int, end: int) -> None:
        if start >= end:
            return
        if stack:
            stack[-1].add_span(content, start, end)
        elif content[start:end].strip():
            freeform = Block(name=None)
            freeform.add_span(content, start, end)
            top.append(freeform)

    for match in _DELIMITER_RE.finditer(content):
        add_text(position, match.start())
        position = match.end()
        name = _normalize_name(match.group("name"))

        if match.group("closer"):
            if not stack or stack[-1].name != name:
                raise BlockParseError(f"Unexpected closing delimiter for {name}")
            attach(stack.pop())
        elif match.group("void"):
            attach(Block(name=name, attrs=_parse_attrs(match.group("attrs"))))
        else:
            stack.append(Block(name=name, attrs=_parse_attrs(match.group("attrs"))))

    if stack:
        raise BlockParseError(f"Unclosed block {stack[-1].name}")
    add_text(position, len(content))
    return top


def iter_blocks(blocks: Sequence[Block]) -> Iterator[Block]:
    """Yield blocks depth-first in document order."""

    for block in blocks:
        yield block
        yield from iter_blocks(block.inner_blocks)
