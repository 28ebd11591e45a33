"""Heading extraction and collision-free anchor generation.

Both the table-of-contents pass and the anchored-markup pass go through
``AnchorRegistry`` so a heading gets the same id in either output.
"""

from __future__ import annotations

import html
import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from kbnav.types import Heading

if TYPE_CHECKING:
    from collections.abc import Iterator

__all__ = [
    "AnchorRegistry",
    "HeadingLine",
    "extract_headings",
    "iter_heading_lines",
    "render_anchored_markup",
    "slugify",
]

logger = logging.getLogger(__name__)

_FALLBACK_SLUG = "section"

# ATX heading with optional closing sequence: "## Title ##"
_HEADING_RE = re.compile(r"^(#{1,6})[ \t]+(.+?)(?:[ \t]+#+)?[ \t]*$")

# Fenced code opener/closer; headings inside fences are code, not structure
_FENCE_RE = re.compile(r"^[ ]{0,3}(`{3,}|~{3,})")

_SLUG_STRIP_RE = re.compile(r"[^a-z0-9\s_-]")
_SLUG_COLLAPSE_RE = re.compile(r"[\s_-]+")


def slugify(text: str) -> str:
    """Convert heading text to a URL-safe anchor.

    Lowercases, strips characters outside ``[a-z0-9]``, whitespace,
    underscores and hyphens, then collapses runs of the latter three into a
    single hyphen and trims hyphens from both ends.
    """
    slug = _SLUG_STRIP_RE.sub("", text.lower())
    slug = _SLUG_COLLAPSE_RE.sub("-", slug).strip("-")
    return slug or _FALLBACK_SLUG


class AnchorRegistry:
    """Per-document set of issued anchors.

    ``unique`` appends ``-2``, ``-3``, ... to a slug until it is unused.
    """

    def __init__(self) -> None:
        self._issued: set[str] = set()

    def __contains__(self, anchor: object) -> bool:
        return anchor in self._issued

    def __len__(self) -> int:
        return len(self._issued)

    def unique(self, text: str) -> str:
        base = slugify(text)
        anchor = base
        counter = 2
        while anchor in self._issued:
            anchor = f"{base}-{counter}"
            counter += 1
        self._issued.add(anchor)
        return anchor


@dataclass(frozen=True)
class HeadingLine:
    """A heading marker found while scanning, with its location in the body."""

    level: int
    text: str
    offset: int
    line_index: int


def iter_heading_lines(body: str) -> Iterator[HeadingLine]:
    """Yield heading lines in document order, skipping fenced code."""
    offset = 0
    fence: str | None = None

    for index, line in enumerate(body.split("\n")):
        fence_match = _FENCE_RE.match(line)
        if fence_match:
            marker = fence_match.group(1)
            if fence is None:
                fence = marker
            elif marker[0] == fence[0] and len(marker) >= len(fence):
                fence = None
        elif fence is None:
            match = _HEADING_RE.match(line)
            if match:
                yield HeadingLine(
                    level=len(match.group(1)),
                    text=match.group(2).strip(),
                    offset=offset,
                    line_index=index,
                )
        offset += len(line) + 1


def extract_headings(body: str) -> list[Heading]:
    """Extract headings with document-unique anchor ids.

    Args:
        body: Document body (front-matter already removed).

    Returns:
        Headings in document order. No two share an ``id``.
    """
    if not body:
        return []

    registry = AnchorRegistry()
    headings = [
        Heading(id=registry.unique(line.text), text=line.text, level=line.level)
        for line in iter_heading_lines(body)
    ]
    logger.debug("Extracted %d headings", len(headings))
    return headings


def render_anchored_markup(body: str) -> str:
    """Return ``body`` with every heading line replaced by an anchored HTML heading.

    Uses a fresh registry and the same scan as ``extract_headings`` so the
    embedded ids match the extracted ones exactly.
    """
    if not body:
        return ""

    lines = body.split("\n")
    registry = AnchorRegistry()
    for heading in iter_heading_lines(body):
        anchor = registry.unique(heading.text)
        lines[heading.line_index] = (
            f'<h{heading.level} id="{anchor}">{html.escape(heading.text)}</h{heading.level}>'
        )
    return "\n".join(lines)
