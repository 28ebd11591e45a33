"""Table-of-contents tree construction from a flat heading list."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from kbnav.types import TOCSection

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from kbnav.types import Heading

__all__ = ["build_toc", "flatten_toc", "render_toc_markdown"]

logger = logging.getLogger(__name__)


@dataclass
class _OpenSection:
    """Mutable node used while the tree is being assembled."""

    heading: Heading
    start_position: int
    children: list[_OpenSection] = field(default_factory=list)

    def freeze(self) -> TOCSection:
        return TOCSection(
            id=self.heading.id,
            title=self.heading.text,
            level=self.heading.level,
            children=tuple(child.freeze() for child in self.children),
            start_position=self.start_position,
        )


def build_toc(
    headings: Sequence[Heading],
    positions: Sequence[int] | None = None,
) -> list[TOCSection]:
    """Nest a flat heading list into a section forest.

    Each heading becomes a child of the nearest preceding heading with a
    strictly smaller level, or a new root when there is none. Pre-order
    traversal of the result reproduces ``headings`` exactly.

    Args:
        headings: Headings in document order.
        positions: Optional character offsets, parallel to ``headings``.

    Returns:
        Root sections in document order.
    """
    roots: list[_OpenSection] = []
    stack: list[_OpenSection] = []

    for index, heading in enumerate(headings):
        position = positions[index] if positions is not None else 0
        node = _OpenSection(heading=heading, start_position=position)

        while stack and stack[-1].heading.level >= heading.level:
            stack.pop()

        if stack:
            stack[-1].children.append(node)
        else:
            roots.append(node)
        stack.append(node)

    logger.debug("Built TOC with %d root sections from %d headings", len(roots), len(headings))
    return [root.freeze() for root in roots]


def flatten_toc(sections: Iterable[TOCSection]) -> list[TOCSection]:
    """Pre-order traversal of a section forest."""
    result: list[TOCSection] = []
    for section in sections:
        result.append(section)
        result.extend(flatten_toc(section.children))
    return result


def render_toc_markdown(sections: Iterable[TOCSection], indent: str = "  ") -> str:
    """Render the forest as a nested bullet list of anchor links."""
    lines: list[str] = []

    def _walk(nodes: Iterable[TOCSection], depth: int) -> None:
        for node in nodes:
            lines.append(f"{indent * depth}- [{node.title}](#{node.id})")
            _walk(node.children, depth + 1)

    _walk(sections, 0)
    return "\n".join(lines)
