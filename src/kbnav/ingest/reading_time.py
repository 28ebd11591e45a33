"""Reading-time estimation from prose word count plus content-type bonuses."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from kbnav.config import ReadingConfig
from kbnav.ingest.codeblocks import find_fenced_blocks, strip_fenced_blocks
from kbnav.ingest.frontmatter import split_frontmatter

__all__ = ["ReadingStats", "estimate_reading_time", "measure"]

logger = logging.getLogger(__name__)

_INLINE_CODE_RE = re.compile(r"`[^`\n]+`")
_IMAGE_RE = re.compile(r"!\[[^\]]*\]\([^)]*\)")
_LIST_ITEM_RE = re.compile(r"^[ \t]*(?:[-*+]|\d+[.)])[ \t]+\S", re.MULTILINE)
_TABLE_ROW_RE = re.compile(r"^[ \t]*\|.*\|[ \t]*$", re.MULTILINE)
_TABLE_SEP_RE = re.compile(r"^[ \t]*\|[\s:|-]*-[\s:|-]*\|[ \t]*$")
_HTML_TAG_RE = re.compile(r"<[^>\n]+>")
_LINK_TARGET_RE = re.compile(r"\]\([^)]*\)")
_MARKUP_RE = re.compile(r"[#*_>\[\]|`~=]+")
_WORD_RE = re.compile(r"\w")


@dataclass
class ReadingStats:
    """Counts that feed the estimate."""

    words: int = 0
    code_blocks: int = 0
    inline_code: int = 0
    images: int = 0
    list_items: int = 0
    table_rows: int = 0


def measure(body: str) -> ReadingStats:
    """Count prose words and content elements in a markdown body."""
    block, rest = split_frontmatter(body)
    if block is not None:
        body = rest

    code_blocks = len(find_fenced_blocks(body))
    prose = strip_fenced_blocks(body)

    inline_code = len(_INLINE_CODE_RE.findall(prose))
    images = len(_IMAGE_RE.findall(prose))
    list_items = len(_LIST_ITEM_RE.findall(prose))
    table_rows = sum(1 for row in _TABLE_ROW_RE.findall(prose) if not _TABLE_SEP_RE.match(row))

    text = _INLINE_CODE_RE.sub(" ", prose)
    text = _IMAGE_RE.sub(" ", text)
    text = _HTML_TAG_RE.sub(" ", text)
    text = _LINK_TARGET_RE.sub(" ", text)
    text = _MARKUP_RE.sub(" ", text)
    words = sum(1 for token in text.split() if _WORD_RE.search(token))

    return ReadingStats(
        words=words,
        code_blocks=code_blocks,
        inline_code=inline_code,
        images=images,
        list_items=list_items,
        table_rows=table_rows,
    )


def estimate_reading_time(
    body: str | None,
    code_block_count: int | None = None,
    skill_level: str | None = None,
    config: ReadingConfig | None = None,
) -> int:
    """Estimate minutes needed to work through a document.

    ``words / wpm`` plus per-element bonuses for code blocks, inline code,
    images, list items and table rows, scaled by the skill-level
    multiplier (1.0 when unknown). Rounded to the nearest minute, at least 1.

    Args:
        body: Document text; a leading metadata block is ignored.
        code_block_count: Fenced block count if already known.
        skill_level: ``fundamentals``/``intermediate``/``advanced``/``expert``.
        config: Tuning constants.
    """
    cfg = config or ReadingConfig()
    if not body:
        return 1

    stats = measure(body)
    if code_block_count is not None:
        stats.code_blocks = code_block_count

    minutes = stats.words / max(cfg.words_per_minute, 1)
    minutes += stats.code_blocks * cfg.code_block_minutes
    minutes += stats.inline_code * cfg.inline_code_minutes
    minutes += stats.images * cfg.image_minutes
    minutes += stats.list_items * cfg.list_item_minutes
    minutes += stats.table_rows * cfg.table_row_minutes

    multiplier = 1.0
    if skill_level:
        multiplier = cfg.skill_multipliers.get(skill_level.strip().lower(), 1.0)
    minutes *= multiplier

    # Half-up rounding, not banker's
    estimate = max(1, int(minutes + 0.5))
    logger.debug(
        "Reading time: %d words, %d code blocks, x%.2f -> %d min",
        stats.words,
        stats.code_blocks,
        multiplier,
        estimate,
    )
    return estimate
