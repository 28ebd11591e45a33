"""Structured-header (YAML front-matter) extraction.

Splits a document into its leading ``---`` delimited metadata block and
the body. Never raises: a missing or unterminated block leaves the text
untouched, and a malformed block is stripped and reported as "no metadata".
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

import yaml

from kbnav.types import Metadata

__all__ = ["FrontMatterResult", "extract_metadata", "split_frontmatter"]

logger = logging.getLogger(__name__)

_OPEN_DELIMITER = "---\n"

# Closing delimiter: a line that is exactly "---" (trailing blanks allowed)
_CLOSE_RE = re.compile(r"\n---[ \t]*(?:\n|$)")


@dataclass(frozen=True)
class FrontMatterResult:
    """Body text plus the parsed metadata, if any."""

    body: str
    metadata: Metadata | None = None


def _normalize(text: str) -> str:
    if text.startswith("\ufeff"):
        text = text[1:]
    return text.replace("\r\n", "\n")


def split_frontmatter(text: str) -> tuple[str | None, str]:
    """Split the raw metadata block from the body.

    Returns:
        (block_text or None, body_text). When no complete block is present
        the body is ``text`` itself, unchanged.
    """
    normalized = _normalize(text)
    if not normalized.startswith(_OPEN_DELIMITER):
        return None, text

    close = _CLOSE_RE.search(normalized, len(_OPEN_DELIMITER) - 1)
    if close is None:
        return None, text

    block = normalized[len(_OPEN_DELIMITER) : close.start()]
    body = normalized[close.end() :]
    return block, body


def extract_metadata(raw_text: str | None) -> FrontMatterResult:
    """Extract front-matter metadata from a document.

    Args:
        raw_text: Full document text. ``None`` is treated as empty.

    Returns:
        FrontMatterResult whose ``body`` is the trimmed remainder when a
        block was found, or the original text when none was.
    """
    if not raw_text:
        return FrontMatterResult(body="")

    block, body = split_frontmatter(raw_text)
    if block is None:
        return FrontMatterResult(body=raw_text)

    try:
        data = yaml.safe_load(block)
    except yaml.YAMLError as e:
        logger.warning("Failed to parse YAML front-matter: %s", e)
        return FrontMatterResult(body=body.strip())

    if data is None:
        return FrontMatterResult(body=body.strip())

    if not isinstance(data, dict):
        logger.warning("Front-matter is not a key/value block (got %s)", type(data).__name__)
        return FrontMatterResult(body=body.strip())

    metadata = Metadata.from_mapping(data)
    logger.debug("Extracted front-matter with %d keys", len(data))
    return FrontMatterResult(body=body.strip(), metadata=metadata)
