"""Controlled-vocabulary glossary and term detection.

A glossary is a JSON or YAML list of concepts, each with a term, a
definition and the keywords that signal it in running text. Detection
scans a document body for every keyword and scores each hit.
"""

from __future__ import annotations

import json
import logging
import re
from typing import TYPE_CHECKING, Any

import yaml

from kbnav.config import VocabularyConfig
from kbnav.exceptions import NotFoundError, ParseError
from kbnav.types import GlossaryEntry, TextPosition, VocabularyReference

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator
    from pathlib import Path

__all__ = ["Glossary", "detect_vocabulary", "load_glossary"]

logger = logging.getLogger(__name__)

# Punctuation that marks a term as used in code rather than prose
_CODE_MARKERS = ("@", "()", "{}", "[]")


def _first(data: dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _str_tuple(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(v) for v in value)


def _entry_from_dict(data: dict[str, Any], index: int) -> GlossaryEntry:
    term = data.get("term")
    if not term:
        raise ParseError(f"Glossary entry #{index} has no term")
    return GlossaryEntry(
        id=str(data.get("id") or term),
        term=str(term),
        definition=str(data.get("definition", "")),
        keywords=_str_tuple(data.get("keywords")),
        category=str(data.get("category", "")),
        related_topics=_str_tuple(
            _first(data, "related_topics", "relatedTopics", "relatedArticles", default=())
        ),
        skill_level=str(_first(data, "skill_level", "skillLevel", "difficultyLevel", default="")),
    )


def load_glossary(path: Path) -> Glossary:
    """Load a glossary file (``.json``, ``.yaml`` or ``.yml``).

    Raises:
        NotFoundError: If the file does not exist.
        ParseError: If the file is not a list of concept records.
    """
    if not path.is_file():
        raise NotFoundError(str(path), "glossary file missing")

    try:
        text = path.read_text(encoding="utf-8")
        data = json.loads(text) if path.suffix == ".json" else yaml.safe_load(text)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise ParseError(f"Cannot read glossary {path}: {e}") from e

    if not isinstance(data, list):
        raise ParseError(f"Glossary {path} must be a list of entries")

    entries = []
    for index, item in enumerate(data):
        if not isinstance(item, dict):
            raise ParseError(f"Glossary entry #{index} in {path} is not a mapping")
        entries.append(_entry_from_dict(item, index))

    logger.info("Loaded %d glossary entries from %s", len(entries), path)
    return Glossary(entries)


class Glossary:
    """Lookup structure over glossary entries."""

    def __init__(self, entries: Iterable[GlossaryEntry] = ()) -> None:
        self.entries: list[GlossaryEntry] = list(entries)
        self._by_id = {entry.id: entry for entry in self.entries}
        self._by_term: dict[str, GlossaryEntry] = {}
        for entry in self.entries:
            self._by_term[entry.term.lower()] = entry
            for keyword in entry.keywords:
                self._by_term[keyword.lower()] = entry

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[GlossaryEntry]:
        return iter(self.entries)

    @property
    def categories(self) -> list[str]:
        return sorted({entry.category for entry in self.entries if entry.category})

    def get_concept(self, term: str) -> GlossaryEntry | None:
        """Case-insensitive lookup by term or keyword."""
        return self._by_term.get(term.lower())

    def get_by_id(self, concept_id: str) -> GlossaryEntry | None:
        return self._by_id.get(concept_id)

    def search_concepts(self, keyword: str, category: str | None = None) -> list[GlossaryEntry]:
        """Entries whose term, definition or keywords contain ``keyword``."""
        needle = keyword.lower()
        candidates = self.by_category(category) if category else self.entries
        return [
            entry
            for entry in candidates
            if needle in entry.term.lower()
            or needle in entry.definition.lower()
            or any(needle in k.lower() for k in entry.keywords)
        ]

    def by_category(self, category: str) -> list[GlossaryEntry]:
        return [entry for entry in self.entries if entry.category == category]

    def related(self, concept_id: str, max_results: int = 5) -> list[GlossaryEntry]:
        """Concepts sharing a category or a related topic with ``concept_id``."""
        base = self.get_by_id(concept_id)
        if base is None:
            return []
        topics = set(base.related_topics)
        related = [
            entry
            for entry in self.entries
            if entry.id != concept_id
            and (entry.category == base.category or topics.intersection(entry.related_topics))
        ]
        return related[:max_results]


def _position(text: str, offset: int, length: int) -> TextPosition:
    line_start = text.rfind("\n", 0, offset) + 1
    return TextPosition(
        line=text.count("\n", 0, offset) + 1,
        column=offset - line_start,
        offset=offset,
        length=length,
    )


def _window(text: str, offset: int, radius: int) -> str:
    return text[max(0, offset - radius) : offset + radius]


def _keyword_pattern(keyword: str) -> re.Pattern[str]:
    # Lookarounds instead of \b so keywords like "@Input" still match
    return re.compile(rf"(?<!\w){re.escape(keyword)}(?!\w)", re.IGNORECASE)


def detect_vocabulary(
    body: str,
    glossary: Glossary | Iterable[GlossaryEntry],
    min_confidence: float | None = None,
    config: VocabularyConfig | None = None,
) -> list[VocabularyReference]:
    """Find glossary keywords in ``body``.

    Confidence starts at ``base_confidence``; an occurrence whose casing
    matches the keyword exactly adds ``exact_match_bonus``, and code-like
    punctuation within ``code_context_chars`` of the hit adds
    ``code_context_bonus``. Capped at 1.0.

    Args:
        body: Text to scan.
        glossary: Concepts to look for.
        min_confidence: Threshold; defaults to the config value (0.7).
        config: Scoring constants.

    Returns:
        References at or above the threshold, highest confidence first,
        ties in document order.
    """
    cfg = config or VocabularyConfig()
    threshold = cfg.min_confidence if min_confidence is None else min_confidence
    if not body:
        return []

    references: list[VocabularyReference] = []
    for entry in glossary:
        for keyword in entry.keywords:
            if not keyword.strip():
                continue
            for match in _keyword_pattern(keyword).finditer(body):
                offset = match.start()
                confidence = cfg.base_confidence
                if match.group(0) == keyword:
                    confidence += cfg.exact_match_bonus
                nearby = _window(body, offset, cfg.code_context_chars)
                if any(marker in nearby for marker in _CODE_MARKERS):
                    confidence += cfg.code_context_bonus
                confidence = round(min(confidence, 1.0), 4)

                if confidence < threshold:
                    continue
                references.append(
                    VocabularyReference(
                        term=keyword,
                        concept_id=entry.id,
                        position=_position(body, offset, len(match.group(0))),
                        context=_window(body, offset, cfg.context_chars),
                        confidence=confidence,
                    )
                )

    references.sort(key=lambda ref: (-ref.confidence, ref.position.offset))
    logger.debug("Detected %d vocabulary references", len(references))
    return references
