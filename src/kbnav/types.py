"""Pipeline data contracts for kbnav.

Frozen dataclasses that flow between pipeline stages:
  raw text → (Metadata, body) → Heading / CodeBlock / TOCSection → ProcessedDocument
  CodeSample → IndexEntry → SearchResultItem
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

__all__ = [
    "INTERNAL_FIELDS",
    "CodeBlock",
    "CodeMatch",
    "CodePattern",
    "CodeSample",
    "GlossaryEntry",
    "Heading",
    "IndexEntry",
    "IndexStats",
    "MatchType",
    "Metadata",
    "PatternSearchResult",
    "ProcessedDocument",
    "SearchFilter",
    "SearchResultGroup",
    "SearchResultItem",
    "TOCSection",
    "TextPosition",
    "VocabularyReference",
]

logger = logging.getLogger(__name__)

# Build/review bookkeeping that must never reach readers.
INTERNAL_FIELDS: frozenset[str] = frozenset(
    {
        "implementation",
        "developer_notes",
        "internal_id",
        "review_status",
        "last_reviewed",
        "reviewer",
    }
)

_CAMEL_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")

_STR_FIELDS = ("title", "slug", "category", "skill_level", "last_updated", "content_path")
_INT_FIELDS = ("difficulty", "estimated_reading_time")
_LIST_FIELDS = ("tags", "prerequisites", "related_topics")


def _normalize_key(key: object) -> str:
    """``skillLevel`` / ``skill-level`` → ``skill_level``."""
    return _CAMEL_RE.sub("_", str(key)).replace("-", "_").lower()


def _as_str_tuple(value: object) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(p.strip() for p in value.split(",") if p.strip())
    if isinstance(value, (list, tuple, set, frozenset)):
        return tuple(str(v).strip() for v in value if str(v).strip())
    return (str(value),)


def _as_bool(value: object) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"true", "yes", "on", "1"}
    return bool(value)


@dataclass(frozen=True)
class Metadata:
    """Front-matter metadata: recognized educational fields plus passthrough extras."""

    title: str | None = None
    slug: str | None = None
    category: str | None = None
    skill_level: str | None = None
    difficulty: int | None = None
    estimated_reading_time: int | None = None
    constitutional: bool = False
    tags: tuple[str, ...] = ()
    prerequisites: tuple[str, ...] = ()
    related_topics: tuple[str, ...] = ()
    last_updated: str | None = None
    content_path: str | None = None
    extra: tuple[tuple[str, Any], ...] = ()

    @classmethod
    def from_mapping(cls, data: Mapping[Any, Any]) -> Metadata:
        """Validate a parsed key/value block into a ``Metadata`` record.

        Keys are normalized to snake_case. Internal build fields are
        dropped. Values of the wrong shape for a known field are skipped
        rather than trusted.
        """
        known: dict[str, Any] = {}
        extra: list[tuple[str, Any]] = []

        for raw_key, value in data.items():
            key = _normalize_key(raw_key)
            if key in INTERNAL_FIELDS:
                continue
            if key in _STR_FIELDS:
                if value is not None:
                    known[key] = str(value)
            elif key in _INT_FIELDS:
                try:
                    known[key] = int(value)
                except (TypeError, ValueError):
                    logger.debug("Ignoring non-integer front-matter %s=%r", key, value)
            elif key in _LIST_FIELDS:
                known[key] = _as_str_tuple(value)
            elif key == "constitutional":
                known[key] = _as_bool(value)
            else:
                extra.append((str(raw_key), value))

        return cls(**known, extra=tuple(extra))

    def get(self, key: str, default: Any = None) -> Any:
        """Look up a known field or a passthrough extra by name."""
        name = _normalize_key(key)
        if name in self.__dataclass_fields__ and name != "extra":
            value = getattr(self, name)
            return default if value is None else value
        for k, v in self.extra:
            if k == key or _normalize_key(k) == name:
                return v
        return default

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dict, omitting empty known fields."""
        result: dict[str, Any] = {}
        for name in (*_STR_FIELDS, *_INT_FIELDS):
            value = getattr(self, name)
            if value is not None:
                result[name] = value
        for name in _LIST_FIELDS:
            value = getattr(self, name)
            if value:
                result[name] = list(value)
        if self.constitutional:
            result["constitutional"] = True
        result.update(dict(self.extra))
        return result


@dataclass(frozen=True)
class Heading:
    """A section header found in a document body."""

    id: str
    text: str
    level: int


@dataclass(frozen=True)
class TOCSection:
    """A node of the table-of-contents tree."""

    id: str
    title: str
    level: int
    children: tuple[TOCSection, ...] = ()
    start_position: int = 0


@dataclass(frozen=True)
class CodeBlock:
    """A fenced code sample extracted from a document."""

    id: str
    language: str
    code: str
    line_count: int
    detected_language: str | None = None
    title: str | None = None
    file_name: str | None = None
    category: str | None = None
    tags: tuple[str, ...] = ()
    show_line_numbers: bool = False
    is_collapsible: bool = False
    highlight_lines: tuple[int, ...] = ()
    sequence: int = 0


@dataclass(frozen=True)
class ProcessedDocument:
    """Everything derived from one document in a single processing call."""

    body: str
    headings: tuple[Heading, ...] = ()
    code_blocks: tuple[CodeBlock, ...] = ()
    toc: tuple[TOCSection, ...] = ()
    reading_time_minutes: int = 1
    metadata: Metadata | None = None
    html: str = ""


@dataclass(frozen=True)
class CodeSample:
    """Input record for the code index."""

    id: str
    code: str
    language: str = "text"
    title: str = ""
    categories: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    difficulty: int = 1
    popularity: float = 0.0
    last_updated: datetime | None = None
    concept_path: str = ""
    best_practice: bool = False
    constitutional: bool = False
    skill_level: str = ""
    file_name: str = ""

    @classmethod
    def from_code_block(
        cls,
        block: CodeBlock,
        metadata: Metadata | None = None,
        concept_path: str = "",
        last_updated: datetime | None = None,
    ) -> CodeSample:
        """Adapt an extracted block, inheriting document-level metadata."""
        categories: tuple[str, ...] = ()
        if block.category:
            categories = (block.category,)
        elif metadata is not None and metadata.category:
            categories = (metadata.category,)

        tags = block.tags or (metadata.tags if metadata is not None else ())
        difficulty = 1
        skill_level = ""
        constitutional = False
        if metadata is not None:
            difficulty = max(metadata.difficulty or 1, 1)
            skill_level = metadata.skill_level or ""
            constitutional = metadata.constitutional

        return cls(
            id=block.id,
            code=block.code,
            language=block.language,
            title=block.title or "",
            categories=categories,
            tags=tuple(tags),
            difficulty=difficulty,
            last_updated=last_updated,
            concept_path=concept_path,
            constitutional=constitutional,
            skill_level=skill_level,
            file_name=block.file_name or "",
        )


@dataclass(frozen=True)
class IndexEntry:
    """One searchable record per code sample."""

    id: str
    title: str
    keywords: frozenset[str]
    searchable_text: str
    weight: float
    concept_path: str
    last_modified: datetime
    description: str = ""
    complexity: float = 1.0
    sample: CodeSample | None = None

    @property
    def language(self) -> str:
        return self.sample.language if self.sample is not None else "text"

    @property
    def categories(self) -> tuple[str, ...]:
        return self.sample.categories if self.sample is not None else ()


@dataclass(frozen=True)
class IndexStats:
    """Aggregate statistics over one index generation."""

    total_examples: int = 0
    by_language: dict[str, int] = field(default_factory=dict)
    by_category: dict[str, int] = field(default_factory=dict)
    by_difficulty: dict[int, int] = field(default_factory=dict)
    average_complexity: float = 0.0
    most_used_patterns: tuple[tuple[str, int], ...] = ()


@dataclass(frozen=True)
class SearchFilter:
    """Plain constraint record applied before scoring."""

    query: str = ""
    categories: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    languages: tuple[str, ...] = ()
    skill_levels: tuple[str, ...] = ()
    difficulty_range: tuple[int, int] | None = None
    concept_paths: tuple[str, ...] = ()


class MatchType(str, Enum):
    """How a search result matched the query."""

    EXACT = "exact"
    PARTIAL = "partial"
    FUZZY = "fuzzy"


@dataclass(frozen=True)
class SearchResultItem:
    """A ranked search hit."""

    entry: IndexEntry
    relevance_score: float
    match_type: MatchType
    highlighted_content: tuple[str, ...] = ()
    match_reasons: tuple[str, ...] = ()


@dataclass(frozen=True)
class SearchResultGroup:
    """Search results bucketed by a shared key (skill level, language, ...)."""

    key: str
    results: tuple[SearchResultItem, ...]
    total_count: int


@dataclass(frozen=True)
class GlossaryEntry:
    """A controlled-vocabulary concept."""

    id: str
    term: str
    definition: str = ""
    keywords: tuple[str, ...] = ()
    category: str = ""
    related_topics: tuple[str, ...] = ()
    skill_level: str = ""


@dataclass(frozen=True)
class TextPosition:
    """Location of a match: 1-based line, 0-based column, absolute offset."""

    line: int
    column: int
    offset: int
    length: int


@dataclass(frozen=True)
class VocabularyReference:
    """A glossary keyword detected in a document body."""

    term: str
    concept_id: str
    position: TextPosition
    context: str
    confidence: float


@dataclass(frozen=True)
class CodePattern:
    """A named structural pattern in the pattern catalog."""

    name: str
    description: str
    regex: re.Pattern[str]
    category: str
    difficulty: int
    examples: tuple[str, ...] = ()


@dataclass(frozen=True)
class CodeMatch:
    """A single match inside a code sample."""

    line: int
    column: int
    length: int
    text: str
    context: str
    match_type: str = "exact"


@dataclass(frozen=True)
class PatternSearchResult:
    """Matches of one catalog pattern inside one indexed sample."""

    entry: IndexEntry
    pattern: CodePattern | None
    matches: tuple[CodeMatch, ...]
    relevance_score: float
    preview: str = ""
