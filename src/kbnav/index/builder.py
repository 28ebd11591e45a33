"""Code index construction.

Turns ``CodeSample`` records into ``IndexEntry`` records (keywords,
searchable text, weight, complexity) and aggregates corpus statistics.
A build is a pure function of its inputs and clock; publication is the
caller's concern (see ``kbnav.index.service``).
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from kbnav.config import IndexConfig
from kbnav.exceptions import BuildEntryError
from kbnav.types import IndexEntry, IndexStats

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from kbnav.types import CodeSample

__all__ = [
    "STRUCTURAL_PATTERNS",
    "IndexGeneration",
    "build_entry",
    "build_index",
    "complexity_analysis",
    "complexity_level",
    "compute_complexity",
    "compute_weight",
    "extract_code_keywords",
    "extract_patterns",
    "nesting_depth",
]

logger = logging.getLogger(__name__)

# Symbol markers whose matches become keywords (non-letters stripped)
_KEYWORD_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"@(?:Component|Injectable|Directive|Pipe)\b"),
    re.compile(r"\b(?:signal|computed|effect)\s*\("),
    re.compile(r"\b(?:FormControl|FormGroup|Validators)\b"),
    re.compile(r"\b(?:Observable|BehaviorSubject|Subject)\b"),
    re.compile(r"\b(?:OnInit|OnDestroy|OnChanges)\b"),
    re.compile(r"\b(?:HttpClient|Router|ActivatedRoute)\b"),
)
_NON_LETTER_RE = re.compile(r"[^A-Za-z]")

# Named structural patterns counted for corpus statistics
STRUCTURAL_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("Component Decorator", re.compile(r"@Component")),
    ("Injectable Decorator", re.compile(r"@Injectable")),
    ("Signal Usage", re.compile(r"signal\s*\(")),
    ("Computed Signal", re.compile(r"computed\s*\(")),
    ("RxJS Pipe", re.compile(r"\.pipe\s*\(")),
    ("Form Control", re.compile(r"FormControl")),
    ("OnPush Strategy", re.compile(r"OnPush")),
)

_COMPLEX_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"async|await"),
    re.compile(r"Observable|Subject"),
    re.compile(r"pipe\s*\("),
    re.compile(r"switchMap|mergeMap|concatMap"),
)

_OPENERS = frozenset("{(")
_CLOSERS = frozenset("})")

_MOST_USED_LIMIT = 10

# ── Complexity buckets ──────────────────────────────────────────────

_LEVELS: tuple[tuple[float, str], ...] = (
    (2.0, "Simple"),
    (4.0, "Medium"),
    (6.0, "Complex"),
)


def complexity_level(complexity: float) -> str:
    """Bucket a complexity score: Simple ≤2, Medium ≤4, Complex ≤6, else Advanced."""
    for ceiling, name in _LEVELS:
        if complexity <= ceiling:
            return name
    return "Advanced"


@dataclass(frozen=True)
class IndexGeneration:
    """One complete, immutable index build."""

    entries: tuple[IndexEntry, ...] = ()
    stats: IndexStats = field(default_factory=IndexStats)
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


# ── Per-sample derivations ──────────────────────────────────────────


def _line_count(code: str) -> int:
    return len(code.split("\n"))


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def extract_code_keywords(code: str) -> list[str]:
    """Symbol keywords found in code, first occurrence order, deduplicated."""
    seen: dict[str, None] = {}
    for pattern in _KEYWORD_PATTERNS:
        for match in pattern.finditer(code):
            keyword = _NON_LETTER_RE.sub("", match.group(0))
            if keyword:
                seen.setdefault(keyword, None)
    return list(seen)


def extract_patterns(code: str) -> list[str]:
    """Names of the structural patterns present in ``code``."""
    return [name for name, pattern in STRUCTURAL_PATTERNS if pattern.search(code)]


def nesting_depth(code: str) -> int:
    """Maximum ``{``/``(`` depth reached while scanning left to right."""
    depth = 0
    deepest = 0
    for char in code:
        if char in _OPENERS:
            depth += 1
            deepest = max(deepest, depth)
        elif char in _CLOSERS:
            depth -= 1
    return deepest


def compute_weight(
    sample: CodeSample,
    now: datetime,
    config: IndexConfig | None = None,
) -> float:
    """``1 + difficulty·0.2 + popularity·0.3 + recency + min(lines/50, 1)·0.3``."""
    cfg = config or IndexConfig()
    weight = 1.0
    weight += (sample.difficulty or 1) * 0.2
    weight += (sample.popularity or 0.0) * 0.3
    if sample.last_updated is not None:
        age_days = (now - _as_utc(sample.last_updated)).total_seconds() / 86400
        if age_days < cfg.recency_days:
            weight += cfg.recency_bonus
    weight += min(_line_count(sample.code) / 50, 1) * 0.3
    return round(weight, 1)


def compute_complexity(code: str) -> float:
    """``1 + min(lines/10, 5) + depth·0.5 + complex-pattern hits·0.3``."""
    complexity = 1.0
    complexity += min(_line_count(code) / 10, 5)
    complexity += nesting_depth(code) * 0.5
    for pattern in _COMPLEX_PATTERNS:
        complexity += len(pattern.findall(code)) * 0.3
    return round(complexity, 1)


def _describe(sample: CodeSample) -> str:
    parts: list[str] = []
    if sample.categories:
        parts.append(f"{sample.categories[0]} example")
    if sample.difficulty:
        parts.append(f"difficulty level {sample.difficulty}")
    if sample.tags:
        parts.append(f"featuring {', '.join(sample.tags[:3])}")
    parts.append(f"{_line_count(sample.code)} lines of {sample.language}")
    return ", ".join(parts)


def _validate(sample: CodeSample) -> None:
    if not isinstance(sample.id, str) or not sample.id:
        raise BuildEntryError(str(sample.id), "missing id")
    if not isinstance(sample.code, str):
        raise BuildEntryError(sample.id, f"code must be text, got {type(sample.code).__name__}")
    for name in ("language", "title", "concept_path"):
        value = getattr(sample, name)
        if not isinstance(value, str):
            raise BuildEntryError(sample.id, f"{name} must be text, got {type(value).__name__}")
    for name in ("categories", "tags"):
        value = getattr(sample, name)
        if not isinstance(value, (tuple, list)) or not all(isinstance(v, str) for v in value):
            raise BuildEntryError(sample.id, f"{name} must be a sequence of strings, got {value!r}")
    if not isinstance(sample.difficulty, int) or isinstance(sample.difficulty, bool):
        raise BuildEntryError(sample.id, f"difficulty must be an integer, got {sample.difficulty!r}")
    if sample.difficulty < 0:
        raise BuildEntryError(sample.id, f"difficulty must be >= 0, got {sample.difficulty}")
    if not isinstance(sample.popularity, (int, float)) or sample.popularity < 0:
        raise BuildEntryError(sample.id, f"popularity must be >= 0, got {sample.popularity!r}")
    if sample.last_updated is not None and not isinstance(sample.last_updated, datetime):
        raise BuildEntryError(sample.id, "last_updated must be a datetime")


def build_entry(
    sample: CodeSample,
    now: datetime,
    config: IndexConfig | None = None,
) -> IndexEntry:
    """Derive the index entry for one sample.

    Raises:
        BuildEntryError: If the sample is malformed.
    """
    _validate(sample)
    try:
        return _derive_entry(sample, now, config)
    except (TypeError, ValueError, AttributeError) as e:
        raise BuildEntryError(sample.id, str(e)) from e


def _derive_entry(sample: CodeSample, now: datetime, config: IndexConfig | None) -> IndexEntry:
    keywords = {sample.language, *sample.categories, *sample.tags}
    keywords.update(extract_code_keywords(sample.code))
    keywords.discard("")

    searchable_text = " ".join(
        [
            sample.title,
            sample.code,
            " ".join(sample.categories),
            " ".join(sample.tags),
            sample.language,
        ]
    ).lower()

    return IndexEntry(
        id=sample.id,
        title=sample.title or f"{sample.language} Example",
        keywords=frozenset(keywords),
        searchable_text=searchable_text,
        weight=compute_weight(sample, now, config),
        concept_path=sample.concept_path or (sample.categories[0] if sample.categories else "general"),
        last_modified=_as_utc(sample.last_updated) if sample.last_updated else now,
        description=_describe(sample),
        complexity=compute_complexity(sample.code),
        sample=sample,
    )


# ── Aggregation ─────────────────────────────────────────────────────


def _pattern_counts(entries: Iterable[IndexEntry]) -> list[tuple[str, int]]:
    counts: Counter[str] = Counter()
    for entry in entries:
        if entry.sample is not None:
            counts.update(extract_patterns(entry.sample.code))
    # Ties keep catalog order
    order = {name: i for i, (name, _) in enumerate(STRUCTURAL_PATTERNS)}
    return sorted(counts.items(), key=lambda item: (-item[1], order[item[0]]))


def _build_stats(entries: Sequence[IndexEntry]) -> IndexStats:
    by_language: Counter[str] = Counter()
    by_category: Counter[str] = Counter()
    by_difficulty: Counter[int] = Counter()
    total_complexity = 0.0

    for entry in entries:
        by_language[entry.language] += 1
        by_category.update(entry.categories)
        difficulty = entry.sample.difficulty if entry.sample is not None else 1
        by_difficulty[difficulty or 1] += 1
        total_complexity += entry.complexity

    return IndexStats(
        total_examples=len(entries),
        by_language=dict(by_language),
        by_category=dict(by_category),
        by_difficulty=dict(by_difficulty),
        average_complexity=round(total_complexity / len(entries), 2) if entries else 0.0,
        most_used_patterns=tuple(_pattern_counts(entries)[:_MOST_USED_LIMIT]),
    )


def build_index(
    samples: Iterable[CodeSample],
    now: datetime | None = None,
    config: IndexConfig | None = None,
) -> IndexGeneration:
    """Build a complete index generation.

    A malformed sample is logged and skipped; the build never aborts for
    one bad entry. Entries are ordered by descending weight, ties in input
    order.

    Args:
        samples: Code samples to index.
        now: Reference time for recency and missing timestamps.
        config: Recency window and bonus.

    Returns:
        IndexGeneration with entries and aggregate statistics.
    """
    now = _as_utc(now) if now is not None else datetime.now(timezone.utc)
    entries: list[IndexEntry] = []
    skipped = 0

    for sample in samples:
        try:
            entries.append(build_entry(sample, now, config))
        except BuildEntryError as e:
            logger.warning("Skipping code sample: %s", e)
            skipped += 1

    entries.sort(key=lambda entry: -entry.weight)
    stats = _build_stats(entries)
    logger.info("Built code index: %d entries (%d skipped)", len(entries), skipped)
    return IndexGeneration(entries=tuple(entries), stats=stats, generated_at=now)


def complexity_analysis(
    generation: IndexGeneration,
    now: datetime | None = None,
    config: IndexConfig | None = None,
) -> dict[str, object]:
    """Distribution of complexity levels with authoring recommendations and trends."""
    cfg = config or IndexConfig()
    now = _as_utc(now) if now is not None else datetime.now(timezone.utc)
    entries = generation.entries
    distribution = Counter(complexity_level(entry.complexity) for entry in entries)

    recommendations: list[str] = []
    trends: list[str] = []
    total = len(entries)
    if total:
        if distribution["Simple"] / total * 100 < 30:
            recommendations.append("Consider adding more simple examples for beginners")
        if distribution["Advanced"] / total * 100 > 40:
            recommendations.append(
                "High number of advanced examples - ensure adequate documentation"
            )

        recent = sum(
            1
            for entry in entries
            if (now - entry.last_modified).total_seconds() < cfg.recency_days * 86400
        )
        if recent > total * 0.3:
            trends.append("High recent activity in code examples")
        signal_users = sum(
            1 for entry in entries if {"signal", "computed"} & entry.keywords
        )
        if signal_users > total * 0.4:
            trends.append("Strong adoption of the signals pattern")

    return {
        "distribution": dict(distribution),
        "recommendations": recommendations,
        "trends": trends,
    }
