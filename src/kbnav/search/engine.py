"""Free-text search over the code index.

Scoring per entry (before normalization):
  +10   the title contains the whole query
  +5    per query term found in the searchable text
  +2.5  per remaining term that only matches a word approximately
  +3    per keyword containing the query or a query term
  +0.5 × entry weight

The sum is divided by 20, capped at 1.0 and rounded to two decimals.
Ordering is fully deterministic: score, then constitutional and
best-practice samples first, then title, then id.
"""

from __future__ import annotations

import html
import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from kbnav.config import SearchConfig
from kbnav.types import MatchType, SearchResultGroup, SearchResultItem

if TYPE_CHECKING:
    from collections.abc import Sequence

    from kbnav.index.builder import IndexGeneration
    from kbnav.index.service import CodeIndex
    from kbnav.types import IndexEntry, SearchFilter

__all__ = [
    "POPULAR_SEARCHES",
    "SearchOptions",
    "entry_similarity",
    "fuzzy_match",
    "group_results",
    "highlight_terms",
    "levenshtein",
    "related_entries",
    "score_entry",
    "search",
    "similarity",
    "suggest",
    "tokenize_query",
]

logger = logging.getLogger(__name__)

POPULAR_SEARCHES: tuple[str, ...] = (
    "components",
    "services",
    "routing",
    "forms",
    "observables",
    "dependency injection",
    "standalone",
    "signals",
    "onpush",
    "testing",
)

_MIN_TERM_LENGTH = 3
_MIN_FUZZY_LENGTH = 3
_MAX_SUGGESTIONS = 8
_MAX_HIGHLIGHT_LINES = 3

_TITLE_POINTS = 10.0
_TERM_POINTS = 5.0
_KEYWORD_POINTS = 3.0
_WEIGHT_FACTOR = 0.5
_NORMALIZER = 20.0

_WORD_RE = re.compile(r"\w+")

GROUP_KEYS = ("skill_level", "language", "category")


@dataclass(frozen=True)
class SearchOptions:
    """Result limits and fuzzy-matching knobs."""

    max_results: int = 50
    min_score: float = 0.1
    fuzzy_threshold: float = 0.7
    fuzzy_bonus: float = 2.5

    @classmethod
    def from_config(cls, config: SearchConfig) -> SearchOptions:
        return cls(
            max_results=config.max_results,
            min_score=config.min_score,
            fuzzy_threshold=config.fuzzy_threshold,
            fuzzy_bonus=config.fuzzy_bonus,
        )


# ── String similarity ───────────────────────────────────────────────


def levenshtein(a: str, b: str) -> int:
    """Edit distance with unit-cost insert, delete and substitute."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + (ca != cb),
                )
            )
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """``(len(longer) - distance) / len(longer)``; 1.0 for two empty strings."""
    longer = max(len(a), len(b))
    if longer == 0:
        return 1.0
    return (longer - levenshtein(a, b)) / longer


def fuzzy_match(term: str, text: str, threshold: float = 0.7) -> bool:
    """True when some word of ``text`` is more than ``threshold`` similar to ``term``.

    Terms and words shorter than three characters never match.
    """
    if len(term) < _MIN_FUZZY_LENGTH:
        return False
    term = term.lower()
    return any(
        len(word) >= _MIN_FUZZY_LENGTH and similarity(term, word) > threshold
        for word in _WORD_RE.findall(text.lower())
    )


# ── Scoring ─────────────────────────────────────────────────────────


def tokenize_query(query: str) -> list[str]:
    """Lowercase whitespace-separated terms longer than two characters."""
    return [term for term in query.lower().split() if len(term) >= _MIN_TERM_LENGTH]


def score_entry(
    entry: IndexEntry,
    query: str,
    terms: Sequence[str] | None = None,
    options: SearchOptions | None = None,
) -> SearchResultItem:
    """Score one entry against a query. See the module docstring for the formula."""
    opts = options or SearchOptions()
    query = query.strip().lower()
    if terms is None:
        terms = tokenize_query(query)

    score = 0.0
    reasons: list[str] = []

    title_hit = bool(query) and query in entry.title.lower()
    if title_hit:
        score += _TITLE_POINTS
        reasons.append("Title match")

    direct = [term for term in terms if term in entry.searchable_text]
    for term in direct:
        score += _TERM_POINTS
        reasons.append(f"Keyword: {term}")

    fuzzy = [
        term
        for term in terms
        if term not in direct and fuzzy_match(term, entry.searchable_text, opts.fuzzy_threshold)
    ]
    for term in fuzzy:
        score += opts.fuzzy_bonus
        reasons.append(f"Fuzzy: {term}")

    keyword_hits = sorted(
        keyword
        for keyword in entry.keywords
        if (query and query in keyword.lower()) or any(term in keyword.lower() for term in terms)
    )
    score += len(keyword_hits) * _KEYWORD_POINTS
    if keyword_hits:
        reasons.append(f"Keywords: {', '.join(keyword_hits)}")

    score += entry.weight * _WEIGHT_FACTOR
    score = round(min(score / _NORMALIZER, 1.0), 2)

    if title_hit or (terms and len(direct) == len(terms)):
        match_type = MatchType.EXACT
    elif direct or keyword_hits:
        match_type = MatchType.PARTIAL
    elif fuzzy:
        match_type = MatchType.FUZZY
    else:
        match_type = MatchType.PARTIAL

    return SearchResultItem(
        entry=entry,
        relevance_score=score,
        match_type=match_type,
        match_reasons=tuple(reasons),
    )


def highlight_terms(text: str, terms: Iterable[str], limit: int = _MAX_HIGHLIGHT_LINES) -> list[str]:
    """Lines of ``text`` containing any term, HTML-escaped, terms wrapped in ``<mark>``."""
    needles = sorted({t for t in terms if t}, key=len, reverse=True)
    if not needles:
        return []
    pattern = re.compile("|".join(re.escape(t) for t in needles), re.IGNORECASE)

    lines: list[str] = []
    for line in text.split("\n"):
        if len(lines) >= limit:
            break
        pieces: list[str] = []
        cursor = 0
        for match in pattern.finditer(line):
            pieces.append(html.escape(line[cursor : match.start()]))
            pieces.append(f"<mark>{html.escape(match.group(0))}</mark>")
            cursor = match.end()
        if not pieces:
            continue
        pieces.append(html.escape(line[cursor:]))
        lines.append("".join(pieces).strip())
    return lines


# ── Filtering ───────────────────────────────────────────────────────


def _passes(entry: IndexEntry, filters: SearchFilter) -> bool:
    sample = entry.sample
    if filters.languages and entry.language not in filters.languages:
        return False
    if filters.categories and not set(filters.categories) & set(entry.categories):
        return False
    if filters.tags and (sample is None or not set(filters.tags) & set(sample.tags)):
        return False
    if filters.concept_paths and not any(p in entry.concept_path for p in filters.concept_paths):
        return False
    if filters.skill_levels and (sample is None or sample.skill_level not in filters.skill_levels):
        return False
    if filters.difficulty_range is not None:
        low, high = filters.difficulty_range
        difficulty = sample.difficulty if sample is not None else 1
        if not low <= difficulty <= high:
            return False
    return True


def _sort_key(item: SearchResultItem) -> tuple[float, bool, bool, str, str]:
    sample = item.entry.sample
    constitutional = sample.constitutional if sample is not None else False
    best_practice = sample.best_practice if sample is not None else False
    return (
        -item.relevance_score,
        not constitutional,
        not best_practice,
        item.entry.title.casefold(),
        item.entry.id,
    )


def _entries_of(source: CodeIndex | IndexGeneration | Iterable[IndexEntry]) -> Iterable[IndexEntry]:
    entries = getattr(source, "entries", source)
    return entries if isinstance(entries, Iterable) else ()


def search(
    source: CodeIndex | IndexGeneration | Iterable[IndexEntry],
    query: str,
    filters: SearchFilter | None = None,
    options: SearchOptions | None = None,
) -> list[SearchResultItem]:
    """Rank index entries against a free-text query.

    Filters apply before scoring. Reads the entries once, so a concurrent
    rebuild of a ``CodeIndex`` never mixes generations within one search.

    Args:
        source: A ``CodeIndex``, an ``IndexGeneration`` or entries.
        query: Free text; falls back to ``filters.query`` when blank.
        filters: Language/category/tag/path/skill/difficulty constraints.
        options: Result limits and fuzzy knobs.

    Returns:
        At most ``max_results`` items scoring at least ``min_score``.
    """
    opts = options or SearchOptions()
    if not query.strip() and filters is not None:
        query = filters.query
    query = query.strip().lower()
    if not query:
        return []

    terms = tokenize_query(query)
    results: list[SearchResultItem] = []
    for entry in _entries_of(source):
        if filters is not None and not _passes(entry, filters):
            continue
        item = score_entry(entry, query, terms, opts)
        if item.relevance_score < opts.min_score:
            continue
        results.append(item)

    results.sort(key=_sort_key)
    results = results[: opts.max_results]

    highlighted: list[SearchResultItem] = []
    for item in results:
        text = item.entry.sample.code if item.entry.sample is not None else item.entry.title
        lines = highlight_terms(text, [query, *terms])
        highlighted.append(
            SearchResultItem(
                entry=item.entry,
                relevance_score=item.relevance_score,
                match_type=item.match_type,
                highlighted_content=tuple(lines),
                match_reasons=item.match_reasons,
            )
        )

    logger.debug("Search %r: %d results", query, len(highlighted))
    return highlighted


# ── Related entries, grouping, suggestions ──────────────────────────


def entry_similarity(a: IndexEntry, b: IndexEntry) -> float:
    """0.3 same language + 0.4 shared-category ratio + 0.3 shared-keyword ratio."""
    score = 0.0
    if a.language == b.language:
        score += 0.3

    categories_a, categories_b = set(a.categories), set(b.categories)
    shared = len(categories_a & categories_b)
    score += shared / max(len(categories_a), len(categories_b), 1) * 0.4

    shared = len(a.keywords & b.keywords)
    score += shared / max(len(a.keywords), len(b.keywords), 1) * 0.3
    return score


def related_entries(
    target: IndexEntry,
    entries: Iterable[IndexEntry],
    threshold: float = 0.3,
) -> list[tuple[IndexEntry, float]]:
    """Entries more than ``threshold`` similar to ``target``, most similar first."""
    scored = [
        (entry, entry_similarity(target, entry))
        for entry in entries
        if entry.id != target.id
    ]
    related = [(entry, score) for entry, score in scored if score > threshold]
    related.sort(key=lambda pair: -pair[1])
    return related


def _group_keys(item: SearchResultItem, key: str) -> list[str]:
    entry = item.entry
    if key == "language":
        return [entry.language]
    if key == "category":
        return list(entry.categories) or ["general"]
    skill = entry.sample.skill_level if entry.sample is not None else ""
    return [skill or "unspecified"]


def group_results(results: Iterable[SearchResultItem], key: str = "skill_level") -> list[SearchResultGroup]:
    """Bucket results by skill level, language or category.

    Groups appear in order of their first result; results keep their rank
    order within a group. An entry with several categories joins each.

    Raises:
        ValueError: For an unknown grouping key.
    """
    if key not in GROUP_KEYS:
        raise ValueError(f"Unknown group key {key!r}; expected one of {', '.join(GROUP_KEYS)}")

    buckets: dict[str, list[SearchResultItem]] = {}
    for item in results:
        for name in _group_keys(item, key):
            buckets.setdefault(name, []).append(item)
    return [
        SearchResultGroup(key=name, results=tuple(items), total_count=len(items))
        for name, items in buckets.items()
    ]


def suggest(
    query: str,
    entries: Iterable[IndexEntry] = (),
    popular: Sequence[str] = POPULAR_SEARCHES,
) -> list[str]:
    """Completion candidates: matching titles, then matching popular searches."""
    query = query.strip().lower()
    if len(query) < 2:
        return list(popular)

    seen: dict[str, None] = {}
    for entry in entries:
        if query in entry.title.lower():
            seen.setdefault(entry.title, None)
    for term in popular:
        if query in term.lower():
            seen.setdefault(term, None)
    return list(seen)[:_MAX_SUGGESTIONS]
