"""Search: ranked free-text search, fuzzy matching and structural pattern search."""

from kbnav.search.debounce import Debouncer
from kbnav.search.engine import (
    POPULAR_SEARCHES,
    SearchOptions,
    entry_similarity,
    fuzzy_match,
    group_results,
    levenshtein,
    related_entries,
    score_entry,
    search,
    similarity,
    suggest,
    tokenize_query,
)
from kbnav.search.patterns import (
    PATTERN_CATALOG,
    TextSearchOptions,
    find_text_matches,
    highlight_matches,
    search_code,
    search_patterns,
)

__all__ = [
    "PATTERN_CATALOG",
    "POPULAR_SEARCHES",
    "Debouncer",
    "SearchOptions",
    "TextSearchOptions",
    "entry_similarity",
    "find_text_matches",
    "fuzzy_match",
    "group_results",
    "highlight_matches",
    "levenshtein",
    "related_entries",
    "score_entry",
    "search",
    "search_code",
    "search_patterns",
    "similarity",
    "suggest",
    "tokenize_query",
]
