"""Tests for kbnav.search.patterns module."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from kbnav.index import IndexGeneration, build_index
from kbnav.search.patterns import (
    PATTERN_CATALOG,
    TextSearchOptions,
    find_pattern_matches,
    find_text_matches,
    get_pattern,
    highlight_matches,
    patterns_by_category,
    search_code,
    search_patterns,
)
from kbnav.types import CodeMatch, CodeSample

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)

CODE = "const value = 1;\nvalues.push(value);"


@pytest.fixture
def generation(samples: list[CodeSample]) -> IndexGeneration:
    return build_index(samples, now=NOW)


class TestCatalog:
    def test_catalog_size(self):
        assert len(PATTERN_CATALOG) == 8
        assert len({p.name for p in PATTERN_CATALOG}) == 8

    def test_get_pattern(self):
        pattern = get_pattern("OnPush Strategy")
        assert pattern is not None
        assert pattern.category == "performance"
        assert get_pattern("Nope") is None

    def test_by_category(self):
        names = [p.name for p in patterns_by_category("services")]
        assert names == ["Injectable Service", "RxJS Operators", "Dependency Injection"]


# ── Text matches ────────────────────────────────────────────────────


class TestFindTextMatches:
    def test_case_insensitive_default(self):
        matches = find_text_matches(CODE, "VALUE")
        assert [(m.line, m.column) for m in matches] == [(1, 6), (2, 0), (2, 12)]
        assert all(m.match_type == "partial" for m in matches)

    def test_verbatim_hits_are_exact(self):
        matches = find_text_matches("Value value", "value")
        assert [m.match_type for m in matches] == ["partial", "exact"]

    def test_regex_hits_are_partial(self):
        matches = find_text_matches(CODE, r"val\w+", TextSearchOptions(use_regex=True))
        assert {m.match_type for m in matches} == {"partial"}

    def test_case_sensitive(self):
        assert find_text_matches(CODE, "VALUE", TextSearchOptions(case_sensitive=True)) == []

    def test_whole_word(self):
        matches = find_text_matches(CODE, "value", TextSearchOptions(whole_word=True))
        assert [(m.line, m.column) for m in matches] == [(1, 6), (2, 12)]

    def test_regex(self):
        matches = find_text_matches(CODE, r"val\w+", TextSearchOptions(use_regex=True))
        assert [m.text for m in matches] == ["value", "values", "value"]

    def test_invalid_regex_searched_literally(self):
        matches = find_text_matches(CODE, "(", TextSearchOptions(use_regex=True))
        assert [(m.line, m.column) for m in matches] == [(2, 11)]

    def test_zero_length_matches_skipped(self):
        assert find_text_matches("abc", "x*", TextSearchOptions(use_regex=True)) == []

    def test_comments_excluded(self):
        code = "// value here\nlet value = 1;"
        options = TextSearchOptions(include_comments=False)
        matches = find_text_matches(code, "value", options, language="typescript")
        assert [m.line for m in matches] == [2]

    def test_context_lines(self):
        code = "\n".join(f"line {i}" for i in range(1, 8))
        match = find_text_matches(code, "line 4")[0]
        assert match.context == "line 2\nline 3\nline 4\nline 5\nline 6"

    def test_empty_query(self):
        assert find_text_matches(CODE, "") == []


class TestFindPatternMatches:
    def test_multiline_match_position(self):
        code = "import x;\n\n@Component({\n  selector: 'a',\n})\nclass A {}"
        pattern = get_pattern("Component Declaration")
        matches = find_pattern_matches(code, pattern)
        assert len(matches) == 1
        assert (matches[0].line, matches[0].column) == (3, 0)
        assert matches[0].match_type == "pattern"

    def test_signal_and_computed(self):
        pattern = get_pattern("Signal Usage")
        matches = find_pattern_matches("a = signal(1);\nb = computed(() => a());", pattern)
        assert [m.line for m in matches] == [1, 2]


# ── Pattern search ──────────────────────────────────────────────────


class TestSearchPatterns:
    def test_all_patterns_ranked(self, generation: IndexGeneration):
        results = search_patterns(generation.entries)
        assert [(r.pattern.name, r.entry.id, r.relevance_score) for r in results] == [
            ("Component Declaration", "components#code-1", 55.0),
            ("Dependency Injection", "services#code-1", 55.0),
            ("Injectable Service", "services#code-1", 45.0),
            ("RxJS Operators", "services#code-1", 45.0),
            ("Signal Usage", "components#code-1", 20.0),
        ]

    def test_single_pattern_preview(self, generation: IndexGeneration):
        results = search_patterns(generation.entries, "Signal Usage")
        assert len(results) == 1
        assert results[0].matches[0].line == 6
        assert results[0].preview == (
            "Pattern: Signal Usage\nexport class CounterComponent {\n  count = signal(0);\n}"
        )

    def test_unknown_pattern(self, generation: IndexGeneration):
        assert search_patterns(generation.entries, "Nope") == []


class TestSearchCode:
    def test_scoring(self, generation: IndexGeneration):
        results = search_code(generation.entries, "count")
        assert len(results) == 1
        result = results[0]
        assert result.entry.id == "components#code-1"
        assert result.pattern is None
        assert len(result.matches) == 4
        assert [m.match_type for m in result.matches] == ["exact", "exact", "partial", "exact"]
        assert result.relevance_score == 180.0

    def test_blank_query(self, generation: IndexGeneration):
        assert search_code(generation.entries, "  ") == []


class TestHighlightMatches:
    def test_wraps_match(self):
        match = CodeMatch(line=1, column=4, length=5, text="value", context="")
        assert highlight_matches("let value = 1;", [match]) == (
            'let <mark class="code-search-highlight">value</mark> = 1;'
        )

    def test_several_matches_on_one_line(self):
        matches = find_text_matches(CODE, "value", TextSearchOptions(whole_word=True))
        highlighted = highlight_matches(CODE, matches)
        assert highlighted.count('<mark class="code-search-highlight">value</mark>') == 2
        assert highlighted.split("\n")[1].startswith("values.push(")

    def test_escapes_html(self):
        code = "<div>{{ value }}</div>"
        match = CodeMatch(line=1, column=8, length=5, text="value", context="")
        assert highlight_matches(code, [match]) == (
            '&lt;div&gt;{{ <mark class="code-search-highlight">value</mark> }}&lt;/div&gt;'
        )

    def test_escapes_without_matches(self):
        assert highlight_matches("a < b && c", []) == "a &lt; b &amp;&amp; c"

    def test_out_of_range_ignored(self):
        match = CodeMatch(line=9, column=0, length=1, text="x", context="")
        assert highlight_matches("abc", [match]) == "abc"
