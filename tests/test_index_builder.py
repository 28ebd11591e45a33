"""Tests for kbnav.index.builder module."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from kbnav.config import IndexConfig
from kbnav.exceptions import BuildEntryError
from kbnav.index.builder import (
    build_entry,
    build_index,
    complexity_analysis,
    complexity_level,
    compute_complexity,
    compute_weight,
    extract_code_keywords,
    extract_patterns,
    nesting_depth,
)
from kbnav.types import CodeSample

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


# ── Derivations ─────────────────────────────────────────────────────


class TestKeywords:
    def test_decorators_and_signals(self):
        code = "@Component({})\nclass A { n = signal(0); c = computed(() => 1); }"
        assert extract_code_keywords(code) == ["Component", "signal", "computed"]

    def test_deduplicated_in_first_seen_order(self):
        code = "Observable<T>; Subject; Observable; HttpClient"
        assert extract_code_keywords(code) == ["Observable", "Subject", "HttpClient"]

    def test_plain_code(self):
        assert extract_code_keywords("let a = 1;") == []


class TestPatterns:
    def test_structural_patterns(self):
        code = "@Component({ changeDetection: ChangeDetectionStrategy.OnPush })\nx = signal(1)"
        assert extract_patterns(code) == ["Component Decorator", "Signal Usage", "OnPush Strategy"]

    def test_nesting_depth(self):
        assert nesting_depth("a(b{c}d)e") == 2
        assert nesting_depth("no brackets") == 0


class TestComplexity:
    def test_single_line(self):
        assert compute_complexity("x") == 1.1

    def test_nesting_and_async(self):
        assert compute_complexity("async f() { await g(); }") == 2.7

    def test_line_contribution_capped(self):
        code = "\n".join(["x"] * 200)
        assert compute_complexity(code) == 6.0

    @pytest.mark.parametrize(
        ("score", "level"),
        [(1.0, "Simple"), (2.0, "Simple"), (2.1, "Medium"), (4.0, "Medium"), (6.0, "Complex"), (6.1, "Advanced")],
    )
    def test_levels(self, score: float, level: str):
        assert complexity_level(score) == level


class TestWeight:
    def test_base_formula(self):
        sample = CodeSample(id="s", code="x", difficulty=3, popularity=2.0)
        assert compute_weight(sample, NOW) == 2.2

    def test_recency_bonus(self):
        sample = CodeSample(id="s", code="x", difficulty=3, popularity=2.0, last_updated=NOW - timedelta(days=5))
        assert compute_weight(sample, NOW) == 2.7

    def test_old_sample_no_bonus(self):
        sample = CodeSample(id="s", code="x", last_updated=NOW - timedelta(days=45))
        assert compute_weight(sample, NOW) == 1.2

    def test_naive_timestamp_treated_as_utc(self):
        sample = CodeSample(id="s", code="x", last_updated=datetime(2024, 5, 31))
        assert compute_weight(sample, NOW) == 1.7

    def test_line_bonus_capped(self):
        sample = CodeSample(id="s", code="\n".join(["x"] * 100))
        assert compute_weight(sample, NOW) == 1.5

    def test_custom_recency_window(self):
        sample = CodeSample(id="s", code="x", last_updated=NOW - timedelta(days=5))
        assert compute_weight(sample, NOW, IndexConfig(recency_days=3)) == 1.2


# ── Entries ─────────────────────────────────────────────────────────


class TestBuildEntry:
    def test_fields(self, samples: list[CodeSample]):
        entry = build_entry(samples[0], NOW)
        assert entry.id == "components#code-1"
        assert entry.title == "Counter component"
        assert {"typescript", "components", "signals", "standalone", "Component", "signal"} <= entry.keywords
        assert "counter component" in entry.searchable_text
        assert entry.searchable_text == entry.searchable_text.lower()
        assert entry.concept_path == "fundamentals/components"
        assert entry.last_modified == samples[0].last_updated
        assert entry.sample is samples[0]

    def test_default_title(self):
        entry = build_entry(CodeSample(id="s", code="ls", language="bash"), NOW)
        assert entry.title == "bash Example"

    def test_concept_path_fallbacks(self):
        assert build_entry(CodeSample(id="s", code="x", categories=("forms",)), NOW).concept_path == "forms"
        assert build_entry(CodeSample(id="s", code="x"), NOW).concept_path == "general"

    def test_missing_timestamp_uses_now(self):
        assert build_entry(CodeSample(id="s", code="x"), NOW).last_modified == NOW

    def test_description(self, samples: list[CodeSample]):
        entry = build_entry(samples[2], NOW)
        assert entry.description == "tooling example, difficulty level 1, 1 lines of bash"

    @pytest.mark.parametrize(
        "sample",
        [
            CodeSample(id="", code="x"),
            CodeSample(id="s", code=None),  # type: ignore[arg-type]
            CodeSample(id="s", code="x", difficulty=True),
            CodeSample(id="s", code="x", difficulty="2"),  # type: ignore[arg-type]
            CodeSample(id="s", code="x", popularity=-1.0),
            CodeSample(id="s", code="x", last_updated="2024-01-01"),  # type: ignore[arg-type]
        ],
    )
    def test_malformed_samples_rejected(self, sample: CodeSample):
        with pytest.raises(BuildEntryError):
            build_entry(sample, NOW)


# ── Index ───────────────────────────────────────────────────────────


class TestBuildIndex:
    def test_order_by_weight_ties_stable(self, samples: list[CodeSample]):
        generation = build_index(samples, now=NOW)
        assert [e.id for e in generation.entries] == [
            "components#code-1",
            "services#code-1",
            "setup#code-1",
        ]
        assert [e.weight for e in generation.entries] == [1.7, 1.7, 1.2]

    def test_stats(self, samples: list[CodeSample]):
        stats = build_index(samples, now=NOW).stats
        assert stats.total_examples == 3
        assert stats.by_language == {"typescript": 2, "bash": 1}
        assert stats.by_category == {"components": 1, "services": 1, "tooling": 1}
        assert stats.by_difficulty == {1: 2, 2: 1}
        assert stats.most_used_patterns == (
            ("Component Decorator", 1),
            ("Injectable Decorator", 1),
            ("Signal Usage", 1),
            ("RxJS Pipe", 1),
        )

    def test_average_complexity(self, samples: list[CodeSample]):
        generation = build_index(samples, now=NOW)
        expected = sum(e.complexity for e in generation.entries) / 3
        assert generation.stats.average_complexity == round(expected, 2)

    def test_bad_sample_skipped_and_logged(self, samples: list[CodeSample], caplog: pytest.LogCaptureFixture):
        bad = replace(samples[0], id="", code="x")
        with caplog.at_level(logging.WARNING, logger="kbnav.index.builder"):
            generation = build_index([*samples, bad], now=NOW)
        assert len(generation.entries) == 3
        assert "Skipping code sample" in caplog.text

    @pytest.mark.parametrize(
        "field, value",
        [
            ("categories", None),
            ("tags", None),
            ("title", None),
            ("language", 3),
            ("categories", ("ok", 1)),
        ],
    )
    def test_malformed_field_skipped(self, field: str, value: object):
        good = CodeSample(id="good", code="let x = 1;")
        bad = replace(CodeSample(id="bad", code="let y = 2;"), **{field: value})
        generation = build_index([bad, good], now=NOW)
        assert [e.id for e in generation.entries] == ["good"]

    def test_negative_difficulty_skipped(self):
        generation = build_index([CodeSample(id="neg", code="x", difficulty=-10)], now=NOW)
        assert generation.entries == ()

    def test_weights_never_negative(self, samples: list[CodeSample]):
        zero = CodeSample(id="zero", code="x", difficulty=0)
        generation = build_index([*samples, zero], now=NOW)
        assert all(e.weight >= 0 for e in generation.entries)

    def test_empty(self):
        generation = build_index([], now=NOW)
        assert generation.entries == ()
        assert generation.stats.total_examples == 0
        assert generation.stats.average_complexity == 0.0
        assert generation.generated_at == NOW


class TestComplexityAnalysis:
    def test_distribution_and_trends(self, samples: list[CodeSample]):
        analysis = complexity_analysis(build_index(samples, now=NOW), now=NOW)
        assert analysis["distribution"] == {"Complex": 2, "Simple": 1}
        assert analysis["recommendations"] == []
        assert analysis["trends"] == ["High recent activity in code examples"]

    def test_recommends_simple_examples(self):
        code = "\n".join(["{"] * 40 + ["}"] * 40)
        generation = build_index([CodeSample(id="big", code=code)], now=NOW)
        analysis = complexity_analysis(generation, now=NOW)
        assert "Consider adding more simple examples for beginners" in analysis["recommendations"]
        assert any("advanced examples" in tip for tip in analysis["recommendations"])

    def test_signal_adoption(self):
        samples = [CodeSample(id=f"s{i}", code="x = signal(1)") for i in range(3)]
        analysis = complexity_analysis(build_index(samples, now=NOW), now=NOW)
        assert "Strong adoption of the signals pattern" in analysis["trends"]

    def test_empty(self):
        analysis = complexity_analysis(build_index([], now=NOW), now=NOW)
        assert analysis == {"distribution": {}, "recommendations": [], "trends": []}
