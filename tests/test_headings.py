"""Tests for kbnav.ingest.headings module."""

from __future__ import annotations

import pytest

from kbnav.ingest.headings import (
    AnchorRegistry,
    extract_headings,
    iter_heading_lines,
    render_anchored_markup,
    slugify,
)


class TestSlugify:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("Hello, World!", "hello-world"),
            ("Signals & Computed()", "signals-computed"),
            ("snake_case  name", "snake-case-name"),
            ("  --Leading and trailing-- ", "leading-and-trailing"),
            ("Version 2.0", "version-20"),
        ],
    )
    def test_slugs(self, text: str, expected: str):
        assert slugify(text) == expected

    def test_empty_slug_falls_back(self):
        assert slugify("!!!") == "section"


class TestAnchorRegistry:
    def test_collisions_get_suffixes(self):
        registry = AnchorRegistry()
        assert registry.unique("Test") == "test"
        assert registry.unique("Test") == "test-2"
        assert registry.unique("test") == "test-3"
        assert len(registry) == 3

    def test_suffix_skips_taken_anchor(self):
        registry = AnchorRegistry()
        registry.unique("Test 2")
        registry.unique("Test")
        assert registry.unique("Test") == "test-3"
        assert "test-2" in registry


class TestExtractHeadings:
    def test_levels_and_text(self):
        body = "# Title\n\nIntro\n\n## Part One\n\n### Detail\n"
        headings = extract_headings(body)
        assert [(h.level, h.text, h.id) for h in headings] == [
            (1, "Title", "title"),
            (2, "Part One", "part-one"),
            (3, "Detail", "detail"),
        ]

    def test_duplicate_headings_unique_ids(self):
        headings = extract_headings("# Test\n## Test\n### Test\n")
        assert [h.id for h in headings] == ["test", "test-2", "test-3"]

    def test_ids_are_unique(self, component_doc: str):
        headings = extract_headings(component_doc)
        ids = [h.id for h in headings]
        assert len(ids) == len(set(ids))

    def test_headings_in_fences_ignored(self):
        body = "# Real\n\n```bash\n# not a heading\n```\n\n~~~\n## also code\n~~~\n## After\n"
        assert [h.text for h in extract_headings(body)] == ["Real", "After"]

    def test_closing_hashes_stripped(self):
        assert extract_headings("## Closed ##\n")[0].text == "Closed"

    def test_requires_space_after_marker(self):
        assert extract_headings("#hashtag\n####### seven\n") == []

    def test_empty_body(self):
        assert extract_headings("") == []


class TestIterHeadingLines:
    def test_offsets_point_at_heading(self):
        body = "intro\n## Two\ntext\n# One\n"
        lines = list(iter_heading_lines(body))
        assert [body[line.offset :].split("\n")[0] for line in lines] == ["## Two", "# One"]
        assert [line.line_index for line in lines] == [1, 3]


class TestRenderAnchoredMarkup:
    def test_ids_match_extracted_headings(self):
        body = "# Test\ntext\n## Test\n"
        html = render_anchored_markup(body)
        ids = [h.id for h in extract_headings(body)]
        assert html == '<h1 id="test">Test</h1>\ntext\n<h2 id="test-2">Test</h2>\n'
        assert ids == ["test", "test-2"]

    def test_heading_text_escaped(self):
        html = render_anchored_markup("# <script> & co\n")
        assert "&lt;script&gt; &amp; co" in html
        assert 'id="script-co"' in html

    def test_code_untouched(self):
        body = "```\n# comment\n```"
        assert render_anchored_markup(body) == body
