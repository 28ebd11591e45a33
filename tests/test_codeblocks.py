"""Tests for kbnav.ingest.codeblocks module."""

from __future__ import annotations

import pytest

from kbnav.config import CodeConfig
from kbnav.ingest.codeblocks import (
    clean_code,
    detect_language,
    extract_code_blocks,
    find_fenced_blocks,
    parse_directives,
    strip_fenced_blocks,
)


def _clock() -> float:
    return 1_700_000_000.0


def _fence(code: str, tag: str = "") -> str:
    return f"```{tag}\n{code}\n```"


# ── Fence scanning ──────────────────────────────────────────────────


class TestFindFencedBlocks:
    def test_single_block(self):
        blocks = find_fenced_blocks("Text\n\n```ts\nlet a = 1;\n```\n\nMore")
        assert len(blocks) == 1
        assert blocks[0].declared_language == "ts"
        assert blocks[0].raw == "let a = 1;"
        assert blocks[0].start_line == 3
        assert blocks[0].terminated

    def test_info_string_after_tag(self):
        blocks = find_fenced_blocks('```typescript title="x"\ncode\n```')
        assert blocks[0].declared_language == "typescript"

    def test_longer_fence_contains_shorter(self):
        blocks = find_fenced_blocks("````md\n```\ninner\n```\n````")
        assert len(blocks) == 1
        assert blocks[0].raw == "```\ninner\n```"

    def test_tilde_fence(self):
        blocks = find_fenced_blocks("~~~\nx\n~~~")
        assert blocks[0].raw == "x"

    def test_unterminated_runs_to_end(self):
        blocks = find_fenced_blocks("```python\nprint('hi')\nprint('bye')")
        assert len(blocks) == 1
        assert not blocks[0].terminated
        assert blocks[0].raw == "print('hi')\nprint('bye')"

    def test_no_blocks(self):
        assert find_fenced_blocks("just `inline` code") == []


class TestStripFencedBlocks:
    def test_removes_fences_and_contents(self):
        assert strip_fenced_blocks("a\n```\nx\n```\nb") == "a\nb"

    def test_unterminated_removed_to_end(self):
        assert strip_fenced_blocks("a\n```\nx") == "a"

    def test_no_blocks_unchanged(self):
        assert strip_fenced_blocks("plain\ntext") == "plain\ntext"


# ── Cleanup ─────────────────────────────────────────────────────────


class TestCleanCode:
    def test_digit_only_lines_dropped(self):
        assert clean_code("001\nconst a = 1;\n002") == "const a = 1;"

    def test_short_numbers_kept(self):
        assert clean_code("42\n7") == "42\n7"

    def test_blank_runs_collapsed(self):
        cleaned = clean_code("const a = 1;\n\n\n\n\nconst b = 2;   \n")
        assert cleaned == "const a = 1;\n\n\nconst b = 2;"

    def test_badges_removed(self):
        raw = "[![Constitutional](x.svg)](https://example.com)\nconst a = 1;"
        assert clean_code(raw) == "const a = 1;"

    def test_annotation_comments_removed(self):
        raw = "<!-- TODO: tidy -->\n<p>Hi</p>\n<badge>new</badge>"
        assert clean_code(raw) == "<p>Hi</p>"

    def test_ordinary_comments_kept(self):
        assert clean_code("<!-- layout -->\n<p>Hi</p>") == "<!-- layout -->\n<p>Hi</p>"


# ── Language detection ──────────────────────────────────────────────


class TestDetectLanguage:
    @pytest.mark.parametrize(
        ("code", "expected"),
        [
            ("interface User { name: string; }", "typescript"),
            ("@Component({ selector: 'x' })\nexport class X {}", "typescript"),
            ("const add = (a, b) => a + b;", "javascript"),
            ('<div class="card">Hi</div>', "html"),
            (".btn { color: red; }", "css"),
            ("$primary: #333;\n.btn { color: $primary; }", "scss"),
            ('{"name": "kbnav", "version": 1}', "json"),
            ("#!/bin/sh\necho hi", "bash"),
            ("$ npm install @angular/core", "bash"),
            ("nothing recognizable here", "text"),
        ],
    )
    def test_heuristics(self, code: str, expected: str):
        assert detect_language(code) == expected

    def test_declared_tag_wins(self):
        assert detect_language("const a = 1;", "typescript") == "typescript"

    def test_alias_normalized(self):
        assert detect_language("a: 1", "yml") == "yaml"
        assert detect_language("ls", "SH") == "bash"

    def test_unknown_tag_kept_when_no_heuristic(self):
        assert detect_language("fn main() {}", "rust") == "rust"

    def test_plain_tag_runs_heuristics(self):
        assert detect_language("npm run build", "text") == "bash"

    def test_empty_code(self):
        assert detect_language("", "") == "text"


# ── Directives ──────────────────────────────────────────────────────


class TestParseDirectives:
    def test_title_file_tags(self):
        code = "// Title: Counter\n// File: counter.ts\n// Tags: signals, state\nlet a;"
        directives = parse_directives(code, "typescript")
        assert directives.title == "Counter"
        assert directives.file_name == "counter.ts"
        assert directives.tags == ["signals", "state"]

    def test_hash_comment(self):
        directives = parse_directives("# Title: Install deps\nnpm ci", "bash")
        assert directives.title == "Install deps"

    def test_html_comment(self):
        directives = parse_directives("<!-- Title: Markup -->\n<p></p>", "html")
        assert directives.title == "Markup"

    def test_block_comment_highlight(self):
        directives = parse_directives("/* Highlight: 1,3-4 */\na {}", "css")
        assert directives.highlight_lines == [1, 3, 4]

    def test_malformed_highlight_parts_skipped(self):
        directives = parse_directives("// Highlight: 2, x, 5-4", "typescript")
        assert directives.highlight_lines == [2, 4, 5]

    def test_lines_toggle(self):
        assert parse_directives("// Lines: on", "typescript").show_line_numbers is True
        assert parse_directives("// Lines: off", "typescript").show_line_numbers is False
        assert parse_directives("// Lines: maybe", "typescript").show_line_numbers is None

    def test_generic_title_replaced_by_file_name(self):
        directives = parse_directives("// Title: Example\n// File: app.ts", "typescript")
        assert directives.title == "app.ts"

    def test_generic_title_without_file(self):
        directives = parse_directives("// Title: Code snippet:", "typescript")
        assert directives.title == "Example (typescript)"

    def test_first_plain_comment_becomes_title(self):
        directives = parse_directives("// Creates the store\nconst store = {};", "javascript")
        assert directives.title == "Creates the store"

    def test_only_first_lines_read(self):
        directives = parse_directives("a\nb\nc\n// Title: Late", "typescript")
        assert directives.title == "Example (typescript)"

    def test_custom_generic_titles(self):
        directives = parse_directives("// Title: Demo", "css", frozenset({"demo"}))
        assert directives.title == "Example (css)"


# ── Extraction ──────────────────────────────────────────────────────


class TestExtractCodeBlocks:
    def test_ids_use_sequence_and_clock(self):
        body = _fence("let a = 1;", "ts") + "\n\n" + _fence("b {}", "css")
        blocks = extract_code_blocks(body, clock=_clock)
        assert [b.id for b in blocks] == ["code-1-1700000000000", "code-2-1700000000000"]
        assert [b.sequence for b in blocks] == [1, 2]

    def test_declared_language_has_no_detected(self):
        block = extract_code_blocks(_fence("let a = 1;", "ts"), clock=_clock)[0]
        assert block.language == "typescript"
        assert block.detected_language is None

    def test_detected_language_recorded(self):
        block = extract_code_blocks(_fence("npm install foo"), clock=_clock)[0]
        assert block.language == "bash"
        assert block.detected_language == "bash"

    def test_display_defaults(self):
        short = "\n".join(f"line {i}" for i in range(10))
        medium = "\n".join(f"line {i}" for i in range(11))
        long = "\n".join(f"line {i}" for i in range(21))
        body = "\n\n".join(_fence(code, "text") for code in (short, medium, long))
        blocks = extract_code_blocks(body, clock=_clock)
        assert [(b.line_count, b.show_line_numbers, b.is_collapsible) for b in blocks] == [
            (10, False, False),
            (11, True, False),
            (21, True, True),
        ]

    def test_lines_directive_overrides_default(self):
        code = "// Lines: off\n" + "\n".join(f"let v{i} = {i};" for i in range(15))
        block = extract_code_blocks(_fence(code, "ts"), clock=_clock)[0]
        assert block.show_line_numbers is False

    def test_config_thresholds(self):
        code = "\n".join(f"line {i}" for i in range(5))
        config = CodeConfig(collapse_after_lines=3, line_numbers_after_lines=2)
        block = extract_code_blocks(_fence(code, "text"), config=config, clock=_clock)[0]
        assert block.is_collapsible
        assert block.show_line_numbers

    def test_code_is_cleaned(self):
        block = extract_code_blocks(_fence("001\nlet a = 1;\n", "ts"), clock=_clock)[0]
        assert block.code == "let a = 1;"
        assert block.line_count == 1

    def test_fixture_document(self, component_doc: str):
        blocks = extract_code_blocks(component_doc, clock=_clock)
        assert len(blocks) == 2
        first, second = blocks
        assert first.title == "Counter component"
        assert first.file_name == "counter.component.ts"
        assert first.language == "typescript"
        assert first.show_line_numbers
        assert second.title == "Example (typescript)"

    def test_empty_body(self):
        assert extract_code_blocks("", clock=_clock) == []
