"""Fenced code block extraction, cleanup and language detection.

For every fenced block in a document body:
- strips rendering artifacts (digit-only lines, badge/annotation markup)
- resolves the language from the declared tag or by content heuristics
- reads ``// Title:``-style directive comments from the first lines
- applies display defaults (collapsible, line numbers)

Best-effort throughout: an unterminated fence runs to the end of the text
and malformed directives are ignored, never raised.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from kbnav.config import CodeConfig
from kbnav.types import CodeBlock

if TYPE_CHECKING:
    from collections.abc import Callable

__all__ = [
    "SUPPORTED_LANGUAGES",
    "BlockDirectives",
    "RawCodeBlock",
    "clean_code",
    "detect_language",
    "extract_code_blocks",
    "find_fenced_blocks",
    "parse_directives",
    "strip_fenced_blocks",
]

logger = logging.getLogger(__name__)

SUPPORTED_LANGUAGES: frozenset[str] = frozenset(
    {
        "typescript",
        "javascript",
        "html",
        "css",
        "scss",
        "json",
        "bash",
        "markdown",
        "yaml",
        "python",
    }
)

_LANGUAGE_ALIASES: dict[str, str] = {
    "ts": "typescript",
    "js": "javascript",
    "sh": "bash",
    "shell": "bash",
    "zsh": "bash",
    "console": "bash",
    "yml": "yaml",
    "md": "markdown",
    "htm": "html",
    "py": "python",
}

# Tags that carry no language information; heuristics still run
_PLAIN_TAGS: frozenset[str] = frozenset({"", "text", "txt", "plain", "plaintext"})

_FALLBACK_LANGUAGE = "text"

# Opening fence with optional info string: ```typescript title="x"
_FENCE_OPEN_RE = re.compile(r"^[ ]{0,3}(`{3,}|~{3,})[ \t]*([^\s`]*)")

# --- Cleanup patterns ---

_DIGIT_LINE_RE = re.compile(r"^\s*\d{3,}\s*$")

_ARTIFACT_PATTERNS: tuple[re.Pattern[str], ...] = (
    # Linked image badges: [![Constitutional](img)](link)
    re.compile(r"\[!\[[^\]]*\]\([^)]*\)\]\([^)]*\)"),
    # Bare shields-style badges
    re.compile(r"!\[[^\]]*\]\(https?://[^)]*(?:badge|shields)[^)]*\)", re.IGNORECASE),
    re.compile(r"<badge\b[^>]*>.*?</badge>", re.IGNORECASE | re.DOTALL),
    re.compile(r"<spec\b[^>]*>.*?</spec>", re.IGNORECASE | re.DOTALL),
    re.compile(r"<!--\s*(?:Constitutional|Spec|TODO|FIXME|NOTE)\b.*?-->", re.IGNORECASE | re.DOTALL),
    re.compile(r"\*\*(?:Constitutional|Spec)[^*]*\*\*", re.IGNORECASE),
)

# 3+ blank lines in a row (whitespace-only lines count as blank)
_BLANK_RUN_RE = re.compile(r"\n(?:[ \t]*\n){3,}")

_LEADING_BLANK_LINES_RE = re.compile(r"\A(?:[ \t]*\n)+")

# --- Language heuristics, checked in order ---

_TYPESCRIPT_RE = re.compile(
    r"\b(?:interface|enum)\s+[A-Z]\w*"
    r"|\btype\s+[A-Z]\w*\s*(?:<[^>]*>)?\s*="
    r"|\b\w+\??\s*:\s*(?:string|number|boolean|void|any|unknown|never)(?:\[\])?\b"
    r"|\b(?:private|public|protected|readonly)\s+\w+\s*[:=(]"
    r"|\bimplements\s+[A-Z]\w*"
    r"|@(?:Component|Injectable|Directive|Pipe|NgModule|Input|Output)\s*\("
)
_JAVASCRIPT_RE = re.compile(
    r"\bfunction\s*\w*\s*\("
    r"|\b(?:const|let|var)\s+[\w$\[{]"
    r"|=>"
    r"|\bconsole\.\w+\("
    r"|\brequire\(|\bmodule\.exports\b"
)
_HTML_RE = re.compile(r"</?[a-zA-Z][\w-]*(?:\s[^<>]*)?/?>")
_STYLE_BLOCK_RE = re.compile(r"[^{}]*\{[^{}]*?[\w-]+\s*:\s*[^;{}]+;", re.DOTALL)
_SCSS_VAR_RE = re.compile(r"\$[\w-]+")
_JSON_KEY_RE = re.compile(r'"[^"\n]+"\s*:')
_SHELL_RE = re.compile(
    r"\A#!"
    r"|^\s*(?:\$\s+)?(?:npm|npx|yarn|pnpm|pip3?|ng|apt-get|brew)\s+\S",
    re.MULTILINE,
)

# --- Directive comments ---

_COMMENT_RE = re.compile(r"^\s*(?://+|#(?!!)|--(?=\s)|/\*+|<!--)\s*(.*?)\s*(?:\*+/|-->)?\s*$")
_DIRECTIVE_RE = re.compile(
    r"^(title|file|filename|category|tags|lines|highlight)\s*:\s*(.*)$",
    re.IGNORECASE,
)
_DIRECTIVE_LINES = 3
_MAX_INFERRED_TITLE = 80

_TRUE_WORDS = frozenset({"on", "true", "yes", "1"})
_FALSE_WORDS = frozenset({"off", "false", "no", "0"})


@dataclass(frozen=True)
class RawCodeBlock:
    """A fenced span as found in the body, before cleanup."""

    declared_language: str
    raw: str
    start_line: int
    end_line: int = 0
    terminated: bool = True


@dataclass
class BlockDirectives:
    """Metadata read from directive comments at the top of a block."""

    title: str | None = None
    file_name: str | None = None
    category: str | None = None
    tags: list[str] = field(default_factory=list)
    show_line_numbers: bool | None = None
    highlight_lines: list[int] = field(default_factory=list)


def find_fenced_blocks(body: str) -> list[RawCodeBlock]:
    """Scan for fenced code spans.

    A closing fence uses the opener's character and is at least as long.
    An unterminated block extends to the end of the text.
    """
    blocks: list[RawCodeBlock] = []
    lines = body.split("\n")
    i = 0

    while i < len(lines):
        match = _FENCE_OPEN_RE.match(lines[i])
        if not match:
            i += 1
            continue

        marker = match.group(1)
        tag = match.group(2).strip().lower()
        close_re = re.compile(rf"^[ ]{{0,3}}{re.escape(marker[0])}{{{len(marker)},}}[ \t]*$")
        start = i
        i += 1
        code_lines: list[str] = []
        terminated = False
        while i < len(lines):
            if close_re.match(lines[i]):
                terminated = True
                i += 1
                break
            code_lines.append(lines[i])
            i += 1

        if not terminated:
            logger.debug("Unterminated code fence at line %d, reading to end of text", start + 1)

        blocks.append(
            RawCodeBlock(
                declared_language=tag,
                raw="\n".join(code_lines),
                start_line=start + 1,
                end_line=i,
                terminated=terminated,
            )
        )

    return blocks


def strip_fenced_blocks(body: str) -> str:
    """Return ``body`` with every fenced span (fences included) removed."""
    blocks = find_fenced_blocks(body)
    if not blocks:
        return body

    lines = body.split("\n")
    kept: list[str] = []
    cursor = 0
    for block in blocks:
        kept.extend(lines[cursor : block.start_line - 1])
        cursor = block.end_line
    kept.extend(lines[cursor:])
    return "\n".join(kept)


def clean_code(raw: str) -> str:
    """Strip rendering artifacts from raw code text.

    - drops lines made only of 3+ digits
    - removes badge and annotation markup
    - collapses 3+ consecutive blank lines to 2
    - trims surrounding blank lines and trailing whitespace
    """
    lines = [line for line in raw.split("\n") if not _DIGIT_LINE_RE.match(line)]
    text = "\n".join(lines)

    for pattern in _ARTIFACT_PATTERNS:
        text = pattern.sub("", text)

    text = _BLANK_RUN_RE.sub("\n\n\n", text)
    text = _LEADING_BLANK_LINES_RE.sub("", text)
    return text.rstrip()


def _normalize_language(tag: str) -> str:
    tag = tag.strip().lower()
    return _LANGUAGE_ALIASES.get(tag, tag)


def detect_language(code: str, declared: str = "") -> str:
    """Resolve a block's language.

    A recognized declared tag wins. Otherwise content heuristics are tried
    in order, falling back to the declared tag or ``"text"``.
    """
    normalized = _normalize_language(declared)
    if normalized in SUPPORTED_LANGUAGES:
        return normalized

    fallback = normalized if normalized not in _PLAIN_TAGS else _FALLBACK_LANGUAGE
    stripped = code.strip()
    if not stripped:
        return fallback

    if _TYPESCRIPT_RE.search(stripped):
        return "typescript"
    if _JAVASCRIPT_RE.search(stripped):
        return "javascript"
    if _HTML_RE.search(stripped):
        return "html"
    if _STYLE_BLOCK_RE.match(stripped):
        return "scss" if _SCSS_VAR_RE.search(stripped) else "css"
    if stripped[0] in "{[" and _JSON_KEY_RE.search(stripped):
        return "json"
    if _SHELL_RE.search(stripped):
        return "bash"
    return fallback


def _parse_highlight(spec: str) -> list[int]:
    """``"1,3-5"`` → ``[1, 3, 4, 5]``. Unparseable parts are skipped."""
    result: set[int] = set()
    for part in spec.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            if "-" in part:
                lo, hi = (int(p) for p in part.split("-", 1))
                result.update(range(min(lo, hi), max(lo, hi) + 1))
            else:
                result.add(int(part))
        except ValueError:
            logger.debug("Ignoring malformed highlight range %r", part)
    return sorted(n for n in result if n > 0)


def _is_generic_title(title: str, generic_titles: frozenset[str]) -> bool:
    return title.strip().rstrip(":.").lower() in generic_titles


def parse_directives(
    code: str,
    language: str,
    generic_titles: frozenset[str] | None = None,
) -> BlockDirectives:
    """Read ``Title:``/``File:``/``Category:``/``Tags:`` comments from the first lines.

    Also understands ``Lines: on|off`` and ``Highlight: 1,3-5``. A generic
    or missing title is replaced by the file name when known, else by
    ``"Example (<language>)"``; when no title directive exists the first
    plain comment line is tried first.
    """
    if generic_titles is None:
        generic_titles = frozenset(CodeConfig().generic_titles)

    directives = BlockDirectives()
    first_comment: str | None = None

    for line in code.split("\n")[:_DIRECTIVE_LINES]:
        comment = _COMMENT_RE.match(line)
        if not comment:
            continue
        text = comment.group(1).strip()
        if not text:
            continue

        directive = _DIRECTIVE_RE.match(text)
        if directive is None:
            if first_comment is None:
                first_comment = text
            continue

        key = directive.group(1).lower()
        value = directive.group(2).strip()
        if not value:
            continue
        if key == "title":
            directives.title = value
        elif key in ("file", "filename"):
            directives.file_name = value
        elif key == "category":
            directives.category = value
        elif key == "tags":
            directives.tags = [t.strip() for t in value.split(",") if t.strip()]
        elif key == "lines":
            word = value.lower()
            if word in _TRUE_WORDS:
                directives.show_line_numbers = True
            elif word in _FALSE_WORDS:
                directives.show_line_numbers = False
        elif key == "highlight":
            directives.highlight_lines = _parse_highlight(value)

    fallback = directives.file_name or f"Example ({language})"
    if directives.title is None:
        if first_comment and len(first_comment) <= _MAX_INFERRED_TITLE:
            directives.title = first_comment
        else:
            directives.title = fallback
    if _is_generic_title(directives.title, generic_titles):
        directives.title = fallback

    return directives


def extract_code_blocks(
    body: str,
    config: CodeConfig | None = None,
    clock: Callable[[], float] = time.time,
) -> list[CodeBlock]:
    """Extract, clean and annotate every fenced code block in ``body``.

    Args:
        body: Document body.
        config: Display thresholds and generic-title list.
        clock: Timestamp source for block ids.

    Returns:
        CodeBlocks in document order.
    """
    if not body:
        return []

    cfg = config or CodeConfig()
    generic_titles = frozenset(t.lower() for t in cfg.generic_titles)
    stamp = int(clock() * 1000)
    blocks: list[CodeBlock] = []

    for sequence, raw in enumerate(find_fenced_blocks(body), start=1):
        code = clean_code(raw.raw)
        language = detect_language(code, raw.declared_language)
        declared = _normalize_language(raw.declared_language)
        directives = parse_directives(code, language, generic_titles)
        line_count = len(code.split("\n"))

        show_line_numbers = line_count > cfg.line_numbers_after_lines
        if directives.show_line_numbers is not None:
            show_line_numbers = directives.show_line_numbers

        blocks.append(
            CodeBlock(
                # sequence + millisecond stamp; repeats across runs in the same tick
                id=f"code-{sequence}-{stamp}",
                language=language,
                code=code,
                line_count=line_count,
                detected_language=language if language != declared else None,
                title=directives.title,
                file_name=directives.file_name,
                category=directives.category,
                tags=tuple(directives.tags),
                show_line_numbers=show_line_numbers,
                is_collapsible=line_count > cfg.collapse_after_lines,
                highlight_lines=tuple(directives.highlight_lines),
                sequence=sequence,
            )
        )

    logger.debug("Extracted %d code blocks", len(blocks))
    return blocks
