"""Structural pattern search and literal/regex text search inside code samples."""

from __future__ import annotations

import html
import logging
import re
from collections import defaultdict
from dataclasses import dataclass
from typing import TYPE_CHECKING

from kbnav.types import CodeMatch, CodePattern, PatternSearchResult

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from kbnav.types import IndexEntry

__all__ = [
    "PATTERN_CATALOG",
    "TextSearchOptions",
    "find_pattern_matches",
    "find_text_matches",
    "get_pattern",
    "highlight_matches",
    "patterns_by_category",
    "search_code",
    "search_patterns",
]

logger = logging.getLogger(__name__)

PATTERN_CATALOG: tuple[CodePattern, ...] = (
    CodePattern(
        name="Component Declaration",
        description="Component decorators",
        regex=re.compile(r"@Component\s*\(\s*\{[\s\S]*?\}\s*\)"),
        category="components",
        difficulty=1,
        examples=("@Component({...})", '@Component({ selector: "app-*" })'),
    ),
    CodePattern(
        name="Injectable Service",
        description="Service declarations",
        regex=re.compile(r"@Injectable\s*\(\s*\{[\s\S]*?\}\s*\)"),
        category="services",
        difficulty=1,
        examples=('@Injectable({ providedIn: "root" })',),
    ),
    CodePattern(
        name="Signal Usage",
        description="Signal and computed-signal calls",
        regex=re.compile(r"signal\s*\(\s*[^)]*\s*\)|computed\s*\(\s*[^)]*\s*\)"),
        category="constitutional",
        difficulty=2,
        examples=("signal(initialValue)", "computed(() => ...)"),
    ),
    CodePattern(
        name="RxJS Operators",
        description="Stream operator calls",
        regex=re.compile(
            r"\.(?:pipe|map|filter|switchMap|mergeMap|concatMap|catchError|tap|takeUntil"
            r"|startWith|combineLatest)\s*\("
        ),
        category="services",
        difficulty=3,
        examples=(".pipe(map(...))", ".switchMap(...)"),
    ),
    CodePattern(
        name="Form Controls",
        description="Reactive form building blocks",
        regex=re.compile(r"FormControl|FormGroup|FormBuilder|Validators\."),
        category="forms",
        difficulty=2,
        examples=("new FormControl()", "Validators.required"),
    ),
    CodePattern(
        name="Route Configuration",
        description="Routing tables and lazy routes",
        regex=re.compile(r"Routes\s*=|RouterModule\.(?:forRoot|forChild)|loadChildren\s*:"),
        category="routing",
        difficulty=2,
        examples=("Routes = [...]", "loadChildren: () => ..."),
    ),
    CodePattern(
        name="OnPush Strategy",
        description="OnPush change detection",
        regex=re.compile(r"ChangeDetectionStrategy\.OnPush"),
        category="performance",
        difficulty=3,
        examples=("ChangeDetectionStrategy.OnPush",),
    ),
    CodePattern(
        name="Dependency Injection",
        description="inject() calls and constructor injection",
        regex=re.compile(r"inject\s*\(\s*\w+\s*\)|constructor\s*\([^)]*\)"),
        category="services",
        difficulty=2,
        examples=("inject(ServiceName)", "constructor(private service: ...)"),
    ),
)

_CONTEXT_LINES = 2

_COMMENT_PREFIXES: dict[str, tuple[str, ...]] = {
    "typescript": ("//", "/*", "*"),
    "javascript": ("//", "/*", "*"),
    "html": ("<!--",),
    "css": ("/*", "*", "//"),
    "scss": ("/*", "*", "//"),
}

_IMPORTANT_MARKERS = ("function ", "class ", "interface ")


@dataclass(frozen=True)
class TextSearchOptions:
    """How ``find_text_matches`` interprets the query."""

    case_sensitive: bool = False
    whole_word: bool = False
    use_regex: bool = False
    include_comments: bool = True


def get_pattern(name: str) -> CodePattern | None:
    for pattern in PATTERN_CATALOG:
        if pattern.name == name:
            return pattern
    return None


def patterns_by_category(category: str) -> list[CodePattern]:
    return [pattern for pattern in PATTERN_CATALOG if pattern.category == category]


def _line_context(lines: Sequence[str], index: int) -> str:
    start = max(0, index - _CONTEXT_LINES)
    return "\n".join(lines[start : index + _CONTEXT_LINES + 1])


def _is_comment(line: str, language: str) -> bool:
    return line.strip().startswith(_COMMENT_PREFIXES.get(language, ()))


def _compile_query(query: str, options: TextSearchOptions) -> re.Pattern[str]:
    flags = 0 if options.case_sensitive else re.IGNORECASE
    if options.use_regex:
        try:
            return re.compile(query, flags)
        except re.error as e:
            logger.debug("Invalid search regex %r (%s), searching literally", query, e)
            return re.compile(re.escape(query), flags)
    literal = re.escape(query)
    if options.whole_word:
        literal = rf"\b{literal}\b"
    return re.compile(literal, flags)


def find_text_matches(
    code: str,
    query: str,
    options: TextSearchOptions | None = None,
    language: str = "",
) -> list[CodeMatch]:
    """Line-by-line matches of a literal or regex query.

    A hit whose text equals the query verbatim is ``exact``; case-folded
    and regex hits are ``partial``. An invalid regex falls back to a literal
    search. Zero-length matches are skipped. Comment lines are ignored when ``include_comments`` is off.
    """
    opts = options or TextSearchOptions()
    if not query:
        return []
    pattern = _compile_query(query, opts)
    lines = code.split("\n")
    matches: list[CodeMatch] = []

    for index, line in enumerate(lines):
        if not opts.include_comments and _is_comment(line, language):
            continue
        for match in pattern.finditer(line):
            if not match.group(0):
                continue
            matches.append(
                CodeMatch(
                    line=index + 1,
                    column=match.start(),
                    length=len(match.group(0)),
                    text=match.group(0),
                    context=_line_context(lines, index),
                    match_type="exact" if match.group(0) == query else "partial",
                )
            )
    return matches


def find_pattern_matches(code: str, pattern: CodePattern) -> list[CodeMatch]:
    """Whole-text matches of a catalog pattern (may span lines)."""
    lines = code.split("\n")
    matches: list[CodeMatch] = []
    for match in pattern.regex.finditer(code):
        if not match.group(0):
            continue
        offset = match.start()
        line_index = code.count("\n", 0, offset)
        column = offset - (code.rfind("\n", 0, offset) + 1)
        matches.append(
            CodeMatch(
                line=line_index + 1,
                column=column,
                length=len(match.group(0)),
                text=match.group(0),
                context=_line_context(lines, line_index),
                match_type="pattern",
            )
        )
    return matches


def _preview(code: str, matches: Sequence[CodeMatch]) -> str:
    if not matches:
        return ""
    lines = code.split("\n")
    first = matches[0].line
    return "\n".join(lines[max(0, first - 2) : first + 1])


def _sorted_results(results: list[PatternSearchResult]) -> list[PatternSearchResult]:
    return sorted(results, key=lambda r: (-r.relevance_score, r.entry.id))


def search_patterns(entries: Iterable[IndexEntry], name: str | None = None) -> list[PatternSearchResult]:
    """Find catalog patterns in indexed samples.

    Score per (pattern, entry): 20 per match, +10 when the sample's
    difficulty equals the pattern's, +25 when the sample is in the
    pattern's category.

    Args:
        entries: Index entries to scan.
        name: Restrict to one catalog pattern; unknown names match nothing.
    """
    patterns = [p for p in PATTERN_CATALOG if name is None or p.name == name]
    entries = list(entries)
    results: list[PatternSearchResult] = []

    for pattern in patterns:
        for entry in entries:
            if entry.sample is None:
                continue
            matches = find_pattern_matches(entry.sample.code, pattern)
            if not matches:
                continue
            score = 20.0 * len(matches)
            if entry.sample.difficulty == pattern.difficulty:
                score += 10
            if pattern.category in entry.categories:
                score += 25
            results.append(
                PatternSearchResult(
                    entry=entry,
                    pattern=pattern,
                    matches=tuple(matches),
                    relevance_score=score,
                    preview=f"Pattern: {pattern.name}\n{_preview(entry.sample.code, matches)}",
                )
            )

    logger.debug("Pattern search (%s): %d results", name or "all", len(results))
    return _sorted_results(results)


def search_code(
    entries: Iterable[IndexEntry],
    query: str,
    options: TextSearchOptions | None = None,
) -> list[PatternSearchResult]:
    """Text search across samples.

    Score: 10 per match, +5 per verbatim (``exact``) match, +50 when the title contains
    the query, +30 when the file name does, +15 per match whose context
    declares a function, class or interface.
    """
    if not query.strip():
        return []
    needle = query.lower()
    results: list[PatternSearchResult] = []

    for entry in entries:
        sample = entry.sample
        if sample is None:
            continue
        matches = find_text_matches(sample.code, query, options, language=sample.language)
        if not matches:
            continue
        score = 10.0 * len(matches)
        score += 5.0 * sum(1 for m in matches if m.match_type == "exact")
        if needle in entry.title.lower():
            score += 50
        if sample.file_name and needle in sample.file_name.lower():
            score += 30
        score += 15.0 * sum(
            1 for m in matches if any(marker in m.context for marker in _IMPORTANT_MARKERS)
        )
        results.append(
            PatternSearchResult(
                entry=entry,
                pattern=None,
                matches=tuple(matches),
                relevance_score=score,
                preview=_preview(sample.code, matches),
            )
        )

    return _sorted_results(results)


def highlight_matches(code: str, matches: Iterable[CodeMatch]) -> str:
    """Wrap each match in ``<mark class="code-search-highlight">`` and escape the rest as HTML.

    Overlapping matches keep the leftmost; out-of-range lines are ignored.
    """
    lines = code.split("\n")
    by_line: dict[int, list[CodeMatch]] = defaultdict(list)
    for match in matches:
        if 0 <= match.line - 1 < len(lines):
            by_line[match.line - 1].append(match)

    rendered: list[str] = []
    for index, line in enumerate(lines):
        parts: list[str] = []
        cursor = 0
        for match in sorted(by_line.get(index, ()), key=lambda m: m.column):
            if match.column < cursor or match.column >= len(line):
                continue
            end = match.column + match.length
            parts.append(html.escape(line[cursor : match.column]))
            parts.append(f'<mark class="code-search-highlight">{html.escape(line[match.column : end])}</mark>')
            cursor = end
        parts.append(html.escape(line[cursor:]))
        rendered.append("".join(parts))
    return "\n".join(rendered)
