"""Ingestion stages: per-document extractors for markdown learning content."""

from kbnav.ingest.codeblocks import (
    SUPPORTED_LANGUAGES,
    clean_code,
    detect_language,
    extract_code_blocks,
    find_fenced_blocks,
    parse_directives,
)
from kbnav.ingest.frontmatter import FrontMatterResult, extract_metadata, split_frontmatter
from kbnav.ingest.headings import (
    AnchorRegistry,
    extract_headings,
    iter_heading_lines,
    render_anchored_markup,
    slugify,
)
from kbnav.ingest.reading_time import estimate_reading_time
from kbnav.ingest.toc import build_toc, flatten_toc, render_toc_markdown

__all__ = [
    "SUPPORTED_LANGUAGES",
    "AnchorRegistry",
    "FrontMatterResult",
    "build_toc",
    "clean_code",
    "detect_language",
    "estimate_reading_time",
    "extract_code_blocks",
    "extract_headings",
    "extract_metadata",
    "find_fenced_blocks",
    "flatten_toc",
    "iter_heading_lines",
    "parse_directives",
    "render_anchored_markup",
    "render_toc_markdown",
    "slugify",
    "split_frontmatter",
]
