"""Code index: per-sample entries, corpus statistics and the published generation."""

from kbnav.index.builder import (
    IndexGeneration,
    build_entry,
    build_index,
    complexity_analysis,
    complexity_level,
)
from kbnav.index.service import CodeIndex, IndexState

__all__ = [
    "CodeIndex",
    "IndexGeneration",
    "IndexState",
    "build_entry",
    "build_index",
    "complexity_analysis",
    "complexity_level",
]
