"""kbnav: content processing and code-example search for learning material."""

from kbnav.exceptions import (
    BuildEntryError,
    ConfigError,
    IndexBusyError,
    IndexStorageError,
    KbnavError,
    NotFoundError,
    ParseError,
)
from kbnav.index import CodeIndex, build_index
from kbnav.ingest import extract_metadata
from kbnav.processor import process_document
from kbnav.search import search
from kbnav.vocabulary import detect_vocabulary

__version__ = "0.1.0"

__all__ = [
    "BuildEntryError",
    "CodeIndex",
    "ConfigError",
    "IndexBusyError",
    "IndexStorageError",
    "KbnavError",
    "NotFoundError",
    "ParseError",
    "__version__",
    "build_index",
    "detect_vocabulary",
    "extract_metadata",
    "process_document",
    "search",
]
