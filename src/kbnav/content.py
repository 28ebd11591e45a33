"""Content loading, caching and error presentation.

``ContentService`` fetches raw markdown through a ``ContentLoader``, keeps
it in a ``ContentCache`` and runs it through the document processor. A
missing document becomes an error state carrying an inline HTML message
rather than an exception.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

import jinja2

from kbnav.exceptions import NotFoundError
from kbnav.processor import DocumentProcessor

if TYPE_CHECKING:
    from collections.abc import Iterable

    from kbnav.types import ProcessedDocument

__all__ = [
    "ContentCache",
    "ContentError",
    "ContentLoader",
    "ContentService",
    "ContentState",
    "FileContentLoader",
    "LoadingStatus",
    "render_error_html",
]

logger = logging.getLogger(__name__)

_ERROR_TEMPLATE = "content_error.html.j2"

_env = jinja2.Environment(
    loader=jinja2.PackageLoader("kbnav", "templates"),
    autoescape=True,
    undefined=jinja2.StrictUndefined,
    trim_blocks=True,
    lstrip_blocks=True,
)


class LoadingStatus(str, Enum):
    LOADED = "loaded"
    ERROR = "error"


@dataclass(frozen=True)
class ContentError:
    """Why a document could not be shown."""

    kind: str
    message: str
    details: str = ""


@dataclass(frozen=True)
class ContentState:
    """Result of loading one document."""

    document_id: str
    status: LoadingStatus
    document: ProcessedDocument | None = None
    error: ContentError | None = None
    error_html: str = ""


def render_error_html(error: ContentError) -> str:
    """Render the inline explanatory message for a failed load."""
    template = _env.get_template(_ERROR_TEMPLATE)
    return template.render(kind=error.kind, message=error.message, details=error.details)


class ContentLoader(ABC):
    """Source of raw document text keyed by document id."""

    @abstractmethod
    def fetch(self, document_id: str) -> str:
        """Return the raw text of a document.

        Raises:
            NotFoundError: If the document does not exist.
        """


class FileContentLoader(ContentLoader):
    """Reads ``<root>/<document_id><suffix>`` from the filesystem.

    Document ids may contain ``/`` (e.g. ``fundamentals/components``) but
    may not escape ``root``.
    """

    def __init__(self, root: Path, suffix: str = ".md") -> None:
        self.root = root
        self.suffix = suffix

    def path_for(self, document_id: str) -> Path:
        """Resolve a document id to its file path.

        Raises:
            NotFoundError: If the id resolves outside ``root``.
        """
        root = self.root.resolve()
        path = (root / f"{document_id}{self.suffix}").resolve()
        if not path.is_relative_to(root):
            raise NotFoundError(document_id, "path escapes content root")
        return path

    def fetch(self, document_id: str) -> str:
        path = self.path_for(document_id)
        if not path.is_file():
            raise NotFoundError(document_id, f"no file at {path}")

        try:
            raw = path.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            logger.warning("UTF-8 decode failed for %s, retrying with replacement", path.name)
            raw = path.read_bytes().decode("utf-8", errors="replace")
        except OSError as e:
            raise NotFoundError(document_id, str(e)) from e

        if raw.startswith("\ufeff"):
            raw = raw[1:]
        return raw

    def list_ids(self) -> list[str]:
        """All document ids under ``root``, sorted."""
        if not self.root.is_dir():
            return []
        ids = []
        for path in self.root.rglob(f"*{self.suffix}"):
            relative = path.relative_to(self.root).as_posix()
            ids.append(relative[: -len(self.suffix)] if self.suffix else relative)
        return sorted(ids)


class ContentCache:
    """Document id → raw text.

    A plain dict with no locking; safe only when each request is handled
    on a single thread. Callers invalidate entries when content changes.
    """

    def __init__(self) -> None:
        self._entries: dict[str, str] = {}

    def __contains__(self, document_id: object) -> bool:
        return document_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, document_id: str) -> str | None:
        return self._entries.get(document_id)

    def put(self, document_id: str, raw_text: str) -> None:
        self._entries[document_id] = raw_text

    def invalidate(self, document_id: str | None = None) -> None:
        """Drop one entry, or everything when ``document_id`` is None."""
        if document_id is None:
            self._entries.clear()
        else:
            self._entries.pop(document_id, None)

    def keys(self) -> list[str]:
        return list(self._entries)


class ContentService:
    """Loads, caches and processes documents for display.

    Args:
        loader: Raw text source.
        cache: Shared cache; a private one is created when omitted.
        processor: Document processor; defaults to default config.
    """

    def __init__(
        self,
        loader: ContentLoader,
        cache: ContentCache | None = None,
        processor: DocumentProcessor | None = None,
    ) -> None:
        self.loader = loader
        self.cache = cache if cache is not None else ContentCache()
        self.processor = processor or DocumentProcessor()

    def load(self, document_id: str) -> ContentState:
        """Load and process a document.

        Never raises for a missing document: the returned state has
        ``status == LoadingStatus.ERROR`` and an inline HTML explanation.
        """
        raw = self.cache.get(document_id)
        if raw is None:
            try:
                raw = self.loader.fetch(document_id)
            except NotFoundError as e:
                logger.warning("%s", e)
                error = ContentError(kind="not-found", message=str(e), details=e.details)
                return ContentState(
                    document_id=document_id,
                    status=LoadingStatus.ERROR,
                    error=error,
                    error_html=render_error_html(error),
                )
            self.cache.put(document_id, raw)
        else:
            logger.debug("Cache hit for %s", document_id)

        return ContentState(
            document_id=document_id,
            status=LoadingStatus.LOADED,
            document=self.processor.process(raw),
        )

    def preload(self, document_ids: Iterable[str]) -> int:
        """Warm the cache. Missing documents are skipped.

        Returns:
            Number of documents newly cached.
        """
        loaded = 0
        for document_id in document_ids:
            if document_id in self.cache:
                continue
            try:
                self.cache.put(document_id, self.loader.fetch(document_id))
            except NotFoundError:
                logger.debug("Preload skipped missing document %s", document_id)
                continue
            loaded += 1
        logger.info("Preloaded %d documents", loaded)
        return loaded
