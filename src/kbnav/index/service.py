"""Holder for the published code index generation.

``CodeIndex`` is the only stateful object in kbnav. A rebuild runs
``build_index`` and publishes the result with one attribute assignment, so
readers always see a complete generation. A lock guards only the
IDLE/BUILDING/READY transition; reads take no lock.
"""

from __future__ import annotations

import json
import logging
import threading
from collections import defaultdict
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from kbnav.exceptions import IndexBusyError, IndexStorageError, ParseError
from kbnav.index.builder import IndexGeneration, build_index, extract_patterns
from kbnav.types import CodeSample, IndexEntry, IndexStats

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

    from kbnav.config import IndexConfig

__all__ = ["FORMAT_VERSION", "CodeIndex", "IndexState", "generation_from_dict", "generation_to_dict"]

logger = logging.getLogger(__name__)

FORMAT_VERSION = "1.0"


class IndexState(str, Enum):
    IDLE = "idle"
    BUILDING = "building"
    READY = "ready"


class CodeIndex:
    """Current index generation plus the build-in-progress flag.

    Usage::

        index = CodeIndex()
        index.rebuild(samples)
        for entry in index.entries:
            ...
    """

    def __init__(self, config: IndexConfig | None = None) -> None:
        self.config = config
        self._lock = threading.Lock()
        self._state = IndexState.IDLE
        self._generation: IndexGeneration | None = None

    @property
    def state(self) -> IndexState:
        return self._state

    @property
    def is_building(self) -> bool:
        return self._state is IndexState.BUILDING

    @property
    def generation(self) -> IndexGeneration | None:
        return self._generation

    @property
    def entries(self) -> tuple[IndexEntry, ...]:
        generation = self._generation
        return generation.entries if generation is not None else ()

    @property
    def stats(self) -> IndexStats:
        generation = self._generation
        return generation.stats if generation is not None else IndexStats()

    def __len__(self) -> int:
        return len(self.entries)

    def rebuild(self, samples: Iterable[CodeSample], now: datetime | None = None) -> IndexGeneration:
        """Build a new generation and publish it.

        Raises:
            IndexBusyError: If another rebuild is in progress. The caller
                may retry or queue; nothing is built.
        """
        with self._lock:
            if self._state is IndexState.BUILDING:
                raise IndexBusyError("Code index rebuild already in progress")
            previous = self._state
            self._state = IndexState.BUILDING

        try:
            generation = build_index(samples, now=now, config=self.config)
        except BaseException:
            with self._lock:
                self._state = previous
            raise

        self._generation = generation
        with self._lock:
            self._state = IndexState.READY
        logger.info("Published code index generation with %d entries", len(generation.entries))
        return generation

    def publish(self, generation: IndexGeneration) -> None:
        """Install an already-built generation (e.g. one read from disk)."""
        with self._lock:
            if self._state is IndexState.BUILDING:
                raise IndexBusyError("Code index rebuild already in progress")
            self._generation = generation
            self._state = IndexState.READY

    def invalidate(self) -> None:
        """Drop the published generation."""
        with self._lock:
            if self._state is IndexState.BUILDING:
                raise IndexBusyError("Cannot invalidate while a rebuild is in progress")
            self._generation = None
            self._state = IndexState.IDLE

    # ── Queries ─────────────────────────────────────────────────────

    def get(self, entry_id: str) -> IndexEntry | None:
        for entry in self.entries:
            if entry.id == entry_id:
                return entry
        return None

    def entries_by_category(self, category: str) -> list[IndexEntry]:
        return [entry for entry in self.entries if category in entry.categories]

    def entries_by_language(self, language: str) -> list[IndexEntry]:
        return [entry for entry in self.entries if entry.language == language]

    def popular_patterns(self, limit: int = 10) -> list[tuple[str, list[IndexEntry]]]:
        """Structural patterns by number of entries using them, most used first."""
        buckets: dict[str, list[IndexEntry]] = defaultdict(list)
        for entry in self.entries:
            if entry.sample is None:
                continue
            for name in extract_patterns(entry.sample.code):
                buckets[name].append(entry)
        ranked = sorted(buckets.items(), key=lambda item: -len(item[1]))
        return ranked[:limit]

    def similar_examples(
        self,
        target: IndexEntry,
        limit: int = 5,
        threshold: float = 0.3,
    ) -> list[IndexEntry]:
        """Entries more than ``threshold`` similar to ``target``, most similar first."""
        from kbnav.search.engine import related_entries

        return [entry for entry, _ in related_entries(target, self.entries, threshold)][:limit]

    # ── Persistence ─────────────────────────────────────────────────

    def export_json(self) -> str:
        generation = self._generation or IndexGeneration()
        return json.dumps(generation_to_dict(generation), indent=2)

    def save(self, path: Path) -> None:
        """Write the published generation as JSON."""
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(self.export_json() + "\n", encoding="utf-8")
        except OSError as e:
            logger.error("Failed to save code index to %s: %s", path, e)
            raise IndexStorageError(f"Failed to save code index to {path}: {e}") from e
        logger.info("Saved code index to %s (%d entries)", path, len(self))

    @classmethod
    def load(cls, path: Path, config: IndexConfig | None = None) -> CodeIndex:
        """Read a saved index.

        Raises:
            ParseError: If the file is missing or malformed.
        """
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Failed to load code index from %s: %s", path, e)
            raise ParseError(f"Failed to load code index from {path}: {e}") from e

        index = cls(config)
        index.publish(generation_from_dict(data))
        logger.info("Loaded code index from %s (%d entries)", path, len(index))
        return index


# ── Serialization helpers ───────────────────────────────────────────


def _sample_to_dict(sample: CodeSample) -> dict[str, Any]:
    return {
        "id": sample.id,
        "code": sample.code,
        "language": sample.language,
        "title": sample.title,
        "categories": list(sample.categories),
        "tags": list(sample.tags),
        "difficulty": sample.difficulty,
        "popularity": sample.popularity,
        "last_updated": sample.last_updated.isoformat() if sample.last_updated else None,
        "concept_path": sample.concept_path,
        "best_practice": sample.best_practice,
        "constitutional": sample.constitutional,
        "skill_level": sample.skill_level,
        "file_name": sample.file_name,
    }


def _sample_from_dict(data: dict[str, Any]) -> CodeSample:
    last_updated = data.get("last_updated")
    return CodeSample(
        id=str(data["id"]),
        code=str(data.get("code", "")),
        language=str(data.get("language", "text")),
        title=str(data.get("title", "")),
        categories=tuple(data.get("categories", ())),
        tags=tuple(data.get("tags", ())),
        difficulty=int(data.get("difficulty", 1)),
        popularity=float(data.get("popularity", 0.0)),
        last_updated=datetime.fromisoformat(last_updated) if last_updated else None,
        concept_path=str(data.get("concept_path", "")),
        best_practice=bool(data.get("best_practice", False)),
        constitutional=bool(data.get("constitutional", False)),
        skill_level=str(data.get("skill_level", "")),
        file_name=str(data.get("file_name", "")),
    )


def _entry_to_dict(entry: IndexEntry) -> dict[str, Any]:
    return {
        "id": entry.id,
        "title": entry.title,
        "description": entry.description,
        "keywords": sorted(entry.keywords),
        "searchable_text": entry.searchable_text,
        "weight": entry.weight,
        "complexity": entry.complexity,
        "concept_path": entry.concept_path,
        "last_modified": entry.last_modified.isoformat(),
        "sample": _sample_to_dict(entry.sample) if entry.sample is not None else None,
    }


def _entry_from_dict(data: dict[str, Any]) -> IndexEntry:
    required = ("id", "title", "searchable_text", "weight", "last_modified")
    missing = [k for k in required if k not in data]
    if missing:
        raise ParseError(f"Index entry missing required fields: {missing}")
    sample = data.get("sample")
    return IndexEntry(
        id=str(data["id"]),
        title=str(data["title"]),
        keywords=frozenset(data.get("keywords", ())),
        searchable_text=str(data["searchable_text"]),
        weight=float(data["weight"]),
        concept_path=str(data.get("concept_path", "general")),
        last_modified=datetime.fromisoformat(str(data["last_modified"])),
        description=str(data.get("description", "")),
        complexity=float(data.get("complexity", 1.0)),
        sample=_sample_from_dict(sample) if sample else None,
    )


def generation_to_dict(generation: IndexGeneration) -> dict[str, Any]:
    stats = generation.stats
    return {
        "format_version": FORMAT_VERSION,
        "generated_at": generation.generated_at.isoformat(),
        "entries": [_entry_to_dict(entry) for entry in generation.entries],
        "stats": {
            "total_examples": stats.total_examples,
            "by_language": stats.by_language,
            "by_category": stats.by_category,
            # JSON object keys are strings
            "by_difficulty": {str(k): v for k, v in stats.by_difficulty.items()},
            "average_complexity": stats.average_complexity,
            "most_used_patterns": [
                {"pattern": name, "count": count} for name, count in stats.most_used_patterns
            ],
        },
    }


def generation_from_dict(data: Any) -> IndexGeneration:
    """Rebuild a generation from its JSON form.

    Raises:
        ParseError: On an unknown format version or malformed entries.
    """
    if not isinstance(data, dict):
        raise ParseError("Code index file must contain a JSON object")
    version = str(data.get("format_version", ""))
    if version != FORMAT_VERSION:
        raise ParseError(f"Unsupported code index format version: {version!r}")

    try:
        entries = tuple(_entry_from_dict(item) for item in data.get("entries", []))
        raw_stats = data.get("stats") or {}
        stats = IndexStats(
            total_examples=int(raw_stats.get("total_examples", len(entries))),
            by_language=dict(raw_stats.get("by_language", {})),
            by_category=dict(raw_stats.get("by_category", {})),
            by_difficulty={int(k): v for k, v in raw_stats.get("by_difficulty", {}).items()},
            average_complexity=float(raw_stats.get("average_complexity", 0.0)),
            most_used_patterns=tuple(
                (str(p["pattern"]), int(p["count"])) for p in raw_stats.get("most_used_patterns", [])
            ),
        )
        generated_at = datetime.fromisoformat(str(data["generated_at"]))
    except (KeyError, TypeError, ValueError) as e:
        raise ParseError(f"Malformed code index data: {e}") from e

    return IndexGeneration(entries=entries, stats=stats, generated_at=generated_at)
