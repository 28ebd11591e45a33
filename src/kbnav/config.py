"""Configuration system for kbnav.

Manages tuning constants via kbnav.toml with typed dataclasses and
defaults matching the documented pipeline behaviour.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, TypeVar

import tomli_w

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from kbnav.exceptions import ConfigError

if TYPE_CHECKING:
    from pathlib import Path

_T = TypeVar("_T")

__all__ = [
    "CONFIG_FILE",
    "CodeConfig",
    "ContentConfig",
    "IndexConfig",
    "KbnavConfig",
    "ReadingConfig",
    "SearchConfig",
    "VocabularyConfig",
    "default_config",
    "load_config",
    "save_config",
]

logger = logging.getLogger(__name__)

CONFIG_FILE = "kbnav.toml"


@dataclass
class ContentConfig:
    """[content] section."""

    root: str = "content"
    suffix: str = ".md"


@dataclass
class CodeConfig:
    """[code] section."""

    collapse_after_lines: int = 20
    line_numbers_after_lines: int = 10
    generic_titles: list[str] = field(
        default_factory=lambda: [
            "code",
            "code example",
            "code snippet",
            "example",
            "sample",
            "sample code",
            "snippet",
            "untitled",
        ]
    )


@dataclass
class ReadingConfig:
    """[reading] section."""

    words_per_minute: int = 200
    code_block_minutes: float = 1.5
    inline_code_minutes: float = 0.1
    image_minutes: float = 0.5
    list_item_minutes: float = 0.05
    table_row_minutes: float = 0.3
    skill_multipliers: dict[str, float] = field(
        default_factory=lambda: {
            "fundamentals": 0.8,
            "intermediate": 1.0,
            "advanced": 1.3,
            "expert": 1.5,
        }
    )


@dataclass
class VocabularyConfig:
    """[vocabulary] section."""

    base_confidence: float = 0.8
    exact_match_bonus: float = 0.1
    code_context_bonus: float = 0.1
    min_confidence: float = 0.7
    context_chars: int = 50
    code_context_chars: int = 20


@dataclass
class IndexConfig:
    """[index] section."""

    recency_days: int = 30
    recency_bonus: float = 0.5
    output: str = "code-index.json"


@dataclass
class SearchConfig:
    """[search] section."""

    min_score: float = 0.1
    max_results: int = 50
    fuzzy_threshold: float = 0.7
    fuzzy_bonus: float = 2.5
    related_threshold: float = 0.3
    debounce_ms: int = 300


@dataclass
class KbnavConfig:
    """Root configuration combining all sections."""

    content: ContentConfig = field(default_factory=ContentConfig)
    code: CodeConfig = field(default_factory=CodeConfig)
    reading: ReadingConfig = field(default_factory=ReadingConfig)
    vocabulary: VocabularyConfig = field(default_factory=VocabularyConfig)
    index: IndexConfig = field(default_factory=IndexConfig)
    search: SearchConfig = field(default_factory=SearchConfig)


_SECTION_MAP: dict[str, type] = {
    "content": ContentConfig,
    "code": CodeConfig,
    "reading": ReadingConfig,
    "vocabulary": VocabularyConfig,
    "index": IndexConfig,
    "search": SearchConfig,
}


def default_config() -> KbnavConfig:
    """Return a config with all default values."""
    return KbnavConfig()


def _config_to_dict(config: KbnavConfig) -> dict[str, object]:
    """Convert KbnavConfig to a nested dict suitable for TOML serialization."""
    return {name: dict(vars(getattr(config, name))) for name in _SECTION_MAP}


def save_config(config: KbnavConfig, path: Path) -> None:
    """Save configuration to a TOML file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    data = _config_to_dict(config)
    try:
        with path.open("wb") as f:
            tomli_w.dump(data, f)
        logger.info("Saved config to %s", path)
    except OSError as e:
        logger.error("Failed to save config to %s: %s", path, e)
        raise ConfigError(f"Failed to save config to {path}: {e}") from e


def _load_section(cls: type[_T], data: dict[str, object]) -> _T:
    """Load a dataclass section from a dict, ignoring unknown keys."""
    known_fields = {f.name for f in cls.__dataclass_fields__.values()}  # type: ignore[attr-defined]
    filtered = {k: v for k, v in data.items() if k in known_fields}
    return cls(**filtered)


def load_config(path: Path) -> KbnavConfig:
    """Load configuration from a TOML file.

    Missing sections or keys get default values.
    """
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        raw = path.read_bytes()
        data = tomllib.loads(raw.decode("utf-8"))
    except (OSError, UnicodeDecodeError, tomllib.TOMLDecodeError) as e:
        logger.error("Failed to load config from %s: %s", path, e)
        raise ConfigError(f"Failed to load config from {path}: {e}") from e

    config = KbnavConfig()
    for name, cls in _SECTION_MAP.items():
        section = data.get(name)
        if section is None:
            continue
        if not isinstance(section, dict):
            raise ConfigError(f"Config section [{name}] must be a table in {path}")
        setattr(config, name, _load_section(cls, section))

    logger.info("Loaded config from %s", path)
    return config
