"""Custom exception hierarchy for kbnav."""

__all__ = [
    "BuildEntryError",
    "ConfigError",
    "IndexBusyError",
    "IndexStorageError",
    "KbnavError",
    "NotFoundError",
    "ParseError",
]


class KbnavError(Exception):
    """Base exception for all kbnav errors."""


class ConfigError(KbnavError):
    """Raised when configuration loading or validation fails."""


class ParseError(KbnavError):
    """Raised when a metadata block, fenced block or data file is malformed."""


class NotFoundError(KbnavError):
    """Raised when requested content does not exist."""

    def __init__(self, document_id: str, details: str = "") -> None:
        self.document_id = document_id
        self.details = details
        super().__init__(f"Content not found for topic: {document_id}")


class BuildEntryError(KbnavError):
    """Raised when a single code sample cannot be indexed."""

    def __init__(self, sample_id: str, reason: str) -> None:
        self.sample_id = sample_id
        self.reason = reason
        super().__init__(f"Cannot index sample {sample_id!r}: {reason}")


class IndexBusyError(KbnavError):
    """Raised when an index rebuild is requested while another is running."""


class IndexStorageError(KbnavError):
    """Raised when a code index file cannot be written."""
