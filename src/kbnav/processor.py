"""Document processor for kbnav.

Composes the per-document stages: metadata → headings → code blocks →
TOC → reading time → anchored markup.
"""

from __future__ import annotations

import logging
import time
from dataclasses import replace
from datetime import datetime
from typing import TYPE_CHECKING

from kbnav.config import KbnavConfig
from kbnav.ingest.codeblocks import extract_code_blocks
from kbnav.ingest.frontmatter import extract_metadata
from kbnav.ingest.headings import AnchorRegistry, iter_heading_lines, render_anchored_markup
from kbnav.ingest.reading_time import estimate_reading_time
from kbnav.ingest.toc import build_toc
from kbnav.types import CodeSample, Heading, ProcessedDocument

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

    from kbnav.types import Metadata

__all__ = ["DocumentProcessor", "collect_samples", "process_document"]

logger = logging.getLogger(__name__)


class DocumentProcessor:
    """Runs every extraction stage over one document.

    Stateless between calls; the same instance may process documents
    concurrently. The clock is injectable so code block ids are
    reproducible in tests.

    Usage::

        processor = DocumentProcessor(config)
        doc = processor.process(raw_text)
    """

    def __init__(
        self,
        config: KbnavConfig | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or KbnavConfig()
        self.clock = clock

    def process(self, raw_text: str | None) -> ProcessedDocument:
        """Process raw document text into a ``ProcessedDocument``."""
        front = extract_metadata(raw_text)
        body = front.body
        metadata = front.metadata

        registry = AnchorRegistry()
        headings: list[Heading] = []
        positions: list[int] = []
        for line in iter_heading_lines(body):
            headings.append(Heading(id=registry.unique(line.text), text=line.text, level=line.level))
            positions.append(line.offset)

        code_blocks = extract_code_blocks(body, self.config.code, clock=self.clock)
        toc = build_toc(headings, positions)
        skill_level = metadata.skill_level if metadata is not None else None
        reading_time = estimate_reading_time(
            body,
            code_block_count=len(code_blocks),
            skill_level=skill_level,
            config=self.config.reading,
        )

        logger.info(
            "Processed document: %d headings, %d code blocks, %d min",
            len(headings),
            len(code_blocks),
            reading_time,
        )
        return ProcessedDocument(
            body=body,
            headings=tuple(headings),
            code_blocks=tuple(code_blocks),
            toc=tuple(toc),
            reading_time_minutes=reading_time,
            metadata=metadata,
            html=render_anchored_markup(body),
        )


def process_document(
    raw_text: str | None,
    config: KbnavConfig | None = None,
) -> ProcessedDocument:
    """Process one document with a default ``DocumentProcessor``."""
    return DocumentProcessor(config).process(raw_text)


def _parse_date(metadata: Metadata | None) -> datetime | None:
    if metadata is None or not metadata.last_updated:
        return None
    try:
        return datetime.fromisoformat(metadata.last_updated)
    except ValueError:
        logger.debug("Ignoring unparseable last_updated %r", metadata.last_updated)
        return None


def collect_samples(
    documents: Mapping[str, ProcessedDocument] | Iterable[tuple[str, ProcessedDocument]],
) -> list[CodeSample]:
    """Turn processed documents into index input.

    Args:
        documents: ``{concept_path: document}`` or ``(concept_path, document)``
            pairs. Each block inherits the document's metadata.

    Returns:
        One ``CodeSample`` per code block, in document order, with ids of the
        form ``<concept_path>#<block id>``.
    """
    pairs = documents.items() if hasattr(documents, "items") else documents
    samples: list[CodeSample] = []
    for concept_path, doc in pairs:
        last_updated = _parse_date(doc.metadata)
        for block in doc.code_blocks:
            sample = CodeSample.from_code_block(
                block,
                metadata=doc.metadata,
                concept_path=concept_path,
                last_updated=last_updated,
            )
            # Block ids only distinguish blocks within one document
            samples.append(replace(sample, id=f"{concept_path}#{block.id}"))
    logger.debug("Collected %d code samples", len(samples))
    return samples
