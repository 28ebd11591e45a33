"""Tests for kbnav.processor module."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from kbnav.ingest.toc import flatten_toc
from kbnav.processor import collect_samples, process_document

if TYPE_CHECKING:
    from kbnav.processor import DocumentProcessor


class TestProcess:
    def test_minimal_document(self):
        doc = process_document("# Hello World\n\nText.")
        assert [(h.id, h.text, h.level) for h in doc.headings] == [("hello-world", "Hello World", 1)]
        assert doc.code_blocks == ()
        assert [s.id for s in doc.toc] == ["hello-world"]
        assert doc.metadata is None
        assert doc.reading_time_minutes >= 1

    def test_metadata_extracted(self, processor: DocumentProcessor, component_doc: str):
        doc = processor.process(component_doc)
        assert doc.metadata is not None
        assert doc.metadata.title == "Standalone Components"
        assert doc.metadata.skill_level == "fundamentals"
        assert doc.metadata.constitutional is True
        assert doc.metadata.get("implementation") is None
        assert not doc.body.startswith("---")

    def test_headings_and_toc(self, processor: DocumentProcessor, component_doc: str):
        doc = processor.process(component_doc)
        assert [h.id for h in doc.headings] == [
            "standalone-components",
            "creating-a-component",
            "change-detection",
            "onpush",
            "testing",
        ]
        assert len(doc.toc) == 1
        root = doc.toc[0]
        assert [c.id for c in root.children] == ["creating-a-component", "change-detection", "testing"]
        assert root.children[1].children[0].id == "onpush"
        assert [s.id for s in flatten_toc(doc.toc)] == [h.id for h in doc.headings]

    def test_toc_positions_index_body(self, processor: DocumentProcessor, component_doc: str):
        doc = processor.process(component_doc)
        for section in flatten_toc(doc.toc):
            assert doc.body[section.start_position :].lstrip("#").strip().startswith(section.title)

    def test_code_blocks(self, processor: DocumentProcessor, component_doc: str):
        doc = processor.process(component_doc)
        assert [b.id for b in doc.code_blocks] == ["code-1-1700000000000", "code-2-1700000000000"]
        assert doc.code_blocks[0].file_name == "counter.component.ts"

    def test_html_anchors_match_headings(self, processor: DocumentProcessor, component_doc: str):
        doc = processor.process(component_doc)
        for heading in doc.headings:
            assert f'id="{heading.id}"' in doc.html

    def test_reading_time_counts_code(self, processor: DocumentProcessor, component_doc: str):
        doc = processor.process(component_doc)
        assert doc.reading_time_minutes >= 2

    def test_no_metadata(self, processor: DocumentProcessor):
        doc = processor.process("# Plain\n\nJust text.")
        assert doc.metadata is None
        assert doc.body == "# Plain\n\nJust text."
        assert [h.text for h in doc.headings] == ["Plain"]

    def test_empty_document(self, processor: DocumentProcessor):
        doc = processor.process(None)
        assert doc.body == ""
        assert doc.headings == ()
        assert doc.code_blocks == ()
        assert doc.reading_time_minutes == 1

    def test_process_document_helper(self):
        doc = process_document("# One\n## Two\n")
        assert [s.title for s in doc.toc] == ["One"]


class TestCollectSamples:
    def test_samples_inherit_metadata(self, processor: DocumentProcessor, component_doc: str):
        doc = processor.process(component_doc)
        samples = collect_samples({"fundamentals/components": doc})

        assert [s.id for s in samples] == [
            "fundamentals/components#code-1-1700000000000",
            "fundamentals/components#code-2-1700000000000",
        ]
        first = samples[0]
        assert first.categories == ("components",)
        assert first.tags == ("components", "standalone")
        assert first.constitutional is True
        assert first.skill_level == "fundamentals"
        assert first.concept_path == "fundamentals/components"
        assert first.last_updated == datetime(2024, 1, 15)
        assert first.file_name == "counter.component.ts"

    def test_ids_unique_across_documents(self, processor: DocumentProcessor):
        a = processor.process("```ts\nlet a = 1;\n```")
        b = processor.process("```ts\nlet b = 2;\n```")
        samples = collect_samples([("a", a), ("b", b)])
        assert len({s.id for s in samples}) == 2

    def test_bad_date_ignored(self, processor: DocumentProcessor):
        doc = processor.process("---\nlastUpdated: last tuesday\n---\n```ts\nlet a;\n```")
        assert collect_samples({"x": doc})[0].last_updated is None

    def test_document_without_code(self, processor: DocumentProcessor):
        assert collect_samples({"x": processor.process("# Only prose")}) == []
