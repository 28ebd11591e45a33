"""Shared fixtures for kbnav tests."""

from __future__ import annotations

import shutil
from datetime import datetime, timezone
from pathlib import Path

import pytest

from kbnav.processor import DocumentProcessor
from kbnav.types import CodeSample

FIXTURE_DIR = Path(__file__).parent / "fixtures"

FIXED_NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


def fixed_clock() -> float:
    return 1_700_000_000.0


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def processor() -> DocumentProcessor:
    """A processor with a frozen clock so block ids are reproducible."""
    return DocumentProcessor(clock=fixed_clock)


@pytest.fixture
def content_dir(tmp_path: Path) -> Path:
    """A copy of the fixture content tree."""
    target = tmp_path / "content"
    shutil.copytree(FIXTURE_DIR / "content", target)
    return target


@pytest.fixture
def glossary_file() -> Path:
    return FIXTURE_DIR / "glossary.json"


@pytest.fixture
def component_doc() -> str:
    return (FIXTURE_DIR / "content" / "fundamentals" / "components.md").read_text(encoding="utf-8")


@pytest.fixture
def samples() -> list[CodeSample]:
    """A small corpus covering two languages and several categories."""
    return [
        CodeSample(
            id="components#code-1",
            code=(
                "@Component({\n"
                "  selector: 'app-counter',\n"
                "  template: '{{ count() }}',\n"
                "})\n"
                "export class CounterComponent {\n"
                "  count = signal(0);\n"
                "}"
            ),
            language="typescript",
            title="Counter component",
            categories=("components",),
            tags=("signals", "standalone"),
            difficulty=1,
            last_updated=datetime(2024, 5, 20, tzinfo=timezone.utc),
            concept_path="fundamentals/components",
            constitutional=True,
            skill_level="fundamentals",
            file_name="counter.component.ts",
        ),
        CodeSample(
            id="services#code-1",
            code=(
                "@Injectable({ providedIn: 'root' })\n"
                "export class TodoService {\n"
                "  private http = inject(HttpClient);\n"
                "  load(): Observable<Todo[]> {\n"
                "    return this.http.get<Todo[]>('/api').pipe(map((t) => t));\n"
                "  }\n"
                "}"
            ),
            language="typescript",
            title="Todo service",
            categories=("services",),
            tags=("http",),
            difficulty=2,
            popularity=1.0,
            last_updated=datetime(2023, 1, 1, tzinfo=timezone.utc),
            concept_path="intermediate/services",
            skill_level="intermediate",
        ),
        CodeSample(
            id="setup#code-1",
            code="npm install @angular/common",
            language="bash",
            title="Install packages",
            categories=("tooling",),
            concept_path="fundamentals/setup",
            skill_level="fundamentals",
        ),
    ]
