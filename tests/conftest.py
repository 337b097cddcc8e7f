import asyncio
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import pytest
from openpyxl import Workbook

from core.document_loader import SourceGrid
from core.exceptions import TranslationFailure
from core.registry import CellLocation
from providers.base_provider import BaseProvider
from utils.progress_tracker import ProgressObserver, ProgressReport, ProgressTracker


class FakeProvider(BaseProvider):
    """Answers from a table of source text -> translation.

    Prompts are matched on the source line that follows the directive.
    Entries mapped to an exception instance raise it instead.
    """

    def __init__(self, answers: Optional[Dict[str, Any]] = None, delay: float = 0.0):
        super().__init__({})
        self.answers = answers or {}
        self.delay = delay
        self.prompts: List[str] = []

    @staticmethod
    def source_of(prompt: str) -> str:
        lines = prompt.splitlines()
        index = next(i for i, line in enumerate(lines) if line.startswith("Translate this into"))
        return lines[index + 1]

    def token_budget(self, prompt: str) -> int:
        return 100

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        source = self.source_of(prompt)
        answer = self.answers.get(source, f"RO:{source}")
        if isinstance(answer, TranslationFailure):
            raise answer
        return answer


class MemoryWriter:
    """Destination double that records writes in order."""

    def __init__(self):
        self.cells: Dict[CellLocation, Any] = {}
        self.order: List[CellLocation] = []

    def write(self, location: CellLocation, value: Any) -> None:
        assert location not in self.cells, f"{location} written twice"
        self.cells[location] = value
        self.order.append(location)


def make_grid(rows: Iterable[Iterable[Any]], sheet_name: str = "Worksheet") -> SourceGrid:
    return SourceGrid(sheet_name=sheet_name, rows=[tuple(row) for row in rows])


def save_workbook(path: Path, rows: Iterable[Iterable[Any]], sheet_name: str = "Worksheet") -> Path:
    workbook = Workbook()
    worksheet = workbook.active
    worksheet.title = sheet_name
    for row in rows:
        worksheet.append(list(row))
    workbook.save(path)
    return path


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def writer():
    return MemoryWriter()


class RecordingObserver(ProgressObserver):
    def __init__(self):
        self.updates: List[ProgressReport] = []
        self.finished: Optional[ProgressReport] = None
        self.diagnostics: List[str] = []

    def on_update(self, report: ProgressReport):
        self.updates.append(report)

    def on_finish(self, report: ProgressReport):
        self.finished = report

    def on_diagnostic(self, message: str):
        self.diagnostics.append(message)


@pytest.fixture
def observer():
    return RecordingObserver()


@pytest.fixture
def progress(observer):
    tracker = ProgressTracker(total_items=10_000, observers=[observer])
    tracker.start()
    yield tracker
    tracker.finish()


class RecordingSleep:
    """Stands in for asyncio.sleep in the dispatcher; returns at once."""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        await asyncio.sleep(0)
