"""
Result collector - the single consumer of the worker result channel

Runs alongside the dispatcher and writes every successful translation to all
locations that share its key. Failures, including text the destination
rejects, are reported and their locations are left unwritten; they never
stop the loop.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

from .exceptions import TranslationFailure
from .registry import CellLocation, FrozenRegistry

logger = logging.getLogger(__name__)


class _Closed:
    def __repr__(self) -> str:
        return "CHANNEL_CLOSED"


# Put on the channel once every worker has finished
CHANNEL_CLOSED = _Closed()


@dataclass(frozen=True)
class TranslationOutcome:
    """Either (key, text) or (key, failure kind, reason)."""
    key: str
    text: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, key: str, text: str) -> "TranslationOutcome":
        return cls(key=key, text=text)

    @classmethod
    def failure(cls, key: str, error: TranslationFailure) -> "TranslationOutcome":
        return cls(key=key, error=str(error) or error.kind, error_kind=error.kind)


class CellWriter(Protocol):
    def write(self, location: CellLocation, value: Any) -> None: ...


class ProgressSink(Protocol):
    def update(self, processed: int = 1) -> None: ...

    def record_failure(self, message: str, count: int = 0) -> None: ...


class ResultCollector:
    """Drains outcomes and fans them out to the destination grid."""

    def __init__(self, registry: FrozenRegistry, writer: CellWriter, progress: ProgressSink):
        self.registry = registry
        self.writer = writer
        self.progress = progress
        self.stats: Dict[str, Any] = {
            'resolved': 0,
            'failed': 0,
            'cells_written': 0,
            'errors': {},
        }

    async def drain(self, channel: "asyncio.Queue") -> Dict[str, Any]:
        """Consume outcomes until the channel is closed."""
        while True:
            outcome = await channel.get()
            try:
                if outcome is CHANNEL_CLOSED:
                    break
                self.handle(outcome)
            finally:
                channel.task_done()

        logger.info(f"📥 Collector finished: {self.stats['resolved']} resolved, "
                    f"{self.stats['failed']} failed, {self.stats['cells_written']} cells written")
        return self.stats

    def handle(self, outcome: TranslationOutcome) -> None:
        task = self.registry.task(outcome.key)
        locations = self.registry.locations(outcome.key)

        if not outcome.ok:
            self._fail(outcome, len(locations))
            return

        written = 0
        for location in locations:
            try:
                self.writer.write(location, outcome.text)
            except TranslationFailure as e:
                self._fail(TranslationOutcome.failure(outcome.key, e), len(locations) - written)
                return
            written += 1
            self.progress.update(1)
            self.stats['cells_written'] += 1

        task.mark_resolved()
        self.stats['resolved'] += 1

    def _fail(self, outcome: TranslationOutcome, unwritten: int) -> None:
        self.registry.task(outcome.key).mark_failed(outcome.error)
        self.stats['failed'] += 1
        errors = self.stats['errors']
        errors[outcome.error_kind] = errors.get(outcome.error_kind, 0) + 1
        self.progress.record_failure(f"{outcome.key}: {outcome.error}", count=unwritten)
