"""
Parallel Processor - scan, dispatch and collect for one translation run

Phase 1 (sequential): the scanner classifies every cell and builds the
queue of unique texts. Phase 2 (concurrent): the burst dispatcher releases
queued tasks every interval, each task runs as its own worker performing a
single completion request, and all workers feed one bounded channel that
the result collector drains.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from core.collector import CHANNEL_CLOSED, CellWriter, ProgressSink, ResultCollector, TranslationOutcome
from core.document_loader import SourceGrid
from core.exceptions import TranslationFailure
from core.overrides import OverrideTable
from core.registry import PendingTask
from core.scanner import ScanResult, Scanner
from core.templater import Templater
from providers.base_provider import BaseProvider
from utils.rate_limiter import BurstDispatcher, RateLimitConfig, TaskQueue

logger = logging.getLogger(__name__)


@dataclass
class RunSummary:
    """Counters for one run"""
    cells: int = 0
    empty: int = 0
    passthrough: int = 0
    verbatim: int = 0
    overridden: int = 0
    unique_tasks: int = 0
    duplicates: int = 0
    resolved: int = 0
    failed: int = 0
    cells_written: int = 0
    bursts: List[int] = field(default_factory=list)
    errors: Dict[str, int] = field(default_factory=dict)
    duration_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'cells': self.cells,
            'empty': self.empty,
            'passthrough': self.passthrough,
            'verbatim': self.verbatim,
            'overridden': self.overridden,
            'unique_tasks': self.unique_tasks,
            'duplicates': self.duplicates,
            'resolved': self.resolved,
            'failed': self.failed,
            'cells_written': self.cells_written,
            'bursts': list(self.bursts),
            'errors': dict(self.errors),
            'duration_seconds': self.duration_seconds,
        }


class TranslationProcessor:
    """Runs the two phases of a translation against one provider."""

    collector_class = ResultCollector

    def __init__(self,
                 provider: Optional[BaseProvider],
                 overrides: OverrideTable,
                 templater: Templater,
                 rate_limit: Optional[RateLimitConfig] = None,
                 dispatcher: Optional[BurstDispatcher] = None):
        self.provider = provider
        self.rate_limit = rate_limit or RateLimitConfig()
        self.dispatcher = dispatcher or BurstDispatcher(self.rate_limit)
        self.scanner = Scanner(overrides, templater, release_order=self.rate_limit.release_order)
        self.requests_sent = 0

    def scan(self, grid: SourceGrid, writer: CellWriter, progress: ProgressSink) -> ScanResult:
        """Phase 1: classify every cell; returns the frozen registry and queue."""
        return self.scanner.scan(grid, writer, progress)

    async def run(self, grid: SourceGrid, writer: CellWriter, progress: ProgressSink) -> RunSummary:
        """Scan ``grid`` and translate every unique text, writing into ``writer``."""
        start_time = datetime.now()
        scan = self.scan(grid, writer, progress)

        summary = RunSummary(unique_tasks=len(scan.queue), **scan.stats)

        if scan.queue:
            stats = await self.dispatch(scan, writer, progress)
            summary.resolved = stats['resolved']
            summary.failed = stats['failed']
            summary.cells_written = stats['cells_written']
            summary.errors = dict(stats['errors'])
        summary.bursts = list(self.dispatcher.burst_sizes)
        summary.duration_seconds = (datetime.now() - start_time).total_seconds()

        logger.info(f"✨ Run complete: {summary.resolved}/{summary.unique_tasks} texts translated, "
                    f"{summary.failed} failed, {len(summary.bursts)} bursts")
        return summary

    async def dispatch(self, scan: ScanResult, writer: CellWriter, progress: ProgressSink) -> Dict[str, Any]:
        """Phase 2: release tasks in bursts and collect their outcomes."""
        if self.provider is None:
            raise RuntimeError("A provider is required to dispatch translations")

        channel: asyncio.Queue = asyncio.Queue(maxsize=self.rate_limit.requests_per_minute)
        collector = self.collector_class(scan.registry, writer, progress)

        producer = asyncio.create_task(self._produce(scan.queue, channel))
        try:
            stats = await collector.drain(channel)
        except BaseException:
            # Nobody reads the channel any more; stop the producer and its workers
            producer.cancel()
            await asyncio.gather(producer, return_exceptions=True)
            raise
        await producer
        return stats

    async def _produce(self, queue: TaskQueue[PendingTask], channel: asyncio.Queue) -> None:
        """Run the dispatcher, wait for every worker, then close the channel."""
        errors: List[BaseException] = []
        cancelled = False
        try:
            workers = await self.dispatcher.run(queue, lambda task: self._translate(task, channel))
            results = await asyncio.gather(*workers, return_exceptions=True)
            errors = [r for r in results if isinstance(r, BaseException)]
        except asyncio.CancelledError:
            cancelled = True
            raise
        finally:
            if not cancelled:
                await channel.put(CHANNEL_CLOSED)

        if errors:
            logger.error(f"{len(errors)} workers crashed; first error: {errors[0]!r}")
            raise errors[0]

    async def _translate(self, task: PendingTask, channel: asyncio.Queue) -> None:
        """Worker: one request, one outcome, no retry."""
        task.mark_dispatched()
        self.requests_sent += 1
        try:
            text = await self.provider.complete(task.prompt)
            outcome = TranslationOutcome.success(task.key, text)
        except TranslationFailure as e:
            logger.debug(f"Translation of {task.key!r} failed ({e.kind}): {e}")
            outcome = TranslationOutcome.failure(task.key, e)

        # Blocks while the collector is behind
        await channel.put(outcome)
