"""
Grid scanner - the sequential first phase of a translation run

Walks every cell of the source grid once. Cells that need no request are
written straight away; every other textual cell is registered with the
dedup registry, which produces the task queue for the dispatch phase.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict

from utils.rate_limiter import ReleaseOrder, TaskQueue

from .collector import CellWriter, ProgressSink
from .document_loader import SourceGrid
from .overrides import OverrideTable
from .registry import DedupRegistry, Duplicate, FrozenRegistry, Overridden, PendingTask, Verbatim
from .templater import Templater

logger = logging.getLogger(__name__)


@dataclass
class ScanResult:
    """Output of the scan: the frozen registry and the queue of unique tasks."""
    registry: FrozenRegistry
    queue: TaskQueue[PendingTask]
    stats: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'unique_tasks': len(self.queue),
            **self.stats,
        }


class Scanner:
    """Classifies every cell of a grid against the overrides."""

    def __init__(self, overrides: OverrideTable, templater: Templater,
                 release_order: ReleaseOrder = ReleaseOrder.FIFO):
        self.overrides = overrides
        self.templater = templater
        self.release_order = release_order

    def scan(self, grid: SourceGrid, writer: CellWriter, progress: ProgressSink) -> ScanResult:
        queue: TaskQueue[PendingTask] = TaskQueue(self.release_order)
        registry = DedupRegistry(self.overrides, queue, self.templater, header_row=grid.header_row)
        stats = {
            'cells': 0,
            'empty': 0,
            'passthrough': 0,
            'verbatim': 0,
            'overridden': 0,
            'duplicates': 0,
        }

        for location, value in grid.cells():
            stats['cells'] += 1

            if value is None:
                stats['empty'] += 1
                progress.update(1)
                continue

            if not isinstance(value, str):
                # Numbers, dates, booleans are already final
                writer.write(location, value)
                stats['passthrough'] += 1
                progress.update(1)
                continue

            result = registry.classify(location, value)
            if isinstance(result, Verbatim):
                writer.write(location, result.text)
                stats['verbatim'] += 1
                progress.update(1)
            elif isinstance(result, Overridden):
                writer.write(location, result.text)
                stats['overridden'] += 1
                progress.update(1)
            elif isinstance(result, Duplicate):
                stats['duplicates'] += 1
            # New: the registry has already queued the task

        frozen = registry.freeze()
        logger.info(f"🔍 Scanned {stats['cells']} cells: {len(queue)} unique texts to translate, "
                    f"{stats['duplicates']} duplicates, {stats['overridden']} overridden, "
                    f"{stats['verbatim']} copied verbatim")
        return ScanResult(registry=frozen, queue=queue, stats=stats)
