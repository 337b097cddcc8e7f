"""
Dedup Registry - maps normalized text to every grid location sharing it

Mutated only while the grid is scanned. ``freeze()`` hands out a read-only
view that the result collector uses for the rest of the run.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Dict, Iterator, List, Mapping, Optional, Tuple, Union

from .exceptions import RegistryFrozenError
from .overrides import OverrideTable, normalize_key
from .templater import Templater

if TYPE_CHECKING:
    from utils.rate_limiter import TaskQueue

logger = logging.getLogger(__name__)


@dataclass(frozen=True, order=True)
class CellLocation:
    """0-based absolute (row, column) of a cell in the source sheet."""
    row: int
    column: int


class TaskState(str, Enum):
    QUEUED = "queued"
    DISPATCHED = "dispatched"
    RESOLVED = "resolved"
    FAILED = "failed"


@dataclass
class PendingTask:
    """One unique untranslated key awaiting a remote result"""
    key: str
    source_text: str
    prompt: str
    locations: List[CellLocation] = field(default_factory=list)
    state: TaskState = TaskState.QUEUED
    error: Optional[str] = None

    def mark_dispatched(self) -> None:
        self.state = TaskState.DISPATCHED

    def mark_resolved(self) -> None:
        self.state = TaskState.RESOLVED

    def mark_failed(self, reason: str) -> None:
        self.state = TaskState.FAILED
        self.error = reason


# ─────────────────────────────────────────────────────────────────────────────
# Classification results
# ─────────────────────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class Verbatim:
    text: str


@dataclass(frozen=True)
class Overridden:
    text: str


@dataclass(frozen=True)
class New:
    task: PendingTask


@dataclass(frozen=True)
class Duplicate:
    task: PendingTask


Classification = Union[Verbatim, Overridden, New, Duplicate]


class DedupRegistry:
    """Classifies textual cells during the sequential scan."""

    def __init__(self, overrides: OverrideTable, queue: "TaskQueue",
                 templater: Templater, header_row: int = 0):
        self.overrides = overrides
        self.queue = queue
        self.templater = templater
        self.header_row = header_row
        self._tasks: Dict[str, PendingTask] = {}
        self._frozen = False

    def classify(self, location: CellLocation, text: str) -> Classification:
        if self._frozen:
            raise RegistryFrozenError("Registry is read-only once the scan has finished")

        value = text.strip()
        if not value or location.row == self.header_row:
            return Verbatim(value)

        key = normalize_key(value)

        translation = self.overrides.lookup(key)
        if translation is not None:
            return Overridden(translation)

        task = self._tasks.get(key)
        if task is not None:
            task.locations.append(location)
            return Duplicate(task)

        task = PendingTask(
            key=key,
            source_text=value,
            prompt=self.templater.render(value, self.overrides.hints(key)),
            locations=[location],
        )
        self._tasks[key] = task
        self.queue.push(task)
        logger.debug(f"New task for key {key!r} at {location}")
        return New(task)

    def __len__(self) -> int:
        return len(self._tasks)

    def freeze(self) -> "FrozenRegistry":
        """End the scan phase and return the shared read-only view."""
        self._frozen = True
        return FrozenRegistry(self._tasks)


class FrozenRegistry:
    """Read-only view of the registry, shared after the scan."""

    def __init__(self, tasks: Mapping[str, PendingTask]):
        self._tasks = MappingProxyType(dict(tasks))
        self._locations: Mapping[str, Tuple[CellLocation, ...]] = MappingProxyType({
            key: tuple(task.locations) for key, task in tasks.items()
        })

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, key: str) -> bool:
        return key in self._tasks

    def __iter__(self) -> Iterator[str]:
        return iter(self._tasks)

    def task(self, key: str) -> PendingTask:
        return self._tasks[key]

    def locations(self, key: str) -> Tuple[CellLocation, ...]:
        return self._locations[key]

    def tasks(self) -> List[PendingTask]:
        return list(self._tasks.values())
