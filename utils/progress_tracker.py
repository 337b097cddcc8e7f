"""
Progress Tracking for translation runs

One tracker per run, sized to the whole source grid (width × height).
It is explicitly started with its total and explicitly finished; in
between, every written cell advances it by one. Non-fatal diagnostics
(failed translations) travel through the same observers so they are
printed above the progress bar instead of corrupting it.

Key Features:
• Observer pattern for decoupled reporting (log lines, tqdm bar)
• Dependency injection of the clock for testability
• Context manager support for safe lifecycle management
• Immutable progress reports
"""
import abc
import logging
import sys
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Protocol

from tqdm import tqdm

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Core Data Structures
# ─────────────────────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class ProgressReport:
    """Immutable snapshot of progress state."""
    total_items: int
    processed_items: int
    failed_items: int
    progress_pct: float
    elapsed_seconds: float
    rate_per_second: float
    eta: Optional[datetime]


@dataclass
class ProgressState:
    start_time: float = 0.0
    total_items: int = 0
    processed_items: int = 0
    failed_items: int = 0


# ─────────────────────────────────────────────────────────────────────────────
# Abstractions for Dependency Injection
# ─────────────────────────────────────────────────────────────────────────────
class Clock(Protocol):
    def now(self) -> float: ...


class MonotonicClock:
    """Production clock using time.monotonic for reliable intervals."""
    def now(self) -> float:
        return time.monotonic()


class ProgressObserver(abc.ABC):
    """Observer interface for progress event notifications."""
    @abc.abstractmethod
    def on_update(self, report: ProgressReport): ...

    @abc.abstractmethod
    def on_finish(self, report: ProgressReport): ...

    def on_diagnostic(self, message: str):
        """Non-fatal error line. Ignored unless the observer renders text."""
        pass


# ─────────────────────────────────────────────────────────────────────────────
# Concrete Observer Implementations
# ─────────────────────────────────────────────────────────────────────────────
class LoggingObserver(ProgressObserver):
    """Logs progress, throttled on the injected monotonic clock."""

    def __init__(self, logger: logging.Logger, clock: Clock, log_interval_seconds: int = 10,
                 log_diagnostics: bool = True):
        self.logger = logger
        self._log_diagnostics = log_diagnostics
        self._clock = clock
        self._log_interval = log_interval_seconds
        self._last_log_time = -float('inf')

    def on_update(self, report: ProgressReport):
        now = self._clock.now()
        if now - self._last_log_time > self._log_interval:
            eta_str = report.eta.strftime('%Y-%m-%d %H:%M:%S') if report.eta else "N/A"
            self.logger.info(
                f"📊 {report.processed_items}/{report.total_items} cells "
                f"({report.progress_pct:.1f}%) | "
                f"⚡ {report.rate_per_second:.1f}/s | "
                f"🕒 ETA: {eta_str}"
            )
            self._last_log_time = now

    def on_finish(self, report: ProgressReport):
        total_duration = timedelta(seconds=int(report.elapsed_seconds))
        self.logger.info(
            f"🎉 Finished: {report.processed_items}/{report.total_items} cells written, "
            f"{report.failed_items} left untranslated, took {total_duration}"
        )

    def on_diagnostic(self, message: str):
        if self._log_diagnostics:
            self.logger.warning(f"❌ {message}")


class TqdmObserver(ProgressObserver):
    """Live progress bar; cleared from the terminal when the run finishes."""

    def __init__(self, file=None, disable: Optional[bool] = None):
        self._file = file or sys.stderr
        self._disable = disable
        self._bar: Optional[tqdm] = None

    def _ensure_bar(self, total: int) -> tqdm:
        if self._bar is None:
            self._bar = tqdm(
                total=total,
                unit="cell",
                leave=False,
                file=self._file,
                disable=self._disable,
            )
        return self._bar

    def on_update(self, report: ProgressReport):
        bar = self._ensure_bar(report.total_items)
        bar.n = report.processed_items
        bar.refresh()

    def on_finish(self, report: ProgressReport):
        if self._bar is not None:
            self._bar.close()
            self._bar = None

    def on_diagnostic(self, message: str):
        tqdm.write(message, file=self._file)


# ─────────────────────────────────────────────────────────────────────────────
# Pure Logic Components
# ─────────────────────────────────────────────────────────────────────────────
class ReportGenerator:
    """Calculates progress reports from state - no side effects."""

    def __init__(self, clock: Clock):
        self._clock = clock

    def generate(self, state: ProgressState) -> ProgressReport:
        elapsed = self._clock.now() - state.start_time
        progress_pct = (state.processed_items / state.total_items * 100) if state.total_items > 0 else 0.0

        rate = 0.0
        if elapsed > 2:  # Avoid unstable initial rates
            rate = state.processed_items / elapsed

        eta: Optional[datetime] = None
        if rate > 0 and state.processed_items < state.total_items:
            remaining_seconds = (state.total_items - state.processed_items) / rate
            eta = datetime.now() + timedelta(seconds=remaining_seconds)

        return ProgressReport(
            total_items=state.total_items,
            processed_items=state.processed_items,
            failed_items=state.failed_items,
            progress_pct=progress_pct,
            elapsed_seconds=elapsed,
            rate_per_second=rate,
            eta=eta,
        )


# ─────────────────────────────────────────────────────────────────────────────
# Progress Tracker
# ─────────────────────────────────────────────────────────────────────────────
class ProgressTracker:
    """Bounded progress counter with an explicit start and finish."""

    def __init__(
        self,
        total_items: int = 0,
        observers: Optional[List[ProgressObserver]] = None,
        clock: Optional[Clock] = None,
    ):
        self._clock = clock or MonotonicClock()
        self._state = ProgressState(total_items=total_items)
        self._observers = observers if observers is not None else []
        self._report_generator = ReportGenerator(self._clock)
        self._is_active = False
        self._lock = threading.Lock()

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.finish()

    @property
    def is_active(self) -> bool:
        return self._is_active

    @property
    def total_items(self) -> int:
        return self._state.total_items

    @property
    def processed_items(self) -> int:
        return self._state.processed_items

    @property
    def failed_items(self) -> int:
        return self._state.failed_items

    def start(self, total_items: Optional[int] = None):
        """Starts the tracker; ``total_items`` replaces the constructor value."""
        with self._lock:
            if self._is_active:
                return
            if total_items is not None:
                self._state.total_items = total_items
            if self._state.total_items < 0:
                raise ValueError("Total items must not be negative")
            self._state.start_time = self._clock.now()
            self._state.processed_items = 0
            self._state.failed_items = 0
            self._is_active = True
            self._notify_observers()

    def update(self, processed: int = 1):
        """Advance the counter, never past the total."""
        with self._lock:
            if not self._is_active:
                logger.debug("Tracker incremented before it was started. Ignoring.")
                return
            self._state.processed_items = min(
                self._state.total_items, self._state.processed_items + processed
            )
            self._notify_observers()

    def record_failure(self, message: str, count: int = 0):
        """Report a non-fatal failure; ``count`` cells stay unwritten."""
        with self._lock:
            self._state.failed_items += count
            for observer in self._observers:
                observer.on_diagnostic(message)

    def finish(self):
        with self._lock:
            if not self._is_active:
                return
            self._is_active = False
            report = self._report_generator.generate(self._state)
            for observer in self._observers:
                observer.on_finish(report)

    def _notify_observers(self):
        if not self._observers:
            return
        report = self._report_generator.generate(self._state)
        for observer in self._observers:
            observer.on_update(report)

    def get_current_report(self) -> ProgressReport:
        return self._report_generator.generate(self._state)


# ─────────────────────────────────────────────────────────────────────────────
# Factory for Easy Setup
# ─────────────────────────────────────────────────────────────────────────────
class ProgressTrackerFactory:

    @staticmethod
    def create_translation_tracker(total_items: int, show_bar: bool = True) -> ProgressTracker:
        """Tracker with a live bar plus throttled log lines."""
        clock = MonotonicClock()
        observers: List[ProgressObserver] = [
            LoggingObserver(logging.getLogger("sheet_translator.progress"), clock,
                            log_interval_seconds=30, log_diagnostics=not show_bar)
        ]
        if show_bar:
            observers.append(TqdmObserver())
        return ProgressTracker(total_items=total_items, observers=observers, clock=clock)

    @staticmethod
    def create_silent_tracker(total_items: int) -> ProgressTracker:
        """Create a tracker with no output - useful for testing."""
        return ProgressTracker(total_items=total_items, observers=[])


__all__ = [
    'ProgressReport', 'ProgressObserver', 'LoggingObserver', 'TqdmObserver',
    'ProgressTracker', 'ProgressTrackerFactory',
]
