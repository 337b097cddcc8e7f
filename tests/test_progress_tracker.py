import io

from utils.progress_tracker import ProgressTracker, TqdmObserver


class FakeClock:
    def __init__(self):
        self.value = 0.0

    def now(self) -> float:
        return self.value


def test_lifecycle_notifies_observers(observer):
    clock = FakeClock()
    tracker = ProgressTracker(total_items=4, observers=[observer], clock=clock)

    with tracker:
        clock.value = 10.0
        tracker.update()
        tracker.update(2)

    assert [r.processed_items for r in observer.updates] == [0, 1, 3]
    assert observer.finished.processed_items == 3
    assert observer.finished.total_items == 4
    assert observer.finished.progress_pct == 75.0
    assert not tracker.is_active


def test_counter_is_bounded_by_total(observer):
    tracker = ProgressTracker(total_items=2, observers=[observer])
    tracker.start()
    tracker.update(5)
    assert tracker.processed_items == 2


def test_updates_before_start_are_ignored(observer):
    tracker = ProgressTracker(total_items=2, observers=[observer])
    tracker.update()
    assert tracker.processed_items == 0
    assert observer.updates == []


def test_start_accepts_total(observer):
    tracker = ProgressTracker(observers=[observer])
    tracker.start(total_items=12)
    assert tracker.total_items == 12


def test_failures_are_reported_without_advancing(observer):
    tracker = ProgressTracker(total_items=3, observers=[observer])
    tracker.start()
    tracker.record_failure("hello: rate limited", count=2)

    assert observer.diagnostics == ["hello: rate limited"]
    assert tracker.failed_items == 2
    assert tracker.processed_items == 0


def test_finish_is_idempotent(observer):
    tracker = ProgressTracker(total_items=1, observers=[observer])
    tracker.start()
    tracker.finish()
    observer.finished = None
    tracker.finish()
    assert observer.finished is None


def test_tqdm_observer_prints_diagnostics_and_clears_bar():
    stream = io.StringIO()
    bar_observer = TqdmObserver(file=stream)
    tracker = ProgressTracker(total_items=2, observers=[bar_observer])

    with tracker:
        tracker.update()
        tracker.record_failure("hello: rate limited", count=1)

    assert "hello: rate limited" in stream.getvalue()
    assert bar_observer._bar is None
