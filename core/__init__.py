"""
Core translation modules: overrides, dedup registry, scanning and collection
"""
from .overrides import OverrideTable, load_overrides, normalize_key
from .registry import CellLocation, DedupRegistry, FrozenRegistry, PendingTask, TaskState
from .collector import ResultCollector, TranslationOutcome

__all__ = [
    'OverrideTable', 'load_overrides', 'normalize_key',
    'CellLocation', 'DedupRegistry', 'FrozenRegistry', 'PendingTask', 'TaskState',
    'ResultCollector', 'TranslationOutcome',
]
