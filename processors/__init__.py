"""
Parallel processing of translation runs
"""

from .parallel import RunSummary, TranslationProcessor

__all__ = [
    'RunSummary',
    'TranslationProcessor',
]
