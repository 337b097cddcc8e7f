"""
Providers package for completion service APIs
"""

from .base_provider import BaseProvider
from .openai_provider import CandidatePolicy, OpenaiCompletionProvider

__all__ = [
    'BaseProvider',
    'CandidatePolicy',
    'OpenaiCompletionProvider',
]
