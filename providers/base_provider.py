"""
Abstract base provider interface
"""
from abc import ABC, abstractmethod
from typing import Any, Dict
import logging

logger = logging.getLogger(__name__)


class BaseProvider(ABC):
    """Base class for completion providers used by the translation workers"""

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.session = None

    @abstractmethod
    async def complete(self, prompt: str) -> str:
        """
        Send one completion request and return the selected candidate text

        Args:
            prompt: The fully rendered prompt

        Returns:
            The completion text

        Raises:
            TranslationFailure: transport, service or parsing failure for
                this request only
        """
        pass

    @abstractmethod
    def token_budget(self, prompt: str) -> int:
        """
        Output tokens left for the completion once the prompt is counted

        Args:
            prompt: The fully rendered prompt

        Returns:
            Maximum number of tokens the completion may use
        """
        pass

    def get_headers(self) -> Dict[str, str]:
        """Get headers for API requests"""
        return self.config.get('headers', {})

    def get_endpoint(self) -> str:
        """Get API endpoint"""
        return self.config.get('endpoint', '')

    async def open(self):
        """Acquire network resources before the first request"""
        pass

    async def close(self):
        """Cleanup resources"""
        if self.session:
            await self.session.close()
            self.session = None

    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
