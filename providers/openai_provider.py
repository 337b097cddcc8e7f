"""
Provider for the OpenAI text completion endpoint (``POST /v1/completions``)

One request per pending task, deterministic temperature, output budget sized
to whatever the model's context window leaves after the prompt.
"""
import asyncio
import logging
from enum import Enum
from typing import Any, Dict, List, Optional

import aiohttp
import tiktoken
from pydantic import ValidationError

from core.exceptions import (
    CredentialError,
    MalformedResponseError,
    NoCandidateError,
    ServiceError,
    TokenBudgetError,
    TransportFailure,
    TransportSetupError,
)
from .base_provider import BaseProvider
from .schemas import Choice, CompletionErrorPayload, CompletionRequest, parse_completion_response

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-3.5-turbo-instruct"
FALLBACK_ENCODING = "cl100k_base"

# Context window (prompt + completion) per completion model
CONTEXT_WINDOWS: Dict[str, int] = {
    "gpt-3.5-turbo-instruct": 4_096,
    "text-davinci-003": 4_097,
    "text-davinci-002": 4_097,
    "davinci-002": 16_384,
    "babbage-002": 16_384,
}
DEFAULT_CONTEXT_WINDOW = 4_096


class CandidatePolicy(str, Enum):
    """Which candidate wins when the service returns several."""
    FIRST = "first"
    LAST = "last"


def sanitize_openai_endpoint(endpoint: str) -> str:
    """Strip any trailing /completions or subpaths from endpoint, leave at most /v1."""
    parts = endpoint.split('/v1', 1)
    sanitized = parts[0] + '/v1' if len(parts) > 1 else endpoint.rstrip('/')
    return sanitized


def validate_api_key(api_key: Optional[str]) -> str:
    """The key must fit in an Authorization header as-is."""
    if not api_key:
        raise CredentialError("OpenAI API key missing. Pass --api-key or set OPENAI_API_KEY")
    if any(not (32 < ord(ch) < 127) for ch in api_key):
        raise CredentialError("OpenAI API key contains whitespace or non-printable characters")
    return api_key


class OpenaiCompletionProvider(BaseProvider):
    """
    Provider for OpenAI completion models.

    Config keys: ``api_key``, ``model``, ``endpoint``, ``candidate_policy``,
    ``request_timeout``, ``context_window`` and optionally a preloaded
    tiktoken ``encoding``.
    """

    def __init__(self, config: Dict[str, Any]) -> None:
        super().__init__(config)
        self.api_key: str = validate_api_key(config.get("api_key"))
        self.model: str = config.get("model") or DEFAULT_MODEL
        self.base_url: str = sanitize_openai_endpoint(config.get("endpoint") or DEFAULT_ENDPOINT)
        self.candidate_policy = CandidatePolicy(config.get("candidate_policy", CandidatePolicy.LAST))
        self.request_timeout: Optional[float] = config.get("request_timeout")
        self.context_window: int = (
            config.get("context_window")
            or CONTEXT_WINDOWS.get(self.model, DEFAULT_CONTEXT_WINDOW)
        )
        self._encoding = config.get("encoding")

        logger.info(f"OpenAI completion provider initialized: model={self.model}, "
                    f"context={self.context_window}, candidate={self.candidate_policy.value}")

    def get_headers(self) -> Dict[str, str]:
        headers = dict(super().get_headers())
        headers['Authorization'] = f'Bearer {self.api_key}'
        return headers

    def get_endpoint(self) -> str:
        return f"{self.base_url}/completions"

    async def open(self):
        """Load the tokenizer and create the HTTP session."""
        try:
            self._load_encoding()
        except Exception as e:
            raise TransportSetupError(f"Cannot load tokenizer for {self.model}: {e}") from e

        if self.session is None:
            timeout = aiohttp.ClientTimeout(total=self.request_timeout)
            try:
                self.session = aiohttp.ClientSession(headers=self.get_headers(), timeout=timeout)
            except (aiohttp.ClientError, ValueError) as e:
                raise TransportSetupError(f"Cannot create HTTP client: {e}") from e

    def _load_encoding(self):
        if self._encoding is None:
            try:
                self._encoding = tiktoken.encoding_for_model(self.model)
            except KeyError:
                logger.debug(f"No tokenizer registered for {self.model}, using {FALLBACK_ENCODING}")
                self._encoding = tiktoken.get_encoding(FALLBACK_ENCODING)
        return self._encoding

    def token_budget(self, prompt: str) -> int:
        prompt_tokens = len(self._load_encoding().encode(prompt))
        budget = self.context_window - prompt_tokens
        if budget <= 0:
            raise TokenBudgetError(
                f"Prompt uses {prompt_tokens} tokens, context window of {self.model} is {self.context_window}"
            )
        return budget

    def select_candidate(self, choices: List[Choice]) -> Choice:
        if not choices:
            raise NoCandidateError()
        if self.candidate_policy is CandidatePolicy.FIRST:
            return choices[0]
        return choices[-1]

    async def complete(self, prompt: str) -> str:
        request = CompletionRequest(
            model=self.model,
            prompt=prompt,
            max_tokens=self.token_budget(prompt),
            temperature=0.0,
        )

        if self.session is None:
            await self.open()

        logger.debug(f"Requesting completion ({request.max_tokens} max tokens)")
        status = None
        try:
            async with self.session.post(self.get_endpoint(), json=request.model_dump()) as response:
                status = response.status
                data = await response.json(content_type=None)
        except asyncio.TimeoutError as e:
            raise TransportFailure("Request timed out") from e
        except aiohttp.ClientError as e:
            raise TransportFailure(f"Request failed: {e}") from e
        except ValueError as e:
            raise TransportFailure(f"Response is not valid JSON (HTTP {status}): {e}") from e

        try:
            parsed = parse_completion_response(data)
        except ValidationError as e:
            raise MalformedResponseError(
                f"Unexpected response body (HTTP {status}): {str(data)[:200]}"
            ) from e

        if isinstance(parsed, CompletionErrorPayload):
            raise ServiceError(parsed.error.message)

        return self.select_candidate(parsed.choices).text.strip()

    def __repr__(self) -> str:
        return f"OpenaiCompletionProvider(model={self.model!r}, endpoint={self.base_url!r})"
