"""
Run configuration

Precedence, lowest first: defaults, optional YAML file, command-line options.
"""
import dataclasses
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from providers.openai_provider import DEFAULT_ENDPOINT, DEFAULT_MODEL, CandidatePolicy
from utils.rate_limiter import RateLimitConfig, ReleaseOrder

from .exceptions import ConfigError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TranslatorConfig:
    """Immutable settings for one translation run."""
    model: str = DEFAULT_MODEL
    target_language: str = "Romanian"
    sheet_name: str = "Worksheet"
    endpoint: str = DEFAULT_ENDPOINT
    requests_per_minute: int = 60
    interval_seconds: float = 60.0
    release_order: ReleaseOrder = ReleaseOrder.FIFO
    first_burst_immediate: bool = True
    candidate_policy: CandidatePolicy = CandidatePolicy.LAST
    request_timeout: Optional[float] = None
    context_window: Optional[int] = None

    def __post_init__(self):
        try:
            object.__setattr__(self, 'release_order', ReleaseOrder(self.release_order))
            object.__setattr__(self, 'candidate_policy', CandidatePolicy(self.candidate_policy))
        except ValueError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

        if not self.model:
            raise ConfigError("Model must not be empty")
        if not self.target_language:
            raise ConfigError("Target language must not be empty")
        if self.requests_per_minute <= 0:
            raise ConfigError("requests_per_minute must be positive")
        if self.interval_seconds < 0:
            raise ConfigError("interval_seconds must not be negative")
        if self.request_timeout is not None and self.request_timeout <= 0:
            raise ConfigError("request_timeout must be positive")
        if self.context_window is not None and self.context_window <= 0:
            raise ConfigError("context_window must be positive")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TranslatorConfig":
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")
        try:
            return cls(**data)
        except TypeError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    @classmethod
    def from_yaml(cls, path: Path) -> "TranslatorConfig":
        path = Path(path)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except OSError as e:
            raise ConfigError(f"Cannot read config file {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")
        logger.debug(f"Loaded configuration from {path}: {sorted(data)}")
        return cls.from_dict(data)

    def with_overrides(self, **overrides: Any) -> "TranslatorConfig":
        """Copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        if not changes:
            return self
        return self.from_dict({**dataclasses.asdict(self), **changes})

    def rate_limit_config(self) -> RateLimitConfig:
        return RateLimitConfig(
            requests_per_minute=self.requests_per_minute,
            interval_seconds=self.interval_seconds,
            release_order=self.release_order,
            first_burst_immediate=self.first_burst_immediate,
        )

    def provider_config(self, api_key: Optional[str]) -> Dict[str, Any]:
        return {
            'api_key': api_key,
            'model': self.model,
            'endpoint': self.endpoint,
            'candidate_policy': self.candidate_policy,
            'request_timeout': self.request_timeout,
            'context_window': self.context_window,
        }
