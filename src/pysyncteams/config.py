"""Client configuration.

ClientConfig is built once and shared read-only by every operation of a
client; no operation mutates it.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

import httpx

from pysyncteams.errors import WorkflowValidationError
from pysyncteams.models import RetryPolicy

DEFAULT_BASE_URL = "https://api.syncteams.studio"
DEFAULT_REQUEST_TIMEOUT_MS = 30_000
DEFAULT_POLL_INTERVAL_MS = 2_000
DEFAULT_MAX_WAIT_TIME_MS = 10 * 60 * 1000  # 10 minutes


def _get_env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ValueError(f"Environment variable {name} must be an int, got: {raw!r}") from e
    return value


def _get_env_str(name: str, default: str | None) -> str | None:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw


@dataclass(frozen=True)
class ClientConfig:
    """Settings for a WorkflowClient.

    Attributes:
        api_key: API key provisioned for the workspace (format: sts_xxx)
        base_url: Service origin; trailing slashes are stripped
        default_headers: Headers added to every request, after the built-in ones
        timeout_ms: Per-attempt request timeout
        retry_policy: Retry policy used when a call does not pass its own
        user_agent_suffix: Appended to the User-Agent header
        transport: httpx transport to send requests through; None uses the
            network. Tests pass an ``httpx.MockTransport``.
    """

    api_key: str
    base_url: str = DEFAULT_BASE_URL
    default_headers: Mapping[str, str] = field(default_factory=dict)
    timeout_ms: int = DEFAULT_REQUEST_TIMEOUT_MS
    retry_policy: RetryPolicy = RetryPolicy.STANDARD
    user_agent_suffix: str | None = None
    transport: httpx.AsyncBaseTransport | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if not isinstance(self.api_key, str) or not self.api_key.strip():
            raise WorkflowValidationError("api_key is required when constructing WorkflowClient")
        if not self.base_url:
            raise WorkflowValidationError("base_url must be a non-empty string")
        if self.timeout_ms <= 0:
            raise WorkflowValidationError("timeout_ms must be > 0")
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))
        object.__setattr__(
            self, "default_headers", MappingProxyType(dict(self.default_headers))
        )

    def __repr__(self) -> str:
        return (
            f"ClientConfig(base_url={self.base_url!r}, api_key='***', "
            f"timeout_ms={self.timeout_ms}, retry_policy={self.retry_policy!r})"
        )

    @classmethod
    def from_env(cls, **overrides: Any) -> ClientConfig:
        """
        Load settings from env vars, with keyword overrides taking precedence.

        Env vars:
          - SYNCTEAMS_API_KEY (required unless api_key is passed)
          - SYNCTEAMS_BASE_URL (default: https://api.syncteams.studio)
          - SYNCTEAMS_TIMEOUT_MS (default: 30000)
          - SYNCTEAMS_MAX_ATTEMPTS (default: 3)
          - SYNCTEAMS_USER_AGENT_SUFFIX (default: none)
        """
        timeout_ms = _get_env_int("SYNCTEAMS_TIMEOUT_MS", DEFAULT_REQUEST_TIMEOUT_MS)
        if timeout_ms <= 0:
            raise ValueError("SYNCTEAMS_TIMEOUT_MS must be > 0")

        max_attempts = _get_env_int("SYNCTEAMS_MAX_ATTEMPTS", RetryPolicy.STANDARD.max_attempts)
        if max_attempts <= 0:
            raise ValueError("SYNCTEAMS_MAX_ATTEMPTS must be > 0")

        settings: dict[str, Any] = {
            "api_key": _get_env_str("SYNCTEAMS_API_KEY", ""),
            "base_url": _get_env_str("SYNCTEAMS_BASE_URL", DEFAULT_BASE_URL),
            "timeout_ms": timeout_ms,
            "retry_policy": RetryPolicy.STANDARD.merged(max_attempts=max_attempts),
            "user_agent_suffix": _get_env_str("SYNCTEAMS_USER_AGENT_SUFFIX", None),
        }
        settings.update(overrides)
        return cls(**settings)
