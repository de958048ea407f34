"""
Retry policy configuration for HTTP requests.

Design Pattern: Strategy Pattern
RetryPolicy encapsulates retry behavior, allowing different retry strategies
without modifying the transport's attempt loop.

Design Rationale:
- Client default: three attempts with exponential backoff
- Per-call override: merged() replaces only the fields a call sets
- No jitter: delays are pure exponential with a cap
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, cast

DEFAULT_RETRYABLE_STATUSES: frozenset[int] = frozenset(
    {
        408,  # Request Timeout
        425,  # Too Early
        429,  # Too Many Requests
        *range(500, 600),
    }
)


@dataclass(frozen=True)
class RetryPolicy:
    """
    Configuration for request retry behavior.

    Controls how many times a request is attempted on transient failures,
    which HTTP statuses count as transient, and the backoff between attempts.

    Examples:
        # Named policy: the client default
        policy = RetryPolicy.STANDARD

        # Simple: just specify max attempts (uses standard delays)
        policy = RetryPolicy.with_max_attempts(5)

        # Custom policy: full control
        policy = RetryPolicy(
            max_attempts=5,
            initial_delay_ms=500,
            max_delay_ms=10000,
            backoff_factor=1.5,
        )
    """

    max_attempts: int = 3
    """Maximum number of attempts (including the first try).

    For example, max_attempts = 3 means:
    - Attempt 1: immediate (first try)
    - Attempt 2: after initial_delay_ms
    - Attempt 3: after initial_delay_ms * backoff_factor

    A value of 1 disables retries.
    """

    initial_delay_ms: int = 1000
    """Delay before the first retry in milliseconds."""

    backoff_factor: float = 2.0
    """Multiplier for exponential backoff.

    Each retry delay is calculated as:
    min(initial_delay_ms * backoff_factor^(attempt-1), max_delay_ms)
    """

    max_delay_ms: int = 30000
    """Maximum delay between retries in milliseconds (caps exponential backoff)."""

    retry_on_statuses: frozenset[int] = field(default=DEFAULT_RETRYABLE_STATUSES)
    """HTTP status codes eligible for retry. Default: 408, 425, 429 and 500-599."""

    # =========================================================================
    # Predefined Policies
    # =========================================================================

    if TYPE_CHECKING:
        NONE: RetryPolicy
        STANDARD: RetryPolicy
    else:
        NONE = cast("RetryPolicy", None)
        STANDARD = cast("RetryPolicy", None)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.initial_delay_ms < 0 or self.max_delay_ms < 0:
            raise ValueError("retry delays must be >= 0")
        if not isinstance(self.retry_on_statuses, frozenset):
            object.__setattr__(self, "retry_on_statuses", frozenset(self.retry_on_statuses))

    @classmethod
    def with_max_attempts(cls, max_attempts: int) -> RetryPolicy:
        """
        Create a policy with custom max_attempts (uses standard delays).

        Example:
            policy = RetryPolicy.with_max_attempts(5)
        """
        return replace(cls.STANDARD, max_attempts=max(max_attempts, 1))

    def merged(
        self,
        *,
        max_attempts: int | None = None,
        initial_delay_ms: int | None = None,
        backoff_factor: float | None = None,
        max_delay_ms: int | None = None,
        retry_on_statuses: Iterable[int] | None = None,
    ) -> RetryPolicy:
        """
        Build a policy that overrides only the given fields.

        Unset fields fall back to this policy. max_attempts is clamped to 1,
        and an empty retry_on_statuses keeps this policy's statuses.

        Example:
            per_call = client_default.merged(max_attempts=1)
        """
        statuses = frozenset(retry_on_statuses) if retry_on_statuses is not None else frozenset()
        return RetryPolicy(
            max_attempts=max(max_attempts if max_attempts is not None else self.max_attempts, 1),
            initial_delay_ms=(
                initial_delay_ms if initial_delay_ms is not None else self.initial_delay_ms
            ),
            backoff_factor=backoff_factor if backoff_factor is not None else self.backoff_factor,
            max_delay_ms=max_delay_ms if max_delay_ms is not None else self.max_delay_ms,
            retry_on_statuses=statuses or self.retry_on_statuses,
        )

    def should_retry_status(self, status: int) -> bool:
        """Check if an HTTP status is eligible for retry under this policy."""
        return status in self.retry_on_statuses

    def backoff_ms(self, attempt: int) -> float:
        """
        Backoff before the attempt that follows ``attempt`` (1-indexed).

        attempt=1 (first retry): factor^0 → initial_delay_ms
        attempt=2 (second retry): factor^1 → initial_delay_ms * factor
        """
        exponent = max(0, attempt - 1)
        delay_ms = self.initial_delay_ms * self.backoff_factor**exponent
        return min(delay_ms, self.max_delay_ms)

    def delay_for_attempt(self, attempt: int) -> float | None:
        """
        Calculate the delay before the next retry attempt.

        Args:
            attempt: The attempt that just failed (1-indexed)

        Returns:
            Delay in milliseconds before the next attempt, or None if the
            policy allows no more attempts.

        Example:
            policy = RetryPolicy.STANDARD
            delay1 = policy.delay_for_attempt(1)  # 1000
            delay2 = policy.delay_for_attempt(2)  # 2000
            delay3 = policy.delay_for_attempt(3)  # None (max attempts)
        """
        if attempt >= self.max_attempts:
            return None
        return self.backoff_ms(attempt)

    def __repr__(self) -> str:
        return (
            f"RetryPolicy(max_attempts={self.max_attempts}, "
            f"initial_delay_ms={self.initial_delay_ms}, "
            f"backoff_factor={self.backoff_factor}, "
            f"max_delay_ms={self.max_delay_ms}, "
            f"retry_on_statuses=<{len(self.retry_on_statuses)} statuses>)"
        )


# Initialize predefined policies after class definition
RetryPolicy.NONE = RetryPolicy(max_attempts=1, initial_delay_ms=0, max_delay_ms=0, backoff_factor=1.0)

RetryPolicy.STANDARD = RetryPolicy(
    max_attempts=3,
    initial_delay_ms=1000,  # 1 second
    backoff_factor=2.0,
    max_delay_ms=30000,  # 30 seconds
)
