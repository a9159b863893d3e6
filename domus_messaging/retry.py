# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""Bounded retry with exponential backoff and full jitter."""

import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, Optional, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry behavior.

    Attributes:
        max_attempts: Total attempts including the first (default: 2, i.e. retry once)
        base_delay_ms: Base delay in milliseconds
        backoff_factor: Exponential backoff multiplier
        max_delay_ms: Maximum delay cap in milliseconds
        use_jitter: Whether to apply full jitter to delays
    """
    max_attempts: int = 2
    base_delay_ms: int = 20
    backoff_factor: float = 2.0
    max_delay_ms: int = 1000
    use_jitter: bool = True


class RetryPolicy:
    """Retry policy with exponential backoff and full jitter."""

    def __init__(self, config: RetryConfig | None = None):
        self.config = config or RetryConfig()

    def calculate_delay_ms(self, attempt_number: int) -> int:
        """Calculate the delay before ``attempt_number`` (1-indexed).

        The first attempt never waits. Later attempts wait
        ``base * factor^(attempt - 2)``, capped, with full jitter if enabled.
        """
        if attempt_number <= 1:
            return 0

        delay_ms = int(self.config.base_delay_ms * (self.config.backoff_factor ** (attempt_number - 2)))
        delay_ms = min(delay_ms, self.config.max_delay_ms)

        if self.config.use_jitter:
            delay_ms = random.randint(0, delay_ms)
        return delay_ms

    def sleep(self, delay_ms: int) -> None:
        if delay_ms > 0:
            time.sleep(delay_ms / 1000.0)

    def call(
        self,
        fn: Callable[[], T],
        retry_on: Tuple[Type[BaseException], ...],
        on_retry: Optional[Callable[[int, BaseException], None]] = None,
    ) -> T:
        """Call ``fn``, retrying on the given exception types.

        Args:
            fn: Zero-argument callable
            retry_on: Exception types that trigger another attempt
            on_retry: Optional hook called with (next attempt number, error)

        Returns:
            The value returned by ``fn``

        Raises:
            The last error once attempts are exhausted; other errors immediately.
        """
        attempt = 1
        while True:
            try:
                return fn()
            except retry_on as e:
                if attempt >= self.config.max_attempts:
                    raise
                attempt += 1
                logger.debug("Retrying after %s (attempt %d/%d)", type(e).__name__, attempt, self.config.max_attempts)
                if on_retry is not None:
                    on_retry(attempt, e)
                self.sleep(self.calculate_delay_ms(attempt))
