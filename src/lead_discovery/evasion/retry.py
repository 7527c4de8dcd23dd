#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Retry policy for outbound requests, driven by tenacity.
"""

import time
from typing import Any, Callable, Optional

from tenacity import RetryCallState, Retrying, retry_if_exception, stop_after_attempt

from lead_discovery.exceptions import BlockedError, TransientRequestError
from lead_discovery.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 1.0
DEFAULT_BLOCK_MULTIPLIER = 5.0


class RetryPolicy:
    """
    Linear backoff with a longer wait after block signals.

    The delay before attempt ``n + 1`` is ``base_delay * n``, multiplied by
    ``block_multiplier`` when attempt ``n`` was blocked (403/429). ``sleep``
    is injectable so tests can run without waiting.
    """

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY,
        block_multiplier: float = DEFAULT_BLOCK_MULTIPLIER,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.max_attempts = max(1, max_attempts)
        self.base_delay = base_delay
        self.block_multiplier = block_multiplier
        self.sleep = sleep

    @staticmethod
    def is_retryable(error: BaseException) -> bool:
        return isinstance(error, (BlockedError, TransientRequestError))

    def backoff(self, attempt: int, error: Optional[BaseException] = None) -> float:
        """
        Delay after a failed attempt.

        Args:
            attempt: 1-based number of the attempt that failed
            error: The failure, used to detect block signals

        Returns:
            float: Seconds to wait
        """
        multiplier = self.block_multiplier if isinstance(error, BlockedError) else 1
        return self.base_delay * attempt * multiplier

    def _wait(self, retry_state: RetryCallState) -> float:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        return self.backoff(retry_state.attempt_number, error)

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            f"Attempt {retry_state.attempt_number}/{self.max_attempts} failed: {error}; "
            f"retrying in {retry_state.next_action.sleep:.1f}s"
        )

    def call(self, fn: Callable[..., Any], *args, **kwargs) -> Any:
        """
        Call ``fn`` until it succeeds, fails with a non-retryable error or
        the attempt ceiling is reached. The last error is re-raised.
        """
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self._wait,
            retry=retry_if_exception(self.is_retryable),
            sleep=self.sleep,
            before_sleep=self._log_retry,
            reraise=True,
        )
        return retrying(fn, *args, **kwargs)
