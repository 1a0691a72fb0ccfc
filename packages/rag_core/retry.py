from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Tuple, Type

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from .errors import InvalidConfiguration

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """
    Linear backoff policy for remote calls.

    The wait after the n-th failed attempt is ``n * backoff_step`` seconds,
    without jitter; nothing is waited after the final attempt. ``sleep`` is
    injectable so tests can record the delays instead of blocking.
    """

    max_attempts: int = 3
    backoff_step: float = 1.0
    sleep: Callable[[float], None] = field(default=time.sleep, compare=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise InvalidConfiguration(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.backoff_step < 0:
            raise InvalidConfiguration(f"backoff_step must be non-negative, got {self.backoff_step}")

    def delay_for(self, attempt_number: int) -> float:
        """Seconds to wait after the given (1-based) failed attempt."""
        return attempt_number * self.backoff_step

    def retrying(
        self,
        retry_on: Tuple[Type[BaseException], ...],
        logger: logging.Logger | None = None,
        operation: str = "remote call",
    ) -> Retrying:
        """Build a tenacity controller that re-raises the last failure once attempts are exhausted."""
        log = logger or _log

        def _before_sleep(state: RetryCallState) -> None:
            exc = state.outcome.exception() if state.outcome else None
            log.warning(
                "%s failed (attempt %d/%d): %s; retrying in %.1fs",
                operation,
                state.attempt_number,
                self.max_attempts,
                exc,
                state.next_action.sleep if state.next_action else 0.0,
            )

        return Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_incrementing(start=self.backoff_step, increment=self.backoff_step),
            retry=retry_if_exception_type(retry_on),
            sleep=self.sleep,
            before_sleep=_before_sleep,
            reraise=True,
        )


__all__ = ["RetryPolicy"]
