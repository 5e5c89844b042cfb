# /*
# Copyright 2026 The Grove Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""Retry policies and a cancellable retry executor built on tenacity."""

from __future__ import annotations

import random
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TypeVar

from tenacity import RetryCallState, Retrying, retry_if_exception, stop_after_attempt, stop_when_event_set

from bootstrap_manager import logger
from bootstrap_manager.constants import CANCEL_POLL_INTERVAL_SECONDS
from bootstrap_manager.errors import BootstrapError, ErrorKind, OperationCancelledError

T = TypeVar("T")

RetryPredicate = Callable[[BaseException], bool]
RetryObserver = Callable[[int, BaseException, float], None]


def retry_recoverable(err: BaseException) -> bool:
    """Retry only classified errors marked recoverable."""
    return isinstance(err, BootstrapError) and err.recoverable and err.kind is not ErrorKind.CANCELLED


def cancellable_sleep(
    seconds: float,
    cancel_event: threading.Event,
    operation: str,
    cause: BaseException | None = None,
) -> None:
    """Sleep for *seconds*, waking every 100ms to check *cancel_event*.

    Raises:
        OperationCancelledError: If the event is set before the sleep ends.
    """
    deadline = time.monotonic() + seconds
    while True:
        remaining = deadline - time.monotonic()
        if cancel_event.wait(min(CANCEL_POLL_INTERVAL_SECONDS, max(remaining, 0.0))):
            raise OperationCancelledError(operation, cause)
        if remaining <= 0:
            return


# ============================================================================
# Policies
# ============================================================================

@dataclass(frozen=True)
class RetryPolicy(ABC):
    """Bounded backoff policy.

    Attributes:
        max_attempts: Total attempts including the first call.
        base_delay: Delay in seconds for the first retry.
        max_delay: Upper bound in seconds for any single delay.
        jitter_factor: Fraction of the delay added as random jitter (0..1).
        retry_predicate: Decides whether a given error is worth retrying.
        respect_retry_after: Stretch delays to the error's suggested retry_after.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    jitter_factor: float = 0.0
    retry_predicate: RetryPredicate = field(default=retry_recoverable)
    respect_retry_after: bool = False

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be non-negative")
        if not 0.0 <= self.jitter_factor <= 1.0:
            raise ValueError("jitter_factor must be within [0, 1]")

    @abstractmethod
    def next_delay(self, attempt: int) -> float:
        """Return the delay in seconds before retrying after *attempt* failed."""

    def should_retry(self, err: BaseException) -> bool:
        return self.retry_predicate(err)

    def delay_for(self, attempt: int, err: BaseException | None) -> float:
        """Return the delay for *attempt*, honouring the error's retry_after if enabled."""
        delay = self.next_delay(attempt)
        if self.respect_retry_after and isinstance(err, BootstrapError) and err.recoverable:
            delay = min(self.max_delay, max(delay, err.retry_after))
        return delay


@dataclass(frozen=True)
class ExponentialBackoffPolicy(RetryPolicy):
    """``min(max_delay, base_delay * 2^(attempt-1))`` plus uniform jitter."""

    def next_delay(self, attempt: int) -> float:
        exponent = max(attempt, 1) - 1
        delay = min(self.max_delay, self.base_delay * (2 ** min(exponent, 62)))
        if self.jitter_factor > 0 and delay > 0:
            delay += random.uniform(0, delay * self.jitter_factor)
        return min(delay, self.max_delay)


@dataclass(frozen=True)
class LinearBackoffPolicy(RetryPolicy):
    """``min(max_delay, base_delay * attempt)``."""

    def next_delay(self, attempt: int) -> float:
        return min(self.max_delay, self.base_delay * max(attempt, 1))


def network_policy() -> ExponentialBackoffPolicy:
    """Policy for network-bound backend calls: 5 attempts, 1s..30s, 10% jitter, recoverable errors only."""
    return ExponentialBackoffPolicy(
        max_attempts=5,
        base_delay=1.0,
        max_delay=30.0,
        jitter_factor=0.1,
        retry_predicate=retry_recoverable,
    )


def resource_policy() -> LinearBackoffPolicy:
    """Policy for resource-constrained operations: 3 attempts, 5s..30s."""
    return LinearBackoffPolicy(max_attempts=3, base_delay=5.0, max_delay=30.0)


def installation_policy() -> ExponentialBackoffPolicy:
    """Policy for chart installation: 3 attempts, 30s..5m, recoverable errors only."""
    return ExponentialBackoffPolicy(
        max_attempts=3,
        base_delay=30.0,
        max_delay=300.0,
        retry_predicate=retry_recoverable,
        respect_retry_after=True,
    )


# ============================================================================
# Executor
# ============================================================================

class RetryExecutor:
    """Run a callable under a :class:`RetryPolicy`.

    Backoff sleeps poll ``cancel_event`` every 100ms, so cancellation latency is
    bounded regardless of the computed delay. The last error is re-raised
    unchanged once the policy gives up; cancellation surfaces as
    :class:`OperationCancelledError` chained to that error.

    Args:
        policy: Backoff shape and eligibility predicate.
        cancel_event: Cancellation signal shared with the caller.
        on_retry: Called as ``on_retry(attempt, error, delay)`` before each sleep.
        operation: Operation name used in cancellation errors and logs.
    """

    def __init__(
        self,
        policy: RetryPolicy,
        cancel_event: threading.Event | None = None,
        on_retry: RetryObserver | None = None,
        operation: str = "operation",
    ) -> None:
        self.policy = policy
        self.cancel_event = cancel_event or threading.Event()
        self.on_retry = on_retry
        self.operation = operation
        self._last_error: BaseException | None = None

    def run(self, fn: Callable[[], object]) -> None:
        """Run *fn* until it succeeds or the policy gives up."""
        self.call(fn)

    def call(self, fn: Callable[[], T]) -> T:
        """Run *fn* like :meth:`run` and return its value on success.

        Raises:
            OperationCancelledError: If the cancellation signal fired.
            Exception: The last error raised by *fn* when retries are exhausted
                or the error is not eligible for retry.
        """
        if self.cancel_event.is_set():
            raise OperationCancelledError(self.operation)

        self._last_error = None
        retrying = Retrying(
            stop=stop_after_attempt(self.policy.max_attempts) | stop_when_event_set(self.cancel_event),
            wait=self._wait,
            retry=retry_if_exception(self.policy.should_retry),
            sleep=self._sleep,
            before_sleep=self._before_sleep,
            reraise=True,
        )
        try:
            return retrying(fn)
        except OperationCancelledError:
            raise
        except Exception as err:
            if self.cancel_event.is_set():
                raise OperationCancelledError(self.operation, err) from err
            raise

    def _wait(self, retry_state: RetryCallState) -> float:
        err = retry_state.outcome.exception() if retry_state.outcome else None
        return self.policy.delay_for(retry_state.attempt_number, err)

    def _before_sleep(self, retry_state: RetryCallState) -> None:
        err = retry_state.outcome.exception()
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        self._last_error = err
        logger.warning("%s attempt %d/%d failed: %s; retrying in %.1fs",
                       self.operation, retry_state.attempt_number, self.policy.max_attempts, err, delay)
        if self.on_retry is not None:
            self.on_retry(retry_state.attempt_number, err, delay)

    def _sleep(self, seconds: float) -> None:
        cancellable_sleep(seconds, self.cancel_event, self.operation, self._last_error)
