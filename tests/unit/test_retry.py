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

"""Tests for retry policies and the cancellable retry executor."""

import threading
import time

import pytest

from bootstrap_manager.errors import (
    ClusterNotFoundError,
    ClusterOperationError,
    InstallationError,
    OperationCancelledError,
    RegistryDNSError,
    ValidationError,
)
from bootstrap_manager.retry import (
    ExponentialBackoffPolicy,
    LinearBackoffPolicy,
    RetryExecutor,
    cancellable_sleep,
    installation_policy,
    network_policy,
    resource_policy,
    retry_recoverable,
)

FAST = ExponentialBackoffPolicy(max_attempts=3, base_delay=0.001, max_delay=0.01)


def recoverable(msg: str = "transient") -> ClusterOperationError:
    return ClusterOperationError("create", "dev", msg, recoverable=True, retry_after=1)


class Flaky:
    """Callable that raises the given errors in order, then returns a value."""

    def __init__(self, *errors, value="ok"):
        self.errors = list(errors)
        self.value = value
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.value


# ============================================================================
# Policies
# ============================================================================

def test_exponential_backoff_doubles_up_to_cap():
    policy = ExponentialBackoffPolicy(base_delay=1.0, max_delay=30.0)
    assert [policy.next_delay(n) for n in (1, 2, 3, 4, 5, 6, 10)] == [1, 2, 4, 8, 16, 30, 30]


def test_linear_backoff_grows_by_base():
    policy = LinearBackoffPolicy(base_delay=5.0, max_delay=30.0)
    assert [policy.next_delay(n) for n in (1, 2, 3, 6, 7)] == [5, 10, 15, 30, 30]


def test_jitter_stays_within_bounds():
    policy = ExponentialBackoffPolicy(base_delay=2.0, max_delay=100.0, jitter_factor=0.5)
    for _ in range(50):
        assert 2.0 <= policy.next_delay(1) <= 3.0


@pytest.mark.parametrize("kwargs", [
    {"max_attempts": 0},
    {"base_delay": -1.0},
    {"jitter_factor": 1.5},
])
def test_invalid_policy_is_rejected(kwargs):
    with pytest.raises(ValueError):
        ExponentialBackoffPolicy(**kwargs)


def test_retry_after_stretches_delay_up_to_max():
    err = RegistryDNSError("ArgoCD", "registry-1.docker.io", "boom", retry_after=120)

    assert installation_policy().delay_for(1, err) == 120
    capped = ExponentialBackoffPolicy(base_delay=1, max_delay=60, respect_retry_after=True)
    assert capped.delay_for(1, err) == 60
    assert ExponentialBackoffPolicy(base_delay=1, max_delay=60).delay_for(1, err) == 1


def test_preset_shapes():
    net = network_policy()
    assert (net.max_attempts, net.base_delay, net.max_delay, net.jitter_factor) == (5, 1.0, 30.0, 0.1)
    res = resource_policy()
    assert (res.max_attempts, res.base_delay, res.max_delay) == (3, 5.0, 30.0)
    inst = installation_policy()
    assert (inst.max_attempts, inst.base_delay, inst.max_delay) == (3, 30.0, 300.0)


def test_predicates():
    assert retry_recoverable(recoverable())
    assert not retry_recoverable(ClusterOperationError("create", "dev", "boom"))
    assert not retry_recoverable(ValueError("boom"))
    assert not retry_recoverable(OperationCancelledError("x").with_recovery(1))

    assert not installation_policy().should_retry(InstallationError("ArgoCD", "helm-install", "boom"))


def test_network_policy_retries_only_recoverable_errors():
    policy = network_policy()

    assert policy.should_retry(recoverable("connection reset by peer"))
    assert not policy.should_retry(ClusterOperationError("create", "dev", "port 6550 already allocated"))
    assert not policy.should_retry(ClusterNotFoundError("dev"))
    assert not policy.should_retry(ValidationError("name", "", "empty"))
    assert not policy.should_retry(OperationCancelledError("create-cluster").with_recovery(1))


# ============================================================================
# Executor
# ============================================================================

def test_retries_recoverable_errors_until_success():
    seen = []
    fn = Flaky(recoverable("one"), recoverable("two"))
    executor = RetryExecutor(FAST, on_retry=lambda attempt, err, delay: seen.append((attempt, str(err.cause))))

    assert executor.call(fn) == "ok"
    assert fn.calls == 3
    assert seen == [(1, "one"), (2, "two")]


def test_elapsed_time_covers_every_backoff_delay():
    delays = []
    policy = ExponentialBackoffPolicy(max_attempts=3, base_delay=0.05, max_delay=1.0, jitter_factor=0.5)
    fn = Flaky(recoverable("one"), recoverable("two"))
    executor = RetryExecutor(policy, on_retry=lambda attempt, err, delay: delays.append(delay))

    started = time.monotonic()
    executor.call(fn)
    elapsed = time.monotonic() - started

    assert fn.calls == 3
    assert len(delays) == 2
    assert 0.05 <= delays[0] <= 0.075
    assert 0.1 <= delays[1] <= 0.15
    assert elapsed >= sum(delays)


def test_non_recoverable_error_is_raised_unchanged():
    err = ValidationError("name", "", "empty")
    fn = Flaky(err)

    with pytest.raises(ValidationError) as exc:
        RetryExecutor(FAST).run(fn)

    assert exc.value is err
    assert fn.calls == 1


def test_plain_exceptions_are_not_retried():
    fn = Flaky(RuntimeError("bug"))
    with pytest.raises(RuntimeError):
        RetryExecutor(FAST).run(fn)
    assert fn.calls == 1


def test_exhaustion_reraises_last_error():
    last = recoverable("three")
    fn = Flaky(recoverable("one"), recoverable("two"), last)

    with pytest.raises(ClusterOperationError) as exc:
        RetryExecutor(FAST).run(fn)

    assert exc.value is last
    assert fn.calls == 3


def test_already_cancelled_never_calls():
    event = threading.Event()
    event.set()
    fn = Flaky()

    with pytest.raises(OperationCancelledError):
        RetryExecutor(FAST, cancel_event=event, operation="create-cluster").run(fn)

    assert fn.calls == 0


def test_cancellation_interrupts_long_backoff():
    event = threading.Event()
    slow = ExponentialBackoffPolicy(max_attempts=3, base_delay=30.0, max_delay=30.0)
    fn = Flaky(recoverable("one"), recoverable("two"))
    timer = threading.Timer(0.2, event.set)

    started = time.monotonic()
    timer.start()
    try:
        with pytest.raises(OperationCancelledError) as exc:
            RetryExecutor(slow, cancel_event=event, operation="create-cluster").run(fn)
    finally:
        timer.cancel()

    assert time.monotonic() - started < 5
    assert fn.calls == 1
    assert isinstance(exc.value.cause, ClusterOperationError)


def test_cancellable_sleep_returns_when_not_cancelled():
    started = time.monotonic()
    cancellable_sleep(0.05, threading.Event(), "wait")
    assert time.monotonic() - started >= 0.05


def test_cancellable_sleep_raises_when_cancelled():
    event = threading.Event()
    event.set()
    with pytest.raises(OperationCancelledError):
        cancellable_sleep(10, event, "wait")
