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

"""Sequential, weighted workflow executor with progress tracking.

Steps run one at a time in declared order. A failed non-optional step halts the
run; a failed optional step is recorded as skipped and the run continues. The
:class:`WorkflowResult` lists every step that reached a terminal state, in
execution order.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from bootstrap_manager import logger
from bootstrap_manager.errors import OperationCancelledError, SkippedInstallation
from bootstrap_manager.retry import RetryExecutor, RetryPolicy


class StepStatus(str, Enum):
    PENDING = "Pending"
    RUNNING = "Running"
    COMPLETED = "Completed"
    FAILED = "Failed"
    SKIPPED = "Skipped"


TERMINAL_STATUSES = frozenset({StepStatus.COMPLETED, StepStatus.FAILED, StepStatus.SKIPPED})


@dataclass
class StepContext:
    """Handle passed to a step action.

    Attributes:
        step_name: Name of the running step.
        cluster_name: Cluster the workflow acts on.
        cancel_event: Cancellation signal shared by the whole run.
    """

    step_name: str
    cluster_name: str
    cancel_event: threading.Event
    _report: Callable[[float], None] = field(default=lambda fraction: None, repr=False)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def check_cancelled(self) -> None:
        """Raise OperationCancelledError if cancellation was requested."""
        if self.cancel_event.is_set():
            raise OperationCancelledError(self.step_name)

    def report_progress(self, fraction: float) -> None:
        """Report sub-progress of the running step as a fraction in [0, 1]."""
        self._report(fraction)


StepAction = Callable[[StepContext], None]


@dataclass
class Step:
    """A named unit of work.

    Attributes:
        name: Step name shown in results.
        action: Callable doing the work; raises on failure.
        weight: Relative share of overall progress (non-negative).
        optional: Whether a failure is recorded as skipped instead of halting.
        retry_policy: Retry policy wrapping the action, if any.
    """

    name: str
    action: StepAction
    weight: float = 1.0
    optional: bool = False
    retry_policy: RetryPolicy | None = None

    def __post_init__(self) -> None:
        if self.weight < 0:
            raise ValueError(f"step '{self.name}' has negative weight {self.weight}")


@dataclass(frozen=True)
class StepResult:
    step_name: str
    status: StepStatus
    duration: float
    timestamp: datetime
    error: BaseException | None = None
    skip_reason: str | None = None


@dataclass(frozen=True)
class WorkflowResult:
    """Immutable record of one workflow run.

    Attributes:
        success: False when any recorded step failed.
        steps: Terminal step results in execution order.
        total_time: Wall-clock seconds for the whole run.
        cluster_name: Cluster the run acted on.
    """

    success: bool
    steps: tuple[StepResult, ...]
    total_time: float
    cluster_name: str

    @property
    def failed_step(self) -> StepResult | None:
        for result in self.steps:
            if result.status is StepStatus.FAILED:
                return result
        return None

    @property
    def error(self) -> BaseException | None:
        failed = self.failed_step
        return failed.error if failed else None


# ============================================================================
# Progress tracking
# ============================================================================

class ProgressTracker:
    """Weighted progress over a fixed list of steps.

    Percentage is the summed weight of terminal steps over the total weight,
    plus the running step's reported fraction of its own weight. With a zero
    total weight the count of terminal steps is used instead. The reported value
    never decreases within a run.

    Args:
        steps: Steps of the run, in order.
        on_progress: Called with the new percentage whenever it increases.
    """

    def __init__(self, steps: Sequence[Step], on_progress: Callable[[float], None] | None = None) -> None:
        self._weights = {step.name: step.weight for step in steps}
        self._step_count = len(steps)
        self.total_weight = sum(self._weights.values())
        self._on_progress = on_progress
        self._terminal_weight = 0.0
        self._terminal_count = 0
        self._percentage = 0.0

    @property
    def percentage(self) -> float:
        return self._percentage

    def update(self, step_name: str, fraction: float) -> float:
        """Record a running step's sub-progress and return the percentage."""
        fraction = min(max(fraction, 0.0), 1.0)
        if self.total_weight > 0:
            value = (self._terminal_weight + self._weights.get(step_name, 0.0) * fraction) / self.total_weight
        elif self._step_count:
            value = (self._terminal_count + fraction) / self._step_count
        else:
            value = 1.0
        return self._advance(value * 100.0)

    def complete(self, step_name: str) -> float:
        """Mark a step terminal and return the percentage."""
        self._terminal_weight += self._weights.get(step_name, 0.0)
        self._terminal_count += 1
        return self.update(step_name, 0.0)

    def _advance(self, value: float) -> float:
        value = min(value, 100.0)
        if value > self._percentage:
            self._percentage = value
            if self._on_progress is not None:
                self._on_progress(value)
        return self._percentage


# ============================================================================
# Executor
# ============================================================================

class WorkflowExecutor:
    """Run steps sequentially and record a :class:`WorkflowResult`.

    Args:
        steps: Steps to run in order.
        cancel_event: Cancellation signal; checked before each step and shared
            with step retry loops.
        on_step_start: Called with a step name when it starts running.
        on_step_result: Called with each StepResult as it becomes terminal.
        on_progress: Called with the overall percentage when it increases.
        clock: Monotonic clock used for durations.

    Attributes:
        states: Status of every step in the current or last run. Steps move
            Pending, then Running, then one terminal status, and never back.
    """

    def __init__(
        self,
        steps: Sequence[Step],
        *,
        cancel_event: threading.Event | None = None,
        on_step_start: Callable[[str], None] | None = None,
        on_step_result: Callable[[StepResult], None] | None = None,
        on_progress: Callable[[float], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        names = [step.name for step in steps]
        if len(set(names)) != len(names):
            raise ValueError(f"step names must be unique: {names}")
        self.steps = list(steps)
        self.cancel_event = cancel_event or threading.Event()
        self.on_step_start = on_step_start
        self.on_step_result = on_step_result
        self.on_progress = on_progress
        self.clock = clock
        self.states: dict[str, StepStatus] = {}

    def run(self, cluster_name: str = "") -> WorkflowResult:
        """Run every step until one fails or cancellation fires."""
        started = self.clock()
        tracker = ProgressTracker(self.steps, self.on_progress)
        results: list[StepResult] = []
        self.states = {step.name: StepStatus.PENDING for step in self.steps}

        for step in self.steps:
            self._transition(step.name, StepStatus.RUNNING)
            if self.on_step_start is not None:
                self.on_step_start(step.name)
            logger.info("Running step %s", step.name)

            result = self._run_step(step, cluster_name, tracker)
            self._transition(step.name, result.status)
            results.append(result)
            tracker.complete(step.name)
            if self.on_step_result is not None:
                self.on_step_result(result)
            self._log_result(result)

            if result.status is StepStatus.FAILED:
                break

        return WorkflowResult(
            success=all(result.status is not StepStatus.FAILED for result in results),
            steps=tuple(results),
            total_time=self.clock() - started,
            cluster_name=cluster_name,
        )

    def _run_step(self, step: Step, cluster_name: str, tracker: ProgressTracker) -> StepResult:
        started = self.clock()
        timestamp = datetime.now(timezone.utc)

        def finish(status: StepStatus, error: BaseException | None = None, skip_reason: str | None = None) -> StepResult:
            return StepResult(step.name, status, self.clock() - started, timestamp, error, skip_reason)

        if self.cancel_event.is_set():
            return finish(StepStatus.FAILED, OperationCancelledError(step.name))

        ctx = StepContext(step.name, cluster_name, self.cancel_event,
                          lambda fraction: tracker.update(step.name, fraction))
        try:
            if step.retry_policy is not None:
                RetryExecutor(step.retry_policy, self.cancel_event, operation=step.name).run(lambda: step.action(ctx))
            else:
                step.action(ctx)
        except SkippedInstallation as skip:
            return finish(StepStatus.SKIPPED, skip_reason=skip.reason)
        except Exception as err:
            if self.cancel_event.is_set() and not isinstance(err, OperationCancelledError):
                err = OperationCancelledError(step.name, err)
            if step.optional and not isinstance(err, OperationCancelledError):
                return finish(StepStatus.SKIPPED, err, f"optional step failed: {err}")
            return finish(StepStatus.FAILED, err)
        return finish(StepStatus.COMPLETED)

    def _transition(self, step_name: str, status: StepStatus) -> None:
        current = self.states[step_name]
        allowed = current is StepStatus.PENDING if status is StepStatus.RUNNING else (
            current is StepStatus.RUNNING and status in TERMINAL_STATUSES
        )
        if not allowed:
            raise RuntimeError(f"step {step_name}: invalid transition {current.value} -> {status.value}")
        self.states[step_name] = status

    @staticmethod
    def _log_result(result: StepResult) -> None:
        if result.status is StepStatus.FAILED:
            logger.error("Step %s failed after %.1fs: %s", result.step_name, result.duration, result.error)
        elif result.status is StepStatus.SKIPPED:
            logger.warning("Step %s skipped: %s", result.step_name, result.skip_reason)
        else:
            logger.info("Step %s completed in %.1fs", result.step_name, result.duration)
