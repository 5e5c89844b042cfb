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

"""Structured error taxonomy for cluster and installation failures.

Every error carries its :class:`ErrorKind` as data so callers branch on
``err.kind`` instead of walking isinstance chains. :class:`SkippedInstallation`
is intentionally *not* a :class:`BootstrapError`: an intentional skip must never
be mistaken for a failure.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from enum import Enum


class ErrorKind(str, Enum):
    """Discriminator carried by every :class:`BootstrapError`."""

    OPERATION = "operation"
    VALIDATION = "validation"
    CONFIGURATION = "configuration"
    CLUSTER_OPERATION = "cluster_operation"
    CLUSTER_NOT_FOUND = "cluster_not_found"
    CLUSTER_ALREADY_EXISTS = "cluster_already_exists"
    PROVIDER_NOT_FOUND = "provider_not_found"
    INSTALLATION = "installation"
    REGISTRY_DNS = "registry_dns"
    CANCELLED = "cancelled"
    COMBINED = "combined"


# ============================================================================
# Base record
# ============================================================================

class BootstrapError(Exception):
    """Base error record shared by every failure kind.

    Attributes:
        operation: Operation that failed (e.g. ``create``, ``installation``).
        component: Component the operation acted on.
        cause: Underlying raw error or message, if any.
        cluster_name: Cluster the failure relates to, if known.
        timestamp: UTC time the error was recorded.
        recoverable: Whether the failure is judged transient.
        retry_after: Suggested delay in seconds; zero unless recoverable.
    """

    kind: ErrorKind = ErrorKind.OPERATION

    def __init__(
        self,
        operation: str,
        component: str,
        cause: BaseException | str | None = None,
        *,
        cluster_name: str | None = None,
        recoverable: bool = False,
        retry_after: float = 0.0,
    ) -> None:
        self.operation = operation
        self.component = component
        self.cause = cause
        self.cluster_name = cluster_name
        self.timestamp = datetime.now(timezone.utc)
        self.recoverable = recoverable
        self.retry_after = retry_after if recoverable else 0.0
        super().__init__(operation, component)

    def __str__(self) -> str:
        return self.format_message()

    def format_message(self) -> str:
        """Format the complete error message.

        Returns:
            Human readable message including cluster context when known.
        """
        if self.cluster_name:
            return (f"{self.operation} failed for {self.component} "
                    f"on cluster {self.cluster_name}: {self.cause}")
        return f"{self.operation} failed for {self.component}: {self.cause}"

    def with_cluster(self, cluster_name: str | None) -> BootstrapError:
        """Attach cluster context and return self for chaining."""
        self.cluster_name = cluster_name
        return self

    def with_recovery(self, retry_after: float) -> BootstrapError:
        """Mark the error recoverable with a suggested retry delay."""
        self.recoverable = True
        self.retry_after = retry_after
        return self


# ============================================================================
# Concrete kinds
# ============================================================================

class ValidationError(BootstrapError):
    """Bad caller input. Never retried."""

    kind = ErrorKind.VALIDATION

    def __init__(self, field: str, value: object, constraint: str) -> None:
        self.field = field
        self.value = value
        self.constraint = constraint
        super().__init__("validation", "configuration", f"constraint violation: {constraint}")

    def format_message(self) -> str:
        return f"validation failed for field '{self.field}': {self.constraint} (value: '{self.value}')"


class ConfigurationError(BootstrapError):
    """Missing or malformed settings. Never retried."""

    kind = ErrorKind.CONFIGURATION

    def __init__(
        self,
        cause: BaseException | str,
        *,
        config_file: str | None = None,
        section: str | None = None,
        missing_keys: Sequence[str] = (),
    ) -> None:
        self.config_file = config_file
        self.section = section
        self.missing_keys = list(missing_keys)
        super().__init__("configuration", section or "validation", cause)

    def format_message(self) -> str:
        if self.config_file:
            return f"configuration error in file '{self.config_file}': {self.cause}"
        return f"configuration error: {self.cause}"


class ClusterOperationError(BootstrapError):
    """Failure reported by a cluster backend's tooling."""

    kind = ErrorKind.CLUSTER_OPERATION

    def __init__(
        self,
        operation: str,
        cluster_name: str,
        cause: BaseException | str | None = None,
        *,
        recoverable: bool = False,
        retry_after: float = 0.0,
    ) -> None:
        super().__init__(operation, "cluster", cause, cluster_name=cluster_name,
                         recoverable=recoverable, retry_after=retry_after)

    def format_message(self) -> str:
        return f"cluster {self.operation} failed for {self.cluster_name}: {self.cause}"


class ClusterNotFoundError(ClusterOperationError):
    """The named cluster does not exist on this backend."""

    kind = ErrorKind.CLUSTER_NOT_FOUND

    def __init__(self, cluster_name: str, operation: str = "status") -> None:
        super().__init__(operation, cluster_name, f"cluster {cluster_name} not found")


class ClusterAlreadyExistsError(ClusterOperationError):
    """A cluster with the requested name already exists."""

    kind = ErrorKind.CLUSTER_ALREADY_EXISTS

    def __init__(self, cluster_name: str) -> None:
        super().__init__("create", cluster_name, f"cluster {cluster_name} already exists")


class ProviderNotFoundError(BootstrapError):
    """No backend implementation serves the requested type. Fatal."""

    kind = ErrorKind.PROVIDER_NOT_FOUND

    def __init__(self, backend_type: object) -> None:
        self.backend_type = backend_type
        backend = getattr(backend_type, "value", backend_type)
        super().__init__("resolve", "provider", f"no cluster provider registered for backend '{backend}'")

    def format_message(self) -> str:
        return str(self.cause)


class InstallationError(BootstrapError):
    """Chart tool failure during installation.

    Attributes:
        phase: Installation phase the failure happened in.
        suggestions: Error-specific troubleshooting suggestions.
    """

    kind = ErrorKind.INSTALLATION

    GENERIC_TROUBLESHOOTING = (
        "Check cluster connectivity: kubectl cluster-info",
        "Verify cluster resources: kubectl top nodes",
        "Check helm installation: helm version",
    )

    def __init__(
        self,
        component: str,
        phase: str,
        cause: BaseException | str | None = None,
        *,
        cluster_name: str | None = None,
        suggestions: Iterable[str] = (),
        recoverable: bool = False,
        retry_after: float = 0.0,
    ) -> None:
        self.phase = phase
        self.suggestions = list(suggestions)
        super().__init__("installation", component, cause, cluster_name=cluster_name,
                         recoverable=recoverable, retry_after=retry_after)

    def format_message(self) -> str:
        base = super().format_message()
        if self.phase:
            return f"{base} during phase '{self.phase}'"
        return base

    def troubleshooting_steps(self) -> list[str]:
        """Return generic troubleshooting steps followed by error-specific ones."""
        return [*self.GENERIC_TROUBLESHOOTING, *self.suggestions]


class RegistryDNSError(InstallationError):
    """Container registry DNS resolution failed. Always recoverable."""

    kind = ErrorKind.REGISTRY_DNS

    def __init__(
        self,
        component: str,
        registry: str,
        cause: BaseException | str | None,
        *,
        retry_after: float,
        suggestions: Iterable[str] = (),
        cluster_name: str | None = None,
    ) -> None:
        self.registry = registry
        super().__init__(component, "helm-install", cause, cluster_name=cluster_name,
                         suggestions=suggestions, recoverable=True, retry_after=retry_after)

    def format_message(self) -> str:
        return f"registry DNS resolution failed for {self.registry}: {BootstrapError.format_message(self)}"


class OperationCancelledError(BootstrapError):
    """The caller's cancellation signal fired."""

    kind = ErrorKind.CANCELLED

    def __init__(self, operation: str, cause: BaseException | str | None = None) -> None:
        super().__init__(operation, "workflow", cause)

    def format_message(self) -> str:
        if self.cause:
            return f"{self.operation} cancelled: {self.cause}"
        return f"{self.operation} cancelled"


class CombinedError(BootstrapError):
    """Summary of several independent failures."""

    kind = ErrorKind.COMBINED

    def __init__(self, errors: Sequence[BaseException]) -> None:
        self.errors = list(errors)
        super().__init__("combined", "workflow")

    def format_message(self) -> str:
        return "multiple errors occurred: " + "; ".join(str(err) for err in self.errors)


# ============================================================================
# Skip marker
# ============================================================================

class SkippedInstallation(Exception):
    """Marks an installation as intentionally not performed. Not a failure."""

    is_skipped = True

    def __init__(self, component: str, reason: str) -> None:
        self.component = component
        self.reason = reason
        super().__init__(component, reason)

    def __str__(self) -> str:
        return f"{self.component} installation skipped: {self.reason}"


# ============================================================================
# Helpers
# ============================================================================

def is_recoverable(err: BaseException | None) -> bool:
    """Return whether *err* is a classified error marked recoverable."""
    return isinstance(err, BootstrapError) and err.recoverable


def retry_delay(err: BaseException | None) -> float:
    """Return the suggested retry delay in seconds for recoverable errors."""
    if is_recoverable(err):
        return err.retry_after
    return 0.0


def is_skipped(err: BaseException | None) -> bool:
    """Return whether *err* marks an intentional skip."""
    return isinstance(err, SkippedInstallation)


def wrap_error(operation: str, component: str, err: BaseException) -> BootstrapError:
    """Wrap a raw error once; already classified errors pass through unchanged."""
    if isinstance(err, BootstrapError):
        return err
    return BootstrapError(operation, component, err)


def combine_errors(errors: Sequence[BaseException | None]) -> BaseException | None:
    """Combine multiple errors into one summary error.

    Args:
        errors: Errors collected from independent steps.

    Returns:
        None for an empty input, the sole error unchanged for a single input,
        otherwise a :class:`CombinedError` listing every message.
    """
    if not errors:
        return None
    if len(errors) == 1:
        return errors[0]
    return CombinedError([err for err in errors if err is not None])
