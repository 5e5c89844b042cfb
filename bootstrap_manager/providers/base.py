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

"""Backend-agnostic cluster lifecycle contract and shared provider plumbing.

Providers never retry and never cache cluster state: every read is re-derived
from the backend tooling, and every raw tool failure surfaces as a
:class:`ClusterOperationError` carrying the raw :class:`CommandError` as cause.
Timeouts and connection-level failures are marked recoverable there; everything
else is fatal.
"""

from __future__ import annotations

import json
import os
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path

import docker

from bootstrap_manager import logger
from bootstrap_manager.config import BackendType, ClusterConfig
from bootstrap_manager.constants import (
    DELETE_TIMEOUT_SECONDS,
    KUBECTL_TIMEOUT_SECONDS,
    TRANSIENT_RETRY_AFTER_SECONDS,
)
from bootstrap_manager.errors import (
    ClusterAlreadyExistsError,
    ClusterNotFoundError,
    ClusterOperationError,
    ProviderNotFoundError,
    ValidationError,
)
from bootstrap_manager.executor import CommandError, CommandExecutor, CommandResult

_FRACTION_RE = re.compile(r"\.(\d+)")


class ClusterStatus(str, Enum):
    """Coarse cluster health derived from backend tooling output."""

    RUNNING = "Running"
    STOPPED = "Stopped"
    UNKNOWN = "Unknown"
    ERROR = "Error"


@dataclass(frozen=True)
class NodeInfo:
    name: str
    status: str
    role: str


@dataclass(frozen=True)
class ClusterInfo:
    """Snapshot of a cluster as reported by its backend.

    Attributes:
        name: Cluster name.
        backend_type: Backend that manages the cluster.
        status: Derived cluster status.
        created_at: Creation time of the oldest node, if known.
        nodes: Node snapshots in backend order.
    """

    name: str
    backend_type: BackendType
    status: ClusterStatus
    created_at: datetime | None = None
    nodes: tuple[NodeInfo, ...] = field(default_factory=tuple)

    @property
    def node_count(self) -> int:
        return len(self.nodes)


@dataclass(frozen=True)
class RestConfig:
    """Opaque handle for reaching a cluster's API server.

    Attributes:
        host: API server URL.
        context: kubeconfig context name.
        kubeconfig: kubeconfig file path, or None for the default lookup.
    """

    host: str
    context: str
    kubeconfig: str | None = None


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an RFC 3339 timestamp, truncating nanoseconds to microseconds."""
    if not value:
        return None
    text = value.strip().replace("Z", "+00:00")
    text = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def default_kubeconfig_path() -> str:
    """Return the kubeconfig path kubectl would use by default."""
    env = os.environ.get("KUBECONFIG")
    if env:
        return env.split(os.pathsep)[0]
    return str(Path.home() / ".kube" / "config")


# ============================================================================
# Provider contract
# ============================================================================

class ClusterProvider(ABC):
    """Cluster lifecycle operations for one backend technology.

    Args:
        executor: Command executor used for every external tool call.
        verbose: Pass verbose flags through to the backend tooling.
    """

    backend_type: BackendType
    context_prefix: str
    cluster_label: str

    def __init__(self, executor: CommandExecutor, verbose: bool = False) -> None:
        self.executor = executor
        self.verbose = verbose

    # -- Lifecycle --

    def create_cluster(self, config: ClusterConfig) -> tuple[ClusterInfo, RestConfig]:
        """Create a cluster and verify it is reachable and running.

        Args:
            config: Validated cluster configuration for this backend.

        Returns:
            Tuple of (cluster info with status Running, rest config).

        Raises:
            ValidationError: If the configuration is invalid.
            ProviderNotFoundError: If the configuration targets another backend.
            ClusterAlreadyExistsError: If a cluster with the same name exists.
            ClusterOperationError: If creation or verification fails.
        """
        self.validate_config(config)
        if self.cluster_exists(config.name):
            raise ClusterAlreadyExistsError(config.name)

        logger.info("Creating %s cluster '%s' with %d nodes",
                    self.backend_type.value, config.name, config.node_count)
        self._provision(config)

        rest_config = self.get_rest_config(config.name)
        info = self.get_cluster_status(config.name)
        if info.status is not ClusterStatus.RUNNING:
            raise ClusterOperationError(
                "create", config.name, f"cluster reported status {info.status.value} after creation",
            )
        return info, rest_config

    @abstractmethod
    def _provision(self, config: ClusterConfig) -> None:
        """Run the backend tooling that creates the cluster."""

    @abstractmethod
    def delete_cluster(self, name: str, backend_type: BackendType, force: bool = False) -> None:
        """Delete a cluster.

        Raises:
            ClusterNotFoundError: If the cluster does not exist and force is False.
            ClusterOperationError: If deletion fails and force cleanup is not possible.
        """

    @abstractmethod
    def start_cluster(self, name: str, backend_type: BackendType) -> None:
        """Start a stopped cluster."""

    @abstractmethod
    def list_clusters(self) -> list[ClusterInfo]:
        """List clusters managed by this backend."""

    def list_all_clusters(self) -> list[ClusterInfo]:
        return self.list_clusters()

    def get_cluster_status(self, name: str) -> ClusterInfo:
        """Return a fresh snapshot of the named cluster.

        Raises:
            ClusterNotFoundError: If this backend does not manage the cluster.
        """
        for info in self.list_clusters():
            if info.name == name:
                return info
        raise ClusterNotFoundError(name)

    def detect_cluster_type(self, name: str) -> BackendType:
        """Return this backend's type if it manages the cluster.

        Raises:
            ClusterNotFoundError: If this backend does not manage the cluster.
        """
        if not self.cluster_exists(name):
            raise ClusterNotFoundError(name, operation="detect")
        return self.backend_type

    @abstractmethod
    def get_kubeconfig(self, name: str, backend_type: BackendType) -> str:
        """Write the cluster's kubeconfig and return its path."""

    def get_rest_config(self, cluster_name: str) -> RestConfig:
        """Resolve the API server for a cluster and check that it answers.

        Raises:
            ClusterOperationError: If the context is missing or the API is unreachable.
        """
        context = self.context_name(cluster_name)
        result = self._run("verify", cluster_name, "kubectl", "config", "view", "--minify",
                           "-o", "json", "--context", context, timeout=KUBECTL_TIMEOUT_SECONDS)
        try:
            clusters = json.loads(result.stdout or "{}").get("clusters") or []
            host = clusters[0]["cluster"]["server"]
        except (ValueError, LookupError, TypeError, AttributeError) as err:
            raise ClusterOperationError(
                "verify", cluster_name, f"no API server found for context {context}",
            ) from err

        self._run("verify", cluster_name, "kubectl", "--context", context, "get", "--raw=/readyz",
                  timeout=KUBECTL_TIMEOUT_SECONDS)
        return RestConfig(host=host, context=context, kubeconfig=default_kubeconfig_path())

    # -- Helpers --

    def context_name(self, cluster_name: str) -> str:
        return f"{self.context_prefix}{cluster_name}"

    def cluster_exists(self, name: str) -> bool:
        return any(info.name == name for info in self.list_clusters())

    def validate_config(self, config: ClusterConfig) -> None:
        """Check the configuration targets this backend and is well formed.

        Raises:
            ValidationError: For an empty name or a node count below one.
            ProviderNotFoundError: If the configuration targets another backend.
        """
        if not config.name or not config.name.strip():
            raise ValidationError("name", config.name, "cluster name cannot be empty")
        if config.node_count < 1:
            raise ValidationError("node_count", config.node_count, "node count must be at least 1")
        if config.backend_type is not self.backend_type:
            raise ProviderNotFoundError(config.backend_type)

    def _check_request(self, name: str, backend_type: BackendType) -> None:
        if not name:
            raise ValidationError("name", name, "cluster name cannot be empty")
        if backend_type is not self.backend_type:
            raise ProviderNotFoundError(backend_type)

    def _run(self, operation: str, cluster_name: str, command: str, *args: str,
             timeout: float | None = None) -> CommandResult:
        try:
            return self.executor.run(command, *args, timeout=timeout)
        except CommandError as err:
            if err.transient:
                raise ClusterOperationError(
                    operation, cluster_name, err,
                    recoverable=True, retry_after=TRANSIENT_RETRY_AFTER_SECONDS,
                ) from err
            raise ClusterOperationError(operation, cluster_name, err) from err

    def _force_cleanup(self, name: str, networks: tuple[str, ...] = ()) -> None:
        """Remove the cluster's containers directly through the Docker API.

        Raises:
            ClusterOperationError: If the Docker daemon cannot be reached.
        """
        logger.warning("Falling back to Docker cleanup for cluster '%s'", name)
        try:
            client = docker.from_env(timeout=DELETE_TIMEOUT_SECONDS)
        except docker.errors.DockerException as err:
            raise ClusterOperationError("delete", name, f"docker cleanup failed: {err}") from err

        try:
            containers = client.containers.list(all=True, filters={"label": f"{self.cluster_label}={name}"})
            for container in containers:
                container.remove(force=True)
                logger.debug("Removed container %s", container.name)
            for network_name in networks:
                for network in client.networks.list(names=[network_name]):
                    try:
                        network.remove()
                    except docker.errors.APIError as err:
                        logger.debug("Could not remove network %s: %s", network_name, err)
        except docker.errors.APIError as err:
            raise ClusterOperationError("delete", name, f"docker cleanup failed: {err}") from err
        finally:
            client.close()
