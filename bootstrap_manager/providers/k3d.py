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

"""k3d cluster provider."""

from __future__ import annotations

import json
import os
import tempfile

import yaml

from bootstrap_manager import logger
from bootstrap_manager.config import BackendType, ClusterConfig
from bootstrap_manager.constants import (
    DELETE_TIMEOUT_SECONDS,
    K3D_CLUSTER_LABEL,
    K3D_CONFIG_API_VERSION,
    K3D_CONTEXT_PREFIX,
    LIST_TIMEOUT_SECONDS,
    ROLE_CONTROL_PLANE,
    ROLE_WORKER,
    dep_value,
)
from bootstrap_manager.errors import ClusterNotFoundError, ClusterOperationError
from bootstrap_manager.executor import CommandError
from bootstrap_manager.providers.base import ClusterInfo, ClusterProvider, ClusterStatus, NodeInfo, parse_timestamp

_K3D_ROLES = {"server": ROLE_CONTROL_PLANE, "agent": ROLE_WORKER}


# ============================================================================
# Output parsing
# ============================================================================

def derive_status(entry: dict) -> ClusterStatus:
    """Map k3d server counts to a cluster status.

    All servers running is Running, none running is Stopped, a partial count is
    Error, and missing or zero counts are Unknown.
    """
    total = entry.get("serversCount")
    running = entry.get("serversRunning")
    if not isinstance(total, int) or not isinstance(running, int) or total <= 0:
        return ClusterStatus.UNKNOWN
    if running >= total:
        return ClusterStatus.RUNNING
    if running == 0:
        return ClusterStatus.STOPPED
    return ClusterStatus.ERROR


def parse_cluster_list(output: str) -> list[ClusterInfo]:
    """Parse ``k3d cluster list --output json``.

    Args:
        output: JSON array of cluster objects.

    Returns:
        One ClusterInfo per cluster, in k3d's order.

    Raises:
        ValueError: If the output is not a JSON array.
    """
    data = json.loads(output or "[]")
    if not isinstance(data, list):
        raise ValueError("expected a JSON array of clusters")

    clusters = []
    for entry in data:
        nodes = []
        created_at = None
        for node in entry.get("nodes") or []:
            role = _K3D_ROLES.get(node.get("role", ""))
            if role is None:
                continue
            running = bool((node.get("State") or {}).get("Running"))
            nodes.append(NodeInfo(
                name=node.get("name", ""),
                status=ClusterStatus.RUNNING.value if running else ClusterStatus.STOPPED.value,
                role=role,
            ))
            created = parse_timestamp(node.get("created"))
            if role == ROLE_CONTROL_PLANE and created and (created_at is None or created < created_at):
                created_at = created

        clusters.append(ClusterInfo(
            name=entry.get("name", ""),
            backend_type=BackendType.K3D,
            status=derive_status(entry),
            created_at=created_at,
            nodes=tuple(nodes),
        ))
    return clusters


def render_config(config: ClusterConfig) -> dict:
    """Build the k3d Simple config document for *config*."""
    options = config.k3d_options()
    version = config.kubernetes_version or dep_value("k3s", "version")
    extra_args = [
        {"arg": "--kubelet-arg=eviction-hard=", "nodeFilters": ["all"]},
        {"arg": "--kubelet-arg=eviction-soft=", "nodeFilters": ["all"]},
    ]
    if options.disable_traefik:
        extra_args.insert(0, {"arg": "--disable=traefik", "nodeFilters": ["server:*"]})

    return {
        "apiVersion": K3D_CONFIG_API_VERSION,
        "kind": "Simple",
        "metadata": {"name": config.name},
        "servers": 1,
        "agents": max(config.node_count - 1, 0),
        "image": f"{dep_value('k3s', 'image')}:{version}",
        "kubeAPI": {"host": "127.0.0.1", "hostIP": "127.0.0.1", "hostPort": str(options.api_port)},
        "options": {"k3s": {"extraArgs": extra_args}},
        "ports": [
            {"port": f"{options.http_port}:80", "nodeFilters": ["loadbalancer"]},
            {"port": f"{options.https_port}:443", "nodeFilters": ["loadbalancer"]},
        ],
    }


# ============================================================================
# Provider
# ============================================================================

class K3dProvider(ClusterProvider):
    """Cluster provider backed by k3d (k3s in Docker)."""

    backend_type = BackendType.K3D
    context_prefix = K3D_CONTEXT_PREFIX
    cluster_label = K3D_CLUSTER_LABEL

    def _verbose_args(self) -> tuple[str, ...]:
        return ("--verbose",) if self.verbose else ()

    def _provision(self, config: ClusterConfig) -> None:
        fd, config_path = tempfile.mkstemp(prefix="k3d-config-", suffix=".yaml")
        try:
            with os.fdopen(fd, "w") as f:
                yaml.safe_dump(render_config(config), f, sort_keys=False)
            self._run(
                "create", config.name, "k3d", "cluster", "create",
                "--config", config_path,
                "--timeout", config.k3d_options().timeout,
                "--kubeconfig-update-default",
                "--kubeconfig-switch-context",
                *self._verbose_args(),
            )
        finally:
            os.remove(config_path)

    def delete_cluster(self, name: str, backend_type: BackendType, force: bool = False) -> None:
        self._check_request(name, backend_type)
        if not self.cluster_exists(name):
            if force:
                logger.info("k3d cluster '%s' not found; nothing to delete", name)
                return
            raise ClusterNotFoundError(name, operation="delete")

        try:
            self.executor.run("k3d", "cluster", "delete", name, *self._verbose_args(),
                              timeout=DELETE_TIMEOUT_SECONDS)
        except CommandError as err:
            if not force:
                raise ClusterOperationError("delete", name, err) from err
            logger.warning("k3d delete failed for '%s': %s", name, err)
            self._force_cleanup(name, networks=(f"{K3D_CONTEXT_PREFIX}{name}",))

    def start_cluster(self, name: str, backend_type: BackendType) -> None:
        self._check_request(name, backend_type)
        if not self.cluster_exists(name):
            raise ClusterNotFoundError(name, operation="start")
        self._run("start", name, "k3d", "cluster", "start", name, *self._verbose_args())

    def list_clusters(self) -> list[ClusterInfo]:
        result = self._run("list", "all", "k3d", "cluster", "list", "--output", "json",
                           timeout=LIST_TIMEOUT_SECONDS)
        try:
            return parse_cluster_list(result.stdout)
        except (ValueError, AttributeError) as err:
            raise ClusterOperationError("list", "all", f"failed to parse cluster list JSON: {err}") from err

    def detect_cluster_type(self, name: str) -> BackendType:
        try:
            self.executor.run("k3d", "cluster", "get", name, timeout=LIST_TIMEOUT_SECONDS)
        except CommandError as err:
            raise ClusterNotFoundError(name, operation="detect") from err
        return self.backend_type

    def get_kubeconfig(self, name: str, backend_type: BackendType) -> str:
        self._check_request(name, backend_type)
        result = self._run("kubeconfig", name, "k3d", "kubeconfig", "write", name)
        return result.stdout.strip()
