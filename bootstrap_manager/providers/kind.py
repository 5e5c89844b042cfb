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

"""kind cluster provider."""

from __future__ import annotations

import json
import os
import tempfile
from datetime import datetime
from pathlib import Path

import yaml

from bootstrap_manager import logger
from bootstrap_manager.config import BackendType, ClusterConfig
from bootstrap_manager.constants import (
    DELETE_TIMEOUT_SECONDS,
    KIND_CLUSTER_LABEL,
    KIND_CONFIG_API_VERSION,
    KIND_CONTEXT_PREFIX,
    KUBECTL_TIMEOUT_SECONDS,
    LABEL_CONTROL_PLANE,
    LIST_TIMEOUT_SECONDS,
    NODE_NOT_READY,
    NODE_READY,
    ROLE_CONTROL_PLANE,
    ROLE_WORKER,
    dep_value,
)
from bootstrap_manager.errors import ClusterNotFoundError, ClusterOperationError
from bootstrap_manager.executor import CommandError
from bootstrap_manager.providers.base import ClusterInfo, ClusterProvider, ClusterStatus, NodeInfo, parse_timestamp


def parse_cluster_names(output: str) -> list[str]:
    """Parse ``kind get clusters`` output, one name per line."""
    names = []
    for line in output.splitlines():
        name = line.strip()
        if name and not name.startswith("No kind clusters"):
            names.append(name)
    return names


def parse_nodes(output: str) -> tuple[tuple[NodeInfo, ...], ClusterStatus, datetime | None]:
    """Parse ``kubectl get nodes -o json`` into nodes, status and creation time.

    Status is Running when every node is Ready, Stopped when none is, Error for
    a partial count, and Unknown when there are no nodes.
    """
    items = json.loads(output or "{}").get("items") or []
    nodes = []
    created_at = None
    for item in items:
        metadata = item.get("metadata") or {}
        conditions = (item.get("status") or {}).get("conditions") or []
        ready = any(c.get("type") == NODE_READY and c.get("status") == "True" for c in conditions)
        is_control_plane = LABEL_CONTROL_PLANE in (metadata.get("labels") or {})
        nodes.append(NodeInfo(
            name=metadata.get("name", ""),
            status=NODE_READY if ready else NODE_NOT_READY,
            role=ROLE_CONTROL_PLANE if is_control_plane else ROLE_WORKER,
        ))
        created = parse_timestamp(metadata.get("creationTimestamp"))
        if is_control_plane and created and (created_at is None or created < created_at):
            created_at = created

    ready_count = sum(1 for node in nodes if node.status == NODE_READY)
    if not nodes:
        status = ClusterStatus.UNKNOWN
    elif ready_count == len(nodes):
        status = ClusterStatus.RUNNING
    elif ready_count == 0:
        status = ClusterStatus.STOPPED
    else:
        status = ClusterStatus.ERROR
    return tuple(nodes), status, created_at


def render_config(config: ClusterConfig) -> dict:
    """Build the kind Cluster config document for *config*."""
    options = config.kind_options()
    version = config.kubernetes_version or dep_value("kind", "version")
    image = f"{dep_value('kind', 'image')}:{version}"
    control_plane = {
        "role": "control-plane",
        "image": image,
        "kubeadmConfigPatches": [
            "kind: InitConfiguration\n"
            "nodeRegistration:\n"
            "  kubeletExtraArgs:\n"
            "    node-labels: \"ingress-ready=true\"\n"
        ],
        "extraPortMappings": [
            {"containerPort": 80, "hostPort": options.http_port, "protocol": "TCP"},
            {"containerPort": 443, "hostPort": options.https_port, "protocol": "TCP"},
        ],
    }
    workers = [{"role": "worker", "image": image} for _ in range(max(config.node_count - 1, 0))]
    return {
        "kind": "Cluster",
        "apiVersion": KIND_CONFIG_API_VERSION,
        "networking": {"apiServerAddress": "127.0.0.1", "apiServerPort": options.api_port},
        "nodes": [control_plane, *workers],
    }


class KindProvider(ClusterProvider):
    """Cluster provider backed by kind (Kubernetes in Docker).

    kind clusters cannot be stopped or started; ``start_cluster`` only verifies
    that the cluster exists.
    """

    backend_type = BackendType.KIND
    context_prefix = KIND_CONTEXT_PREFIX
    cluster_label = KIND_CLUSTER_LABEL

    def _verbose_args(self) -> tuple[str, ...]:
        return ("-v", "1") if self.verbose else ()

    def _provision(self, config: ClusterConfig) -> None:
        fd, config_path = tempfile.mkstemp(prefix="kind-config-", suffix=".yaml")
        try:
            with os.fdopen(fd, "w") as f:
                yaml.safe_dump(render_config(config), f, sort_keys=False)
            self._run(
                "create", config.name, "kind", "create", "cluster",
                "--name", config.name,
                "--config", config_path,
                "--wait", config.kind_options().wait,
                *self._verbose_args(),
            )
        finally:
            os.remove(config_path)

    def delete_cluster(self, name: str, backend_type: BackendType, force: bool = False) -> None:
        self._check_request(name, backend_type)
        if not self.cluster_exists(name):
            if force:
                logger.info("kind cluster '%s' not found; nothing to delete", name)
                return
            raise ClusterNotFoundError(name, operation="delete")

        try:
            self.executor.run("kind", "delete", "cluster", "--name", name, *self._verbose_args(),
                              timeout=DELETE_TIMEOUT_SECONDS)
        except CommandError as err:
            if not force:
                raise ClusterOperationError("delete", name, err) from err
            logger.warning("kind delete failed for '%s': %s", name, err)
            self._force_cleanup(name)

    def start_cluster(self, name: str, backend_type: BackendType) -> None:
        self._check_request(name, backend_type)
        logger.info("kind clusters cannot be stopped or started; checking that '%s' exists", name)
        if not self.cluster_exists(name):
            raise ClusterNotFoundError(name, operation="start")

    def cluster_names(self) -> list[str]:
        result = self._run("list", "all", "kind", "get", "clusters", timeout=LIST_TIMEOUT_SECONDS)
        return parse_cluster_names(result.stdout)

    def cluster_exists(self, name: str) -> bool:
        return name in self.cluster_names()

    def list_clusters(self) -> list[ClusterInfo]:
        return [self._describe(name) for name in self.cluster_names()]

    def get_cluster_status(self, name: str) -> ClusterInfo:
        if not self.cluster_exists(name):
            raise ClusterNotFoundError(name)
        return self._describe(name)

    def get_kubeconfig(self, name: str, backend_type: BackendType) -> str:
        self._check_request(name, backend_type)
        path = Path.home() / ".kube" / f"kind-{name}.yaml"
        path.parent.mkdir(parents=True, exist_ok=True)
        self._run("kubeconfig", name, "kind", "export", "kubeconfig", "--name", name, "--kubeconfig", str(path))
        return str(path)

    def _describe(self, name: str) -> ClusterInfo:
        try:
            result = self.executor.run("kubectl", "--context", self.context_name(name), "get", "nodes",
                                       "-o", "json", timeout=KUBECTL_TIMEOUT_SECONDS)
            nodes, status, created_at = parse_nodes(result.stdout)
        except (CommandError, ValueError, AttributeError) as err:
            logger.debug("Could not read nodes for kind cluster '%s': %s", name, err)
            nodes, status, created_at = (), ClusterStatus.UNKNOWN, None
        return ClusterInfo(name=name, backend_type=BackendType.KIND, status=status,
                           created_at=created_at, nodes=nodes)
