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

"""Constants, dependency loading, and dep_value helper."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml


def load_dependencies() -> dict:
    """Load dependency versions and images from dependencies.yaml.

    Returns:
        Parsed YAML content as a nested dictionary.
    """
    deps_file = Path(__file__).resolve().parent / "dependencies.yaml"
    with open(deps_file) as f:
        return yaml.safe_load(f)


DEPENDENCIES = load_dependencies()


def dep_value(*keys: str, default: Any = None) -> Any:
    """Safely traverse the DEPENDENCIES dict by key path.

    Args:
        *keys: Sequence of dictionary keys to traverse.
        default: Value to return if any key is missing.

    Returns:
        The value at the nested key path, or *default* if not found.
    """
    node = DEPENDENCIES
    for key in keys:
        if not isinstance(node, dict):
            return default
        node = node.get(key)
        if node is None:
            return default
    return node


# -- Cluster defaults --
DEFAULT_CLUSTER_NAME = "openframe-dev"
DEFAULT_NODE_COUNT = 4
DEFAULT_CREATE_TIMEOUT = "300s"
MAX_CLUSTER_NAME_LENGTH = 63

# -- k3d --
K3D_CONFIG_API_VERSION = "k3d.io/v1alpha5"
K3D_CONTEXT_PREFIX = "k3d-"
K3D_CLUSTER_LABEL = "k3d.cluster"
K3D_DEFAULT_API_PORT = 6550
K3D_DEFAULT_HTTP_PORT = 8080
K3D_DEFAULT_HTTPS_PORT = 8443

# -- kind --
KIND_CONFIG_API_VERSION = "kind.x-k8s.io/v1alpha4"
KIND_CONTEXT_PREFIX = "kind-"
KIND_CLUSTER_LABEL = "io.x-k8s.kind.cluster"
KIND_DEFAULT_API_PORT = 6443
KIND_DEFAULT_HTTP_PORT = 80
KIND_DEFAULT_HTTPS_PORT = 443

# -- Command timeouts (seconds) --
LIST_TIMEOUT_SECONDS = 30
DELETE_TIMEOUT_SECONDS = 120
KUBECTL_TIMEOUT_SECONDS = 30
HELM_REPO_TIMEOUT_SECONDS = 120

# -- Kubernetes --
LABEL_CONTROL_PLANE = "node-role.kubernetes.io/control-plane"
ROLE_CONTROL_PLANE = "control-plane"
ROLE_WORKER = "worker"
NODE_READY = "Ready"
NODE_NOT_READY = "NotReady"

# -- ArgoCD --
NS_ARGOCD = "argocd"
HELM_RELEASE_ARGOCD = "argo-cd"
HELM_RELEASE_APP_OF_APPS = "app-of-apps"
ARGOCD_APPLICATIONS_RESOURCE = "applications.argoproj.io"
APP_HEALTHY = "Healthy"
APP_SYNCED = "Synced"
DEFAULT_HELM_TIMEOUT = "5m"
DEFAULT_APPS_WAIT_TIMEOUT_SECONDS = 1800
DEFAULT_APPS_POLL_INTERVAL_SECONDS = 10

# -- Retry / cancellation --
CANCEL_POLL_INTERVAL_SECONDS = 0.1
TRANSIENT_RETRY_AFTER_SECONDS = 5
# Backend tool output that marks a failure as transient (matched lowercase).
TRANSIENT_BACKEND_PHRASES = (
    "connection reset",
    "connection refused",
    "i/o timeout",
    "tls handshake timeout",
    "context deadline exceeded",
    "temporary failure in name resolution",
    "unexpected eof",
)

# -- Workflow step weights --
STEP_PREREQUISITES = "prerequisites"
STEP_CREATE_CLUSTER = "create-cluster"
STEP_INSTALL_CHARTS = "install-charts"
STEP_DEPLOY_APPS = "deploy-apps"
WEIGHT_PREREQUISITES = 5
WEIGHT_CREATE_CLUSTER = 35
WEIGHT_INSTALL_CHARTS = 40
WEIGHT_DEPLOY_APPS = 20
