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

"""Configuration classes and config models."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from bootstrap_manager.constants import (
    DEFAULT_APPS_POLL_INTERVAL_SECONDS,
    DEFAULT_APPS_WAIT_TIMEOUT_SECONDS,
    DEFAULT_CLUSTER_NAME,
    DEFAULT_CREATE_TIMEOUT,
    DEFAULT_HELM_TIMEOUT,
    DEFAULT_NODE_COUNT,
    DEPENDENCIES,
    K3D_DEFAULT_API_PORT,
    K3D_DEFAULT_HTTP_PORT,
    K3D_DEFAULT_HTTPS_PORT,
    KIND_DEFAULT_API_PORT,
    KIND_DEFAULT_HTTP_PORT,
    KIND_DEFAULT_HTTPS_PORT,
    MAX_CLUSTER_NAME_LENGTH,
    NS_ARGOCD,
)
from bootstrap_manager.errors import ValidationError

CLUSTER_NAME_PATTERN = r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$"


class BackendType(str, Enum):
    """Supported local-cluster technologies."""

    K3D = "k3d"
    KIND = "kind"


# ============================================================================
# Cluster models
# ============================================================================

class K3dOptions(BaseModel):
    """k3d-specific cluster options."""

    model_config = ConfigDict(frozen=True)

    backend: Literal["k3d"] = "k3d"
    api_port: int = Field(default=K3D_DEFAULT_API_PORT, ge=1, le=65535)
    http_port: int = Field(default=K3D_DEFAULT_HTTP_PORT, ge=1, le=65535)
    https_port: int = Field(default=K3D_DEFAULT_HTTPS_PORT, ge=1, le=65535)
    disable_traefik: bool = True
    timeout: str = DEFAULT_CREATE_TIMEOUT


class KindOptions(BaseModel):
    """kind-specific cluster options."""

    model_config = ConfigDict(frozen=True)

    backend: Literal["kind"] = "kind"
    api_port: int = Field(default=KIND_DEFAULT_API_PORT, ge=1, le=65535)
    http_port: int = Field(default=KIND_DEFAULT_HTTP_PORT, ge=1, le=65535)
    https_port: int = Field(default=KIND_DEFAULT_HTTPS_PORT, ge=1, le=65535)
    wait: str = DEFAULT_CREATE_TIMEOUT


BackendOptions = Annotated[Union[K3dOptions, KindOptions], Field(discriminator="backend")]


class ClusterConfig(BaseModel):
    """Validated, immutable request to provision one cluster.

    Attributes:
        name: RFC 1123 cluster name.
        backend_type: Backend that must serve this cluster.
        node_count: Total node count (one server/control-plane plus workers).
        kubernetes_version: Node image tag override, or None for the pinned default.
        options: Backend-specific options; must match ``backend_type``.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1, max_length=MAX_CLUSTER_NAME_LENGTH, pattern=CLUSTER_NAME_PATTERN)
    backend_type: BackendType = BackendType.K3D
    node_count: int = Field(default=DEFAULT_NODE_COUNT, ge=1)
    kubernetes_version: str | None = None
    options: Optional[BackendOptions] = None

    @model_validator(mode="after")
    def _options_match_backend(self) -> ClusterConfig:
        if self.options is not None and self.options.backend != self.backend_type.value:
            raise ValueError(
                f"options for backend '{self.options.backend}' do not match "
                f"backend_type '{self.backend_type.value}'"
            )
        return self

    def k3d_options(self) -> K3dOptions:
        """Return k3d options, falling back to defaults."""
        return self.options if isinstance(self.options, K3dOptions) else K3dOptions()

    def kind_options(self) -> KindOptions:
        """Return kind options, falling back to defaults."""
        return self.options if isinstance(self.options, KindOptions) else KindOptions()


# ============================================================================
# Settings
# ============================================================================

class BootstrapSettings(BaseSettings):
    """Bootstrap configuration, auto-loaded from OPENFRAME_* env vars.

    Attributes:
        cluster_name: Default cluster name.
        backend: Backend override, or None to pick from the host OS.
        node_count: Total nodes for newly created clusters.
        kubernetes_version: Node image tag override.
        verbose: Pass verbose flags through to backend tooling.
        reuse_existing_cluster: Reuse a same-named cluster instead of failing.
        auto_install_tools: Install missing prerequisite tools automatically.
    """

    model_config = SettingsConfigDict(env_prefix="OPENFRAME_", extra="ignore")

    cluster_name: str = DEFAULT_CLUSTER_NAME
    backend: BackendType | None = None
    node_count: int = Field(default=DEFAULT_NODE_COUNT, ge=1, le=20)
    kubernetes_version: str | None = None
    verbose: bool = False
    reuse_existing_cluster: bool = True
    auto_install_tools: bool = False


class ChartSettings(BaseSettings):
    """Chart stack configuration, auto-loaded from OPENFRAME_CHART_* env vars.

    Attributes:
        argocd_repo_name: Helm repository alias for ArgoCD.
        argocd_repo_url: Helm repository URL for ArgoCD.
        argocd_chart: Chart reference for ArgoCD.
        argocd_version: ArgoCD chart version.
        namespace: Namespace for ArgoCD and the app-of-apps release.
        helm_timeout: ``helm --timeout`` value.
        argocd_values_file: Values file for the ArgoCD release, if any.
        app_of_apps_chart: App-of-apps chart path or reference, or None to skip.
        app_of_apps_values_file: Values file for the app-of-apps release, if any.
        apps_wait_timeout: Seconds to wait for applications to become ready.
        apps_poll_interval: Seconds between application status polls.
    """

    model_config = SettingsConfigDict(env_prefix="OPENFRAME_CHART_", extra="ignore")

    argocd_repo_name: str = DEPENDENCIES["argocd"]["repo_name"]
    argocd_repo_url: str = DEPENDENCIES["argocd"]["repo_url"]
    argocd_chart: str = DEPENDENCIES["argocd"]["chart"]
    argocd_version: str = DEPENDENCIES["argocd"]["version"]
    namespace: str = NS_ARGOCD
    helm_timeout: str = DEFAULT_HELM_TIMEOUT
    argocd_values_file: Path | None = None
    app_of_apps_chart: str | None = None
    app_of_apps_values_file: Path | None = None
    apps_wait_timeout: float = Field(default=DEFAULT_APPS_WAIT_TIMEOUT_SECONDS, gt=0)
    apps_poll_interval: float = Field(default=DEFAULT_APPS_POLL_INTERVAL_SECONDS, gt=0)


# ============================================================================
# Builders
# ============================================================================

def build_cluster_config(
    settings: BootstrapSettings,
    *,
    name: str | None = None,
    backend: BackendType,
    node_count: int | None = None,
    kubernetes_version: str | None = None,
) -> ClusterConfig:
    """Build a ClusterConfig from settings plus CLI overrides.

    Args:
        settings: Environment-derived bootstrap settings.
        name: Cluster name override, or None for the settings default.
        backend: Backend the cluster will be created with.
        node_count: Node count override, or None.
        kubernetes_version: Kubernetes version override, or None.

    Returns:
        Validated, immutable cluster configuration.

    Raises:
        ValidationError: If any field violates its constraint.
    """
    fields = {
        "name": (name or settings.cluster_name).strip(),
        "backend_type": backend,
        "node_count": node_count if node_count is not None else settings.node_count,
        "kubernetes_version": kubernetes_version or settings.kubernetes_version,
    }
    try:
        return ClusterConfig(**fields)
    except PydanticValidationError as err:
        first = err.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or "config"
        raise ValidationError(field, fields.get(field, ""), first["msg"]) from err
