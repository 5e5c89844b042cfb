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

"""Explicit registry mapping backend types to provider factories."""

from __future__ import annotations

import sys
from collections.abc import Callable

from bootstrap_manager import logger
from bootstrap_manager.config import BackendType
from bootstrap_manager.errors import ClusterNotFoundError, ClusterOperationError, ProviderNotFoundError
from bootstrap_manager.executor import CommandExecutor
from bootstrap_manager.providers.base import ClusterProvider
from bootstrap_manager.providers.k3d import K3dProvider
from bootstrap_manager.providers.kind import KindProvider

ProviderFactory = Callable[[CommandExecutor, bool], ClusterProvider]

# Fallback order when the host-preferred backend is not registered.
BACKEND_PRIORITY: tuple[BackendType, ...] = (BackendType.K3D, BackendType.KIND)


def preferred_backend(platform: str | None = None) -> BackendType:
    """Return the backend preferred on *platform* (kind on Windows, k3d elsewhere)."""
    platform = platform if platform is not None else sys.platform
    if platform.startswith("win"):
        return BackendType.KIND
    return BackendType.K3D


class ProviderRegistry:
    """Backend type to provider factory mapping, built once at process start."""

    def __init__(self) -> None:
        self._factories: dict[BackendType, ProviderFactory] = {}

    def register(self, backend_type: BackendType, factory: ProviderFactory) -> None:
        self._factories[backend_type] = factory

    def has_backend(self, backend_type: BackendType) -> bool:
        return backend_type in self._factories

    def available_backends(self) -> list[BackendType]:
        """Registered backends in priority order."""
        return [backend for backend in BACKEND_PRIORITY if backend in self._factories]

    def create(self, backend_type: BackendType, executor: CommandExecutor, verbose: bool = False) -> ClusterProvider:
        """Instantiate the provider for *backend_type*.

        Raises:
            ProviderNotFoundError: If no factory is registered for the backend.
        """
        factory = self._factories.get(backend_type)
        if factory is None:
            raise ProviderNotFoundError(backend_type)
        return factory(executor, verbose)

    def resolve(
        self,
        executor: CommandExecutor,
        verbose: bool = False,
        backend_type: BackendType | None = None,
        platform: str | None = None,
    ) -> ClusterProvider:
        """Pick a provider for an explicit backend or for the host.

        An explicit backend must be registered. Otherwise the host-preferred
        backend is used when registered, else the first registered backend in
        priority order.

        Raises:
            ProviderNotFoundError: If no suitable backend is registered.
        """
        if backend_type is not None:
            return self.create(backend_type, executor, verbose)

        preferred = preferred_backend(platform)
        if self.has_backend(preferred):
            return self.create(preferred, executor, verbose)
        for backend in self.available_backends():
            logger.debug("Preferred backend %s not registered; falling back to %s", preferred.value, backend.value)
            return self.create(backend, executor, verbose)
        raise ProviderNotFoundError(preferred)

    def find_provider_for_cluster(
        self, name: str, executor: CommandExecutor, verbose: bool = False,
    ) -> ClusterProvider:
        """Return the provider of the first backend that manages cluster *name*.

        Raises:
            ClusterNotFoundError: If no registered backend manages the cluster.
        """
        for backend in self.available_backends():
            provider = self.create(backend, executor, verbose)
            try:
                provider.detect_cluster_type(name)
            except ClusterOperationError as err:
                logger.debug("%s does not manage cluster %s: %s", backend.value, name, err)
                continue
            return provider
        raise ClusterNotFoundError(name, operation="detect")


def build_default_registry() -> ProviderRegistry:
    """Build a registry with the built-in k3d and kind providers."""
    registry = ProviderRegistry()
    registry.register(BackendType.K3D, K3dProvider)
    registry.register(BackendType.KIND, KindProvider)
    return registry
