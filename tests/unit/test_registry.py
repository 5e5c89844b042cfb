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

"""Tests for the provider registry."""

import pytest

from bootstrap_manager.config import BackendType
from bootstrap_manager.errors import ClusterNotFoundError, ProviderNotFoundError
from bootstrap_manager.providers.k3d import K3dProvider
from bootstrap_manager.providers.kind import KindProvider
from bootstrap_manager.providers.registry import ProviderRegistry, build_default_registry, preferred_backend


@pytest.mark.parametrize("platform,expected", [
    ("win32", BackendType.KIND),
    ("linux", BackendType.K3D),
    ("darwin", BackendType.K3D),
])
def test_preferred_backend(platform, expected):
    assert preferred_backend(platform) is expected


def test_default_registry_lists_backends_in_priority_order():
    registry = build_default_registry()
    assert registry.available_backends() == [BackendType.K3D, BackendType.KIND]


def test_create_returns_configured_provider(executor):
    provider = build_default_registry().create(BackendType.KIND, executor, verbose=True)

    assert isinstance(provider, KindProvider)
    assert provider.executor is executor
    assert provider.verbose is True


def test_create_unregistered_backend(executor):
    registry = ProviderRegistry()
    with pytest.raises(ProviderNotFoundError) as exc:
        registry.create(BackendType.K3D, executor)
    assert "k3d" in str(exc.value)


def test_resolve(executor):
    registry = build_default_registry()

    assert isinstance(registry.resolve(executor, backend_type=BackendType.KIND), KindProvider)
    assert isinstance(registry.resolve(executor, platform="linux"), K3dProvider)
    assert isinstance(registry.resolve(executor, platform="win32"), KindProvider)


def test_resolve_falls_back_to_registered_backend(executor):
    registry = ProviderRegistry()
    registry.register(BackendType.KIND, KindProvider)

    assert isinstance(registry.resolve(executor, platform="linux"), KindProvider)
    with pytest.raises(ProviderNotFoundError):
        ProviderRegistry().resolve(executor)


def test_find_provider_for_cluster(executor):
    executor.on("k3d", "cluster", "get", fail=True, stderr="not found")
    executor.on("kind", "get", "clusters", stdout="dev\n")

    provider = build_default_registry().find_provider_for_cluster("dev", executor)

    assert isinstance(provider, KindProvider)


def test_find_provider_when_tools_are_missing(executor):
    executor.on("k3d", fail=True, exit_code=None)
    executor.on("kind", fail=True, exit_code=None)

    with pytest.raises(ClusterNotFoundError):
        build_default_registry().find_provider_for_cluster("dev", executor)
