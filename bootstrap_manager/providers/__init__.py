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

"""Cluster backend providers."""

from bootstrap_manager.providers.base import ClusterInfo, ClusterProvider, ClusterStatus, NodeInfo, RestConfig
from bootstrap_manager.providers.k3d import K3dProvider
from bootstrap_manager.providers.kind import KindProvider
from bootstrap_manager.providers.registry import ProviderRegistry, build_default_registry, preferred_backend

__all__ = [
    "ClusterInfo",
    "ClusterProvider",
    "ClusterStatus",
    "K3dProvider",
    "KindProvider",
    "NodeInfo",
    "ProviderRegistry",
    "RestConfig",
    "build_default_registry",
    "preferred_backend",
]
