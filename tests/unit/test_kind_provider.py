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

"""Tests for the kind provider."""

import pytest
from conftest import kubeconfig_view_json, nodes_json

from bootstrap_manager.config import BackendType, ClusterConfig, KindOptions
from bootstrap_manager.errors import ClusterAlreadyExistsError, ClusterNotFoundError, ProviderNotFoundError
from bootstrap_manager.providers.base import ClusterStatus
from bootstrap_manager.providers.kind import KindProvider, parse_cluster_names, parse_nodes, render_config


def ready_cluster(executor, name="dev", *ready):
    executor.on("kind", "get", "clusters", stdout=f"{name}\n")
    executor.on("kubectl", "--context", f"kind-{name}", "get", "nodes", stdout=nodes_json(*(ready or (True, True))))
    executor.on("kubectl", "config", "view", stdout=kubeconfig_view_json("https://127.0.0.1:6443"))


def test_parse_cluster_names():
    assert parse_cluster_names("No kind clusters found.\n") == []
    assert parse_cluster_names("dev\nstaging\n\n") == ["dev", "staging"]


@pytest.mark.parametrize("ready,expected", [
    ((True, True), ClusterStatus.RUNNING),
    ((True, False), ClusterStatus.ERROR),
    ((False, False), ClusterStatus.STOPPED),
    ((), ClusterStatus.UNKNOWN),
])
def test_parse_nodes_status(ready, expected):
    _, status, _ = parse_nodes(nodes_json(*ready))
    assert status is expected


def test_parse_nodes_roles_and_creation():
    nodes, _, created_at = parse_nodes(nodes_json(True, False))

    assert [(n.name, n.role, n.status) for n in nodes] == [
        ("node-0", "control-plane", "Ready"),
        ("node-1", "worker", "NotReady"),
    ]
    assert created_at is not None
    assert created_at.year == 2024


def test_render_config(kind_config):
    doc = render_config(kind_config)

    assert doc["kind"] == "Cluster"
    assert doc["networking"] == {"apiServerAddress": "127.0.0.1", "apiServerPort": 6443}
    assert [n["role"] for n in doc["nodes"]] == ["control-plane", "worker"]
    assert doc["nodes"][0]["image"] == "kindest/node:v1.31.4"
    assert [m["hostPort"] for m in doc["nodes"][0]["extraPortMappings"]] == [80, 443]


def test_render_config_overrides():
    config = ClusterConfig(name="dev", backend_type=BackendType.KIND, node_count=3,
                           kubernetes_version="v1.30.0", options=KindOptions(http_port=8080))
    doc = render_config(config)

    assert len(doc["nodes"]) == 3
    assert doc["nodes"][2]["image"] == "kindest/node:v1.30.0"
    assert doc["nodes"][0]["extraPortMappings"][0]["hostPort"] == 8080


def test_create_cluster(executor, kind_config):
    ready_cluster(executor)
    executor.on("kind", "get", "clusters", stdout="No kind clusters found.\n", times=1)

    info, rest = KindProvider(executor).create_cluster(kind_config)

    assert info.status is ClusterStatus.RUNNING
    assert info.node_count == 2
    assert rest.context == "kind-dev"
    assert rest.host == "https://127.0.0.1:6443"
    create = executor.called("kind", "create", "cluster")[0]
    assert create[create.index("--name") + 1] == "dev"
    assert create[create.index("--wait") + 1] == "300s"


def test_create_existing_cluster_fails(executor, kind_config):
    ready_cluster(executor)
    with pytest.raises(ClusterAlreadyExistsError):
        KindProvider(executor).create_cluster(kind_config)


def test_status_is_unknown_when_nodes_unreadable(executor):
    executor.on("kind", "get", "clusters", stdout="dev\n")
    executor.on("kubectl", fail=True, stderr="context not found")

    info = KindProvider(executor).get_cluster_status("dev")

    assert info.status is ClusterStatus.UNKNOWN
    assert info.nodes == ()


def test_status_of_missing_cluster(executor):
    executor.on("kind", "get", "clusters", stdout="other\n")
    with pytest.raises(ClusterNotFoundError):
        KindProvider(executor).get_cluster_status("dev")


def test_list_clusters(executor):
    executor.on("kind", "get", "clusters", stdout="dev\nstaging\n")
    executor.on("kubectl", stdout=nodes_json(True))

    clusters = KindProvider(executor).list_clusters()

    assert [c.name for c in clusters] == ["dev", "staging"]
    assert all(c.backend_type is BackendType.KIND for c in clusters)


def test_start_only_checks_existence(executor):
    ready_cluster(executor)
    provider = KindProvider(executor)

    provider.start_cluster("dev", BackendType.KIND)
    assert [call for call in executor.calls if call[0] == "kind"] == [("kind", "get", "clusters")]

    with pytest.raises(ClusterNotFoundError):
        provider.start_cluster("other", BackendType.KIND)
    with pytest.raises(ProviderNotFoundError):
        provider.start_cluster("dev", BackendType.K3D)


def test_delete_cluster(executor):
    ready_cluster(executor)
    KindProvider(executor, verbose=True).delete_cluster("dev", BackendType.KIND)
    assert executor.called("kind", "delete", "cluster", "--name", "dev", "-v", "1")


def test_forced_delete_falls_back_to_docker(executor, monkeypatch):
    ready_cluster(executor)
    executor.on("kind", "delete", fail=True, stderr="timeout")
    cleaned = []
    monkeypatch.setattr(KindProvider, "_force_cleanup", lambda self, name, networks=(): cleaned.append(name))

    KindProvider(executor).delete_cluster("dev", BackendType.KIND, force=True)

    assert cleaned == ["dev"]


def test_get_kubeconfig(executor, tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))

    path = KindProvider(executor).get_kubeconfig("dev", BackendType.KIND)

    assert path == str(tmp_path / ".kube" / "kind-dev.yaml")
    assert (tmp_path / ".kube").is_dir()
    assert executor.called("kind", "export", "kubeconfig", "--name", "dev", "--kubeconfig", path)
