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

"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import json

import pytest
from hypothesis import Verbosity, settings

from bootstrap_manager.config import BackendType, ChartSettings, ClusterConfig
from bootstrap_manager.executor import CommandError, CommandExecutor, CommandResult
from bootstrap_manager.providers.base import RestConfig

# Configure Hypothesis for property-based testing
settings.register_profile("default", max_examples=100, verbosity=Verbosity.normal)
settings.register_profile("ci", max_examples=1000, verbosity=Verbosity.verbose)
settings.register_profile("dev", max_examples=10, verbosity=Verbosity.verbose)

# Load the default profile
settings.load_profile("default")


class FakeExecutor(CommandExecutor):
    """Recording executor that answers commands by argv prefix.

    The most recently registered matching response wins. A response with a
    ``times`` limit is dropped once used up, exposing older registrations.
    Unmatched commands succeed with empty output.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, ...]] = []
        self._responses: list[dict] = []

    def on(self, *prefix: str, stdout: str = "", stderr: str = "", fail: bool = False,
           exit_code: int | None = 1, times: int | None = None, timed_out: bool = False) -> FakeExecutor:
        self._responses.append({
            "prefix": prefix, "stdout": stdout, "stderr": stderr,
            "fail": fail or timed_out, "exit_code": exit_code, "times": times, "timed_out": timed_out,
        })
        return self

    def run(self, command, *args, timeout=None, cwd=None, env=None) -> CommandResult:
        argv = (command, *args)
        self.calls.append(argv)
        for response in reversed(self._responses):
            if argv[:len(response["prefix"])] != response["prefix"]:
                continue
            if response["times"] is not None:
                response["times"] -= 1
                if response["times"] <= 0:
                    self._responses.remove(response)
            if response["fail"]:
                raise CommandError(command, tuple(args), response["exit_code"],
                                   response["stdout"], response["stderr"], timed_out=response["timed_out"])
            return CommandResult(command, tuple(args), 0, response["stdout"], "")
        return CommandResult(command, tuple(args), 0, "", "")

    def called(self, *prefix: str) -> list[tuple[str, ...]]:
        return [call for call in self.calls if call[:len(prefix)] == prefix]


def k3d_cluster_json(name: str = "dev", servers: int = 1, running: int = 1, agents: int = 1) -> str:
    """Build ``k3d cluster list --output json`` output for one cluster."""
    nodes = [
        {"name": f"k3d-{name}-server-{i}", "role": "server", "State": {"Running": i < running},
         "created": "2024-05-01T10:00:00.123456789Z"}
        for i in range(servers)
    ]
    nodes += [
        {"name": f"k3d-{name}-agent-{i}", "role": "agent", "State": {"Running": True},
         "created": "2024-05-01T10:00:05Z"}
        for i in range(agents)
    ]
    nodes.append({"name": f"k3d-{name}-serverlb", "role": "loadbalancer", "State": {"Running": True}})
    return json.dumps([{
        "name": name,
        "serversCount": servers,
        "serversRunning": running,
        "agentsCount": agents,
        "agentsRunning": agents,
        "nodes": nodes,
    }])


def kubeconfig_view_json(server: str = "https://127.0.0.1:6550") -> str:
    return json.dumps({"clusters": [{"name": "c", "cluster": {"server": server}}]})


def nodes_json(*ready: bool) -> str:
    """Build ``kubectl get nodes -o json`` output, the first node being the control plane."""
    items = []
    for idx, is_ready in enumerate(ready):
        labels = {"node-role.kubernetes.io/control-plane": ""} if idx == 0 else {}
        items.append({
            "metadata": {"name": f"node-{idx}", "labels": labels,
                         "creationTimestamp": "2024-05-01T10:00:00Z"},
            "status": {"conditions": [{"type": "Ready", "status": "True" if is_ready else "False"}]},
        })
    return json.dumps({"items": items})


def applications_json(*apps: tuple[str, str, str]) -> str:
    """Build ArgoCD application list output from (name, health, sync) tuples."""
    return json.dumps({"items": [
        {"metadata": {"name": name}, "status": {"health": {"status": health}, "sync": {"status": sync}}}
        for name, health, sync in apps
    ]})


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Keep OPENFRAME_* variables from the host out of settings."""
    import os

    for key in list(os.environ):
        if key.startswith("OPENFRAME_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def executor():
    return FakeExecutor()


@pytest.fixture
def k3d_config():
    return ClusterConfig(name="dev", backend_type=BackendType.K3D, node_count=2)


@pytest.fixture
def kind_config():
    return ClusterConfig(name="dev", backend_type=BackendType.KIND, node_count=2)


@pytest.fixture
def rest_config():
    return RestConfig(host="https://127.0.0.1:6550", context="k3d-dev", kubeconfig="/tmp/kubeconfig")


@pytest.fixture
def chart_settings():
    return ChartSettings(apps_poll_interval=0.01, apps_wait_timeout=5)
