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

"""Tests for the typer CLI."""

from datetime import datetime, timezone

import pytest
from typer.testing import CliRunner

from bootstrap_manager.cli import app
from bootstrap_manager.commands import bootstrap_cmd, cluster_cmd
from bootstrap_manager.config import BackendType
from bootstrap_manager.errors import ClusterNotFoundError
from bootstrap_manager.providers.base import ClusterInfo, ClusterStatus
from bootstrap_manager.providers.registry import ProviderRegistry
from bootstrap_manager.workflow import StepResult, StepStatus, WorkflowResult

runner = CliRunner()


class FakeService:
    instances = []
    success = True

    def __init__(self, settings, charts, registry, executor, cancel_event=None):
        self.settings = settings
        self.charts = charts
        self.cancel_event = cancel_event
        self.config = None
        FakeService.instances.append(self)

    def run(self, config, on_step_result=None, **kwargs):
        self.config = config
        status = StepStatus.COMPLETED if self.success else StepStatus.FAILED
        step = StepResult("prerequisites", status, 0.1, datetime.now(timezone.utc),
                          None if self.success else RuntimeError("boom"))
        if on_step_result is not None:
            on_step_result(step)
        return WorkflowResult(self.success, (step,), 0.1, config.name)


class FakeProvider:
    backend_type = BackendType.K3D

    def __init__(self, executor=None, verbose=False, known=("dev",)):
        self.known = known
        self.deleted = []

    def detect_cluster_type(self, name):
        if name not in self.known:
            raise ClusterNotFoundError(name, operation="detect")
        return self.backend_type

    def delete_cluster(self, name, backend_type, force=False):
        self.deleted.append((name, force))

    def list_all_clusters(self):
        return [ClusterInfo(name, self.backend_type, ClusterStatus.RUNNING) for name in self.known]

    def get_cluster_status(self, name):
        return ClusterInfo(name, self.backend_type, ClusterStatus.RUNNING)


@pytest.fixture
def fake_service(monkeypatch):
    FakeService.instances = []
    FakeService.success = True
    monkeypatch.setattr(bootstrap_cmd, "BootstrapService", FakeService)
    return FakeService


@pytest.fixture
def fake_registry(monkeypatch):
    registry = ProviderRegistry()
    registry.register(BackendType.K3D, FakeProvider)
    monkeypatch.setattr(cluster_cmd, "build_default_registry", lambda: registry)
    return registry


def test_no_args_shows_help():
    result = runner.invoke(app, [])
    assert "bootstrap" in result.output


def test_bootstrap_success(fake_service):
    result = runner.invoke(app, ["bootstrap", "demo", "--backend", "kind", "--nodes", "2",
                                 "--app-chart", "./charts/app-of-apps"])

    assert result.exit_code == 0, result.output
    service = fake_service.instances[0]
    assert service.config.name == "demo"
    assert service.config.backend_type is BackendType.KIND
    assert service.config.node_count == 2
    assert service.charts.app_of_apps_chart == "./charts/app-of-apps"
    assert service.cancel_event is not None


def test_bootstrap_uses_environment_defaults(fake_service, monkeypatch):
    monkeypatch.setenv("OPENFRAME_CLUSTER_NAME", "from-env")
    monkeypatch.setenv("OPENFRAME_BACKEND", "kind")

    result = runner.invoke(app, ["bootstrap"])

    assert result.exit_code == 0, result.output
    config = fake_service.instances[0].config
    assert config.name == "from-env"
    assert config.backend_type is BackendType.KIND


def test_bootstrap_failure_exits_non_zero(fake_service):
    fake_service.success = False
    result = runner.invoke(app, ["bootstrap", "demo", "--backend", "k3d"])
    assert result.exit_code == 1


def test_bootstrap_rejects_invalid_name(fake_service):
    result = runner.invoke(app, ["bootstrap", "Bad_Name", "--backend", "k3d"])

    assert result.exit_code == 1
    assert fake_service.instances == []


def test_cluster_list(fake_registry):
    result = runner.invoke(app, ["cluster", "list"])
    assert result.exit_code == 0, result.output
    assert "dev" in result.output


def test_cluster_delete(fake_registry):
    providers = []

    def factory(executor, verbose):
        provider = FakeProvider()
        providers.append(provider)
        return provider

    fake_registry.register(BackendType.K3D, factory)
    result = runner.invoke(app, ["cluster", "delete", "dev"])

    assert result.exit_code == 0, result.output
    assert providers[-1].deleted == [("dev", False)]


def test_cluster_delete_missing(fake_registry):
    assert runner.invoke(app, ["cluster", "delete", "other"]).exit_code == 1
    assert runner.invoke(app, ["cluster", "delete", "other", "--force"]).exit_code == 0


def test_cluster_status(fake_registry):
    result = runner.invoke(app, ["cluster", "status", "dev", "--backend", "k3d"])
    assert result.exit_code == 0, result.output
    assert "Running" in result.output


def test_cluster_status_unknown_backend(monkeypatch):
    monkeypatch.setattr(cluster_cmd, "build_default_registry", ProviderRegistry)
    result = runner.invoke(app, ["cluster", "status", "dev", "--backend", "kind"])
    assert result.exit_code == 1
