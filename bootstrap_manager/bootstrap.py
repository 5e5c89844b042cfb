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

"""Bootstrap workflow: prerequisites, cluster, charts, applications."""

from __future__ import annotations

import threading
from collections.abc import Callable

from rich.panel import Panel

from bootstrap_manager import console, logger
from bootstrap_manager.charts import ChartInstaller
from bootstrap_manager.config import BootstrapSettings, ChartSettings, ClusterConfig
from bootstrap_manager.constants import (
    STEP_CREATE_CLUSTER,
    STEP_DEPLOY_APPS,
    STEP_INSTALL_CHARTS,
    STEP_PREREQUISITES,
    WEIGHT_CREATE_CLUSTER,
    WEIGHT_DEPLOY_APPS,
    WEIGHT_INSTALL_CHARTS,
    WEIGHT_PREREQUISITES,
)
from bootstrap_manager.errors import ClusterAlreadyExistsError, ClusterOperationError, ConfigurationError
from bootstrap_manager.executor import CommandExecutor
from bootstrap_manager.prerequisites import PrerequisiteChecker, default_tools
from bootstrap_manager.providers.base import ClusterStatus, RestConfig
from bootstrap_manager.providers.registry import ProviderRegistry
from bootstrap_manager.retry import RetryPolicy, installation_policy, network_policy
from bootstrap_manager.workflow import Step, StepContext, StepResult, WorkflowExecutor, WorkflowResult


class BootstrapService:
    """Wire the four bootstrap steps and run them as one workflow.

    Args:
        settings: Bootstrap settings.
        chart_settings: Chart settings.
        registry: Provider registry built at process start.
        executor: Command executor shared by every step.
        cancel_event: Cancellation signal for the run.
        checker: Prerequisite checker, or None to check the default tools.
        cluster_retry: Retry policy for the create-cluster step.
        install_retry: Retry policy for the install-charts step.
    """

    def __init__(
        self,
        settings: BootstrapSettings,
        chart_settings: ChartSettings,
        registry: ProviderRegistry,
        executor: CommandExecutor,
        *,
        cancel_event: threading.Event | None = None,
        checker: PrerequisiteChecker | None = None,
        cluster_retry: RetryPolicy | None = None,
        install_retry: RetryPolicy | None = None,
    ) -> None:
        self.settings = settings
        self.chart_settings = chart_settings
        self.registry = registry
        self.executor = executor
        self.cancel_event = cancel_event or threading.Event()
        self.checker = checker
        self.cluster_retry = cluster_retry or network_policy()
        self.install_retry = install_retry or installation_policy()
        self.rest_config: RestConfig | None = None

    def build_steps(self, config: ClusterConfig) -> list[Step]:
        """Return the bootstrap steps for *config* in execution order."""
        checker = self.checker or PrerequisiteChecker(
            default_tools(config.backend_type, self.executor),
            auto_install=self.settings.auto_install_tools,
        )
        return [
            Step(STEP_PREREQUISITES, lambda ctx: checker.ensure(), weight=WEIGHT_PREREQUISITES),
            Step(STEP_CREATE_CLUSTER, lambda ctx: self._create_cluster(config),
                 weight=WEIGHT_CREATE_CLUSTER, retry_policy=self.cluster_retry),
            Step(STEP_INSTALL_CHARTS, lambda ctx: self._installer(config).install_argocd(),
                 weight=WEIGHT_INSTALL_CHARTS, retry_policy=self.install_retry),
            Step(STEP_DEPLOY_APPS, lambda ctx: self._deploy_apps(config, ctx),
                 weight=WEIGHT_DEPLOY_APPS, optional=True),
        ]

    def run(
        self,
        config: ClusterConfig,
        *,
        on_step_start: Callable[[str], None] | None = None,
        on_step_result: Callable[[StepResult], None] | None = None,
        on_progress: Callable[[float], None] | None = None,
    ) -> WorkflowResult:
        """Bootstrap a cluster and its chart stack.

        Args:
            config: Validated cluster configuration.
            on_step_start: Observer called when a step starts.
            on_step_result: Observer called when a step becomes terminal.
            on_progress: Observer called with the overall percentage.

        Returns:
            The run's WorkflowResult; never raises for step failures.
        """
        console.print(Panel.fit(f"Bootstrapping {config.backend_type.value} cluster '{config.name}'",
                                style="bold blue"))
        self.rest_config = None
        executor = WorkflowExecutor(
            self.build_steps(config),
            cancel_event=self.cancel_event,
            on_step_start=on_step_start,
            on_step_result=on_step_result,
            on_progress=on_progress,
        )
        return executor.run(config.name)

    # -- Step actions --

    def _create_cluster(self, config: ClusterConfig) -> None:
        provider = self.registry.create(config.backend_type, self.executor, self.settings.verbose)
        try:
            info, self.rest_config = provider.create_cluster(config)
        except ClusterAlreadyExistsError:
            if not self.settings.reuse_existing_cluster:
                raise
            info = provider.get_cluster_status(config.name)
            if info.status is not ClusterStatus.RUNNING:
                raise ClusterOperationError(
                    "reuse", config.name, f"existing cluster is {info.status.value}, not Running",
                ) from None
            logger.info("Cluster '%s' already exists; reusing it", config.name)
            console.print(f"[yellow]\u2139\ufe0f  Reusing existing cluster '{config.name}'[/yellow]")
            self.rest_config = provider.get_rest_config(config.name)
            return
        console.print(f"[green]\u2705 Cluster '{info.name}' is {info.status.value} with {info.node_count} nodes[/green]")

    def _installer(self, config: ClusterConfig) -> ChartInstaller:
        if self.rest_config is None:
            raise ConfigurationError(f"no API server configuration for cluster {config.name}",
                                     section="charts")
        return ChartInstaller(self.executor, self.rest_config, self.chart_settings, config.name,
                              verbose=self.settings.verbose)

    def _deploy_apps(self, config: ClusterConfig, ctx: StepContext) -> None:
        installer = self._installer(config)
        installer.install_app_of_apps()
        ctx.check_cancelled()
        installer.wait_for_applications(ctx.cancel_event, ctx.report_progress)
