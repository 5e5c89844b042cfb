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

"""Bootstrap command: cluster plus chart stack in one workflow."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.markup import escape

from bootstrap_manager import console
from bootstrap_manager.bootstrap import BootstrapService
from bootstrap_manager.config import BackendType, BootstrapSettings, ChartSettings, build_cluster_config
from bootstrap_manager.executor import ShellExecutor
from bootstrap_manager.providers.registry import build_default_registry, preferred_backend
from bootstrap_manager.reporting import display_config, exit_code, render_result
from bootstrap_manager.utils import cancel_on_interrupt, enable_verbose_logging, exit_on_error
from bootstrap_manager.workflow import StepResult, StepStatus


def _print_step(result: StepResult) -> None:
    if result.status is StepStatus.COMPLETED:
        console.print(f"[green]\u2705 {result.step_name} ({result.duration:.1f}s)[/green]")
    elif result.status is StepStatus.SKIPPED:
        console.print(f"[yellow]\u26a0\ufe0f  {result.step_name} skipped: {escape(result.skip_reason or '')}[/yellow]")
    else:
        console.print(f"[red]\u274c {result.step_name} failed ({result.duration:.1f}s)[/red]")


def bootstrap(
    cluster_name: str | None = typer.Argument(None, help="Cluster name (default: OPENFRAME_CLUSTER_NAME)"),
    backend: BackendType | None = typer.Option(None, "--backend", "-b", help="Cluster backend (default: per host OS)"),
    nodes: int | None = typer.Option(None, "--nodes", "-n", help="Total node count"),
    k8s_version: str | None = typer.Option(None, "--k8s-version", help="Kubernetes node image tag"),
    app_chart: str | None = typer.Option(None, "--app-chart", help="App-of-apps chart path or reference"),
    values_file: Path | None = typer.Option(None, "--values-file", help="Values file for the app-of-apps chart"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose tool output and DEBUG logging"),
) -> None:
    """Create a local cluster and install ArgoCD and the app-of-apps chart."""
    settings = BootstrapSettings()
    if verbose:
        settings = settings.model_copy(update={"verbose": True})
    if settings.verbose:
        enable_verbose_logging()

    charts = ChartSettings()
    overrides: dict = {}
    if app_chart is not None:
        overrides["app_of_apps_chart"] = app_chart
    if values_file is not None:
        overrides["app_of_apps_values_file"] = values_file
    if overrides:
        charts = charts.model_copy(update=overrides)

    with exit_on_error():
        config = build_cluster_config(
            settings,
            name=cluster_name,
            backend=backend or settings.backend or preferred_backend(),
            node_count=nodes,
            kubernetes_version=k8s_version,
        )
    display_config(config, charts)

    registry = build_default_registry()
    executor = ShellExecutor(verbose=settings.verbose)
    with cancel_on_interrupt() as cancel_event:
        service = BootstrapService(settings, charts, registry, executor, cancel_event=cancel_event)
        result = service.run(config, on_step_result=_print_step)

    render_result(result)
    raise typer.Exit(exit_code(result))
