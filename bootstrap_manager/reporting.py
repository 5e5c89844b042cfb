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

"""Rendering of configuration, workflow results and cluster listings."""

from __future__ import annotations

from collections.abc import Sequence

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from bootstrap_manager import console as default_console
from bootstrap_manager.config import ChartSettings, ClusterConfig
from bootstrap_manager.errors import InstallationError
from bootstrap_manager.providers.base import ClusterInfo
from bootstrap_manager.workflow import StepStatus, WorkflowResult

_STATUS_STYLE = {
    StepStatus.COMPLETED: "[green]\u2705 Completed[/green]",
    StepStatus.FAILED: "[red]\u274c Failed[/red]",
    StepStatus.SKIPPED: "[yellow]\u23ed\ufe0f  Skipped[/yellow]",
}


def exit_code(result: WorkflowResult) -> int:
    """Return the process exit code for a workflow result."""
    return 0 if result.success else 1


def display_config(config: ClusterConfig, charts: ChartSettings, console: Console | None = None) -> None:
    """Print the configuration a bootstrap run will use.

    Args:
        config: Cluster configuration.
        charts: Chart configuration.
        console: Target console, or None for the shared stderr console.
    """
    console = console or default_console
    console.print(Panel.fit("Configuration", style="bold blue"))
    console.print("[yellow]Cluster:[/yellow]")
    console.print(f"  name            : {config.name}")
    console.print(f"  backend         : {config.backend_type.value}")
    console.print(f"  nodes           : {config.node_count}")
    console.print(f"  k8s_version     : {config.kubernetes_version or '(pinned default)'}")
    console.print("[yellow]Charts:[/yellow]")
    console.print(f"  argocd          : {charts.argocd_chart} {charts.argocd_version}")
    console.print(f"  namespace       : {charts.namespace}")
    console.print(f"  app_of_apps     : {charts.app_of_apps_chart or '(not configured)'}")


def render_result(result: WorkflowResult, console: Console | None = None) -> None:
    """Print per-step status and timing, then details for the failing step.

    Steps are shown in execution order. For installation failures the
    troubleshooting steps are listed after the error message.
    """
    console = console or default_console
    table = Table(title=f"Bootstrap of '{result.cluster_name}'", show_lines=False)
    table.add_column("Step")
    table.add_column("Status")
    table.add_column("Duration", justify="right")
    table.add_column("Details")
    for step in result.steps:
        details = escape(step.skip_reason or (str(step.error) if step.error else ""))
        table.add_row(step.step_name, _STATUS_STYLE.get(step.status, step.status.value),
                      f"{step.duration:.1f}s", details)
    console.print(table)

    failed = result.failed_step
    if failed is not None and failed.error is not None:
        console.print(f"[red]\u274c {failed.step_name}: {escape(str(failed.error))}[/red]")
        if isinstance(failed.error, InstallationError):
            console.print("[yellow]Troubleshooting steps:[/yellow]")
            for idx, suggestion in enumerate(failed.error.troubleshooting_steps(), start=1):
                console.print(f"  {idx}. {escape(suggestion)}")

    if result.success:
        console.print(f"[green]\u2705 Bootstrap completed in {result.total_time:.1f}s[/green]")
    else:
        console.print(f"[red]\u274c Bootstrap failed after {result.total_time:.1f}s[/red]")


def render_clusters(clusters: Sequence[ClusterInfo], console: Console | None = None) -> None:
    console = console or default_console
    if not clusters:
        console.print("[yellow]\u2139\ufe0f  No clusters found[/yellow]")
        return
    table = Table(title="Clusters")
    table.add_column("Name")
    table.add_column("Backend")
    table.add_column("Status")
    table.add_column("Nodes", justify="right")
    table.add_column("Created")
    for info in clusters:
        created = info.created_at.strftime("%Y-%m-%d %H:%M:%S") if info.created_at else "-"
        table.add_row(info.name, info.backend_type.value, info.status.value, str(info.node_count), created)
    console.print(table)


def render_cluster(info: ClusterInfo, console: Console | None = None) -> None:
    """Print one cluster and its nodes."""
    console = console or default_console
    console.print(Panel.fit(f"{info.name} ({info.backend_type.value})", style="bold blue"))
    console.print(f"  status          : {info.status.value}")
    console.print(f"  created         : {info.created_at or '-'}")
    for node in info.nodes:
        console.print(f"  - {node.name} ({node.role}) {node.status}")
