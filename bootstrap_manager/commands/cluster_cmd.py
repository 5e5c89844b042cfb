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

"""Cluster subcommands (create, delete, start, list, status)."""

from __future__ import annotations

import typer

from bootstrap_manager import console, logger
from bootstrap_manager.config import BackendType, BootstrapSettings, build_cluster_config
from bootstrap_manager.errors import ClusterNotFoundError, ClusterOperationError
from bootstrap_manager.executor import ShellExecutor
from bootstrap_manager.providers.base import ClusterInfo, ClusterProvider
from bootstrap_manager.providers.registry import build_default_registry, preferred_backend
from bootstrap_manager.reporting import render_cluster, render_clusters
from bootstrap_manager.utils import enable_verbose_logging, exit_on_error

app = typer.Typer(help="Manage local clusters.", no_args_is_help=True)


def _provider_for(name: str, backend: BackendType | None, verbose: bool) -> ClusterProvider:
    registry = build_default_registry()
    executor = ShellExecutor(verbose=verbose)
    if backend is not None:
        return registry.create(backend, executor, verbose)
    return registry.find_provider_for_cluster(name, executor, verbose)


@app.command("create")
def create(
    cluster_name: str | None = typer.Argument(None, help="Cluster name"),
    backend: BackendType | None = typer.Option(None, "--backend", "-b", help="Cluster backend"),
    nodes: int | None = typer.Option(None, "--nodes", "-n", help="Total node count"),
    k8s_version: str | None = typer.Option(None, "--k8s-version", help="Kubernetes node image tag"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose tool output"),
) -> None:
    """Create a cluster without installing charts."""
    settings = BootstrapSettings()
    if verbose:
        enable_verbose_logging()
    with exit_on_error():
        config = build_cluster_config(
            settings,
            name=cluster_name,
            backend=backend or settings.backend or preferred_backend(),
            node_count=nodes,
            kubernetes_version=k8s_version,
        )
        provider = build_default_registry().create(config.backend_type, ShellExecutor(verbose=verbose), verbose)
        info, rest_config = provider.create_cluster(config)
    console.print(f"[green]\u2705 Cluster '{info.name}' created ({rest_config.host}, context {rest_config.context})[/green]")


@app.command("delete")
def delete(
    cluster_name: str = typer.Argument(..., help="Cluster name"),
    backend: BackendType | None = typer.Option(None, "--backend", "-b", help="Cluster backend (default: detect)"),
    force: bool = typer.Option(False, "--force", "-f", help="Ignore missing clusters and fall back to Docker cleanup"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose tool output"),
) -> None:
    """Delete a cluster."""
    if verbose:
        enable_verbose_logging()
    with exit_on_error():
        try:
            provider = _provider_for(cluster_name, backend, verbose)
        except ClusterNotFoundError:
            if not force:
                raise
            console.print(f"[yellow]\u26a0\ufe0f  Cluster '{cluster_name}' not found or already deleted[/yellow]")
            return
        provider.delete_cluster(cluster_name, provider.backend_type, force=force)
    console.print(f"[green]\u2705 Cluster '{cluster_name}' deleted[/green]")


@app.command("start")
def start(
    cluster_name: str = typer.Argument(..., help="Cluster name"),
    backend: BackendType | None = typer.Option(None, "--backend", "-b", help="Cluster backend (default: detect)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose tool output"),
) -> None:
    """Start a stopped cluster."""
    if verbose:
        enable_verbose_logging()
    with exit_on_error():
        provider = _provider_for(cluster_name, backend, verbose)
        provider.start_cluster(cluster_name, provider.backend_type)
    console.print(f"[green]\u2705 Cluster '{cluster_name}' started[/green]")


@app.command("list")
def list_clusters(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose tool output"),
) -> None:
    """List clusters across every available backend."""
    if verbose:
        enable_verbose_logging()
    registry = build_default_registry()
    executor = ShellExecutor(verbose=verbose)
    clusters: list[ClusterInfo] = []
    for backend in registry.available_backends():
        try:
            clusters.extend(registry.create(backend, executor, verbose).list_all_clusters())
        except ClusterOperationError as err:
            logger.debug("Skipping %s clusters: %s", backend.value, err)
    render_clusters(clusters)


@app.command("status")
def status(
    cluster_name: str = typer.Argument(..., help="Cluster name"),
    backend: BackendType | None = typer.Option(None, "--backend", "-b", help="Cluster backend (default: detect)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose tool output"),
) -> None:
    """Show the status and nodes of a cluster."""
    if verbose:
        enable_verbose_logging()
    with exit_on_error():
        provider = _provider_for(cluster_name, backend, verbose)
        info = provider.get_cluster_status(cluster_name)
    render_cluster(info)
