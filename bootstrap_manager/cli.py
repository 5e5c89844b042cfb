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

"""
cli.py - Local Kubernetes bootstrap CLI.

Subcommands:
    bootstrap  Create a cluster and install ArgoCD plus the app-of-apps chart
    cluster    Manage clusters (create, delete, start, list, status)

Environment Variables:
    Defaults can be overridden via OPENFRAME_* and OPENFRAME_CHART_* variables:
    - OPENFRAME_CLUSTER_NAME (default: openframe-dev)
    - OPENFRAME_BACKEND (default: kind on Windows, k3d elsewhere)
    - OPENFRAME_NODE_COUNT (default: 4)
    - OPENFRAME_CHART_APP_OF_APPS_CHART (default: unset, app deployment skipped)

Examples:
    # Bootstrap the default cluster
    openframe-bootstrap bootstrap

    # Bootstrap a 2-node kind cluster with an app-of-apps chart
    openframe-bootstrap bootstrap dev --backend kind --nodes 2 --app-chart ./charts/app-of-apps

    # List clusters on every backend
    openframe-bootstrap cluster list

    # Delete a cluster, falling back to Docker cleanup
    openframe-bootstrap cluster delete dev --force
"""

from __future__ import annotations

import logging
import sys

import typer
from rich.markup import escape

from bootstrap_manager import console
from bootstrap_manager.commands import bootstrap_cmd, cluster_cmd

app = typer.Typer(
    help="Bootstrap and operate local Kubernetes environments.",
    no_args_is_help=True,
)


@app.callback()
def _main_callback() -> None:
    """Initialize logging for all subcommands."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


app.command("bootstrap")(bootstrap_cmd.bootstrap)
app.add_typer(cluster_cmd.app, name="cluster")


def main() -> None:
    """Console script entry point."""
    try:
        app()
    except Exception as e:
        console.print(f"[red]\u274c {escape(str(e))}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
