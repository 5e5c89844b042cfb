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

"""ArgoCD and app-of-apps chart installation."""

from __future__ import annotations

import json
import threading
from collections.abc import Callable
from dataclasses import dataclass

from tenacity import RetryError, Retrying, retry_if_result, stop_after_delay, wait_fixed

from bootstrap_manager import console, logger
from bootstrap_manager.classifier import classify_install_error
from bootstrap_manager.config import ChartSettings
from bootstrap_manager.constants import (
    APP_HEALTHY,
    APP_SYNCED,
    ARGOCD_APPLICATIONS_RESOURCE,
    HELM_RELEASE_APP_OF_APPS,
    HELM_RELEASE_ARGOCD,
    HELM_REPO_TIMEOUT_SECONDS,
    KUBECTL_TIMEOUT_SECONDS,
)
from bootstrap_manager.errors import InstallationError, SkippedInstallation
from bootstrap_manager.executor import CommandError, CommandExecutor, CommandResult
from bootstrap_manager.providers.base import RestConfig
from bootstrap_manager.retry import cancellable_sleep

COMPONENT_ARGOCD = "ArgoCD"
COMPONENT_APP_OF_APPS = "app-of-apps"
COMPONENT_APPLICATIONS = "applications"


@dataclass(frozen=True)
class ApplicationStatus:
    name: str
    health: str
    sync: str

    @property
    def ready(self) -> bool:
        return self.health == APP_HEALTHY and self.sync == APP_SYNCED


def parse_applications(output: str) -> list[ApplicationStatus]:
    """Parse ``kubectl get applications.argoproj.io -o json`` output."""
    items = json.loads(output or "{}").get("items") or []
    apps = []
    for item in items:
        status = item.get("status") or {}
        apps.append(ApplicationStatus(
            name=(item.get("metadata") or {}).get("name", ""),
            health=(status.get("health") or {}).get("status", "Unknown"),
            sync=(status.get("sync") or {}).get("status", "Unknown"),
        ))
    return apps


class ChartInstaller:
    """Install the chart stack onto one cluster.

    Every raw helm/kubectl failure is classified once, here, before it leaves
    the installer.

    Args:
        executor: Command executor for helm and kubectl.
        rest_config: Handle for the target cluster.
        settings: Chart configuration.
        cluster_name: Target cluster name.
        verbose: Pass ``--debug`` to helm.
    """

    def __init__(
        self,
        executor: CommandExecutor,
        rest_config: RestConfig,
        settings: ChartSettings,
        cluster_name: str,
        verbose: bool = False,
    ) -> None:
        self.executor = executor
        self.rest_config = rest_config
        self.settings = settings
        self.cluster_name = cluster_name
        self.verbose = verbose

    # -- Command helpers --

    def _helm(self, component: str, *args: str, timeout: float | None = None) -> CommandResult:
        flags = ["--kube-context", self.rest_config.context]
        if self.rest_config.kubeconfig:
            flags += ["--kubeconfig", self.rest_config.kubeconfig]
        if self.verbose:
            flags.append("--debug")
        try:
            return self.executor.run("helm", *args, *flags, timeout=timeout)
        except CommandError as err:
            raise classify_install_error(component, self.cluster_name, err) from err

    def _kubectl(self, *args: str) -> CommandResult:
        return self.executor.run("kubectl", "--context", self.rest_config.context, *args,
                                 timeout=KUBECTL_TIMEOUT_SECONDS)

    # -- Installation --

    def install_argocd(self) -> None:
        """Install or upgrade the ArgoCD release.

        Raises:
            RegistryDNSError: If the install timed out on registry DNS failures.
            InstallationError: For any other helm failure.
        """
        s = self.settings
        console.print(f"[yellow]\u2139\ufe0f  Installing ArgoCD {s.argocd_version}...[/yellow]")
        try:
            self.executor.run("helm", "repo", "add", s.argocd_repo_name, s.argocd_repo_url, "--force-update",
                              timeout=HELM_REPO_TIMEOUT_SECONDS)
            self.executor.run("helm", "repo", "update", timeout=HELM_REPO_TIMEOUT_SECONDS)
        except CommandError as err:
            raise classify_install_error(COMPONENT_ARGOCD, self.cluster_name, err, phase="repository") from err

        args = [
            "upgrade", "--install", HELM_RELEASE_ARGOCD, s.argocd_chart,
            "--version", s.argocd_version,
            "--namespace", s.namespace,
            "--create-namespace",
            "--wait",
            "--timeout", s.helm_timeout,
        ]
        if s.argocd_values_file:
            args += ["-f", str(s.argocd_values_file)]
        self._helm(COMPONENT_ARGOCD, *args)
        console.print("[green]\u2705 ArgoCD installed[/green]")

    def install_app_of_apps(self) -> None:
        """Install or upgrade the app-of-apps release.

        Raises:
            SkippedInstallation: If no app-of-apps chart is configured.
            InstallationError: If helm fails.
        """
        s = self.settings
        if not s.app_of_apps_chart:
            raise SkippedInstallation(COMPONENT_APP_OF_APPS, "no app-of-apps chart configured")

        console.print(f"[yellow]\u2139\ufe0f  Installing app-of-apps from {s.app_of_apps_chart}...[/yellow]")
        args = [
            "upgrade", "--install", HELM_RELEASE_APP_OF_APPS, s.app_of_apps_chart,
            "--namespace", s.namespace,
            "--wait",
            "--timeout", s.helm_timeout,
        ]
        if s.app_of_apps_values_file:
            args += ["-f", str(s.app_of_apps_values_file)]
        self._helm(COMPONENT_APP_OF_APPS, *args)
        console.print("[green]\u2705 app-of-apps installed[/green]")

    # -- Application sync --

    def application_statuses(self) -> list[ApplicationStatus]:
        result = self._kubectl("get", ARGOCD_APPLICATIONS_RESOURCE, "-n", self.settings.namespace, "-o", "json")
        return parse_applications(result.stdout)

    def wait_for_applications(
        self,
        cancel_event: threading.Event | None = None,
        report_progress: Callable[[float], None] | None = None,
    ) -> list[ApplicationStatus]:
        """Poll until every ArgoCD application is Healthy and Synced.

        The poll has its own deadline (``apps_wait_timeout``) and does not count
        attempts.

        Args:
            cancel_event: Cancellation signal checked between polls.
            report_progress: Called with the ready fraction after each poll.

        Returns:
            Final application statuses.

        Raises:
            OperationCancelledError: If cancellation fired while waiting.
            InstallationError: If the applications are not ready before the deadline.
        """
        cancel_event = cancel_event or threading.Event()
        latest: list[ApplicationStatus] = []

        def poll() -> bool:
            nonlocal latest
            try:
                latest = self.application_statuses()
            except (CommandError, ValueError, AttributeError) as err:
                logger.debug("Application status not available yet: %s", err)
                return False
            ready = sum(1 for app in latest if app.ready)
            if latest and report_progress is not None:
                report_progress(ready / len(latest))
            logger.info("Applications ready: %d/%d", ready, len(latest))
            return bool(latest) and ready == len(latest)

        console.print("[yellow]\u2139\ufe0f  Waiting for ArgoCD applications to become Healthy and Synced...[/yellow]")
        retrying = Retrying(
            stop=stop_after_delay(self.settings.apps_wait_timeout),
            wait=wait_fixed(self.settings.apps_poll_interval),
            retry=retry_if_result(lambda ready: not ready),
            sleep=lambda seconds: cancellable_sleep(seconds, cancel_event, "wait-for-applications"),
        )
        try:
            retrying(poll)
        except RetryError as err:
            pending = ", ".join(app.name for app in latest if not app.ready) or "none reported"
            raise InstallationError(
                COMPONENT_APPLICATIONS, "sync",
                f"applications not Healthy and Synced after {self.settings.apps_wait_timeout:.0f}s "
                f"(pending: {pending})",
                cluster_name=self.cluster_name,
            ) from err

        console.print(f"[green]\u2705 All {len(latest)} applications are Healthy and Synced[/green]")
        return latest
