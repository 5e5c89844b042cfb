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

"""Prerequisite tool checks."""

from __future__ import annotations

import sys
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence

import docker
import sh

from bootstrap_manager import logger
from bootstrap_manager.config import BackendType
from bootstrap_manager.errors import ConfigurationError
from bootstrap_manager.executor import CommandError, CommandExecutor


def _which(cmd: str) -> str | None:
    return sh.which(cmd)


def _platform_key(platform: str) -> str:
    if platform.startswith("win"):
        return "windows"
    if platform == "darwin":
        return "darwin"
    return "linux"


class ToolChecker(ABC):
    """Capability surface for one external tool."""

    name: str

    @abstractmethod
    def is_installed(self) -> bool:
        """Return whether the tool is usable on this host."""

    @abstractmethod
    def install(self) -> None:
        """Install the tool.

        Raises:
            ConfigurationError: If automatic installation is not possible.
        """

    @abstractmethod
    def get_install_help(self) -> str:
        """Return human readable installation instructions."""


class CommandTool(ToolChecker):
    """A CLI tool that is installed when its binary is on PATH.

    Args:
        name: Display name.
        command: Binary name looked up on PATH.
        help_by_platform: Install instructions keyed by ``darwin``/``linux``/``windows``.
        brew_package: Homebrew formula used for automatic install on macOS.
        executor: Executor used to run installers.
        platform: Host platform, or None for ``sys.platform``.
    """

    def __init__(
        self,
        name: str,
        command: str,
        help_by_platform: Mapping[str, str],
        *,
        brew_package: str | None = None,
        executor: CommandExecutor | None = None,
        platform: str | None = None,
    ) -> None:
        self.name = name
        self.command = command
        self.help_by_platform = dict(help_by_platform)
        self.brew_package = brew_package
        self.executor = executor
        self.platform = platform if platform is not None else sys.platform

    def is_installed(self) -> bool:
        return _which(self.command) is not None

    def install(self) -> None:
        if _platform_key(self.platform) != "darwin" or not self.brew_package or self.executor is None:
            raise ConfigurationError(
                f"automatic {self.name} installation not supported on {self.platform}: {self.get_install_help()}",
                section="prerequisites",
                missing_keys=[self.name],
            )
        if _which("brew") is None:
            raise ConfigurationError(
                f"Homebrew is required for automatic {self.name} installation on macOS: https://brew.sh",
                section="prerequisites",
                missing_keys=[self.name],
            )
        try:
            self.executor.run("brew", "install", self.brew_package)
        except CommandError as err:
            raise ConfigurationError(f"failed to install {self.name}: {err}", section="prerequisites",
                                     missing_keys=[self.name]) from err

    def get_install_help(self) -> str:
        key = _platform_key(self.platform)
        return self.help_by_platform.get(key) or f"{self.name}: please install {self.command} and add it to PATH"


class DockerTool(ToolChecker):
    """Docker is usable only when the daemon answers a ping."""

    name = "Docker"

    def __init__(self, platform: str | None = None) -> None:
        self.platform = platform if platform is not None else sys.platform

    def is_installed(self) -> bool:
        try:
            client = docker.from_env()
        except docker.errors.DockerException as err:
            logger.debug("Docker unavailable: %s", err)
            return False
        try:
            return bool(client.ping())
        except docker.errors.DockerException as err:
            logger.debug("Docker daemon did not answer: %s", err)
            return False
        finally:
            client.close()

    def install(self) -> None:
        raise ConfigurationError(
            f"Docker must be installed and started manually: {self.get_install_help()}",
            section="prerequisites",
            missing_keys=[self.name],
        )

    def get_install_help(self) -> str:
        if _which("docker") is not None:
            return "Docker is installed but not running. Please start Docker Desktop or the Docker daemon."
        return DOCKER_HELP[_platform_key(self.platform)]


DOCKER_HELP = {
    "darwin": "Docker: install Docker Desktop from https://docs.docker.com/desktop/install/mac-install/",
    "linux": "Docker: install Docker Engine from https://docs.docker.com/engine/install/",
    "windows": "Docker: install Docker inside WSL2 or Docker Desktop from https://docs.docker.com/desktop/",
}

KUBECTL_HELP = {
    "darwin": "kubectl: Run 'brew install kubectl' or see https://kubernetes.io/docs/tasks/tools/install-kubectl-macos/",
    "linux": "kubectl: See https://kubernetes.io/docs/tasks/tools/install-kubectl-linux/",
    "windows": "kubectl: Run 'choco install kubernetes-cli' or see https://kubernetes.io/docs/tasks/tools/",
}

HELM_HELP = {
    "darwin": "helm: Run 'brew install helm' or see https://helm.sh/docs/intro/install/",
    "linux": "helm: Run 'curl https://raw.githubusercontent.com/helm/helm/main/scripts/get-helm-3 | bash'",
    "windows": "helm: Run 'choco install kubernetes-helm' or see https://helm.sh/docs/intro/install/",
}

K3D_HELP = {
    "darwin": "k3d: Run 'brew install k3d' or download from https://k3d.io/#installation",
    "linux": "k3d: Run 'curl -s https://raw.githubusercontent.com/k3d-io/k3d/main/install.sh | bash'",
    "windows": "k3d: Download from https://github.com/k3d-io/k3d/releases or run 'choco install k3d'",
}

KIND_HELP = {
    "darwin": "kind: Run 'brew install kind' or see https://kind.sigs.k8s.io/docs/user/quick-start/",
    "linux": "kind: See https://kind.sigs.k8s.io/docs/user/quick-start/#installing-from-release-binaries",
    "windows": "kind: Run 'choco install kind' or see https://kind.sigs.k8s.io/docs/user/quick-start/",
}


def default_tools(backend: BackendType, executor: CommandExecutor | None = None,
                  platform: str | None = None) -> list[ToolChecker]:
    """Return the tools a bootstrap with *backend* needs, in check order."""
    backend_tool = (
        CommandTool("k3d", "k3d", K3D_HELP, brew_package="k3d", executor=executor, platform=platform)
        if backend is BackendType.K3D
        else CommandTool("kind", "kind", KIND_HELP, brew_package="kind", executor=executor, platform=platform)
    )
    return [
        DockerTool(platform=platform),
        CommandTool("kubectl", "kubectl", KUBECTL_HELP, brew_package="kubectl", executor=executor, platform=platform),
        backend_tool,
        CommandTool("helm", "helm", HELM_HELP, brew_package="helm", executor=executor, platform=platform),
    ]


class PrerequisiteChecker:
    """Check a set of tools and optionally install the missing ones.

    Args:
        tools: Tool checkers in check order.
        auto_install: Try ``install()`` for missing tools before failing.
    """

    def __init__(self, tools: Sequence[ToolChecker], auto_install: bool = False) -> None:
        self.tools = list(tools)
        self.auto_install = auto_install

    def check_all(self) -> list[str]:
        """Return the names of tools that are not installed."""
        return [tool.name for tool in self.tools if not tool.is_installed()]

    def install_instructions(self, missing: Sequence[str]) -> list[str]:
        wanted = {name.lower() for name in missing}
        return [tool.get_install_help() for tool in self.tools if tool.name.lower() in wanted]

    def ensure(self) -> None:
        """Verify every tool is installed, installing missing ones if enabled.

        Raises:
            ConfigurationError: If any tool is still missing.
        """
        missing = self.check_all()
        if missing and self.auto_install:
            for tool in self.tools:
                if tool.name in missing:
                    logger.info("Installing missing tool %s", tool.name)
                    tool.install()
            missing = self.check_all()

        if missing:
            instructions = "; ".join(self.install_instructions(missing))
            raise ConfigurationError(
                f"missing required tools: {', '.join(missing)}. {instructions}",
                section="prerequisites",
                missing_keys=missing,
            )
        logger.info("All prerequisites are installed")
