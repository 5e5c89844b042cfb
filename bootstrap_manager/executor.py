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

"""External command execution for backend and chart tooling."""

from __future__ import annotations

import os
import time
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass

import sh

from bootstrap_manager import logger
from bootstrap_manager.constants import TRANSIENT_BACKEND_PHRASES


@dataclass(frozen=True)
class CommandResult:
    """Captured output of a finished command.

    Attributes:
        command: Executable name.
        args: Arguments passed to the executable.
        exit_code: Process exit status.
        stdout: Decoded standard output.
        stderr: Decoded standard error.
        duration: Wall-clock seconds the command took.
    """

    command: str
    args: tuple[str, ...]
    exit_code: int
    stdout: str
    stderr: str
    duration: float = 0.0


class CommandError(Exception):
    """Raw failure of an external command, before classification.

    Attributes:
        exit_code: Process exit status, or None when the process never ran.
        timed_out: Whether the command was killed by its timeout.
    """

    def __init__(
        self,
        command: str,
        args: tuple[str, ...],
        exit_code: int | None,
        stdout: str = "",
        stderr: str = "",
        *,
        timed_out: bool = False,
    ) -> None:
        self.command = command
        self.args_list = tuple(args)
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr
        self.timed_out = timed_out
        super().__init__(self._format())

    @property
    def not_found(self) -> bool:
        """Whether the executable could not be located."""
        return self.exit_code is None and not self.timed_out

    @property
    def transient(self) -> bool:
        """Whether the failure looks like a passing network or daemon hiccup."""
        if self.timed_out:
            return True
        text = self.output.lower()
        return any(phrase in text for phrase in TRANSIENT_BACKEND_PHRASES)

    @property
    def output(self) -> str:
        """Combined stdout and stderr text."""
        return "\n".join(part for part in (self.stdout.strip(), self.stderr.strip()) if part)

    def _format(self) -> str:
        cmdline = " ".join((self.command, *self.args_list))
        if self.timed_out:
            return f"command '{cmdline}' timed out"
        if self.exit_code is None:
            return f"command '{self.command}' not found"
        detail = self.stderr.strip() or self.stdout.strip()
        if detail:
            return f"command '{cmdline}' failed with exit code {self.exit_code}: {detail}"
        return f"command '{cmdline}' failed with exit code {self.exit_code}"


class CommandExecutor(ABC):
    """Interface for running external commands.

    Providers and installers depend on this seam rather than on ``sh`` so tests
    can substitute a recording fake.
    """

    @abstractmethod
    def run(
        self,
        command: str,
        *args: str,
        timeout: float | None = None,
        cwd: str | None = None,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        """Run *command* and return its result.

        Raises:
            CommandError: If the command is missing, times out, or exits non-zero.
        """


def _decode(data: bytes | str | None) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode(errors="replace")
    return data


class ShellExecutor(CommandExecutor):
    """Run commands through the ``sh`` library.

    Args:
        verbose: Log every command line and its output at INFO instead of DEBUG.
    """

    def __init__(self, verbose: bool = False) -> None:
        self.verbose = verbose

    def run(
        self,
        command: str,
        *args: str,
        timeout: float | None = None,
        cwd: str | None = None,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        log = logger.info if self.verbose else logger.debug
        log("$ %s %s", command, " ".join(args))

        try:
            program = sh.Command(command)
        except sh.CommandNotFound as err:
            raise CommandError(command, args, None) from err

        call_kwargs: dict = {"_return_cmd": True, "_timeout": timeout}
        if cwd is not None:
            call_kwargs["_cwd"] = cwd
        if env is not None:
            call_kwargs["_env"] = {**os.environ, **env}

        started = time.monotonic()
        try:
            proc = program(*args, **call_kwargs)
        except sh.ErrorReturnCode as err:
            raise CommandError(
                command, args, err.exit_code, _decode(err.stdout), _decode(err.stderr),
            ) from err
        except sh.TimeoutException as err:
            raise CommandError(command, args, err.exit_code, timed_out=True) from err

        result = CommandResult(
            command=command,
            args=tuple(args),
            exit_code=proc.exit_code,
            stdout=_decode(proc.stdout),
            stderr=_decode(proc.stderr),
            duration=time.monotonic() - started,
        )
        if result.stdout.strip():
            log("%s", result.stdout.rstrip())
        return result
