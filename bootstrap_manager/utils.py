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

"""Shared helpers for the CLI commands."""

from __future__ import annotations

import logging
import signal
import threading
from collections.abc import Iterator
from contextlib import contextmanager

import typer
from rich.markup import escape

from bootstrap_manager import console, logger
from bootstrap_manager.errors import BootstrapError


def enable_verbose_logging() -> None:
    """Lower the root log level to DEBUG for ``--verbose`` runs."""
    logging.getLogger().setLevel(logging.DEBUG)
    logger.setLevel(logging.DEBUG)


@contextmanager
def exit_on_error() -> Iterator[None]:
    """Print a BootstrapError and exit with status 1.

    Raises:
        typer.Exit: With code 1 when the body raised a BootstrapError.
    """
    try:
        yield
    except BootstrapError as err:
        console.print(f"[red]\u274c {escape(str(err))}[/red]")
        raise typer.Exit(1) from err


@contextmanager
def cancel_on_interrupt() -> Iterator[threading.Event]:
    """Yield an event that is set on the first SIGINT.

    The first interrupt requests a graceful cancellation; the previous handler
    is restored so a second interrupt stops the process immediately.
    """
    event = threading.Event()
    if threading.current_thread() is not threading.main_thread():
        yield event
        return

    previous = signal.getsignal(signal.SIGINT)

    def _handler(signum, frame) -> None:
        console.print("[yellow]\u26a0\ufe0f  Interrupt received, cancelling (press Ctrl+C again to abort)...[/yellow]")
        event.set()
        signal.signal(signal.SIGINT, previous)

    signal.signal(signal.SIGINT, _handler)
    try:
        yield event
    finally:
        signal.signal(signal.SIGINT, previous)
