"""External command execution for system controls.

Brightness, volume and Wi-Fi status are all read and written by shelling
out to desktop tools (busctl, wpctl, pactl, amixer, nmcli). They go
through the ``CommandRunner`` protocol so tests can script the tools'
output without touching the host.
"""

from __future__ import annotations

import subprocess  # nosec B404 - Fixed argv lists, no shell
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from honeybee_device.observability import get_logger

logger = get_logger(__name__)

DEFAULT_COMMAND_TIMEOUT_S = 5.0


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Exit status and decoded output of one command."""

    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


@runtime_checkable
class CommandRunner(Protocol):  # pragma: no cover
    """Runs an argv list and returns its result."""

    def run(self, args: Sequence[str]) -> CommandResult:
        """Execute ``args`` without a shell.

        Returns:
            CommandResult, including non-zero exit statuses.

        Raises:
            OSError: If the program is missing or cannot be executed.
            subprocess.TimeoutExpired: If the program hangs.
        """
        ...


class SubprocessCommandRunner:
    """CommandRunner backed by subprocess.run."""

    def __init__(self, timeout: float = DEFAULT_COMMAND_TIMEOUT_S) -> None:
        self.timeout = timeout

    def __repr__(self) -> str:
        return f"SubprocessCommandRunner(timeout={self.timeout})"

    def run(self, args: Sequence[str]) -> CommandResult:
        logger.debug("Running command", argv=" ".join(args))
        completed = subprocess.run(  # nosec B603 - argv built from constants
            list(args),
            capture_output=True,
            text=True,
            timeout=self.timeout,
            check=False,
        )
        return CommandResult(
            returncode=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
        )
