"""
Runner base — the contract between hostkeeper and external tools.

Everything that spawns a process goes through a ``CommandRunner``.
Services never call ``subprocess`` directly, which keeps them testable
against ``MockRunner`` and lets ``--mock`` swap the whole host out.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence

from hostkeeper.core.models.command import CommandResult


class ExecutionError(Exception):
    """The tool could not be invoked at all (missing binary, spawn failure).

    A non-zero exit is NOT an execution error — that is a normal
    ``CommandResult`` and goes through failure classification.
    """

    def __init__(self, command: Sequence[str], reason: str):
        self.command = tuple(command)
        self.reason = reason
        super().__init__(f"{command[0] if command else '?'}: {reason}")


class CommandRunner(ABC):
    """Abstract base class for command runners.

    Runners return results for every exit status. They raise
    ``ExecutionError`` only when the process cannot be started.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Runner identifier (``subprocess``, ``mock``)."""

    @abstractmethod
    def run(
        self,
        command: str,
        args: Sequence[str] = (),
        timeout: float | None = None,
        *,
        sudo: bool = False,
        cwd: str | None = None,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        """Run ``command args...`` and capture merged output.

        Raises:
            ExecutionError: If the executable is missing or cannot spawn.
        """

    @abstractmethod
    def which(self, executable: str) -> str | None:
        """Locate an executable, ``None`` if it is not installed."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
