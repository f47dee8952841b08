"""
Command models — what gets run and what came back.

An ``Invocation`` is a requested command line. A ``CommandResult`` is
the immutable record of running one. Runners produce results, every
other component only reads them.
"""

from __future__ import annotations

import shlex
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field

# Exit code reported for commands killed by their timeout (coreutils convention)
TIMEOUT_EXIT_CODE = 124


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class Invocation(BaseModel):
    """A command line to execute, optionally as root."""

    model_config = ConfigDict(frozen=True)

    argv: tuple[str, ...]
    sudo: bool = False

    @property
    def display(self) -> str:
        prefix = "sudo " if self.sudo else ""
        return prefix + shlex.join(self.argv)


class CommandResult(BaseModel):
    """Outcome of a single external command.

    ``output`` holds stdout and stderr merged in the order the process
    wrote them, which is what the failure classifier inspects.
    """

    model_config = ConfigDict(frozen=True)

    command: tuple[str, ...]
    exit_code: int
    output: str = ""
    duration_ms: int = 0
    timed_out: bool = False
    started_at: str = Field(default_factory=_now_iso)

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and not self.timed_out

    @property
    def display(self) -> str:
        return shlex.join(self.command)

    def tail(self, lines: int = 20) -> str:
        """Last ``lines`` lines of output, for human-facing reports."""
        parts = self.output.rstrip().splitlines()
        return "\n".join(parts[-lines:])

    @classmethod
    def internal(
        cls,
        label: str,
        *detail: str,
        ok: bool = True,
        output: str = "",
    ) -> CommandResult:
        """Record an in-process step (manifest edit, no-op) as a result.

        Keeps remediation logs uniform: every step shows up as a
        ``CommandResult`` whether or not a process was spawned.
        """
        return cls(
            command=(f"<{label}>", *detail),
            exit_code=0 if ok else 1,
            output=output,
        )
