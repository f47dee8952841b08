"""
Mock runner — universal test double for host commands.

Used by the test suite and by ``hostkeeper run --mock`` to exercise
the full maintenance flow without touching the host. Succeeds by
default; responses can be scripted per command prefix.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from hostkeeper.adapters.base import CommandRunner, ExecutionError
from hostkeeper.core.models.command import CommandResult, Invocation


class MockRunner(CommandRunner):
    """Scriptable runner.

    Responses are keyed by a command-line prefix (``"brew upgrade"``);
    the longest registered prefix of the executed command wins. Each
    key holds a queue: responses are consumed in order and the last one
    repeats forever.
    """

    def __init__(self, default_output: str = "[mock] executed"):
        self._default_output = default_output
        self._responses: dict[str, list[tuple[int, str]]] = {}
        self._missing: set[str] = set()
        self._call_log: list[Invocation] = []

    @property
    def name(self) -> str:
        return "mock"

    @property
    def call_log(self) -> list[Invocation]:
        """Every invocation this mock has received, in order."""
        return self._call_log

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    def commands(self) -> list[str]:
        """Executed command lines as plain strings."""
        return [" ".join(inv.argv) for inv in self._call_log]

    def calls_matching(self, prefix: str) -> list[Invocation]:
        return [inv for inv in self._call_log if " ".join(inv.argv).startswith(prefix)]

    def set_response(self, prefix: str, *responses: tuple[int, str]) -> None:
        """Script one or more ``(exit_code, output)`` responses for a prefix."""
        if not responses:
            raise ValueError("at least one response is required")
        self._responses[prefix] = list(responses)

    def set_failure(self, prefix: str, output: str = "mock failure", exit_code: int = 1) -> None:
        self.set_response(prefix, (exit_code, output))

    def set_missing(self, *executables: str) -> None:
        """Pretend these executables are not installed."""
        self._missing.update(executables)

    def which(self, executable: str) -> str | None:
        if executable in self._missing:
            return None
        return f"/usr/bin/{executable}"

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
        argv = (command, *args)
        self._call_log.append(Invocation(argv=argv, sudo=sudo))

        if command in self._missing:
            raise ExecutionError(argv, "executable not found on PATH")

        line = " ".join(argv)
        exit_code, output = 0, self._default_output
        matches = [p for p in self._responses if line.startswith(p)]
        if matches:
            queue = self._responses[max(matches, key=len)]
            exit_code, output = queue.pop(0) if len(queue) > 1 else queue[0]

        return CommandResult(command=argv, exit_code=exit_code, output=output)

    def reset(self) -> None:
        """Clear call log, scripted responses and missing tools."""
        self._call_log.clear()
        self._responses.clear()
        self._missing.clear()
