"""
Subprocess runner — the SINGLE PLACE where host commands are spawned.

stdout and stderr are merged (``stderr=STDOUT``) so captured output is
exactly what an interactive invocation would show, in order. A
non-zero exit or a timeout is a normal result; only a missing
executable or a spawn failure raises ``ExecutionError``.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import time
from collections.abc import Mapping, Sequence

from hostkeeper.adapters.base import CommandRunner, ExecutionError
from hostkeeper.core.models.command import TIMEOUT_EXIT_CODE, CommandResult

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 300.0


def _decode(data: str | bytes | None) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data


class SubprocessRunner(CommandRunner):
    """Run host commands with ``subprocess.run``.

    Sudo invariants:
    - Commands marked ``sudo`` get a ``sudo`` prefix unless already root
      or ``use_sudo`` is off.
    - sudo prompts on the controlling terminal, never through captured
      output; stdin is closed so no tool can block waiting on it.
    """

    def __init__(self, use_sudo: bool = True, default_timeout: float = DEFAULT_TIMEOUT):
        self._use_sudo = use_sudo
        self._default_timeout = default_timeout

    @property
    def name(self) -> str:
        return "subprocess"

    def which(self, executable: str) -> str | None:
        return shutil.which(executable)

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
        argv = [command, *args]
        if sudo and self._use_sudo and os.geteuid() != 0:
            argv = ["sudo", *argv]

        # Resolve up front so "not installed" is distinguishable from "failed"
        if os.sep not in argv[0] and shutil.which(argv[0]) is None:
            raise ExecutionError(argv, "executable not found on PATH")

        run_env = None
        if env:
            run_env = os.environ.copy()
            run_env.update(env)

        limit = timeout if timeout is not None else self._default_timeout
        logger.debug("Executing: %s (timeout=%ss)", " ".join(argv), limit)
        start = time.monotonic()

        try:
            proc = subprocess.run(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
                timeout=limit,
                cwd=cwd,
                env=run_env,
            )
        except subprocess.TimeoutExpired as e:
            elapsed_ms = int((time.monotonic() - start) * 1000)
            partial = _decode(e.output)
            if partial and not partial.endswith("\n"):
                partial += "\n"
            logger.warning("Command timed out after %ss: %s", limit, argv[0])
            return CommandResult(
                command=tuple(argv),
                exit_code=TIMEOUT_EXIT_CODE,
                output=f"{partial}timed out after {limit:g}s",
                duration_ms=elapsed_ms,
                timed_out=True,
            )
        except OSError as e:
            raise ExecutionError(argv, str(e)) from e

        elapsed_ms = int((time.monotonic() - start) * 1000)
        if proc.returncode != 0:
            logger.debug("Command exited %d: %s", proc.returncode, argv[0])

        return CommandResult(
            command=tuple(argv),
            exit_code=proc.returncode,
            output=proc.stdout or "",
            duration_ms=elapsed_ms,
        )
