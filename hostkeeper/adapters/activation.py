"""
Environment activation — make a runtime version the active one.

Remediation asks for "node 18 active" or "ruby 3.2.2 active" and this
collaborator fulfils it through the runtime's version manager. Shell
startup files are never touched: version managers keep their own
global-version state.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod

from hostkeeper.adapters.base import CommandRunner, ExecutionError
from hostkeeper.core.models.command import CommandResult

logger = logging.getLogger(__name__)

_SAFE_VERSION = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._/*-]*$")

# runtime → (version manager, command templates)
VERSION_MANAGERS: dict[str, tuple[str, list[list[str]]]] = {
    "node": (
        "nvm",
        [[
            "bash", "-c",
            '. "${NVM_DIR:-$HOME/.nvm}/nvm.sh" && nvm install "$1" && nvm alias default "$1"',
            "nvm", "{version}",
        ]],
    ),
    "ruby": (
        "rbenv",
        [
            ["rbenv", "install", "--skip-existing", "{version}"],
            ["rbenv", "global", "{version}"],
        ],
    ),
    "python": (
        "pyenv",
        [
            ["pyenv", "install", "--skip-existing", "{version}"],
            ["pyenv", "global", "{version}"],
        ],
    ),
}


class ActivationError(ValueError):
    """The request cannot be fulfilled (unknown runtime, unsafe version)."""


class EnvironmentActivator(ABC):
    """Capability: ensure a runtime version is installed and active."""

    @abstractmethod
    def ensure_runtime(self, runtime: str, version: str) -> list[CommandResult]:
        """Returns every command run; the last one failing means it did not work."""


class VersionManagerActivator(EnvironmentActivator):
    """nvm / rbenv / pyenv through a ``CommandRunner``."""

    def __init__(self, runner: CommandRunner, timeout: float = 1800.0):
        self._runner = runner
        self._timeout = timeout

    def ensure_runtime(self, runtime: str, version: str) -> list[CommandResult]:
        if runtime not in VERSION_MANAGERS:
            raise ActivationError(f"No version manager known for runtime '{runtime}'")
        if not _SAFE_VERSION.match(version):
            raise ActivationError(f"Refusing suspicious version string: {version!r}")

        manager, templates = VERSION_MANAGERS[runtime]
        logger.info("Activating %s %s via %s", runtime, version, manager)

        results: list[CommandResult] = []
        for template in templates:
            argv = [part.replace("{version}", version) for part in template]
            try:
                result = self._runner.run(argv[0], argv[1:], self._timeout)
            except ExecutionError as e:
                results.append(CommandResult(
                    command=tuple(argv), exit_code=127, output=str(e),
                ))
                break
            results.append(result)
            if not result.ok:
                break
        return results
