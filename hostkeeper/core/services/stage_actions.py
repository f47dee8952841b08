"""
Stage actions — what each maintenance stage actually does.

Every action returns a ``StageResult``. Actions never classify or
remediate; they run their commands, stop at the first failing one (so
the failure text is the one that matters), and report.

A tool that is not installed yields a skipped result, never a failure.
``ExecutionError`` is left to propagate: the orchestrator turns it into
an ``execution_error`` outcome.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import date
from pathlib import Path

from hostkeeper.adapters.base import CommandRunner
from hostkeeper.adapters.diskutil import DiskListingError
from hostkeeper.core.models.command import CommandResult
from hostkeeper.core.models.config import MaintenanceConfig
from hostkeeper.core.models.stage import StageResult
from hostkeeper.core.services.connectivity import ConnectivityProber
from hostkeeper.core.services.disk_repair import DiskVerifyRepairLoop

logger = logging.getLogger(__name__)

NOTIFY_SCRIPT = 'display notification "System maintenance complete" with title "hostkeeper"'


@dataclass(frozen=True)
class Cmd:
    """One command of a stage.

    ``check=False`` marks informational commands whose exit status does
    not decide the stage (``tmutil latestbackup`` without any backup).
    """

    argv: tuple[str, ...]
    sudo: bool = False
    check: bool = True


def cmd(*argv: str, sudo: bool = False, check: bool = True) -> Cmd:
    return Cmd(argv=tuple(argv), sudo=sudo, check=check)


def run_sequence(
    runner: CommandRunner,
    commands: Sequence[Cmd],
    timeout: float | None,
    *,
    stop_on_failure: bool = True,
) -> StageResult:
    """Run ``commands`` in order and merge their results.

    With ``stop_on_failure`` (the default) the first checked failure
    ends the sequence and its output becomes the stage output, which is
    what classification inspects. Without it every command runs and the
    stage fails if any checked command failed.
    """
    results: list[CommandResult] = []
    failed: list[CommandResult] = []
    for c in commands:
        result = runner.run(c.argv[0], c.argv[1:], timeout, sudo=c.sudo)
        results.append(result)
        if result.ok or not c.check:
            continue
        failed.append(result)
        if stop_on_failure:
            break

    if failed:
        output = "\n".join(r.output for r in failed)
    else:
        output = "\n".join(r.output for r in results if r.output)
    return StageResult(ok=not failed, output=output, commands=results)


def parse_outdated(output: str) -> list[str]:
    """Package names from ``pip list --outdated --format=json``.

    pip may print warnings around the JSON document; the document is the
    line that starts with ``[``. Editable installs are left alone.

    Raises:
        ValueError: If the JSON line is malformed.
    """
    for line in output.splitlines():
        line = line.strip()
        if not line.startswith("["):
            continue
        try:
            data = json.loads(line)
        except json.JSONDecodeError as e:
            raise ValueError(f"malformed pip list output: {e}") from e
        return [
            entry["name"] for entry in data
            if isinstance(entry, dict) and entry.get("name")
            and not entry.get("editable_project_location")
        ]
    return []


class StageActions:
    """The action of every catalogued stage, bound to one run's collaborators."""

    def __init__(
        self,
        runner: CommandRunner,
        config: MaintenanceConfig,
        prober: ConnectivityProber,
        disk_loop: DiskVerifyRepairLoop,
        today: Callable[[], date] = date.today,
    ):
        self._runner = runner
        self._config = config
        self._prober = prober
        self._disk_loop = disk_loop
        self._today = today

    # ── helpers ─────────────────────────────────────────────────

    def _missing(self, *tools: str) -> StageResult | None:
        for tool in tools:
            if self._runner.which(tool) is None:
                logger.info("%s is not installed", tool)
                return StageResult.skip(f"{tool} not installed")
        return None

    def _sequence(self, stage: str, *commands: Cmd, stop_on_failure: bool = True) -> StageResult:
        return run_sequence(
            self._runner, commands, self._config.timeout_for(stage),
            stop_on_failure=stop_on_failure,
        )

    # ── stages ──────────────────────────────────────────────────

    def connectivity(self) -> StageResult:
        settings = self._config.connectivity
        report = self._prober.run(settings.hosts, settings.attempts, settings.delay)
        return StageResult(ok=report.ok, output=report.render(), details=report.to_dict())

    def backup(self) -> StageResult:
        backup = self._config.backup
        if not backup.configured:
            return StageResult.skip("backup source/target not configured")
        if skipped := self._missing("rsync"):
            return skipped

        source = str(Path(backup.source).expanduser()).rstrip("/")
        target = str(Path(backup.target).expanduser()).rstrip("/")
        stamp = self._today().strftime("%Y%m%d")
        excludes = [arg for pattern in backup.excludes for arg in ("--exclude", pattern)]
        return self._sequence(
            "backup",
            cmd("rsync", "-a", *excludes, f"{source}/", f"{target}/{backup.name}_{stamp}/"),
        )

    def disk_space(self) -> StageResult:
        if skipped := self._missing("df"):
            return skipped
        return self._sequence("disk-space", cmd("df", "-H"))

    def disk_health(self) -> StageResult:
        if not self._config.disks.enabled:
            return StageResult.skip("disk checks disabled")
        if skipped := self._missing("diskutil"):
            return skipped
        try:
            report = self._disk_loop.run()
        except DiskListingError as e:
            return StageResult(ok=False, output=f"could not list disks: {e}")

        commands: list[CommandResult] = []
        for unit in report.units:
            if unit.verify is not None:
                commands.append(unit.verify)
            commands.extend(unit.repairs)
            commands.extend(unit.escalation)
        return StageResult(
            ok=report.all_healthy,
            output=report.render(),
            commands=commands,
            details=report.to_dict(),
        )

    def system_integrity(self) -> StageResult:
        if skipped := self._missing("csrutil"):
            return skipped
        return self._sequence("system-integrity", cmd("csrutil", "status"))

    def os_update(self) -> StageResult:
        if skipped := self._missing("softwareupdate"):
            return skipped
        return self._sequence("os-update", cmd("softwareupdate", "-i", "-a", sudo=True))

    def homebrew(self) -> StageResult:
        if skipped := self._missing("brew"):
            return skipped
        return self._sequence(
            "homebrew",
            cmd("brew", "update"),
            cmd("brew", "upgrade"),
            cmd("brew", "upgrade", "--cask"),
            cmd("brew", "cleanup", "-s"),
        )

    def app_store(self) -> StageResult:
        if skipped := self._missing("mas"):
            return skipped
        return self._sequence("app-store", cmd("mas", "upgrade"))

    def ruby_gems(self) -> StageResult:
        if skipped := self._missing("gem"):
            return skipped
        return self._sequence("ruby-gems", cmd("gem", "update"))

    def npm_globals(self) -> StageResult:
        if skipped := self._missing("npm"):
            return skipped
        return self._sequence("npm-globals", cmd("npm", "update", "-g"))

    def python_packages(self) -> StageResult:
        """Upgrade outdated packages, inside the isolated venv once it exists."""
        venv_python = self._config.venv_path / "bin" / "python"
        if venv_python.exists():
            interpreter, scope = str(venv_python), []
        else:
            interpreter, scope = self._config.python.interpreter, ["--user"]
            if skipped := self._missing(interpreter):
                return skipped

        timeout = self._config.timeout_for("python-packages")
        listing = self._runner.run(
            interpreter, ["-m", "pip", "list", "--outdated", "--format=json"], timeout,
        )
        if not listing.ok:
            return StageResult(ok=False, output=listing.output, commands=[listing])
        try:
            names = parse_outdated(listing.output)
        except ValueError as e:
            return StageResult(ok=False, output=str(e), commands=[listing])

        if not names:
            return StageResult(
                ok=True,
                output="All Python packages are up to date",
                commands=[listing],
                variables={"packages": []},
            )

        upgrade = self._runner.run(
            interpreter, ["-m", "pip", "install", "--upgrade", *scope, *names], timeout,
        )
        return StageResult(
            ok=upgrade.ok,
            output=upgrade.output,
            commands=[listing, upgrade],
            variables={"packages": names},
        )

    def cache_cleanup(self) -> StageResult:
        cleanup = self._config.cleanup
        commands: list[Cmd] = []
        if cleanup.flush_dns and self._runner.which("dscacheutil"):
            commands.append(cmd("dscacheutil", "-flushcache", sudo=True))
            commands.append(cmd("killall", "-HUP", "mDNSResponder", sudo=True))
        if self._runner.which("brew"):
            commands.append(cmd("brew", "cleanup"))
        if self._runner.which("npm"):
            commands.append(cmd("npm", "cache", "clean", "--force"))
        for directory in cleanup.log_dirs:
            for pattern in cleanup.log_patterns:
                commands.append(cmd(
                    "find", str(Path(directory).expanduser()), "-maxdepth", "1",
                    "-type", "f", "-name", pattern, "-delete",
                    sudo=True,
                ))

        if not commands:
            return StageResult.skip("nothing to clean")
        return self._sequence("cache-cleanup", *commands, stop_on_failure=False)

    def storage_optimize(self) -> StageResult:
        if skipped := self._missing("tmutil"):
            return skipped
        storage = self._config.storage
        return self._sequence(
            "storage-optimize",
            cmd("tmutil", "latestbackup", check=False),
            cmd(
                "tmutil", "thinLocalSnapshots", "/",
                str(storage.thin_bytes), str(storage.urgency),
                sudo=True,
            ),
        )

    def trash_cleanup(self) -> StageResult:
        dirs = [Path(d).expanduser() for d in self._config.cleanup.trash_dirs]
        present = [d for d in dirs if d.is_dir()]
        if not present:
            return StageResult(ok=True, output="no trash to empty")
        return self._sequence(
            "trash-cleanup",
            *(cmd("find", str(d), "-mindepth", "1", "-delete") for d in present),
            stop_on_failure=False,
        )

    def notify(self) -> StageResult:
        if not self._config.notify:
            return StageResult.skip("notifications disabled")
        if skipped := self._missing("osascript"):
            return skipped
        return self._sequence("notify", cmd("osascript", "-e", NOTIFY_SCRIPT))
