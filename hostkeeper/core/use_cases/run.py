"""
Run use case — one complete maintenance run.

Wires the collaborators (runner, prober, disk loop, remediator), builds
the stage sequence from configuration, runs it, and records the result
in the audit ledger. The full vertical slice from CLI flags to audited
run summary.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path

from hostkeeper.adapters.activation import VersionManagerActivator
from hostkeeper.adapters.base import CommandRunner
from hostkeeper.adapters.diskutil import DiskutilAdapter
from hostkeeper.adapters.mock import MockRunner
from hostkeeper.adapters.shell.command import SubprocessRunner
from hostkeeper.core.engine.orchestrator import Orchestrator, RunSummary, generate_run_id
from hostkeeper.core.models.config import MaintenanceConfig
from hostkeeper.core.observability.events import EventSink, LoggingEventSink
from hostkeeper.core.persistence.audit import AuditEntry, AuditWriter
from hostkeeper.core.services.connectivity import ConnectivityProber, http_check, ping_check
from hostkeeper.core.services.disk_repair import DiskVerifyRepairLoop
from hostkeeper.core.services.prompts import Confirmer, choose_confirmer
from hostkeeper.core.services.remediation.execution.remediator import (
    Remediator,
    default_variables,
)
from hostkeeper.core.services.stage_actions import StageActions
from hostkeeper.core.services.stage_catalog import build_stages

logger = logging.getLogger(__name__)

# A plausible host for ``--mock`` runs: one internal disk, no outdated packages
_MOCK_DISK_LISTING = """\
/dev/disk0 (internal, physical):
   #:                       TYPE NAME                    SIZE       IDENTIFIER
   0:      GUID_partition_scheme                        *500.3 GB   disk0
   1:                        EFI EFI                     314.6 MB   disk0s1
   2:                 Apple_APFS Container disk1         500.0 GB   disk0s2
"""


def mock_host_runner() -> MockRunner:
    """``MockRunner`` scripted to look like a healthy host."""
    runner = MockRunner()
    runner.set_response("diskutil list -plist", (0, "plist output unavailable in mock mode"))
    runner.set_response("diskutil list", (0, _MOCK_DISK_LISTING))
    runner.set_response("python3 -m pip list", (0, "[]"))
    return runner


def build_runner(config: MaintenanceConfig, mock: bool = False) -> CommandRunner:
    if mock:
        return mock_host_runner()
    return SubprocessRunner(
        use_sudo=config.use_sudo,
        default_timeout=config.stages.default_timeout,
    )


def build_prober(
    config: MaintenanceConfig,
    runner: CommandRunner,
    events: EventSink,
    sleep: Callable[[float], None] = time.sleep,
) -> ConnectivityProber:
    settings = config.connectivity
    if settings.method == "http" and not isinstance(runner, MockRunner):
        check = http_check(settings.timeout)
    else:
        check = ping_check(runner, settings.timeout)
    return ConnectivityProber(check, policy=settings.policy, sleep=sleep, events=events)


def build_disk_loop(
    config: MaintenanceConfig,
    runner: CommandRunner,
    confirmer: Confirmer,
    events: EventSink,
) -> DiskVerifyRepairLoop:
    disks = DiskutilAdapter(
        runner,
        timeout=config.timeout_for("disk-health"),
        include=config.disks.include,
    )
    return DiskVerifyRepairLoop(disks, confirmer, events=events)


def build_remediator(config: MaintenanceConfig, runner: CommandRunner) -> Remediator:
    activator = VersionManagerActivator(runner, timeout=config.stages.default_timeout)
    return Remediator(
        runner,
        activator,
        variables=default_variables(config),
        timeout=config.stages.default_timeout,
    )


@dataclass
class RunResult:
    """Result of a maintenance run."""

    summary: RunSummary | None = None
    audit_path: Path | None = None
    error: str | None = None

    @property
    def exit_code(self) -> int:
        return self.summary.exit_code if self.summary else 1

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        result: dict = {"audit_path": str(self.audit_path) if self.audit_path else None}
        if self.summary:
            result["summary"] = self.summary.to_dict()
        return result


def run_maintenance(
    config: MaintenanceConfig,
    *,
    runner: CommandRunner | None = None,
    mock: bool = False,
    auto_repair: bool | None = None,
    interactive: bool = False,
    prompt: Confirmer | None = None,
    only: Iterable[str] = (),
    skip: Iterable[str] = (),
    events: EventSink | None = None,
    audit: bool = True,
    sleep: Callable[[float], None] = time.sleep,
) -> RunResult:
    """Execute the maintenance sequence.

    Args:
        config: Loaded configuration.
        runner: Pre-built runner (tests); otherwise built from config.
        mock: Use the scripted mock host instead of real commands.
        auto_repair: Override ``config.auto_repair``.
        interactive: Attached to a terminal, ``prompt`` may ask.
        prompt: Confirmer that asks the operator.
        only: Restrict the run to these stages.
        skip: Skip these stages in addition to ``stages.skip``.
        events: Where progress goes (default: logging).
        audit: Append the summary to the audit ledger.
        sleep: Delay function for connectivity retries.

    Raises:
        UnknownStageError: If ``only``/``skip``/``stages.skip`` name an
            unknown stage.
    """
    events = events or LoggingEventSink()
    runner = runner or build_runner(config, mock)

    confirmer = choose_confirmer(
        auto_repair=config.auto_repair if auto_repair is None else auto_repair,
        interactive=interactive,
        prompt=prompt,
        unattended_default=config.disks.repair_when_unattended,
    )

    actions = StageActions(
        runner,
        config,
        prober=build_prober(config, runner, events, sleep),
        disk_loop=build_disk_loop(config, runner, confirmer, events),
    )
    stages = build_stages(actions, config, only=only, skip=skip)
    orchestrator = Orchestrator(stages, build_remediator(config, runner), events)

    run_id = generate_run_id()
    logger.info("Starting run %s with %d stage(s) on %s runner", run_id, len(stages), runner.name)
    summary = orchestrator.run(run_id)

    result = RunResult(summary=summary)
    if audit and config.audit.enabled and not mock:
        writer = AuditWriter(Path(config.audit.path))
        writer.write(audit_entry(summary))
        result.audit_path = writer.path
    return result


def audit_entry(summary: RunSummary) -> AuditEntry:
    """Condense a run summary into a ledger entry."""
    return AuditEntry(
        timestamp=summary.started_at,
        run_id=summary.run_id,
        status=summary.status,
        stages_total=len(summary.outcomes),
        succeeded=len(summary.succeeded),
        warnings=len(summary.unresolved),
        skipped=len(summary.skipped),
        remediated=[o.name for o in summary.remediated],
        aborted_at=summary.aborted_at,
        duration_ms=summary.duration_ms,
        errors=[f"{o.name}: {o.message}" for o in summary.unresolved],
        context={"commands": len(summary.command_log)},
    )
