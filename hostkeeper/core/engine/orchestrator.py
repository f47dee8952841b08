"""
Stage orchestrator — the maintenance run loop.

Flow per stage:
    invoke → ok? done
           → failed, ecosystem stage → classify + remediate
                                       → resolved, not terminal → invoke once more
           → failed, retry policy (unclassified or no ecosystem) → plain retries
    → apply the stage policy to the final result

An ``abort`` stage that fails ends the run. Everything else runs to the
end and lands in the summary.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime

from hostkeeper.adapters.base import ExecutionError
from hostkeeper.core.models.command import CommandResult
from hostkeeper.core.models.remediation import RemediationOutcome
from hostkeeper.core.models.stage import (
    FailureKind,
    FailurePolicy,
    Stage,
    StageOutcome,
    StageResult,
    StageStatus,
)
from hostkeeper.core.observability.events import EventSink, LoggingEventSink
from hostkeeper.core.services.remediation.execution.remediator import Remediator

logger = logging.getLogger(__name__)

# Exit codes of a maintenance run
EXIT_OK = 0
EXIT_WARNINGS = 1
EXIT_ABORTED = 2
EXIT_CONFIG_ERROR = 3
EXIT_INTERRUPTED = 130


def generate_run_id() -> str:
    """Generate a unique run ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short = uuid.uuid4().hex[:6]
    return f"run-{now}-{short}"


@dataclass
class RunSummary:
    """Result of one maintenance run."""

    run_id: str = ""
    outcomes: list[StageOutcome] = field(default_factory=list)
    aborted_at: str | None = None
    duration_ms: int = 0
    command_log: list[CommandResult] = field(default_factory=list)
    started_at: str = ""

    def _with(self, status: StageStatus) -> list[StageOutcome]:
        return [o for o in self.outcomes if o.status == status]

    @property
    def succeeded(self) -> list[StageOutcome]:
        return self._with(StageStatus.OK)

    @property
    def warnings(self) -> list[StageOutcome]:
        return self._with(StageStatus.WARNING)

    @property
    def failed(self) -> list[StageOutcome]:
        return self._with(StageStatus.FAILED)

    @property
    def skipped(self) -> list[StageOutcome]:
        return self._with(StageStatus.SKIPPED)

    @property
    def remediated(self) -> list[StageOutcome]:
        return [o for o in self.outcomes if o.remediated]

    @property
    def unresolved(self) -> list[StageOutcome]:
        return [o for o in self.outcomes if o.status in (StageStatus.WARNING, StageStatus.FAILED)]

    @property
    def aborted(self) -> bool:
        return self.aborted_at is not None

    @property
    def clean(self) -> bool:
        return not self.aborted and not self.unresolved

    @property
    def status(self) -> str:
        if self.aborted:
            return "aborted"
        if self.unresolved:
            return "warnings"
        return "ok"

    @property
    def exit_code(self) -> int:
        if self.aborted:
            return EXIT_ABORTED
        if self.unresolved:
            return EXIT_WARNINGS
        return EXIT_OK

    def render(self, tail_lines: int = 20) -> str:
        """Human-readable summary. Contains no timings, so clean runs compare equal."""
        lines: list[str] = []
        if self.aborted:
            lines.append(f"Run aborted at stage '{self.aborted_at}'")
        elif self.clean:
            lines.append(f"All {len(self.succeeded)} stage(s) completed without warnings")
        else:
            lines.append(
                f"{len(self.succeeded)} stage(s) ok, {len(self.unresolved)} with unresolved failures"
            )

        if self.succeeded:
            names = [
                f"{o.name} (remediated)" if o.remediated else o.name for o in self.succeeded
            ]
            lines.append("Succeeded: " + ", ".join(names))
        if self.skipped:
            lines.append("Skipped:")
            for o in self.skipped:
                lines.append(f"  - {o.name}: {o.message}")
        if self.unresolved:
            lines.append("Unresolved:")
            for o in self.unresolved:
                kind = o.failure_kind.value if o.failure_kind else "failure"
                lines.append(f"  - {o.name} [{kind}]: {o.message}")
                tail = "\n".join(o.output.rstrip().splitlines()[-tail_lines:])
                for line in tail.splitlines():
                    lines.append(f"      {line}")
        return "\n".join(lines)

    def to_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "started_at": self.started_at,
            "status": self.status,
            "exit_code": self.exit_code,
            "aborted_at": self.aborted_at,
            "duration_ms": self.duration_ms,
            "succeeded": len(self.succeeded),
            "warnings": len(self.warnings),
            "failed": len(self.failed),
            "skipped": len(self.skipped),
            "remediated": len(self.remediated),
            "stages": [o.to_dict() for o in self.outcomes],
            "commands": len(self.command_log),
        }


class Orchestrator:
    """Runs a stage sequence with classification, remediation and policy."""

    def __init__(
        self,
        stages: Sequence[Stage],
        remediator: Remediator,
        events: EventSink | None = None,
    ):
        self._stages = list(stages)
        self._remediator = remediator
        self._events = events or LoggingEventSink()

    @property
    def stages(self) -> list[Stage]:
        return list(self._stages)

    def run(self, run_id: str | None = None) -> RunSummary:
        summary = RunSummary(
            run_id=run_id or generate_run_id(),
            started_at=datetime.now(UTC).isoformat(),
        )
        start = time.monotonic()

        for stage in self._stages:
            outcome = self._run_stage(stage, summary.command_log)
            summary.outcomes.append(outcome)
            if outcome.status == StageStatus.FAILED:
                summary.aborted_at = stage.name
                self._events.error(f"Run aborted: {outcome.message}", stage.name)
                break

        summary.duration_ms = int((time.monotonic() - start) * 1000)
        logger.info(
            "Run %s finished: %s in %d ms", summary.run_id, summary.status, summary.duration_ms,
        )
        return summary

    # ── Internals ───────────────────────────────────────────────

    def _invoke(self, stage: Stage) -> tuple[StageResult, FailureKind | None]:
        try:
            raw = stage.action()
        except ExecutionError as e:
            logger.warning("Stage %s could not run: %s", stage.name, e)
            return StageResult(ok=False, output=str(e)), FailureKind.EXECUTION_ERROR
        result = raw if isinstance(raw, StageResult) else StageResult.from_command(raw)
        return result, (None if result.ok else FailureKind.TOOL_FAILURE)

    def _run_stage(self, stage: Stage, log: list[CommandResult]) -> StageOutcome:
        self._events.info(stage.description or stage.name, stage.name)
        start = time.monotonic()

        result, kind = self._invoke(stage)
        log.extend(result.commands)
        attempts = 1
        remediation: RemediationOutcome | None = None

        if result.skipped:
            self._events.warning(f"Skipped: {result.output}", stage.name)
            return StageOutcome(
                name=stage.name,
                status=StageStatus.SKIPPED,
                policy=stage.policy,
                duration_ms=int((time.monotonic() - start) * 1000),
                message=result.output,
                commands=result.commands,
            )

        commands = list(result.commands)
        plain_retry = False

        if kind == FailureKind.TOOL_FAILURE and stage.ecosystem is not None:
            remediation = self._remediator.classify_and_remediate(
                stage.ecosystem, result.output, result.variables,
            )
            log.extend(remediation.commands_run)
            if not remediation.matched:
                kind = FailureKind.UNCLASSIFIED
                self._events.warning("Failure did not match any known signature", stage.name)
                plain_retry = stage.policy == FailurePolicy.RETRY
            elif not remediation.resolved:
                kind = FailureKind.REMEDIATION_FAILURE
                self._events.error(
                    f"Remediation '{remediation.signature.label}' failed: {remediation.error}",
                    stage.name,
                )
            else:
                self._events.info(
                    f"Applied remediation: {remediation.signature.label}", stage.name,
                )

            if remediation.should_retry:
                attempts += 1
                result, kind = self._invoke(stage)
                log.extend(result.commands)
                commands.extend(result.commands)
        elif kind == FailureKind.TOOL_FAILURE and stage.policy == FailurePolicy.RETRY:
            plain_retry = True

        if plain_retry:
            for _ in range(stage.retries):
                attempts += 1
                self._events.info(f"Retrying (attempt {attempts})", stage.name)
                result, retry_kind = self._invoke(stage)
                log.extend(result.commands)
                commands.extend(result.commands)
                if result.ok:
                    kind = None
                    break
                if retry_kind == FailureKind.EXECUTION_ERROR:
                    kind = retry_kind
                    break

        return self._finish(stage, result, kind, attempts, remediation, commands, start)

    def _finish(
        self,
        stage: Stage,
        result: StageResult,
        kind: FailureKind | None,
        attempts: int,
        remediation: RemediationOutcome | None,
        commands: list[CommandResult],
        start: float,
    ) -> StageOutcome:
        outcome = StageOutcome(
            name=stage.name,
            status=StageStatus.OK,
            policy=stage.policy,
            attempts=attempts,
            duration_ms=int((time.monotonic() - start) * 1000),
            output=result.output,
            remediation=remediation,
            commands=commands,
        )

        if result.ok:
            if remediation is not None and remediation.resolved:
                outcome.message = f"completed after remediation ({remediation.signature.id})"
            elif attempts > 1:
                outcome.message = f"completed on attempt {attempts}"
            else:
                outcome.message = "completed"
            self._events.success(outcome.message.capitalize(), stage.name)
            return outcome

        outcome.failure_kind = kind or FailureKind.TOOL_FAILURE
        outcome.message = _failure_message(outcome.failure_kind, remediation, attempts)

        if stage.policy == FailurePolicy.ABORT:
            outcome.status = StageStatus.FAILED
            self._events.error(outcome.message, stage.name)
        else:
            outcome.status = StageStatus.WARNING
            self._events.warning(outcome.message, stage.name)
        return outcome


def _failure_message(
    kind: FailureKind,
    remediation: RemediationOutcome | None,
    attempts: int,
) -> str:
    if kind == FailureKind.EXECUTION_ERROR:
        return "could not run the tool"
    if kind == FailureKind.UNCLASSIFIED:
        return "failed with an unrecognized error"
    if kind == FailureKind.REMEDIATION_FAILURE and remediation is not None:
        return f"remediation '{remediation.signature.id}' failed: {remediation.error}"
    if remediation is not None and remediation.signature is not None:
        if remediation.signature.terminal:
            return f"needs attention: {remediation.signature.label}"
        return f"still failing after remediation ({remediation.signature.id})"
    if attempts > 1:
        return f"failed after {attempts} attempts"
    return "failed"
