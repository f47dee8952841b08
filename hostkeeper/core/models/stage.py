"""
Stage models — the unit of the maintenance sequence.

A ``Stage`` names an action and the policy applied when it fails.
Actions return a ``StageResult`` (or a bare ``CommandResult``, which
the orchestrator normalizes). ``StageOutcome`` is the orchestrator's
verdict after remediation and retries.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from hostkeeper.core.models.command import CommandResult
from hostkeeper.core.models.remediation import Ecosystem, RemediationOutcome


class FailurePolicy(StrEnum):
    """What a failed stage does to the rest of the run."""

    ABORT = "abort"
    WARN = "warn"      # warn-and-continue
    RETRY = "retry"    # retry-then-warn


class StageStatus(StrEnum):
    OK = "ok"
    WARNING = "warning"
    FAILED = "failed"
    SKIPPED = "skipped"


class FailureKind(StrEnum):
    """Error taxonomy surfaced in the run summary."""

    EXECUTION_ERROR = "execution_error"          # tool could not be invoked
    TOOL_FAILURE = "tool_failure"                # tool ran, exited non-zero
    UNCLASSIFIED = "unclassified"                # no signature matched
    REMEDIATION_FAILURE = "remediation_failure"  # a remediation step failed


@dataclass
class StageResult:
    """What a stage action reports back."""

    ok: bool
    output: str = ""
    commands: list[CommandResult] = field(default_factory=list)
    skipped: bool = False
    variables: dict[str, Any] = field(default_factory=dict)
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_command(cls, result: CommandResult) -> StageResult:
        return cls(ok=result.ok, output=result.output, commands=[result])

    @classmethod
    def skip(cls, reason: str) -> StageResult:
        return cls(ok=True, output=reason, skipped=True)


ActionResult = StageResult | CommandResult


@dataclass(frozen=True)
class Stage:
    """One step of the static maintenance sequence."""

    name: str
    action: Callable[[], ActionResult]
    policy: FailurePolicy = FailurePolicy.WARN
    ecosystem: Ecosystem | None = None
    description: str = ""
    retries: int = 1


@dataclass
class StageOutcome:
    """Final verdict for one stage."""

    name: str
    status: StageStatus
    policy: FailurePolicy
    attempts: int = 1
    duration_ms: int = 0
    message: str = ""
    output: str = ""
    failure_kind: FailureKind | None = None
    remediation: RemediationOutcome | None = None
    commands: list[CommandResult] = field(default_factory=list)

    @property
    def remediated(self) -> bool:
        return (
            self.status == StageStatus.OK
            and self.remediation is not None
            and self.remediation.resolved
        )

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "status": self.status.value,
            "policy": self.policy.value,
            "attempts": self.attempts,
            "duration_ms": self.duration_ms,
            "message": self.message,
            "failure_kind": self.failure_kind.value if self.failure_kind else None,
            "remediation": self.remediation.to_dict() if self.remediation else None,
            "output": self.output if self.status in (StageStatus.WARNING, StageStatus.FAILED) else "",
        }
