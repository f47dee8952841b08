"""
Disk models — units reported by the disk utility and their repair state.

Units are discovered fresh on every run; nothing here is persisted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from pydantic import BaseModel, ConfigDict

from hostkeeper.core.models.command import CommandResult


class DiskKind(StrEnum):
    DISK = "disk"
    PARTITION = "partition"


class DiskUnit(BaseModel):
    """A disk or partition identifier (``disk0``, ``disk1s2``)."""

    model_config = ConfigDict(frozen=True)

    identifier: str
    kind: DiskKind = DiskKind.DISK
    parent: str | None = None   # owning disk identifier, lookup only

    @property
    def is_partition(self) -> bool:
        return self.kind == DiskKind.PARTITION


class DiskState(StrEnum):
    """Verify/repair state machine.

    Discovered → Verifying → Verified
                           → VerifyFailed → Repairing → RepairSucceeded
                                                      → RepairFailed
                                          → Skipped (repair declined)
    """

    DISCOVERED = "discovered"
    VERIFYING = "verifying"
    VERIFIED = "verified"
    VERIFY_FAILED = "verify_failed"
    REPAIRING = "repairing"
    REPAIR_SUCCEEDED = "repair_succeeded"
    REPAIR_FAILED = "repair_failed"
    SKIPPED = "skipped"


HEALTHY_STATES = frozenset({DiskState.VERIFIED, DiskState.REPAIR_SUCCEEDED})

_TRANSITIONS: dict[DiskState, frozenset[DiskState]] = {
    DiskState.DISCOVERED: frozenset({DiskState.VERIFYING}),
    DiskState.VERIFYING: frozenset({DiskState.VERIFIED, DiskState.VERIFY_FAILED}),
    DiskState.VERIFY_FAILED: frozenset({DiskState.REPAIRING, DiskState.SKIPPED}),
    DiskState.REPAIRING: frozenset({DiskState.REPAIR_SUCCEEDED, DiskState.REPAIR_FAILED}),
}


class InvalidTransition(RuntimeError):
    """Raised when the disk state machine is driven out of order."""


@dataclass
class UnitReport:
    """Everything that happened to one unit during a run."""

    unit: DiskUnit
    state: DiskState = DiskState.DISCOVERED
    history: list[DiskState] = field(default_factory=lambda: [DiskState.DISCOVERED])
    verify: CommandResult | None = None
    repairs: list[CommandResult] = field(default_factory=list)
    escalation: list[CommandResult] = field(default_factory=list)
    note: str = ""

    def advance(self, new_state: DiskState) -> None:
        allowed = _TRANSITIONS.get(self.state, frozenset())
        if new_state not in allowed:
            raise InvalidTransition(
                f"{self.unit.identifier}: {self.state.value} → {new_state.value}"
            )
        self.state = new_state
        self.history.append(new_state)

    @property
    def healthy(self) -> bool:
        return self.state in HEALTHY_STATES

    def to_dict(self) -> dict:
        return {
            "identifier": self.unit.identifier,
            "kind": self.unit.kind.value,
            "parent": self.unit.parent,
            "state": self.state.value,
            "repair_attempts": len(self.repairs),
            "note": self.note,
        }


@dataclass
class DiskReport:
    """Aggregate outcome of the verify/repair loop."""

    units: list[UnitReport] = field(default_factory=list)

    @property
    def all_healthy(self) -> bool:
        return all(u.healthy for u in self.units)

    @property
    def manual_intervention(self) -> list[UnitReport]:
        return [u for u in self.units if u.state == DiskState.REPAIR_FAILED]

    @property
    def declined(self) -> list[UnitReport]:
        return [u for u in self.units if u.state == DiskState.SKIPPED]

    def render(self) -> str:
        lines = []
        for u in self.units:
            indent = "  " if u.unit.is_partition else ""
            suffix = f" ({u.note})" if u.note else ""
            lines.append(f"{indent}{u.unit.identifier}: {u.state.value}{suffix}")
        if self.manual_intervention:
            lines.append("")
            lines.append("Manual intervention required:")
            for u in self.manual_intervention:
                last = u.repairs[-1].tail(5) if u.repairs else ""
                lines.append(f"  - {u.unit.identifier}")
                for line in last.splitlines():
                    lines.append(f"      {line}")
        return "\n".join(lines)

    def to_dict(self) -> dict:
        return {
            "all_healthy": self.all_healthy,
            "units": [u.to_dict() for u in self.units],
            "manual_intervention": [u.unit.identifier for u in self.manual_intervention],
        }
