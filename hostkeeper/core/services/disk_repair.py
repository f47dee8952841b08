"""
Disk verify/repair loop.

Per unit:  Discovered → Verifying → Verified
                                  → VerifyFailed → (confirm) → Repairing → RepairSucceeded
                                                                         → RepairFailed
                                                 → (declined) → Skipped

Ordering: every disk is fully processed before its own partitions,
because repairing a disk can invalidate partition state.

Repair escalation is a bounded ladder:
    repair → [unmount → force-unmount] → repair (once more) → manual

Repair is only ever attempted on a unit whose verify just failed, and
at most twice.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from hostkeeper.adapters.diskutil import DiskUtility
from hostkeeper.core.models.command import CommandResult
from hostkeeper.core.models.disk import DiskReport, DiskState, DiskUnit, UnitReport
from hostkeeper.core.observability.events import EventSink, LoggingEventSink
from hostkeeper.core.reliability.escalation import EscalationLadder, Rung
from hostkeeper.core.services.prompts import Confirmer

logger = logging.getLogger(__name__)


def order_units(units: Iterable[DiskUnit]) -> list[DiskUnit]:
    """Disks in listing order, each followed by its partitions.

    Partitions whose parent is not in the listing go last.
    """
    units = list(units)
    disks = [u for u in units if not u.is_partition]
    known = {d.identifier for d in disks}

    children: dict[str, list[DiskUnit]] = {}
    orphans: list[DiskUnit] = []
    for unit in units:
        if not unit.is_partition:
            continue
        if unit.parent in known:
            children.setdefault(unit.parent, []).append(unit)
        else:
            orphans.append(unit)

    ordered: list[DiskUnit] = []
    for disk in disks:
        ordered.append(disk)
        ordered.extend(children.get(disk.identifier, []))
    ordered.extend(orphans)
    return ordered


class DiskVerifyRepairLoop:
    """Verify every unit, repair the ones that fail (if confirmed)."""

    def __init__(
        self,
        disks: DiskUtility,
        confirmer: Confirmer,
        events: EventSink | None = None,
        stage: str = "disk-health",
    ):
        self._disks = disks
        self._confirmer = confirmer
        self._events = events or LoggingEventSink()
        self._stage = stage

    def run(self, units: Iterable[DiskUnit] | None = None) -> DiskReport:
        """Process all units. Enumerates via the disk utility when none are given."""
        if units is None:
            units = self._disks.enumerate()

        report = DiskReport()
        for unit in order_units(units):
            report.units.append(self.process(unit))

        if report.all_healthy:
            self._events.success(f"All {len(report.units)} disk unit(s) healthy", self._stage)
        return report

    def process(self, unit: DiskUnit) -> UnitReport:
        report = UnitReport(unit=unit)
        report.advance(DiskState.VERIFYING)
        self._events.info(f"Verifying {unit.identifier}", self._stage)

        report.verify = self._disks.verify(unit)
        if report.verify.ok:
            report.advance(DiskState.VERIFIED)
            return report

        report.advance(DiskState.VERIFY_FAILED)
        self._events.warning(f"{unit.identifier} failed verification", self._stage)

        if not self._confirmer.confirm(f"Repair {unit.kind.value} {unit.identifier}?"):
            report.advance(DiskState.SKIPPED)
            report.note = "repair declined"
            self._events.warning(f"Skipping repair of {unit.identifier}", self._stage)
            return report

        self._repair(report)
        return report

    def _repair(self, report: UnitReport) -> None:
        unit = report.unit
        report.advance(DiskState.REPAIRING)

        def attempt() -> CommandResult:
            result = self._disks.repair(unit)
            report.repairs.append(result)
            return result

        def release_then_attempt() -> CommandResult:
            release = EscalationLadder(
                [
                    Rung("unmount", lambda: self._disks.unmount(unit)),
                    Rung("force-unmount", lambda: self._disks.unmount(unit, force=True)),
                ],
                name=f"unmount {unit.identifier}",
            ).climb()
            report.escalation.extend(release.results)
            if release.exhausted:
                report.note = "could not unmount, retried in place"
            return attempt()

        climb = EscalationLadder(
            [Rung("repair", attempt), Rung("repair-retry", release_then_attempt)],
            name=f"repair {unit.identifier}",
        ).climb()

        if climb.succeeded:
            report.advance(DiskState.REPAIR_SUCCEEDED)
            self._events.success(f"Repaired {unit.identifier}", self._stage)
        else:
            report.advance(DiskState.REPAIR_FAILED)
            report.note = report.note or "manual intervention required"
            self._events.error(
                f"Repair of {unit.identifier} failed twice, manual intervention required",
                self._stage,
            )
