"""
Disk utility adapter — enumerate, verify, repair and unmount disk units.

The verify/repair loop only relies on three things from here: a list of
``DiskUnit``s, exit code 0 meaning healthy, and non-zero meaning not.
Command syntax is macOS ``diskutil``.
"""

from __future__ import annotations

import logging
import plistlib
import re
from abc import ABC, abstractmethod
from collections.abc import Iterable
from xml.parsers.expat import ExpatError

from hostkeeper.adapters.base import CommandRunner
from hostkeeper.core.models.command import CommandResult
from hostkeeper.core.models.disk import DiskKind, DiskUnit

logger = logging.getLogger(__name__)

_DEVICE_HEADER = re.compile(r"^/dev/(disk\d+)\b")
_PARTITION_ID = re.compile(r"\b(disk\d+s\d+)\s*$")


class DiskListingError(RuntimeError):
    """The disk utility could not produce a usable listing."""


class DiskUtility(ABC):
    """Collaborator contract for the verify/repair loop."""

    @abstractmethod
    def enumerate(self) -> list[DiskUnit]:
        """Disks and partitions, disks first in listing order."""

    @abstractmethod
    def verify(self, unit: DiskUnit) -> CommandResult: ...

    @abstractmethod
    def repair(self, unit: DiskUnit) -> CommandResult: ...

    @abstractmethod
    def unmount(self, unit: DiskUnit, force: bool = False) -> CommandResult: ...


# ── Listing parsers (pure) ──────────────────────────────────────

def parse_plist_listing(output: str) -> list[DiskUnit]:
    """Parse ``diskutil list -plist``.

    Reads ``AllDisksAndPartitions``; partitions come from both the
    ``Partitions`` and ``APFSVolumes`` arrays of each whole disk.
    """
    start = output.find("<?xml")
    end = output.rfind("</plist>")
    if start == -1 or end == -1:
        raise DiskListingError("no plist document in disk listing output")

    try:
        data = plistlib.loads(output[start:end + len("</plist>")].encode("utf-8"))
    except (ExpatError, ValueError) as e:
        raise DiskListingError(f"unparseable disk listing: {e}") from e

    units: list[DiskUnit] = []
    for entry in data.get("AllDisksAndPartitions", []):
        disk_id = entry.get("DeviceIdentifier")
        if not disk_id:
            continue
        units.append(DiskUnit(identifier=disk_id, kind=DiskKind.DISK))
        for child in [*entry.get("Partitions", []), *entry.get("APFSVolumes", [])]:
            child_id = child.get("DeviceIdentifier")
            if child_id:
                units.append(DiskUnit(
                    identifier=child_id, kind=DiskKind.PARTITION, parent=disk_id,
                ))
    return units


def parse_text_listing(output: str) -> list[DiskUnit]:
    """Parse plain ``diskutil list`` output.

    Whole disks are the ``/dev/diskN`` header lines; partitions are the
    rows under them whose last column is a ``diskNsM`` identifier.
    """
    units: list[DiskUnit] = []
    current: str | None = None
    for line in output.splitlines():
        header = _DEVICE_HEADER.match(line)
        if header:
            current = header.group(1)
            units.append(DiskUnit(identifier=current, kind=DiskKind.DISK))
            continue
        part = _PARTITION_ID.search(line)
        if part and current:
            units.append(DiskUnit(
                identifier=part.group(1), kind=DiskKind.PARTITION, parent=current,
            ))
    return units


def filter_units(units: Iterable[DiskUnit], include: list[str]) -> list[DiskUnit]:
    """Keep only the listed disks (and their partitions). Empty = keep all."""
    if not include:
        return list(units)
    wanted = set(include)
    return [
        u for u in units
        if u.identifier in wanted or (u.parent is not None and u.parent in wanted)
    ]


# ── diskutil binding ────────────────────────────────────────────

class DiskutilAdapter(DiskUtility):
    """macOS ``diskutil`` through a ``CommandRunner``."""

    def __init__(
        self,
        runner: CommandRunner,
        timeout: float = 1800.0,
        include: list[str] | None = None,
    ):
        self._runner = runner
        self._timeout = timeout
        self._include = include or []

    def enumerate(self) -> list[DiskUnit]:
        result = self._runner.run("diskutil", ["list", "-plist"], 60)
        if not result.ok:
            raise DiskListingError(result.output.strip() or "diskutil list failed")
        try:
            units = parse_plist_listing(result.output)
        except DiskListingError:
            logger.debug("plist listing unusable, falling back to text listing")
            text = self._runner.run("diskutil", ["list"], 60)
            if not text.ok:
                raise DiskListingError(text.output.strip() or "diskutil list failed")
            units = parse_text_listing(text.output)
        units = filter_units(units, self._include)
        logger.info("Discovered %d disk unit(s)", len(units))
        return units

    def verify(self, unit: DiskUnit) -> CommandResult:
        verb = "verifyVolume" if unit.is_partition else "verifyDisk"
        return self._runner.run("diskutil", [verb, unit.identifier], self._timeout, sudo=True)

    def repair(self, unit: DiskUnit) -> CommandResult:
        if unit.is_partition:
            return self._runner.run(
                "diskutil", ["repairVolume", unit.identifier], self._timeout, sudo=True,
            )
        # repairDisk asks for confirmation on stdin; the operator already confirmed
        return self._runner.run(
            "sh",
            ["-c", 'yes | diskutil repairDisk "$1"', "sh", unit.identifier],
            self._timeout,
            sudo=True,
        )

    def unmount(self, unit: DiskUnit, force: bool = False) -> CommandResult:
        verb = "unmount" if unit.is_partition else "unmountDisk"
        args = [verb, "force", unit.identifier] if force else [verb, unit.identifier]
        return self._runner.run("diskutil", args, 120, sudo=True)
