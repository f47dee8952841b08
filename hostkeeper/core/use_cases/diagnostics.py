"""
Diagnostics use cases — run one component on its own.

``hostkeeper probe`` and ``hostkeeper disks ...`` use the same
collaborators a full run would, without the rest of the sequence.
"""

from __future__ import annotations

import time
from collections.abc import Callable

from hostkeeper.adapters.base import CommandRunner
from hostkeeper.adapters.diskutil import DiskutilAdapter
from hostkeeper.core.models.config import MaintenanceConfig
from hostkeeper.core.models.disk import DiskReport, DiskUnit
from hostkeeper.core.observability.events import EventSink, LoggingEventSink
from hostkeeper.core.services.connectivity import ProbeReport
from hostkeeper.core.services.disk_repair import order_units
from hostkeeper.core.services.prompts import Confirmer, choose_confirmer
from hostkeeper.core.use_cases.run import build_disk_loop, build_prober, build_runner


def probe_connectivity(
    config: MaintenanceConfig,
    *,
    runner: CommandRunner | None = None,
    mock: bool = False,
    events: EventSink | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> ProbeReport:
    runner = runner or build_runner(config, mock)
    prober = build_prober(config, runner, events or LoggingEventSink(), sleep)
    settings = config.connectivity
    return prober.run(settings.hosts, settings.attempts, settings.delay)


def list_disks(
    config: MaintenanceConfig,
    *,
    runner: CommandRunner | None = None,
    mock: bool = False,
) -> list[DiskUnit]:
    """Disk units in processing order (each disk before its partitions).

    Raises:
        DiskListingError: If the disk utility cannot list disks.
    """
    runner = runner or build_runner(config, mock)
    adapter = DiskutilAdapter(runner, include=config.disks.include)
    return order_units(adapter.enumerate())


def check_disks(
    config: MaintenanceConfig,
    *,
    runner: CommandRunner | None = None,
    mock: bool = False,
    auto_repair: bool | None = None,
    interactive: bool = False,
    prompt: Confirmer | None = None,
    events: EventSink | None = None,
) -> DiskReport:
    """Verify (and, when confirmed, repair) every disk unit.

    Raises:
        DiskListingError: If the disk utility cannot list disks.
    """
    runner = runner or build_runner(config, mock)
    confirmer = choose_confirmer(
        auto_repair=config.auto_repair if auto_repair is None else auto_repair,
        interactive=interactive,
        prompt=prompt,
        unattended_default=config.disks.repair_when_unattended,
    )
    loop = build_disk_loop(config, runner, confirmer, events or LoggingEventSink())
    return loop.run()
