"""
Stage catalogue — the fixed maintenance sequence.

Order matters: connectivity gates everything after it, backups run
before anything touches the disks, updates run before cleanup.
"""

from __future__ import annotations

from collections.abc import Iterable

from hostkeeper.core.models.config import MaintenanceConfig
from hostkeeper.core.models.remediation import Ecosystem
from hostkeeper.core.models.stage import FailurePolicy, Stage
from hostkeeper.core.services.stage_actions import StageActions

# name → (action method, policy, ecosystem, description)
STAGE_TABLE: dict[str, tuple[str, FailurePolicy, Ecosystem | None, str]] = {
    "connectivity": ("connectivity", FailurePolicy.ABORT, None,
                     "Check that the network is reachable"),
    "backup": ("backup", FailurePolicy.WARN, None,
               "Copy the configured source tree to a dated backup"),
    "disk-space": ("disk_space", FailurePolicy.WARN, None,
                   "Report free disk space"),
    "disk-health": ("disk_health", FailurePolicy.WARN, None,
                    "Verify every disk and partition, repair failures"),
    "system-integrity": ("system_integrity", FailurePolicy.WARN, None,
                         "Report System Integrity Protection status"),
    "os-update": ("os_update", FailurePolicy.WARN, Ecosystem.OS,
                  "Install pending OS updates"),
    "homebrew": ("homebrew", FailurePolicy.RETRY, Ecosystem.OS,
                 "Update and upgrade Homebrew formulae and casks"),
    "app-store": ("app_store", FailurePolicy.WARN, None,
                  "Upgrade Mac App Store apps"),
    "ruby-gems": ("ruby_gems", FailurePolicy.RETRY, Ecosystem.RUBY,
                  "Update installed gems"),
    "npm-globals": ("npm_globals", FailurePolicy.RETRY, Ecosystem.JS,
                    "Update global npm packages"),
    "python-packages": ("python_packages", FailurePolicy.RETRY, Ecosystem.PYTHON,
                        "Upgrade outdated Python packages"),
    "cache-cleanup": ("cache_cleanup", FailurePolicy.WARN, None,
                      "Flush DNS, prune package caches, delete rotated logs"),
    "storage-optimize": ("storage_optimize", FailurePolicy.WARN, None,
                         "Thin local Time Machine snapshots"),
    "trash-cleanup": ("trash_cleanup", FailurePolicy.WARN, None,
                      "Empty the trash"),
    "notify": ("notify", FailurePolicy.WARN, None,
               "Post a desktop notification"),
}

STAGE_NAMES: tuple[str, ...] = tuple(STAGE_TABLE)


class UnknownStageError(ValueError):
    """A stage name that is not in the catalogue."""


def validate_stage_names(names: Iterable[str]) -> list[str]:
    names = list(names)
    unknown = [n for n in names if n not in STAGE_TABLE]
    if unknown:
        raise UnknownStageError(
            f"Unknown stage(s): {', '.join(unknown)}. "
            f"Known: {', '.join(STAGE_NAMES)}"
        )
    return names


def build_stages(
    actions: StageActions,
    config: MaintenanceConfig,
    *,
    only: Iterable[str] = (),
    skip: Iterable[str] = (),
) -> list[Stage]:
    """The catalogue in order, minus skipped stages.

    ``only`` restricts the run to the named stages (order still comes
    from the catalogue). ``skip`` adds to ``stages.skip`` from config.
    """
    only_set = set(validate_stage_names(only))
    skip_set = set(validate_stage_names([*config.stages.skip, *skip]))

    stages: list[Stage] = []
    for name, (method, policy, ecosystem, description) in STAGE_TABLE.items():
        if only_set and name not in only_set:
            continue
        if name in skip_set:
            continue
        stages.append(Stage(
            name=name,
            action=getattr(actions, method),
            policy=policy,
            ecosystem=ecosystem,
            description=description,
            retries=config.retries_for(name),
        ))
    return stages
