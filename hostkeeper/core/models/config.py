"""
MaintenanceConfig — everything the run can be tuned with.

Loaded from hostkeeper.yml. Every key is optional: an empty file (or
no file at all) yields a working default configuration.
"""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ProbePolicy(StrEnum):
    """How per-host probe results combine into the overall verdict."""

    ALL = "all"
    ANY = "any"


class _Section(BaseModel):
    model_config = ConfigDict(extra="forbid")


class BackupConfig(_Section):
    source: str | None = None
    target: str | None = None
    name: str = "backup"
    excludes: list[str] = Field(default_factory=lambda: [".Trash"])

    @property
    def configured(self) -> bool:
        return bool(self.source and self.target)


class ConnectivityConfig(_Section):
    hosts: list[str] = Field(default_factory=lambda: ["google.com"])
    attempts: int = Field(default=3, ge=1)
    delay: float = Field(default=2.0, ge=0)
    timeout: float = Field(default=5.0, gt=0)
    policy: ProbePolicy = ProbePolicy.ALL
    method: Literal["ping", "http"] = "ping"


class DiskConfig(_Section):
    enabled: bool = True
    include: list[str] = Field(default_factory=list)
    # Unattended runs without auto_repair: repair anyway, or skip with a warning
    repair_when_unattended: bool = False


class StageSettings(_Section):
    skip: list[str] = Field(default_factory=list)
    default_timeout: float = Field(default=1800.0, gt=0)
    timeouts: dict[str, float] = Field(default_factory=dict)
    retries: dict[str, int] = Field(default_factory=dict)


class PythonConfig(_Section):
    interpreter: str = "python3"
    venv: str = "~/.local/venvs/hostkeeper"
    requirements: str | None = None


class JsConfig(_Section):
    manifest: str | None = None


class RuntimeDefaults(_Section):
    """Versions the environment activator falls back to."""

    node: str = "20"
    ruby: str = "3.3.0"
    python: str = "3.12"


class CleanupConfig(_Section):
    flush_dns: bool = True
    log_dirs: list[str] = Field(default_factory=lambda: ["/var/log"])
    log_patterns: list[str] = Field(default_factory=lambda: ["*.gz"])
    trash_dirs: list[str] = Field(default_factory=lambda: ["~/.Trash"])


class StorageConfig(_Section):
    thin_bytes: int = Field(default=1_000_000_000, ge=0)
    urgency: int = Field(default=1, ge=1, le=4)


class AuditConfig(_Section):
    enabled: bool = True
    path: str = "~/.hostkeeper/audit.ndjson"


class MaintenanceConfig(_Section):
    """Root configuration model."""

    auto_repair: bool = False
    use_sudo: bool = True
    notify: bool = True

    backup: BackupConfig = Field(default_factory=BackupConfig)
    connectivity: ConnectivityConfig = Field(default_factory=ConnectivityConfig)
    disks: DiskConfig = Field(default_factory=DiskConfig)
    stages: StageSettings = Field(default_factory=StageSettings)
    python: PythonConfig = Field(default_factory=PythonConfig)
    js: JsConfig = Field(default_factory=JsConfig)
    runtimes: RuntimeDefaults = Field(default_factory=RuntimeDefaults)
    cleanup: CleanupConfig = Field(default_factory=CleanupConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    audit: AuditConfig = Field(default_factory=AuditConfig)

    def timeout_for(self, stage: str) -> float:
        return self.stages.timeouts.get(stage, self.stages.default_timeout)

    def retries_for(self, stage: str, default: int = 1) -> int:
        return max(0, self.stages.retries.get(stage, default))

    @property
    def venv_path(self) -> Path:
        return Path(self.python.venv).expanduser()
