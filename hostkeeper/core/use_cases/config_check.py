"""
Config check use case — load hostkeeper.yml, then look for settings that
validate but cannot work (unknown stage names, half-configured backup,
missing manifests, broken signature tables).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from hostkeeper.core.config.loader import ConfigError, find_config_file, load_config
from hostkeeper.core.models.config import MaintenanceConfig
from hostkeeper.core.services.remediation.domain.matching import (
    SignatureTableError,
    load_signatures,
)
from hostkeeper.core.services.stage_catalog import STAGE_NAMES


@dataclass
class ConfigCheckResult:
    config: MaintenanceConfig | None = None
    config_path: Path | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return self.config is not None and not self.errors

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "config_path": None if self.config_path is None else str(self.config_path),
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


def check_config(config_path: Path | None = None) -> ConfigCheckResult:
    """Validate ``config_path`` (or the auto-detected file) and collect issues."""
    path = config_path if config_path is not None else find_config_file()
    result = ConfigCheckResult(config_path=path)
    if path is None:
        result.warnings.append("No hostkeeper.yml found, defaults apply.")

    try:
        result.config = load_config(path, search=False)
    except ConfigError as e:
        result.errors.append(str(e))
        return result

    _check_stage_names(result.config, result.errors)
    _check_paths(result.config, result.warnings)
    if "connectivity" in result.config.stages.skip:
        result.warnings.append("Connectivity check is skipped; updates may fail offline.")

    try:
        load_signatures()
    except SignatureTableError as e:
        result.errors.append(f"Signature tables: {e}")
    return result


def _check_stage_names(config: MaintenanceConfig, errors: list[str]) -> None:
    keyed = {
        "stages.skip": config.stages.skip,
        "stages.timeouts": list(config.stages.timeouts),
        "stages.retries": list(config.stages.retries),
    }
    for section, names in keyed.items():
        unknown = [n for n in names if n not in STAGE_NAMES]
        if unknown:
            errors.append(f"{section}: unknown stage(s) {', '.join(unknown)}")


def _check_paths(config: MaintenanceConfig, warnings: list[str]) -> None:
    backup = config.backup
    if bool(backup.source) != bool(backup.target):
        warnings.append("backup needs both source and target; the stage will be skipped.")
    elif backup.configured and not Path(backup.source).expanduser().exists():
        warnings.append(f"Backup source does not exist: {backup.source}")

    manifests = {"js.manifest": config.js.manifest, "python.requirements": config.python.requirements}
    for label, manifest in manifests.items():
        if manifest and not Path(manifest).expanduser().is_file():
            warnings.append(f"{label} does not exist: {manifest}")
