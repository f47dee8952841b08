"""
Domain models — Pydantic types and dataclasses for hostkeeper.

All models are re-exported here for convenient access:

    from hostkeeper.core.models import CommandResult, Stage, DiskUnit, ErrorSignature
"""

from hostkeeper.core.models.command import TIMEOUT_EXIT_CODE, CommandResult, Invocation
from hostkeeper.core.models.config import MaintenanceConfig, ProbePolicy
from hostkeeper.core.models.disk import (
    DiskKind,
    DiskReport,
    DiskState,
    DiskUnit,
    UnitReport,
)
from hostkeeper.core.models.remediation import (
    Ecosystem,
    ErrorSignature,
    RemediationOutcome,
    RemediationStep,
    StepKind,
)
from hostkeeper.core.models.stage import (
    FailureKind,
    FailurePolicy,
    Stage,
    StageOutcome,
    StageResult,
    StageStatus,
)

__all__ = [
    "TIMEOUT_EXIT_CODE",
    # command.py
    "CommandResult",
    # disk.py
    "DiskKind",
    "DiskReport",
    "DiskState",
    "DiskUnit",
    # remediation.py
    "Ecosystem",
    "ErrorSignature",
    # stage.py
    "FailureKind",
    "FailurePolicy",
    "Invocation",
    # config.py
    "MaintenanceConfig",
    "ProbePolicy",
    "RemediationOutcome",
    "RemediationStep",
    "Stage",
    "StageOutcome",
    "StageResult",
    "StageStatus",
    "StepKind",
    "UnitReport",
]
