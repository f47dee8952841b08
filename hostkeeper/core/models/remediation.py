"""
Remediation models — failure signatures and what came of applying them.

Signatures are declared as plain dicts in
``core/services/remediation/data/signatures.py`` and validated into
these models once at load time.
"""

from __future__ import annotations

import re
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from hostkeeper.core.models.command import CommandResult


class Ecosystem(StrEnum):
    """Independently managed package domains."""

    OS = "os"
    JS = "js"
    RUBY = "ruby"
    PYTHON = "python"


class StepKind(StrEnum):
    """Remediation step variants, dispatched by the remediator."""

    COMMAND = "command"
    TAKE_OWNERSHIP = "take_ownership"
    ENSURE_RUNTIME = "ensure_runtime"
    MANIFEST_REMOVE = "manifest_remove"
    CREATE_VENV = "create_venv"


class RemediationStep(BaseModel):
    """One corrective action. Fields are templates (``{name}`` placeholders)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: StepKind
    label: str = ""
    argv: tuple[str, ...] = ()
    sudo: bool = False
    path: str = ""             # take_ownership / create_venv
    runtime: str = ""          # ensure_runtime: node, ruby, python
    version: str = ""          # ensure_runtime: requirement text
    manifest: str = ""         # manifest_remove
    package: str = ""          # manifest_remove
    only_if_exists: str = ""   # skip the step unless this path exists


class ErrorSignature(BaseModel):
    """A recognizable failure and the remediation it triggers."""

    model_config = ConfigDict(frozen=True)

    id: str
    ecosystem: Ecosystem
    pattern: str
    label: str = ""
    description: str = ""
    category: str = ""
    remediation: tuple[RemediationStep, ...] = ()
    terminal: bool = False
    example: str = ""

    @field_validator("pattern")
    @classmethod
    def _check_pattern(cls, value: str) -> str:
        if not value:
            raise ValueError("pattern must not be empty")
        try:
            re.compile(value)
        except re.error as e:
            raise ValueError(f"invalid pattern: {e}") from e
        return value

    def search(self, text: str) -> re.Match[str] | None:
        """Case-insensitive search, dot matches newlines."""
        return re.search(self.pattern, text, re.IGNORECASE | re.DOTALL)


class RemediationOutcome(BaseModel):
    """What happened when a failure was classified and remediated."""

    ecosystem: Ecosystem
    failure_text: str = ""
    signature: ErrorSignature | None = None
    captures: dict[str, str] = Field(default_factory=dict)
    commands_run: list[CommandResult] = Field(default_factory=list)
    resolved: bool = False
    error: str | None = None

    @property
    def matched(self) -> bool:
        return self.signature is not None

    @property
    def should_retry(self) -> bool:
        """Whether the original action deserves its single retry."""
        return (
            self.resolved
            and self.signature is not None
            and not self.signature.terminal
        )

    def to_dict(self) -> dict:
        return {
            "ecosystem": self.ecosystem.value,
            "signature": self.signature.id if self.signature else None,
            "terminal": self.signature.terminal if self.signature else False,
            "resolved": self.resolved,
            "error": self.error,
            "commands": [
                {"command": r.display, "exit_code": r.exit_code}
                for r in self.commands_run
            ],
        }
