"""
L4 Execution — Classify a failure and apply its remediation.

Flow for one failed stage:
    classify (first matching signature of the stage's ecosystem)
      → render each step's templates
      → run steps in order, stop at the first failure
      → RemediationOutcome(resolved = every step succeeded)

Remediation runs once per failure. It never re-classifies its own
failures and never retries a step; the orchestrator decides whether
the original action gets its single retry.
"""

from __future__ import annotations

import getpass
import logging
import re
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import Any

from hostkeeper.adapters.activation import ActivationError, EnvironmentActivator
from hostkeeper.adapters.base import CommandRunner, ExecutionError
from hostkeeper.core.models.command import CommandResult
from hostkeeper.core.models.config import MaintenanceConfig
from hostkeeper.core.models.remediation import (
    Ecosystem,
    ErrorSignature,
    RemediationOutcome,
    RemediationStep,
    StepKind,
)
from hostkeeper.core.services.remediation.domain.matching import classify, load_signatures
from hostkeeper.core.services.remediation.domain.versions import pick_runtime_version
from hostkeeper.core.services.remediation.execution.manifests import remove_package

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


class TemplateError(KeyError):
    """A step references a variable nobody supplied."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(name)

    def __str__(self) -> str:
        return f"missing template variable '{self.name}'"


# ── Templating ──────────────────────────────────────────────────

def render(text: str, variables: Mapping[str, Any]) -> str:
    """Substitute ``{name}`` placeholders. Lists render space-joined."""

    def sub(m: re.Match[str]) -> str:
        name = m.group(1)
        if name not in variables:
            raise TemplateError(name)
        value = variables[name]
        if isinstance(value, (list, tuple)):
            return " ".join(str(v) for v in value)
        return str(value)

    return _PLACEHOLDER.sub(sub, text)


def render_argv(argv: Sequence[str], variables: Mapping[str, Any]) -> list[str]:
    """Render an argv; an element that is exactly ``{name}`` of a list splices in."""
    out: list[str] = []
    for part in argv:
        m = _PLACEHOLDER.fullmatch(part)
        if m and isinstance(variables.get(m.group(1)), (list, tuple)):
            out.extend(str(v) for v in variables[m.group(1)])
            continue
        out.append(render(part, variables))
    return out


def default_variables(config: MaintenanceConfig) -> dict[str, Any]:
    """Config-derived template variables available to every signature."""
    venv = config.venv_path
    venv_python = venv / "bin" / "python"
    manifest = Path(config.js.manifest).expanduser() if config.js.manifest else None
    requirements = (
        Path(config.python.requirements).expanduser() if config.python.requirements else None
    )
    return {
        "home": str(Path.home()),
        "user": getpass.getuser(),
        "venv": str(venv),
        "interpreter": config.python.interpreter,
        "python": str(venv_python) if venv_python.exists() else config.python.interpreter,
        "manifest": str(manifest) if manifest else "",
        "manifest_dir": str(manifest.parent) if manifest else "",
        "requirements": str(requirements) if requirements else "",
        "node_version": config.runtimes.node,
        "ruby_version": config.runtimes.ruby,
        "python_version": config.runtimes.python,
        "packages": [],
    }


# ── Remediator ──────────────────────────────────────────────────

class Remediator:
    """Error classifier and remediator for all ecosystems."""

    def __init__(
        self,
        runner: CommandRunner,
        activator: EnvironmentActivator,
        *,
        variables: Mapping[str, Any] | None = None,
        signatures: Mapping[Ecosystem, Sequence[ErrorSignature]] | None = None,
        timeout: float = 1800.0,
    ):
        self._runner = runner
        self._activator = activator
        self._variables = dict(variables or {})
        self._signatures = signatures if signatures is not None else load_signatures()
        self._timeout = timeout

        self._handlers: dict[
            StepKind, Callable[[RemediationStep, Mapping[str, Any]], list[CommandResult]]
        ] = {
            StepKind.COMMAND: self._run_command,
            StepKind.TAKE_OWNERSHIP: self._take_ownership,
            StepKind.ENSURE_RUNTIME: self._ensure_runtime,
            StepKind.MANIFEST_REMOVE: self._manifest_remove,
            StepKind.CREATE_VENV: self._create_venv,
        }

    @property
    def signatures(self) -> Mapping[Ecosystem, Sequence[ErrorSignature]]:
        return self._signatures

    def classify(self, ecosystem: Ecosystem, text: str) -> tuple[ErrorSignature | None, dict[str, str]]:
        return classify(ecosystem, text, self._signatures)

    def classify_and_remediate(
        self,
        ecosystem: Ecosystem,
        failure_text: str,
        variables: Mapping[str, Any] | None = None,
    ) -> RemediationOutcome:
        """Classify ``failure_text`` and run the matching remediation.

        Template precedence: pattern captures, then stage variables,
        then config-derived variables.
        """
        outcome = RemediationOutcome(ecosystem=ecosystem, failure_text=failure_text)
        signature, captures = self.classify(ecosystem, failure_text)
        if signature is None:
            logger.info("No %s signature matched the failure", ecosystem.value)
            return outcome

        outcome.signature = signature
        outcome.captures = captures
        context = {**self._variables, **(variables or {}), **captures}
        logger.info("Remediating %s (%s)", signature.id, signature.label)

        for step in signature.remediation:
            try:
                if not self._applies(step, context):
                    outcome.commands_run.append(CommandResult.internal(
                        "skip", step.label or step.kind.value,
                        output="precondition path not present",
                    ))
                    continue
                results = self._handlers[step.kind](step, context)
            except (TemplateError, ExecutionError, ActivationError, OSError, ValueError) as e:
                outcome.error = f"{step.label or step.kind.value}: {e}"
                logger.warning("Remediation %s stopped: %s", signature.id, outcome.error)
                return outcome

            outcome.commands_run.extend(results)
            if not results or not results[-1].ok:
                failed = results[-1] if results else None
                outcome.error = (
                    f"{step.label or step.kind.value}: "
                    + (f"{failed.display} exited {failed.exit_code}" if failed else "no result")
                )
                logger.warning("Remediation %s failed: %s", signature.id, outcome.error)
                return outcome

        outcome.resolved = True
        logger.info("Remediation %s succeeded", signature.id)
        return outcome

    # ── Step handlers ───────────────────────────────────────────

    @staticmethod
    def _applies(step: RemediationStep, context: Mapping[str, Any]) -> bool:
        if not step.only_if_exists:
            return True
        target = render(step.only_if_exists, context)
        return bool(target) and Path(target).expanduser().exists()

    def _run(self, argv: Sequence[str], *, sudo: bool = False) -> CommandResult:
        return self._runner.run(argv[0], argv[1:], self._timeout, sudo=sudo)

    def _run_command(self, step: RemediationStep, context: Mapping[str, Any]) -> list[CommandResult]:
        argv = render_argv(step.argv, context)
        if not argv:
            raise ValueError("command step without argv")
        return [self._run(argv, sudo=step.sudo)]

    def _take_ownership(self, step: RemediationStep, context: Mapping[str, Any]) -> list[CommandResult]:
        path = str(Path(render(step.path, context)).expanduser())
        user = render("{user}", context)
        return [self._run(["chown", "-R", user, path], sudo=True)]

    def _ensure_runtime(self, step: RemediationStep, context: Mapping[str, Any]) -> list[CommandResult]:
        requirement = render(step.version, context) if step.version else ""
        default = str(context.get(f"{step.runtime}_version", ""))
        version = pick_runtime_version(requirement, default)
        if not version:
            raise ValueError(f"no version to activate for {step.runtime}")
        return self._activator.ensure_runtime(step.runtime, version)

    def _manifest_remove(self, step: RemediationStep, context: Mapping[str, Any]) -> list[CommandResult]:
        path = Path(render(step.manifest, context)).expanduser()
        package = render(step.package, context)
        removed = remove_package(path, package)
        return [CommandResult.internal(
            "manifest-remove", str(path), package,
            output="removed" if removed else "not listed",
        )]

    def _create_venv(self, step: RemediationStep, context: Mapping[str, Any]) -> list[CommandResult]:
        path = Path(render(step.path, context)).expanduser()
        if (path / "bin" / "python").exists():
            return [CommandResult.internal("create-venv", str(path), output="already exists")]
        interpreter = str(context.get("interpreter", "python3"))
        return [self._run([interpreter, "-m", "venv", str(path)])]
