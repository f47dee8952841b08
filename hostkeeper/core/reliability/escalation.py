"""
Escalation ladder — bounded fallback chains.

States:
    rung 1 → rung 2 → … → exhausted

Each rung is tried only if every rung before it failed. The ladder
stops at the first success, so the number of attempts is bounded by
the number of rungs and can never loop.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from hostkeeper.core.models.command import CommandResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Rung:
    """One step on the ladder."""

    name: str
    action: Callable[[], CommandResult]


@dataclass
class ClimbResult:
    """What happened on the way up."""

    succeeded: bool = False
    rung: str | None = None                       # rung that succeeded
    attempts: list[tuple[str, CommandResult]] = field(default_factory=list)

    @property
    def results(self) -> list[CommandResult]:
        return [r for _, r in self.attempts]

    @property
    def exhausted(self) -> bool:
        return not self.succeeded


class EscalationLadder:
    """Ordered list of alternatives, tried until one succeeds."""

    def __init__(self, rungs: Sequence[Rung], name: str = ""):
        if not rungs:
            raise ValueError("an escalation ladder needs at least one rung")
        self._rungs = list(rungs)
        self._name = name

    @property
    def rungs(self) -> list[str]:
        return [r.name for r in self._rungs]

    def climb(self) -> ClimbResult:
        result = ClimbResult()
        for rung in self._rungs:
            outcome = rung.action()
            result.attempts.append((rung.name, outcome))
            if outcome.ok:
                result.succeeded = True
                result.rung = rung.name
                logger.debug("Ladder %s: '%s' succeeded", self._name, rung.name)
                return result
            logger.debug(
                "Ladder %s: '%s' failed (exit %d)", self._name, rung.name, outcome.exit_code,
            )
        logger.info("Ladder %s exhausted after %d rung(s)", self._name, len(self._rungs))
        return result
