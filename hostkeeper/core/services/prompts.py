"""
Confirmation capability — the only interactive seam in the core.

The disk loop asks ``confirm(question)`` and does not care whether a
human or a config flag answers.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


class Confirmer(ABC):
    @abstractmethod
    def confirm(self, question: str) -> bool: ...


class AutoConfirmer(Confirmer):
    """Answers every question with a fixed default."""

    def __init__(self, default: bool):
        self.default = default

    def confirm(self, question: str) -> bool:
        logger.info("%s → %s (automatic)", question, "yes" if self.default else "no")
        return self.default


def choose_confirmer(
    *,
    auto_repair: bool,
    interactive: bool,
    prompt: Confirmer | None,
    unattended_default: bool = False,
) -> Confirmer:
    """Pick the confirmer for a run.

    Prompt only when attached to a terminal and auto-repair is off.
    Otherwise auto-repair answers yes, and unattended runs fall back to
    the configured default (skip-with-warning unless configured).
    """
    if auto_repair:
        return AutoConfirmer(True)
    if interactive and prompt is not None:
        return prompt
    return AutoConfirmer(unattended_default)
