"""
Interactive confirmation through click.
"""

from __future__ import annotations

import click

from hostkeeper.core.services.prompts import Confirmer


class InteractiveConfirmer(Confirmer):
    """Ask the operator on the terminal.

    Ctrl-C at the prompt cancels the whole run, not just the question.
    """

    def __init__(self, default: bool = False):
        self.default = default

    def confirm(self, question: str) -> bool:
        try:
            return click.confirm(question, default=self.default)
        except click.Abort:
            click.echo()
            raise KeyboardInterrupt from None
