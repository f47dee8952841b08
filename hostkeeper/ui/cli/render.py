"""
Terminal rendering for maintenance events and run summaries.
"""

from __future__ import annotations

import click

from hostkeeper.core.engine.orchestrator import RunSummary
from hostkeeper.core.models.stage import StageStatus
from hostkeeper.core.observability.events import Event, EventLevel, EventSink

_EVENT_STYLE = {
    EventLevel.INFO: ("•", None),
    EventLevel.SUCCESS: ("✓", "green"),
    EventLevel.WARNING: ("⚠", "yellow"),
    EventLevel.ERROR: ("✗", "red"),
}

_STATUS_STYLE = {
    StageStatus.OK: ("✓", "green"),
    StageStatus.WARNING: ("⚠", "yellow"),
    StageStatus.FAILED: ("✗", "red"),
    StageStatus.SKIPPED: ("⊘", "white"),
}


class ClickEventSink(EventSink):
    """Render events as they happen.

    ``quiet`` drops info and success events. ``err`` sends everything to
    stderr, which keeps stdout clean for ``--json``.
    """

    def __init__(self, quiet: bool = False, err: bool = False):
        self._quiet = quiet
        self._err = err

    def emit(self, event: Event) -> None:
        if self._quiet and event.level in (EventLevel.INFO, EventLevel.SUCCESS):
            return
        icon, color = _EVENT_STYLE[event.level]
        stage = f"[{event.stage}] " if event.stage else ""
        click.secho(f"   {icon} {stage}{event.message}", fg=color, err=self._err)


def render_summary(summary: RunSummary, verbose: bool = False) -> None:
    """Print the end-of-run summary."""
    click.echo()
    click.secho("📋 Maintenance summary", fg="cyan", bold=True)
    for outcome in summary.outcomes:
        icon, color = _STATUS_STYLE[outcome.status]
        timing = f" ({outcome.duration_ms}ms)" if outcome.duration_ms else ""
        click.secho(f"   {icon} {outcome.name}", fg=color, nl=False)
        click.echo(f"  {outcome.message}{timing}")
        if outcome.status in (StageStatus.WARNING, StageStatus.FAILED) or verbose:
            lines = outcome.output.rstrip().splitlines()
            for line in lines if verbose else lines[-20:]:
                click.echo(f"     │ {line}")

    click.echo()
    color = {"ok": "green", "warnings": "yellow", "aborted": "red"}[summary.status]
    if summary.aborted:
        headline = f"Aborted at '{summary.aborted_at}'"
    elif summary.clean:
        headline = "Completed without warnings"
    else:
        headline = f"Completed with {len(summary.unresolved)} unresolved stage(s)"
    click.secho(
        f"   {headline} — {len(summary.succeeded)} ok, {len(summary.unresolved)} unresolved, "
        f"{len(summary.skipped)} skipped in {summary.duration_ms / 1000:.1f}s",
        fg=color,
        bold=True,
    )
    if summary.remediated:
        click.echo(f"   Remediated: {', '.join(o.name for o in summary.remediated)}")
    click.echo()
