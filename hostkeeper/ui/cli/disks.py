"""
CLI commands for disk verification and repair.

Thin wrappers over ``hostkeeper.core.use_cases.diagnostics``.

Usage::

    hostkeeper disks list
    hostkeeper disks check --auto-repair
"""

from __future__ import annotations

import json
import sys

import click

from hostkeeper.adapters.diskutil import DiskListingError
from hostkeeper.core.engine.orchestrator import EXIT_INTERRUPTED
from hostkeeper.core.models.disk import DiskState
from hostkeeper.ui.cli.context import is_interactive, load_config_or_exit
from hostkeeper.ui.cli.prompts import InteractiveConfirmer
from hostkeeper.ui.cli.render import ClickEventSink

_STATE_STYLE = {
    DiskState.VERIFIED: ("✓", "green"),
    DiskState.REPAIR_SUCCEEDED: ("✓", "green"),
    DiskState.REPAIR_FAILED: ("✗", "red"),
    DiskState.SKIPPED: ("⊘", "yellow"),
}


@click.group()
def disks() -> None:
    """Disks — enumerate, verify and repair."""


@disks.command("list")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--mock", is_flag=True, help="Use the mock host (no real execution).")
@click.pass_context
def list_cmd(ctx: click.Context, as_json: bool, mock: bool) -> None:
    """List disks and partitions in processing order."""
    from hostkeeper.core.use_cases.diagnostics import list_disks

    config = load_config_or_exit(ctx)
    try:
        units = list_disks(config, mock=mock)
    except DiskListingError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps([u.model_dump(mode="json") for u in units], indent=2))
        return

    click.secho(f"\n💽 Disk units: {len(units)}", fg="cyan", bold=True)
    for unit in units:
        indent = "     " if unit.is_partition else "   "
        click.echo(f"{indent}• {unit.identifier} ({unit.kind.value})")
    click.echo()


@disks.command("check")
@click.option(
    "--auto-repair/--prompt", "auto_repair", default=None,
    help="Repair failed units without asking (default: from config).",
)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--mock", is_flag=True, help="Use the mock host (no real execution).")
@click.pass_context
def check_cmd(
    ctx: click.Context,
    auto_repair: bool | None,
    as_json: bool,
    mock: bool,
) -> None:
    """Verify every unit and repair the ones that fail.

    Examples::

        hostkeeper disks check
        hostkeeper disks check --auto-repair --json
    """
    from hostkeeper.core.use_cases.diagnostics import check_disks

    config = load_config_or_exit(ctx)
    try:
        report = check_disks(
            config,
            mock=mock,
            auto_repair=auto_repair,
            interactive=is_interactive() and not as_json,
            prompt=InteractiveConfirmer(),
            events=ClickEventSink(quiet=ctx.obj.get("quiet", False), err=as_json),
        )
    except DiskListingError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.secho("\n⏹  Interrupted", fg="yellow", err=True)
        sys.exit(EXIT_INTERRUPTED)

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
        sys.exit(0 if report.all_healthy else 1)

    click.echo()
    for unit in report.units:
        icon, color = _STATE_STYLE.get(unit.state, ("•", None))
        indent = "     " if unit.unit.is_partition else "   "
        note = f" — {unit.note}" if unit.note else ""
        click.secho(f"{indent}{icon} {unit.unit.identifier}: {unit.state.value}{note}", fg=color)

    if report.manual_intervention:
        click.echo()
        click.secho("   Manual intervention required:", fg="red", bold=True)
        for unit in report.manual_intervention:
            click.echo(f"     • {unit.unit.identifier}")
    click.echo()

    if not report.all_healthy:
        sys.exit(1)
