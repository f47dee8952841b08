"""
hostkeeper — CLI entrypoint.

Usage:
    python -m hostkeeper.main --help
    hostkeeper run
    hostkeeper run --only homebrew --only npm-globals --auto-repair
    hostkeeper config check
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from hostkeeper import __version__
from hostkeeper.core.engine.orchestrator import EXIT_CONFIG_ERROR, EXIT_INTERRUPTED
from hostkeeper.core.observability.logging_config import (
    ENV_FILE,
    ENV_FILE_LEVEL,
    resolve_level,
    setup_logging,
)
from hostkeeper.ui.cli.context import is_interactive, load_config_or_exit


@click.group()
@click.version_option(version=__version__, prog_name="hostkeeper")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to hostkeeper.yml (default: auto-detect).",
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Also write logs to this file (default: $HK_LOG_FILE).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
    log_file: str | None,
) -> None:
    """hostkeeper — keep this machine updated, clean and healthy."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    setup_logging(
        level=resolve_level(debug=debug, verbose=verbose, quiet=quiet),
        log_file=log_file or os.environ.get(ENV_FILE),
        log_file_level=os.environ.get(ENV_FILE_LEVEL),
        quiet_third_party=not debug,
    )


@cli.command()
@click.option(
    "--auto-repair/--prompt", "auto_repair", default=None,
    help="Repair failed disks without asking (default: from config).",
)
@click.option("--only", multiple=True, help="Run only these stages (repeatable).")
@click.option("--skip", multiple=True, help="Skip these stages (repeatable).")
@click.option("--mock", is_flag=True, help="Use the mock host (no real execution).")
@click.option("--no-audit", is_flag=True, help="Don't record the run in the audit ledger.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def run(
    ctx: click.Context,
    auto_repair: bool | None,
    only: tuple[str, ...],
    skip: tuple[str, ...],
    mock: bool,
    no_audit: bool,
    as_json: bool,
) -> None:
    """Run the maintenance sequence.

    Exit codes: 0 clean, 1 unresolved failures, 2 aborted,
    3 configuration error, 130 interrupted.

    Examples:

        hostkeeper run

        hostkeeper run --only homebrew --only npm-globals

        hostkeeper run --skip os-update --auto-repair

        hostkeeper run --mock --json
    """
    from hostkeeper.core.services.stage_catalog import UnknownStageError
    from hostkeeper.core.use_cases.run import run_maintenance
    from hostkeeper.ui.cli.prompts import InteractiveConfirmer
    from hostkeeper.ui.cli.render import ClickEventSink, render_summary

    config = load_config_or_exit(ctx)
    quiet = ctx.obj.get("quiet", False)

    if not as_json and not quiet:
        mode_label = "[mock] " if mock else ""
        click.secho(f"\n🛠  {mode_label}hostkeeper maintenance run", fg="cyan", bold=True)

    try:
        result = run_maintenance(
            config,
            mock=mock,
            auto_repair=auto_repair,
            interactive=is_interactive() and not as_json,
            prompt=InteractiveConfirmer(),
            only=only,
            skip=skip,
            events=ClickEventSink(quiet=quiet, err=as_json),
            audit=not no_audit,
        )
    except UnknownStageError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(EXIT_CONFIG_ERROR)
    except KeyboardInterrupt:
        click.secho("\n⏹  Interrupted", fg="yellow", err=True)
        sys.exit(EXIT_INTERRUPTED)

    summary = result.summary
    assert summary is not None  # run_maintenance always produces one

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    render_summary(summary, verbose=ctx.obj.get("verbose", False))
    if result.audit_path and not quiet:
        click.secho(f"   💾 Recorded in {result.audit_path}", fg="cyan")
        click.echo()
    sys.exit(result.exit_code)


@cli.command()
@click.option("--mock", is_flag=True, help="Use the mock host (no real execution).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def probe(ctx: click.Context, mock: bool, as_json: bool) -> None:
    """Check network connectivity the way a run would."""
    from hostkeeper.core.use_cases.diagnostics import probe_connectivity
    from hostkeeper.ui.cli.render import ClickEventSink

    config = load_config_or_exit(ctx)
    report = probe_connectivity(
        config,
        mock=mock,
        events=ClickEventSink(quiet=ctx.obj.get("quiet", False), err=as_json),
    )

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
        sys.exit(0 if report.ok else 1)

    click.echo()
    for line in report.render().splitlines():
        click.echo(f"   {line}")
    click.echo()
    if report.ok:
        click.secho("✅ Network reachable", fg="green", bold=True)
    else:
        click.secho("❌ Network unreachable", fg="red", bold=True)
        sys.exit(1)


@cli.group()
def config() -> None:
    """Configuration commands."""


@config.command("check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, as_json: bool) -> None:
    """Validate hostkeeper.yml configuration."""
    from hostkeeper.core.use_cases.config_check import check_config

    result = check_config(config_path=ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else EXIT_CONFIG_ERROR)

    source = result.config_path or "built-in defaults"
    if result.valid:
        click.secho(f"✅ Configuration is valid ({source})", fg="green", bold=True)
    else:
        click.secho(f"❌ {source} has {len(result.errors)} problem(s):", fg="red", bold=True)
    for message, color in [(e, "red") for e in result.errors] + [(w, "yellow") for w in result.warnings]:
        click.secho(f"   • {message}", fg=color)
    click.echo()
    sys.exit(0 if result.valid else EXIT_CONFIG_ERROR)


@cli.command()
@click.option("-n", "count", default=10, type=int, help="Number of runs to show.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def history(ctx: click.Context, count: int, as_json: bool) -> None:
    """Show recent runs from the audit ledger."""
    from hostkeeper.core.persistence.audit import AuditWriter

    config = load_config_or_exit(ctx)
    entries = AuditWriter(Path(config.audit.path)).read_recent(count)

    if as_json:
        click.echo(json.dumps([e.model_dump(mode="json") for e in entries], indent=2))
        return

    if not entries:
        click.echo("No runs recorded yet.")
        return

    status_color = {"ok": "green", "warnings": "yellow", "aborted": "red"}
    click.echo()
    for entry in reversed(entries):
        click.secho(f"   {entry.status:<8}", fg=status_color.get(entry.status, "white"), nl=False)
        click.echo(
            f" {entry.timestamp}  {entry.run_id}  "
            f"{entry.succeeded}/{entry.stages_total} ok, {entry.skipped} skipped"
        )
        if entry.aborted_at:
            click.echo(f"            aborted at {entry.aborted_at}")
        for err in entry.errors:
            click.echo(f"            • {err}")
    click.echo()


# ── Sub-groups ──────────────────────────────────────────────────

from hostkeeper.ui.cli.disks import disks  # noqa: E402
from hostkeeper.ui.cli.signatures import signatures  # noqa: E402

cli.add_command(disks)
cli.add_command(signatures)


if __name__ == "__main__":
    cli()
