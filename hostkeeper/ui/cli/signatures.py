"""
CLI commands for the failure signature tables.

Usage::

    hostkeeper signatures list
    hostkeeper signatures list --ecosystem python
    hostkeeper signatures classify npm-globals.log --ecosystem js
"""

from __future__ import annotations

import json
import sys

import click

from hostkeeper.core.models.remediation import Ecosystem

_ECOSYSTEMS = click.Choice([e.value for e in Ecosystem])


@click.group()
def signatures() -> None:
    """Signatures — known failures and their remediation."""


@signatures.command("list")
@click.option("--ecosystem", "-e", type=_ECOSYSTEMS, default=None, help="Only this ecosystem.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def list_cmd(ecosystem: str | None, as_json: bool) -> None:
    """List signatures in matching order."""
    from hostkeeper.core.services.remediation.domain.matching import load_signatures

    tables = load_signatures()
    selected = [Ecosystem(ecosystem)] if ecosystem else list(Ecosystem)

    if as_json:
        data = {
            eco.value: [s.model_dump(mode="json", exclude={"example"}) for s in tables[eco]]
            for eco in selected
        }
        click.echo(json.dumps(data, indent=2))
        return

    for eco in selected:
        click.secho(f"\n🔎 {eco.value}", fg="cyan", bold=True)
        for position, sig in enumerate(tables[eco], start=1):
            terminal = " (terminal)" if sig.terminal else ""
            click.echo(f"   {position}. {sig.id}: {sig.label}{terminal}")
            for step in sig.remediation:
                click.echo(f"        → {step.label or step.kind.value}")
    click.echo()


@signatures.command("classify")
@click.argument("source", type=click.File("r"), default="-")
@click.option("--ecosystem", "-e", type=_ECOSYSTEMS, required=True, help="Ecosystem of the failure.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def classify_cmd(source, ecosystem: str, as_json: bool) -> None:
    """Show which signature a failure output matches, without remediating.

    SOURCE is a file with captured output, or ``-`` for stdin.
    """
    from hostkeeper.core.services.remediation.domain.matching import classify, load_signatures

    text = source.read()
    signature, captures = classify(Ecosystem(ecosystem), text, load_signatures())

    if as_json:
        click.echo(json.dumps({
            "ecosystem": ecosystem,
            "signature": signature.id if signature else None,
            "captures": captures,
            "steps": [s.model_dump(mode="json") for s in signature.remediation] if signature else [],
        }, indent=2))
        sys.exit(0 if signature else 1)

    if signature is None:
        click.secho(f"❔ No {ecosystem} signature matches this output", fg="yellow")
        sys.exit(1)

    click.secho(f"✓ {signature.id}: {signature.label}", fg="green", bold=True)
    if signature.description:
        click.echo(f"   {signature.description}")
    for name, value in captures.items():
        click.echo(f"   {name} = {value}")
    for step in signature.remediation:
        click.echo(f"   → {step.kind.value}: {step.label}")
