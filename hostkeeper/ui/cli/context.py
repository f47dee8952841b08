"""
Shared CLI plumbing — configuration loading and exit codes.
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from hostkeeper.core.config.loader import ConfigError, load_config
from hostkeeper.core.engine.orchestrator import EXIT_CONFIG_ERROR
from hostkeeper.core.models.config import MaintenanceConfig


def load_config_or_exit(ctx: click.Context) -> MaintenanceConfig:
    """Load the configuration named on the command line (or found upward).

    Exits with the configuration-error code when it is invalid.
    """
    config_path: Path | None = ctx.obj.get("config_path")
    try:
        return load_config(config_path)
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(EXIT_CONFIG_ERROR)


def is_interactive() -> bool:
    return sys.stdin.isatty() and sys.stdout.isatty()
