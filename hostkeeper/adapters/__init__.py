"""Adapters — bindings to the host's external tools.

Public re-exports for convenient access.
"""

from hostkeeper.adapters.activation import EnvironmentActivator, VersionManagerActivator
from hostkeeper.adapters.base import CommandRunner, ExecutionError
from hostkeeper.adapters.diskutil import DiskListingError, DiskutilAdapter, DiskUtility
from hostkeeper.adapters.mock import MockRunner
from hostkeeper.adapters.shell.command import SubprocessRunner

__all__ = [
    "CommandRunner",
    "DiskListingError",
    "DiskUtility",
    "DiskutilAdapter",
    "EnvironmentActivator",
    "ExecutionError",
    "MockRunner",
    "SubprocessRunner",
    "VersionManagerActivator",
]
