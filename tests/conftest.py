"""
Shared test fixtures and configuration.
"""

from pathlib import Path

import pytest

from hostkeeper.adapters.activation import VersionManagerActivator
from hostkeeper.adapters.mock import MockRunner
from hostkeeper.core.models.config import MaintenanceConfig
from hostkeeper.core.observability.events import RecordingEventSink
from hostkeeper.core.services.remediation.execution.remediator import Remediator


@pytest.fixture
def mock_runner() -> MockRunner:
    return MockRunner()


@pytest.fixture
def events() -> RecordingEventSink:
    return RecordingEventSink()


@pytest.fixture
def config(tmp_path: Path) -> MaintenanceConfig:
    """A configuration that never points at the real home directory."""
    return MaintenanceConfig.model_validate({
        "connectivity": {"hosts": ["a.example", "b.example"], "attempts": 2, "delay": 0},
        "python": {"venv": str(tmp_path / "venv")},
        "cleanup": {
            "log_dirs": [str(tmp_path / "logs")],
            "trash_dirs": [str(tmp_path / "Trash")],
        },
        "audit": {"path": str(tmp_path / "audit.ndjson")},
    })


@pytest.fixture
def variables(tmp_path: Path) -> dict:
    """Template variables as a run would derive them, rooted in tmp_path."""
    return {
        "home": str(tmp_path / "home"),
        "user": "alice",
        "venv": str(tmp_path / "venv"),
        "interpreter": "python3",
        "python": "python3",
        "manifest": "",
        "manifest_dir": "",
        "requirements": "",
        "node_version": "20",
        "ruby_version": "3.3.0",
        "python_version": "3.12",
        "packages": [],
    }


@pytest.fixture
def remediator(mock_runner: MockRunner, variables: dict) -> Remediator:
    return Remediator(
        mock_runner,
        VersionManagerActivator(mock_runner),
        variables=variables,
    )
