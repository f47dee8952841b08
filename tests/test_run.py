"""
Tests for the run use case — a full maintenance run against a mock host.
"""

from pathlib import Path

import click
import pytest

from hostkeeper.core.engine.orchestrator import EXIT_ABORTED, EXIT_OK, EXIT_WARNINGS
from hostkeeper.core.models.stage import StageStatus
from hostkeeper.core.persistence.audit import AuditWriter
from hostkeeper.core.services.stage_catalog import STAGE_NAMES, UnknownStageError
from hostkeeper.core.use_cases.diagnostics import check_disks, list_disks, probe_connectivity
from hostkeeper.core.use_cases.run import mock_host_runner, run_maintenance
from hostkeeper.ui.cli.prompts import InteractiveConfirmer

PEP668 = (
    "error: externally-managed-environment\n"
    "× This environment is externally managed"
)


def _run(config, runner, events, **kwargs):
    return run_maintenance(config, runner=runner, events=events, sleep=lambda _: None, **kwargs)


class TestRunMaintenance:
    def test_mock_host_is_clean(self, config, events):
        result = run_maintenance(config, mock=True, events=events, sleep=lambda _: None)
        summary = result.summary
        assert result.exit_code == EXIT_OK
        assert [o.name for o in summary.outcomes] == list(STAGE_NAMES)
        assert summary.outcomes[1].status == StageStatus.SKIPPED  # backup unconfigured
        assert result.audit_path is None

    def test_audit_written(self, config, events):
        result = _run(config, mock_host_runner(), events)
        entries = AuditWriter(result.audit_path).read_all()
        assert len(entries) == 1
        assert entries[0].run_id == result.summary.run_id
        assert entries[0].status == "ok"

    def test_audit_disabled(self, config, events):
        result = _run(config, mock_host_runner(), events, audit=False)
        assert result.audit_path is None
        assert not Path(config.audit.path).exists()

    def test_offline_aborts(self, config, events):
        runner = mock_host_runner()
        runner.set_failure("ping", "ping: cannot resolve a.example: Unknown host")
        result = _run(config, runner, events)
        summary = result.summary
        assert result.exit_code == EXIT_ABORTED
        assert summary.aborted_at == "connectivity"
        assert len(summary.outcomes) == 1
        assert not runner.calls_matching("brew")
        assert AuditWriter(result.audit_path).read_all()[0].aborted_at == "connectivity"

    def test_pep668_remediated_end_to_end(self, config, events):
        runner = mock_host_runner()
        runner.set_response("python3 -m pip list", (0, '[{"name": "rich", "version": "13.0"}]'))
        runner.set_response(
            "python3 -m pip install --upgrade --user rich", (1, PEP668), (0, "Successfully installed"),
        )
        result = _run(config, runner, events, only=["python-packages"])
        outcome = result.summary.outcomes[0]
        venv = config.venv_path
        assert result.exit_code == EXIT_OK
        assert outcome.remediated
        assert f"python3 -m venv {venv}" in runner.commands()
        assert f"{venv}/bin/python -m pip install --upgrade pip rich" in runner.commands()
        entry = AuditWriter(result.audit_path).read_all()[0]
        assert entry.remediated == ["python-packages"]

    def test_unmatched_failure_warns_and_continues(self, config, events):
        runner = mock_host_runner()
        runner.set_failure("npm update", "Killed: 9")
        result = _run(config, runner, events, only=["npm-globals", "trash-cleanup"])
        summary = result.summary
        assert result.exit_code == EXIT_WARNINGS
        assert [o.status for o in summary.outcomes] == [StageStatus.WARNING, StageStatus.OK]
        assert "Killed: 9" in summary.render()

    def test_skip_flag(self, config, events):
        result = _run(config, mock_host_runner(), events, skip=["os-update", "notify"])
        names = [o.name for o in result.summary.outcomes]
        assert "os-update" not in names
        assert "notify" not in names

    def test_unknown_stage(self, config, events):
        with pytest.raises(UnknownStageError):
            _run(config, mock_host_runner(), events, only=["brew"])

    def test_second_clean_run_matches_first(self, config, events):
        first = _run(config, mock_host_runner(), events, audit=False).summary
        second = _run(config, mock_host_runner(), events, audit=False).summary
        assert first.render() == second.render()
        assert second.remediated == []

    def test_failed_disk_repair_declined_unattended(self, config, events):
        runner = mock_host_runner()
        runner.set_failure("diskutil verifyVolume disk0s2", "Invalid volume file count")
        result = _run(config, runner, events, only=["disk-health"])
        outcome = result.summary.outcomes[0]
        assert outcome.status == StageStatus.WARNING
        assert "disk0s2: skipped (repair declined)" in outcome.output
        assert not runner.calls_matching("diskutil repairVolume")

    def test_auto_repair(self, config, events):
        runner = mock_host_runner()
        runner.set_response("diskutil verifyVolume disk0s2", (1, "Invalid volume file count"))
        result = _run(config, runner, events, only=["disk-health"], auto_repair=True)
        assert result.summary.outcomes[0].status == StageStatus.OK
        assert runner.commands().count("diskutil repairVolume disk0s2") == 1



def _ctrl_c(prompt=None):
    raise KeyboardInterrupt


class TestInterrupt:
    def test_ctrl_c_at_confirm_prompt_cancels(self, monkeypatch):
        monkeypatch.setattr(click.termui, "visible_prompt_func", _ctrl_c)
        with pytest.raises(KeyboardInterrupt):
            InteractiveConfirmer().confirm("Repair partition disk0s2?")

    def test_ctrl_c_at_repair_prompt_stops_run(self, config, events, monkeypatch):
        monkeypatch.setattr(click.termui, "visible_prompt_func", _ctrl_c)
        runner = mock_host_runner()
        runner.set_failure("diskutil verifyVolume disk0s2", "Invalid volume file count")
        with pytest.raises(KeyboardInterrupt):
            _run(config, runner, events, interactive=True, prompt=InteractiveConfirmer())
        assert not runner.calls_matching("diskutil repairVolume")
        assert not runner.calls_matching("brew")
        assert not Path(config.audit.path).exists()


class TestDiagnostics:
    def test_probe(self, config, events):
        report = probe_connectivity(config, mock=True, events=events, sleep=lambda _: None)
        assert report.ok
        assert [h.host for h in report.hosts] == ["a.example", "b.example"]

    def test_list_disks(self, config):
        units = list_disks(config, mock=True)
        assert [u.identifier for u in units] == ["disk0", "disk0s1", "disk0s2"]

    def test_check_disks(self, config, events):
        report = check_disks(config, mock=True, events=events)
        assert report.all_healthy
