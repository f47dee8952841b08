"""
Tests for the stage orchestrator and run summary.
"""

import re

from hostkeeper.adapters.base import ExecutionError
from hostkeeper.adapters.mock import MockRunner
from hostkeeper.core.engine.orchestrator import (
    EXIT_ABORTED,
    EXIT_OK,
    EXIT_WARNINGS,
    Orchestrator,
    generate_run_id,
)
from hostkeeper.core.models.command import CommandResult
from hostkeeper.core.models.remediation import Ecosystem
from hostkeeper.core.models.stage import (
    FailureKind,
    FailurePolicy,
    Stage,
    StageResult,
    StageStatus,
)
from hostkeeper.core.observability.events import EventLevel

PEP668 = "error: externally-managed-environment"
XCODE = "xcrun: error: invalid active developer path (/Library/Developer/CommandLineTools)"


class ScriptedAction:
    """Stage action returning scripted results; the last one repeats."""

    def __init__(self, *results):
        self._results = list(results)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        item = self._results.pop(0) if len(self._results) > 1 else self._results[0]
        if isinstance(item, Exception):
            raise item
        return item


def ok(output: str = "done") -> CommandResult:
    return CommandResult(command=("tool",), exit_code=0, output=output)


def fail(output: str = "boom", code: int = 1) -> CommandResult:
    return CommandResult(command=("tool",), exit_code=code, output=output)


def stage(name, action, policy=FailurePolicy.WARN, ecosystem=None, retries=1):
    return Stage(name=name, action=action, policy=policy, ecosystem=ecosystem, retries=retries)


class TestRunId:
    def test_format(self):
        assert re.fullmatch(r"run-\d{8}-\d{6}-[0-9a-f]{6}", generate_run_id())

    def test_unique(self):
        assert generate_run_id() != generate_run_id()


class TestPolicies:
    def test_all_ok(self, remediator, events):
        summary = Orchestrator(
            [stage("a", ScriptedAction(ok())), stage("b", ScriptedAction(ok()))],
            remediator, events,
        ).run()
        assert summary.clean
        assert summary.exit_code == EXIT_OK
        assert [o.message for o in summary.outcomes] == ["completed", "completed"]

    def test_unmatched_failure_with_warn_continues(self, remediator, events):
        later = ScriptedAction(ok())
        summary = Orchestrator(
            [
                stage("pip", ScriptedAction(fail("Killed: 9")), ecosystem=Ecosystem.PYTHON),
                stage("later", later),
            ],
            remediator, events,
        ).run()
        first = summary.outcomes[0]
        assert first.status == StageStatus.WARNING
        assert first.failure_kind == FailureKind.UNCLASSIFIED
        assert first.output == "Killed: 9"
        assert later.calls == 1
        assert summary.exit_code == EXIT_WARNINGS

    def test_abort_stops_the_run(self, remediator, events):
        never = ScriptedAction(ok())
        summary = Orchestrator(
            [
                stage("connectivity", ScriptedAction(fail("unreachable")), FailurePolicy.ABORT),
                stage("homebrew", never),
            ],
            remediator, events,
        ).run()
        assert summary.aborted_at == "connectivity"
        assert summary.exit_code == EXIT_ABORTED
        assert summary.status == "aborted"
        assert len(summary.outcomes) == 1
        assert never.calls == 0
        assert any("Run aborted" in m for m in events.messages(EventLevel.ERROR))

    def test_skipped_stage_does_not_affect_exit_code(self, remediator, events):
        summary = Orchestrator(
            [stage("app-store", ScriptedAction(StageResult.skip("mas not installed")))],
            remediator, events,
        ).run()
        assert summary.outcomes[0].status == StageStatus.SKIPPED
        assert summary.exit_code == EXIT_OK
        assert "app-store: mas not installed" in summary.render()

    def test_execution_error(self, remediator, events):
        action = ScriptedAction(ExecutionError(("brew", "upgrade"), "executable not found on PATH"))
        summary = Orchestrator(
            [stage("homebrew", action, ecosystem=Ecosystem.OS)], remediator, events,
        ).run()
        outcome = summary.outcomes[0]
        assert outcome.failure_kind == FailureKind.EXECUTION_ERROR
        assert outcome.remediation is None
        assert outcome.message == "could not run the tool"


class TestRemediation:
    def test_remediate_then_retry_succeeds(self, remediator, mock_runner: MockRunner, events):
        action = ScriptedAction(
            StageResult(ok=False, output=PEP668, variables={"packages": ["rich"]}),
            ok("upgraded"),
        )
        summary = Orchestrator(
            [stage("python-packages", action, FailurePolicy.RETRY, Ecosystem.PYTHON)],
            remediator, events,
        ).run()
        outcome = summary.outcomes[0]
        assert outcome.status == StageStatus.OK
        assert outcome.remediated
        assert outcome.attempts == 2
        assert outcome.message == "completed after remediation (pep668)"
        assert action.calls == 2
        assert mock_runner.commands()[-1].endswith("pip install --upgrade pip rich")
        assert summary.remediated == [outcome]
        assert "python-packages (remediated)" in summary.render()

    def test_retry_still_failing(self, remediator, events):
        action = ScriptedAction(fail(PEP668))
        summary = Orchestrator(
            [stage("python-packages", action, FailurePolicy.RETRY, Ecosystem.PYTHON, retries=3)],
            remediator, events,
        ).run()
        outcome = summary.outcomes[0]
        # One retry after remediation, no plain retries on top
        assert action.calls == 2
        assert outcome.status == StageStatus.WARNING
        assert outcome.message == "still failing after remediation (pep668)"

    def test_terminal_signature_is_not_retried(self, remediator, mock_runner, events):
        action = ScriptedAction(fail(XCODE))
        summary = Orchestrator(
            [stage("homebrew", action, ecosystem=Ecosystem.OS)], remediator, events,
        ).run()
        outcome = summary.outcomes[0]
        assert action.calls == 1
        assert mock_runner.commands() == ["xcode-select --install"]
        assert outcome.status == StageStatus.WARNING
        assert outcome.message == "needs attention: Command Line Tools missing"

    def test_remediation_failure(self, remediator, mock_runner, events):
        mock_runner.set_failure("python3 -m venv")
        action = ScriptedAction(fail(PEP668))
        summary = Orchestrator(
            [stage("python-packages", action, FailurePolicy.RETRY, Ecosystem.PYTHON)],
            remediator, events,
        ).run()
        outcome = summary.outcomes[0]
        assert action.calls == 1
        assert outcome.failure_kind == FailureKind.REMEDIATION_FAILURE
        assert outcome.message.startswith("remediation 'pep668' failed")

    def test_remediation_commands_in_log(self, remediator, events):
        action = ScriptedAction(fail(PEP668), ok())
        summary = Orchestrator(
            [stage("python-packages", action, ecosystem=Ecosystem.PYTHON)], remediator, events,
        ).run()
        displays = [r.display for r in summary.command_log]
        assert displays[0] == "tool"
        assert any("venv" in d for d in displays[1:])


class TestPlainRetries:
    def test_retry_policy_without_ecosystem(self, remediator, events):
        action = ScriptedAction(fail(), ok())
        summary = Orchestrator(
            [stage("backup", action, FailurePolicy.RETRY)], remediator, events,
        ).run()
        outcome = summary.outcomes[0]
        assert outcome.status == StageStatus.OK
        assert outcome.message == "completed on attempt 2"

    def test_retries_are_bounded(self, remediator, events):
        action = ScriptedAction(fail())
        summary = Orchestrator(
            [stage("backup", action, FailurePolicy.RETRY, retries=2)], remediator, events,
        ).run()
        assert action.calls == 3
        assert summary.outcomes[0].message == "failed after 3 attempts"

    def test_unclassified_retry(self, remediator, events):
        action = ScriptedAction(fail("Killed: 9"), ok())
        summary = Orchestrator(
            [stage("pip", action, FailurePolicy.RETRY, Ecosystem.PYTHON)], remediator, events,
        ).run()
        assert action.calls == 2
        assert summary.outcomes[0].status == StageStatus.OK

    def test_warn_policy_never_retries(self, remediator, events):
        action = ScriptedAction(fail())
        Orchestrator([stage("cleanup", action)], remediator, events).run()
        assert action.calls == 1


class TestSummary:
    def test_clean_runs_render_identically(self, remediator, mock_runner, events):
        def build():
            return Orchestrator(
                [
                    stage("homebrew", ScriptedAction(ok()), ecosystem=Ecosystem.OS),
                    stage("npm-globals", ScriptedAction(ok()), ecosystem=Ecosystem.JS),
                ],
                remediator, events,
            )

        first = build().run()
        second = build().run()
        assert first.render() == second.render()
        assert first.render().startswith("All 2 stage(s) completed without warnings")
        assert second.remediated == []
        assert mock_runner.call_count == 0

    def test_unresolved_shows_output_tail(self, remediator, events):
        output = "\n".join(f"line {i}" for i in range(50))
        summary = Orchestrator(
            [stage("cleanup", ScriptedAction(fail(output)))], remediator, events,
        ).run()
        text = summary.render(tail_lines=5)
        assert "line 49" in text
        assert "line 44" not in text
        assert "cleanup [tool_failure]: failed" in text

    def test_to_dict(self, remediator, events):
        summary = Orchestrator(
            [stage("a", ScriptedAction(ok())), stage("b", ScriptedAction(fail()))],
            remediator, events,
        ).run("run-fixed")
        data = summary.to_dict()
        assert data["run_id"] == "run-fixed"
        assert data["status"] == "warnings"
        assert data["succeeded"] == 1
        assert data["warnings"] == 1
        assert [s["name"] for s in data["stages"]] == ["a", "b"]
