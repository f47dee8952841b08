"""
Tests for the connectivity prober — retries, policies, short-circuiting.
"""

import pytest

from hostkeeper.adapters.mock import MockRunner
from hostkeeper.core.models.config import ProbePolicy
from hostkeeper.core.services.connectivity import ConnectivityProber, ping_check


class ScriptedCheck:
    """Host → list of outcomes, consumed per attempt; last one repeats."""

    def __init__(self, script: dict[str, list[bool]]):
        self.script = {host: list(outcomes) for host, outcomes in script.items()}
        self.calls: list[str] = []

    def __call__(self, host: str) -> tuple[bool, str]:
        self.calls.append(host)
        queue = self.script[host]
        ok = queue.pop(0) if len(queue) > 1 else queue[0]
        return ok, "" if ok else "no route to host"


def _prober(check, policy, sleeps):
    return ConnectivityProber(check, policy=policy, sleep=sleeps.append)


class TestPolicies:
    def test_a_fails_b_recovers_all_policy(self):
        sleeps: list[float] = []
        check = ScriptedCheck({"A": [False], "B": [False, True]})
        assert _prober(check, ProbePolicy.ALL, sleeps).probe(["A", "B"], 3, 1.5) is False

    def test_a_fails_b_recovers_any_policy(self):
        sleeps: list[float] = []
        check = ScriptedCheck({"A": [False], "B": [False, True]})
        assert _prober(check, ProbePolicy.ANY, sleeps).probe(["A", "B"], 3, 1.5) is True
        assert check.calls == ["A", "A", "A", "B", "B"]

    def test_all_reachable(self):
        check = ScriptedCheck({"A": [True], "B": [True]})
        report = _prober(check, ProbePolicy.ALL, []).run(["A", "B"], 3, 0)
        assert report.ok
        assert [h.attempts for h in report.hosts] == [1, 1]

    def test_any_all_unreachable(self):
        check = ScriptedCheck({"A": [False], "B": [False]})
        report = _prober(check, ProbePolicy.ANY, []).run(["A", "B"], 2, 0)
        assert not report.ok
        assert len(report.hosts) == 2


class TestRetries:
    def test_sleeps_only_between_attempts(self):
        sleeps: list[float] = []
        check = ScriptedCheck({"A": [False]})
        _prober(check, ProbePolicy.ALL, sleeps).run(["A"], 3, 2.0)
        assert sleeps == [2.0, 2.0]
        assert len(check.calls) == 3

    def test_reachable_on_second_attempt(self):
        check = ScriptedCheck({"A": [False, True]})
        report = _prober(check, ProbePolicy.ALL, []).run(["A"], 3, 0)
        assert report.ok
        assert report.hosts[0].attempts == 2
        assert report.hosts[0].error == ""

    def test_all_short_circuits_on_first_unreachable(self):
        check = ScriptedCheck({"A": [False], "B": [True]})
        report = _prober(check, ProbePolicy.ALL, []).run(["A", "B"], 2, 0)
        assert not report.ok
        assert "B" not in check.calls
        assert report.hosts[0].error == "no route to host"

    def test_no_hosts_is_reachable(self):
        assert _prober(ScriptedCheck({}), ProbePolicy.ALL, []).probe([], 3, 0)

    def test_attempts_must_be_positive(self):
        with pytest.raises(ValueError):
            _prober(ScriptedCheck({}), ProbePolicy.ALL, []).probe(["A"], 0, 0)


class TestPingCheck:
    def test_uses_runner(self, mock_runner: MockRunner):
        ok, _ = ping_check(mock_runner, 5)("example.com")
        assert ok
        assert mock_runner.commands() == ["ping -c 1 example.com"]

    def test_failure_carries_output(self, mock_runner: MockRunner):
        mock_runner.set_failure("ping", "ping: cannot resolve example.com: Unknown host", exit_code=68)
        ok, error = ping_check(mock_runner, 5)("example.com")
        assert not ok
        assert "Unknown host" in error

    def test_missing_ping(self, mock_runner: MockRunner):
        mock_runner.set_missing("ping")
        ok, error = ping_check(mock_runner, 5)("example.com")
        assert not ok
        assert "not found" in error


class TestReport:
    def test_render_and_dict(self):
        check = ScriptedCheck({"A": [False]})
        report = _prober(check, ProbePolicy.ALL, []).run(["A"], 1, 0)
        assert "A: unreachable after 1 attempt(s)" in report.render()
        assert report.to_dict()["hosts"][0]["reachable"] is False
