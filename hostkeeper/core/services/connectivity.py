"""
Connectivity prober — can the host reach the outside world?

Each host gets up to ``attempts_per_host`` tries with a fixed delay
between them; a host is reachable on its first success.

Policy:
    ALL (default) — every host must eventually respond
    ANY           — one responding host is enough

Evaluation short-circuits as soon as the verdict is known: ALL stops
at the first unreachable host, ANY at the first reachable one.
"""

from __future__ import annotations

import logging
import time
import urllib.error
import urllib.request
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from hostkeeper.adapters.base import CommandRunner, ExecutionError
from hostkeeper.core.models.config import ProbePolicy
from hostkeeper.core.observability.events import EventSink, LoggingEventSink

logger = logging.getLogger(__name__)


@dataclass
class HostProbe:
    host: str
    reachable: bool = False
    attempts: int = 0
    error: str = ""

    def to_dict(self) -> dict:
        return {
            "host": self.host,
            "reachable": self.reachable,
            "attempts": self.attempts,
            "error": self.error,
        }


@dataclass
class ProbeReport:
    policy: ProbePolicy
    hosts: list[HostProbe] = field(default_factory=list)
    ok: bool = False

    def render(self) -> str:
        lines = [f"policy: {self.policy.value}"]
        for h in self.hosts:
            state = "reachable" if h.reachable else "unreachable"
            detail = f" — {h.error}" if h.error and not h.reachable else ""
            lines.append(f"{h.host}: {state} after {h.attempts} attempt(s){detail}")
        return "\n".join(lines)

    def to_dict(self) -> dict:
        return {
            "policy": self.policy.value,
            "ok": self.ok,
            "hosts": [h.to_dict() for h in self.hosts],
        }


def ping_check(runner: CommandRunner, timeout: float) -> Callable[[str], tuple[bool, str]]:
    """ICMP reachability through ``ping -c 1``."""

    def check(host: str) -> tuple[bool, str]:
        try:
            result = runner.run("ping", ["-c", "1", host], timeout)
        except ExecutionError as e:
            return False, str(e)
        return result.ok, "" if result.ok else result.tail(2)

    return check


def http_check(timeout: float) -> Callable[[str], tuple[bool, str]]:
    """HTTP HEAD reachability; any HTTP response counts as reachable."""

    def check(host: str) -> tuple[bool, str]:
        url = host if "://" in host else f"https://{host}/"
        req = urllib.request.Request(
            url, method="HEAD", headers={"User-Agent": "hostkeeper/1.0"},
        )
        try:
            with urllib.request.urlopen(req, timeout=timeout):
                return True, ""
        except urllib.error.HTTPError:
            # The server answered; that is all reachability means here
            return True, ""
        except Exception as exc:
            return False, str(exc)[:200]

    return check


class ConnectivityProber:
    """Bounded-retry reachability probe across a set of hosts."""

    def __init__(
        self,
        check: Callable[[str], tuple[bool, str]],
        policy: ProbePolicy = ProbePolicy.ALL,
        sleep: Callable[[float], None] = time.sleep,
        events: EventSink | None = None,
    ):
        self._check = check
        self._policy = policy
        self._sleep = sleep
        self._events = events or LoggingEventSink()

    def probe(self, hosts: Sequence[str], attempts_per_host: int, backoff: float) -> bool:
        """Overall verdict only."""
        return self.run(hosts, attempts_per_host, backoff).ok

    def run(self, hosts: Sequence[str], attempts_per_host: int, backoff: float) -> ProbeReport:
        if attempts_per_host < 1:
            raise ValueError("attempts_per_host must be at least 1")

        report = ProbeReport(policy=self._policy)
        if not hosts:
            report.ok = True
            return report

        for host in hosts:
            probe = self._probe_host(host, attempts_per_host, backoff)
            report.hosts.append(probe)
            if self._policy == ProbePolicy.ALL and not probe.reachable:
                report.ok = False
                return report
            if self._policy == ProbePolicy.ANY and probe.reachable:
                report.ok = True
                return report

        report.ok = self._policy == ProbePolicy.ALL
        return report

    def _probe_host(self, host: str, attempts: int, backoff: float) -> HostProbe:
        probe = HostProbe(host=host)
        for attempt in range(1, attempts + 1):
            probe.attempts = attempt
            reachable, error = self._check(host)
            if reachable:
                probe.reachable = True
                probe.error = ""
                self._events.info(f"{host} reachable (attempt {attempt})", "connectivity")
                return probe
            probe.error = error
            logger.debug("%s unreachable on attempt %d/%d: %s", host, attempt, attempts, error)
            if attempt < attempts:
                self._sleep(backoff)
        self._events.warning(f"{host} unreachable after {attempts} attempt(s)", "connectivity")
        return probe
