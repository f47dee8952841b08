"""
L1 Domain — Runtime version selection (pure).

Failure text states requirements (``>= 2.7.0``, ``^18.0.0 || >=20``,
``~> 3.2``); version managers want one concrete version. Pick the
configured default when it satisfies the requirement, otherwise the
lowest version the requirement names.

No I/O, no subprocess.
"""

from __future__ import annotations

import re

_CLAUSE = re.compile(r"^\s*(?P<op>>=|<=|~>|==|~=|\^|~|>|<|=)?\s*v?(?P<version>\d+(?:\.\d+)*)")


def parse_version(text: str) -> tuple[int, ...] | None:
    """``"v18.2.0"`` → ``(18, 2, 0)``; ``None`` if not a version."""
    text = text.strip().lstrip("v")
    if not re.fullmatch(r"\d+(?:\.\d+)*", text):
        return None
    return tuple(int(x) for x in text.split("."))


def _pad(parts: tuple[int, ...], width: int) -> tuple[int, ...]:
    return parts + (0,) * (width - len(parts))


def _satisfies(candidate: tuple[int, ...], op: str, bound: tuple[int, ...]) -> bool:
    width = max(len(candidate), len(bound), 3)
    c, b = _pad(candidate, width), _pad(bound, width)
    if op in ("", "=", "=="):
        return c[: len(bound)] == bound
    if op == ">=":
        return c >= b
    if op == ">":
        return c > b
    if op == "<=":
        return c <= b
    if op == "<":
        return c < b
    if op == "^":
        return c >= b and c[0] == b[0]
    if op in ("~", "~>", "~="):
        # Same prefix except the last named component, which may grow
        prefix = max(len(bound) - 1, 1)
        return c >= b and c[:prefix] == b[:prefix]
    return False


def satisfies(version: str, requirement: str) -> bool:
    """Whether ``version`` meets ``requirement``.

    ``||`` separates alternatives, ``,`` joins clauses that must all
    hold. Clauses that cannot be parsed never hold.
    """
    candidate = parse_version(version)
    if candidate is None:
        return False
    for alternative in requirement.split("||"):
        clauses = [c for c in re.split(r"[,\s]\s*(?=[<>=~^])|,", alternative) if c.strip()]
        if not clauses:
            continue
        ok = True
        for clause in clauses:
            m = _CLAUSE.match(clause)
            if m is None:
                ok = False
                break
            bound = tuple(int(x) for x in m.group("version").split("."))
            if not _satisfies(candidate, m.group("op") or "", bound):
                ok = False
                break
        if ok:
            return True
    return False


def pick_runtime_version(requirement: str, default: str) -> str:
    """Concrete version to activate for ``requirement``.

    Examples::

        pick_runtime_version(">= 2.7.0", "3.3.0")            → "3.3.0"
        pick_runtime_version("^18.0.0 || >=20.0.0", "16")    → "18.0.0"
        pick_runtime_version("3.2.2", "3.3.0")               → "3.2.2"
        pick_runtime_version("whatever", "3.3.0")            → "3.3.0"
    """
    requirement = requirement.strip()
    if not requirement:
        return default
    if parse_version(requirement) is not None:
        return requirement.lstrip("v")
    if default and satisfies(default, requirement):
        return default

    candidates: list[tuple[int, ...]] = []
    for alternative in requirement.split("||"):
        m = _CLAUSE.match(alternative)
        if m is None or (m.group("op") or "").startswith("<"):
            continue
        bound = tuple(int(x) for x in m.group("version").split("."))
        if m.group("op") == ">":
            # Strictly greater: bump the last component
            bound = bound[:-1] + (bound[-1] + 1,)
        candidates.append(bound)

    if not candidates:
        return default
    return ".".join(str(x) for x in min(candidates))
