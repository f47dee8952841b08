"""
Run ledger.

One JSON object per line, one line per finished run, appended to
``audit.path`` (``~/.hostkeeper/audit.ndjson`` by default). Lines are
never rewritten. ``hostkeeper history`` is the reader.

Mock runs are not recorded; see ``use_cases.run``.
"""

from __future__ import annotations

import json
import logging
from collections import deque
from collections.abc import Iterator
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_AUDIT_PATH = Path("~/.hostkeeper/audit.ndjson")


def _now() -> str:
    return datetime.now(UTC).isoformat()


class AuditEntry(BaseModel):
    """What a run left behind, condensed to counts and failure lines."""

    timestamp: str = Field(default_factory=_now)
    run_id: str = ""
    status: str = ""  # RunSummary.status

    stages_total: int = 0
    succeeded: int = 0
    warnings: int = 0
    skipped: int = 0
    remediated: list[str] = Field(default_factory=list)  # stage names
    aborted_at: str | None = None
    duration_ms: int = 0

    errors: list[str] = Field(default_factory=list)  # "<stage>: <message>"
    context: dict[str, Any] = Field(default_factory=dict)


class AuditWriter:
    """Appends entries to, and reads them back from, one ledger file."""

    def __init__(self, path: Path | None = None):
        self._path = Path(path or DEFAULT_AUDIT_PATH).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def write(self, entry: AuditEntry) -> None:
        """Append ``entry``; I/O failures are logged and the run carries on."""
        record = entry.model_dump_json() + "\n"
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as ledger:
                ledger.write(record)
        except OSError as e:
            logger.error("Could not record run %s in %s: %s", entry.run_id, self._path, e)
            return
        logger.debug("Recorded run %s in %s", entry.run_id, self._path)

    def read_all(self) -> list[AuditEntry]:
        """Every readable entry, oldest first."""
        return list(self._entries())

    def read_recent(self, n: int = 20) -> list[AuditEntry]:
        """The last ``n`` entries, oldest first."""
        if n <= 0:
            return []
        return list(deque(self._entries(), maxlen=n))

    def _entries(self) -> Iterator[AuditEntry]:
        if not self._path.is_file():
            return
        try:
            # Undecodable bytes become U+FFFD so only the damaged line is lost
            lines = self._path.read_text(encoding="utf-8", errors="replace").splitlines()
        except OSError as e:
            logger.error("Could not read ledger %s: %s", self._path, e)
            return
        for number, raw in enumerate(lines, start=1):
            if raw.strip():
                entry = _parse_line(raw, number)
                if entry is not None:
                    yield entry


def _parse_line(raw: str, number: int) -> AuditEntry | None:
    try:
        return AuditEntry.model_validate(json.loads(raw))
    except (json.JSONDecodeError, ValidationError) as e:
        logger.warning("Ledger line %d unreadable, skipped: %s", number, e)
        return None
