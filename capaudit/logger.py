"""
Structured JSONL run log for capability audits.

This module provides:
- One JSON object per line for every finding of an audit run
- Log files organized by audited namespace and date
- Log levels (debug, info, warn, error)
- Context manager that tags every entry of one run with its run id
"""

from __future__ import annotations

import json
from collections import Counter
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Optional, Union

from .errors import FailureKind


class LogLevel:
    """Log level constants."""
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AuditLogger:
    """
    JSONL event logger for audit runs.

    Entries go to <logs_dir>/<run_name>-YYYY-MM-DD.jsonl, where run_name is
    usually the audited namespace. Each entry holds:
    - timestamp: ISO 8601 UTC timestamp with a trailing Z
    - level: debug, info, warn or error
    - event_type: e.g. "audit_start", "mismatch", "audit_result"
    - run_name: the audited namespace
    - run_id: present inside run_context()
    - data: event payload
    """

    def __init__(self, run_name: str, logs_dir: Union[str, Path]) -> None:
        self.run_name = run_name
        self.logs_dir = Path(logs_dir)
        self._run_id: Optional[str] = None

    @property
    def run_id(self) -> Optional[str]:
        """Id of the run currently being logged, if any."""
        return self._run_id

    def log_path(self, date: Optional[str] = None) -> Path:
        """Log file for a date (YYYY-MM-DD), today by default."""
        day = date or _utc_now().strftime("%Y-%m-%d")
        return self.logs_dir / f"{self.run_name}-{day}.jsonl"

    def log(
        self,
        event_type: str,
        data: Optional[dict[str, Any]] = None,
        level: str = LogLevel.INFO,
    ) -> None:
        """Append one entry to today's log file."""
        entry: dict[str, Any] = {
            "timestamp": _utc_now().isoformat().replace("+00:00", "Z"),
            "level": level,
            "event_type": event_type,
            "run_name": self.run_name,
            "data": data or {},
        }
        if self._run_id:
            entry["run_id"] = self._run_id

        path = self.log_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "a") as f:
            f.write(json.dumps(entry, default=str) + "\n")

    def debug(self, event_type: str, data: Optional[dict[str, Any]] = None) -> None:
        self.log(event_type, data, LogLevel.DEBUG)

    def info(self, event_type: str, data: Optional[dict[str, Any]] = None) -> None:
        self.log(event_type, data, LogLevel.INFO)

    def warn(self, event_type: str, data: Optional[dict[str, Any]] = None) -> None:
        self.log(event_type, data, LogLevel.WARN)

    def error(self, event_type: str, data: Optional[dict[str, Any]] = None) -> None:
        self.log(event_type, data, LogLevel.ERROR)

    def record_finding(self, kind: FailureKind, event_type: str, data: dict[str, Any]) -> None:
        """Log a checker finding, at error level if it fails the run."""
        level = LogLevel.ERROR if kind.fails_run else LogLevel.WARN
        self.log(event_type, dict(data, kind=kind.value), level)

    @contextmanager
    def run_context(self, run_id: str) -> Iterator[AuditLogger]:
        """
        Tag every entry logged inside the block with run_id.

        Example:
            with audit_logger.run_context("3f9a1c2e") as log:
                log.info("audit_start", {"namespace": "mylib.events"})
        """
        outer = self._run_id
        self._run_id = run_id
        self.info("run_start", {"run_id": run_id})
        try:
            yield self
        finally:
            self.info("run_end", {"run_id": run_id})
            self._run_id = outer

    def _entries(self, date: Optional[str]) -> Iterator[dict[str, Any]]:
        path = self.log_path(date)
        if not path.exists():
            return
        with open(path, "r") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    yield json.loads(line)
                except json.JSONDecodeError:
                    continue

    def read_logs(
        self,
        date: Optional[str] = None,
        level: Optional[str] = None,
        event_type: Optional[str] = None,
        run_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        """
        Read entries of one day's log, optionally filtered.

        Args:
            date: YYYY-MM-DD, today if None.
            level: Keep only this level.
            event_type: Keep only this event type.
            run_id: Keep only entries of this run.
            limit: Stop after this many matches.
        """
        wanted = {"level": level, "event_type": event_type, "run_id": run_id}
        matches = []
        for entry in self._entries(date):
            if any(value and entry.get(key) != value for key, value in wanted.items()):
                continue
            matches.append(entry)
            if limit and len(matches) >= limit:
                break
        return matches

    def summarize(self, run_id: str, date: Optional[str] = None) -> dict[str, int]:
        """Number of entries per event type for one run."""
        counts = Counter(entry["event_type"] for entry in self.read_logs(date, run_id=run_id))
        return dict(counts)

    def get_log_files(self) -> list[Path]:
        """All log files for this run name, newest first."""
        if not self.logs_dir.exists():
            return []
        return sorted(self.logs_dir.glob(f"{self.run_name}-*.jsonl"), reverse=True)
