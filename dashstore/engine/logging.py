"""
dashstore Audit Logging — Structured JSON-lines files with daily rotation.

Implements:
- FileLogger: Per-object-type, per-category log files
- Log entry builders for deletes and shadow search comparisons

Files: {log_dir}/{object_type}/{category}/{YYYY-MM-DD}.jsonl
"""

from __future__ import annotations

import json
import logging
import threading
from collections import defaultdict
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger("dashstore.engine.logging")

OBJECT_TYPE_CATEGORIES = {
    "dashboards": ["execution", "security"],
    "folders": ["execution", "security"],
    "search": ["execution"],
}


class LogEntry:
    """A structured log entry destined for a specific file."""

    __slots__ = ("object_type", "category", "data")

    def __init__(self, object_type: str, category: str, data: Dict[str, Any]):
        self.object_type = object_type
        self.category = category
        self.data = data

    def to_json(self) -> str:
        return json.dumps(self.data, default=str, separators=(",", ":"))


class FileLogger:
    """
    Writes structured JSON log entries to per-object-type, per-category files.

    Thread-safe — uses a lock per file path.
    """

    def __init__(self, log_dir: str = "logs"):
        self._log_dir = Path(log_dir)
        self._file_locks: Dict[str, threading.Lock] = defaultdict(threading.Lock)
        self._ensure_directories()

    def _ensure_directories(self) -> None:
        for obj_type, categories in OBJECT_TYPE_CATEGORIES.items():
            for cat in categories:
                (self._log_dir / obj_type / cat).mkdir(parents=True, exist_ok=True)

    def write(self, entry: LogEntry) -> None:
        """Write a single log entry to the appropriate file."""
        file_path = self._resolve_path(entry.object_type, entry.category)
        with self._file_locks[str(file_path)]:
            with open(file_path, "a", encoding="utf-8") as f:
                f.write(entry.to_json())
                f.write("\n")

    def _resolve_path(self, object_type: str, category: str) -> Path:
        if category not in OBJECT_TYPE_CATEGORIES.get(object_type, []):
            raise ValueError(f"Unknown log target {object_type}/{category}")
        today = date.today().isoformat()
        return self._log_dir / object_type / category / f"{today}.jsonl"

    @property
    def log_dir(self) -> Path:
        return self._log_dir

    def query(
        self,
        object_type: str,
        category: str,
        *,
        days: int = 7,
        filters: Optional[Dict[str, Any]] = None,
        limit: int = 500,
    ) -> List[Dict[str, Any]]:
        """
        Read entries for object_type/category from the last ``days`` days.

        Entries matching all ``filters`` (top-level equality) are returned
        newest first.
        """
        log_base = self._log_dir / object_type / category
        if not log_base.exists():
            return []

        results: List[Dict[str, Any]] = []
        current = date.today()
        start = current - timedelta(days=days)
        while current >= start and len(results) < limit:
            file_path = log_base / f"{current.isoformat()}.jsonl"
            if file_path.exists():
                day_entries = []
                with open(file_path, "r", encoding="utf-8") as f:
                    for line in f:
                        line = line.strip()
                        if not line:
                            continue
                        try:
                            data = json.loads(line)
                        except json.JSONDecodeError:
                            logger.warning(f"Skipping malformed log line in {file_path}")
                            continue
                        if filters and not all(data.get(k) == v for k, v in filters.items()):
                            continue
                        day_entries.append(data)
                day_entries.reverse()
                results.extend(day_entries[: limit - len(results)])
            current -= timedelta(days=1)
        return results


# ---------------------------------------------------------------------------
# Log Entry Builders
# ---------------------------------------------------------------------------

def _base_entry(event: str, level: str, org_id: Optional[int], **extra: Any) -> Dict[str, Any]:
    entry: Dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": level,
        "event": event,
    }
    if org_id is not None:
        entry["org_id"] = org_id
    entry.update(extra)
    return entry


def log_dashboard_delete(
    dashboard_id: int,
    uid: str,
    org_id: int,
    is_folder: bool,
    child_ids: Optional[List[int]] = None,
    forced: bool = False,
    duration_ms: Optional[float] = None,
) -> LogEntry:
    """Build an audit entry for a completed cascade delete."""
    data = _base_entry(
        event="folder_deleted" if is_folder else "dashboard_deleted",
        level="INFO",
        org_id=org_id,
        dashboard_id=dashboard_id,
        uid=uid,
    )
    if is_folder:
        data["child_ids"] = list(child_ids or [])
        data["force_delete_folder_rules"] = forced
    if duration_ms is not None:
        data["duration_ms"] = round(duration_ms, 2)
    return LogEntry("folders" if is_folder else "dashboards", "execution", data)


def log_delete_refused(dashboard_id: int, uid: str, org_id: int, reason: str) -> LogEntry:
    """Build a security entry for a delete rejected by a business rule."""
    data = _base_entry(
        event="folder_delete_refused",
        level="WARNING",
        org_id=org_id,
        dashboard_id=dashboard_id,
        uid=uid,
        reason=reason,
    )
    return LogEntry("folders", "security", data)


def log_search_shadow(
    org_id: Optional[int],
    user_id: int,
    equal: bool,
    primary_ids: List[int],
    shadow_ids: Optional[List[int]] = None,
    error: Optional[str] = None,
) -> LogEntry:
    """Build an entry describing one shadow search comparison."""
    data = _base_entry(
        event="search_shadow",
        level="INFO" if equal and not error else "WARNING",
        org_id=org_id,
        user_id=user_id,
        equal=equal,
        primary_count=len(primary_ids),
    )
    if shadow_ids is not None and not equal:
        data["only_primary"] = sorted(set(primary_ids) - set(shadow_ids))
        data["only_shadow"] = sorted(set(shadow_ids) - set(primary_ids))
    if error:
        data["error"] = error
    return LogEntry("search", "execution", data)


def configure_logging(level: str = "INFO") -> None:
    """Set the level of the ``dashstore`` logger hierarchy."""
    logging.getLogger("dashstore").setLevel(level.upper())
