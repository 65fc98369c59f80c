"""Per-project history of finished sessions, persisted as one JSON file.

File layout: ``{"<project>": [<record>, ...], ...}`` with each project's
records newest first and capped at ``max_per_project``. The whole file is
rewritten on every mutation using temp-file-then-rename, so a crash never
leaves a half-written file behind. A missing or corrupt file is treated as
empty history.

Appends are a single synchronous read-modify-write with no await inside,
so concurrent sessions on the same event loop cannot interleave them.
"""

from __future__ import annotations

import json
from pathlib import Path

from loguru import logger

from agentdeck.engines.types import HistoryRecord


class HistoryStore:
    """Bounded, newest-first record of past sessions per project."""

    def __init__(self, path: Path, max_per_project: int = 20) -> None:
        self._path = path
        self._max = max_per_project
        self._records: dict[str, list[HistoryRecord]] = {}
        self.load()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> None:
        """Replace in-memory state with the file's content."""
        self._records = {}
        if not self._path.exists():
            logger.info("History file {} does not exist yet, starting empty", self._path)
            return
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
            for project, records in raw.items():
                self._records[project] = [HistoryRecord.from_dict(r) for r in records][
                    : self._max
                ]
            logger.info(
                "Loaded history for {} project(s) from {}", len(self._records), self._path
            )
        except (json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError) as exc:
            logger.warning("Corrupt history file {}, starting empty: {}", self._path, exc)
            self._records = {}

    def save(self) -> None:
        """Persist all projects atomically. Failures are logged, never raised."""
        data = {
            project: [r.to_dict() for r in records] for project, records in self._records.items()
        }
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(".tmp")
            tmp_path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
            tmp_path.replace(self._path)
            logger.debug("History saved to {}", self._path)
        except OSError as exc:
            logger.error("Failed to save history to {}: {}", self._path, exc)

    def append(self, project_name: str, record: HistoryRecord) -> None:
        records = self._records.setdefault(project_name, [])
        records.insert(0, record)
        del records[self._max :]
        self.save()

    def recent(self, project_name: str, limit: int = 10) -> list[HistoryRecord]:
        return list(self._records.get(project_name, [])[:limit])

    def get(self, project_name: str, record_id: str) -> HistoryRecord | None:
        for record in self._records.get(project_name, []):
            if record.id == record_id:
                return record
        return None

    def clear(self, project_name: str) -> None:
        self._records[project_name] = []
        self.save()

    def projects(self) -> list[str]:
        return list(self._records)

    def count(self, project_name: str) -> int:
        return len(self._records.get(project_name, []))
