"""Tests for the session registry and per-project history persistence."""

from __future__ import annotations

from pathlib import Path

import pytest

from agentdeck.engines.types import HistoryRecord, LogChannel, LogEntry, Session
from agentdeck.session.history import HistoryStore
from agentdeck.session.registry import SessionRegistry
from agentdeck.session.store import MemorySessionStore


def _record(record_id: str, success: bool = True) -> HistoryRecord:
    return HistoryRecord(
        id=record_id,
        prompt=f"prompt {record_id}",
        timestamp=1_700_000_000_000,
        success=success,
        logs=[LogEntry(session_id=record_id, channel=LogChannel.STDOUT, content="hello")],
        duration=1200,
        engine="claude-code",
        error=None if success else "boom",
    )


@pytest.fixture
def history_path(tmp_path: Path) -> Path:
    return tmp_path / "history" / "claude-code-history.json"


# ---------------------------------------------------------------------------
# HistoryStore
# ---------------------------------------------------------------------------


def test_missing_file_is_empty(history_path: Path):
    store = HistoryStore(history_path)
    assert store.recent("demo") == []
    assert store.projects() == []


def test_append_is_newest_first(history_path: Path):
    store = HistoryStore(history_path)
    store.append("demo", _record("a"))
    store.append("demo", _record("b"))

    assert [r.id for r in store.recent("demo")] == ["b", "a"]


def test_cap_evicts_oldest(history_path: Path):
    store = HistoryStore(history_path, max_per_project=3)
    for record_id in "abcde":
        store.append("demo", _record(record_id))

    assert store.count("demo") == 3
    assert [r.id for r in store.recent("demo")] == ["e", "d", "c"]


def test_projects_are_independent(history_path: Path):
    store = HistoryStore(history_path, max_per_project=1)
    store.append("one", _record("a"))
    store.append("two", _record("b"))

    assert store.recent("one")[0].id == "a"
    assert store.recent("two")[0].id == "b"
    assert sorted(store.projects()) == ["one", "two"]


def test_persists_and_reloads(history_path: Path):
    store = HistoryStore(history_path)
    store.append("demo", _record("a"))
    store.append("demo", _record("b", success=False))

    reloaded = HistoryStore(history_path)
    records = reloaded.recent("demo")
    assert [r.id for r in records] == ["b", "a"]
    assert records[0].success is False
    assert records[0].error == "boom"
    assert records[1].logs[0].content == "hello"
    assert records[1].logs[0].channel == LogChannel.STDOUT
    assert not history_path.with_suffix(".tmp").exists()


def test_corrupt_file_starts_empty(history_path: Path):
    history_path.parent.mkdir(parents=True)
    history_path.write_text("{not json", encoding="utf-8")

    store = HistoryStore(history_path)
    assert store.projects() == []

    store.append("demo", _record("a"))
    assert HistoryStore(history_path).recent("demo")[0].id == "a"


def test_limit_get_and_clear(history_path: Path):
    store = HistoryStore(history_path)
    for record_id in "abc":
        store.append("demo", _record(record_id))

    assert [r.id for r in store.recent("demo", limit=2)] == ["c", "b"]
    assert store.get("demo", "a").prompt == "prompt a"
    assert store.get("demo", "zzz") is None

    store.clear("demo")
    assert store.recent("demo") == []
    assert HistoryStore(history_path).recent("demo") == []


def test_write_failure_is_swallowed(tmp_path: Path):
    blocker = tmp_path / "blocker"
    blocker.write_text("a file, not a directory", encoding="utf-8")
    store = HistoryStore(blocker / "history.json")

    store.append("demo", _record("a"))
    assert store.recent("demo")[0].id == "a"


# ---------------------------------------------------------------------------
# SessionRegistry
# ---------------------------------------------------------------------------


def _session(session_id: str) -> Session:
    return Session(
        id=session_id,
        engine="claude-code",
        project_name="demo",
        project_path="/tmp/demo",
        last_prompt="hi",
    )


def test_registry_set_get_delete():
    registry = SessionRegistry()
    registry.set(_session("s1"))

    assert "s1" in registry
    assert registry.get("s1").project_name == "demo"
    assert len(registry) == 1
    assert list(registry) == ["s1"]

    assert registry.delete("s1") is True
    assert registry.delete("s1") is False
    assert registry.get("s1") is None


def test_registry_set_replaces_same_id():
    registry = SessionRegistry()
    registry.set(_session("s1"))
    registry.set(_session("s1"))
    assert len(registry) == 1


# ---------------------------------------------------------------------------
# MemorySessionStore
# ---------------------------------------------------------------------------


def test_memory_store_create_then_update():
    store = MemorySessionStore()
    store.create_session("s1", {"project_name": "demo", "engine": "codex"})
    store.update_session("s1", {"status": "completed", "total_cost_usd": 0.01})

    row = store.get("s1")
    assert row["status"] == "completed"
    assert row["engine"] == "codex"
    assert row["total_cost_usd"] == 0.01
    assert store.get("missing") is None
