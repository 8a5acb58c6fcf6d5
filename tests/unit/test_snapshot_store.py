from __future__ import annotations

import io
import json
from pathlib import Path
from typing import Any

import pytest

from aquabot import trace as trace_module
from aquabot.agents.snapshot_store import SnapshotStore, build_proactive_greeting


@pytest.fixture
def trace_buffer(monkeypatch: pytest.MonkeyPatch) -> io.StringIO:
    buffer = io.StringIO()
    monkeypatch.setattr(trace_module, "_trace_writer", buffer)
    return buffer


def _store(memory_dir: Path, output: io.StringIO | None = None) -> SnapshotStore:
    return SnapshotStore(
        profiles_dir=memory_dir / "profiles",
        sessions_dir=memory_dir / "sessions",
        output_writer=output or io.StringIO(),
    )


def test_load_snapshot_reads_profile_and_traces_tank(
    tmp_memory_dir: Path, trace_buffer: io.StringIO
) -> None:
    (tmp_memory_dir / "profiles" / "alex.json").write_text(
        json.dumps({"tank": {"id": "tank-9", "name": "Office Nano"}}), encoding="utf-8"
    )

    snapshot = _store(tmp_memory_dir).load_snapshot("alex")

    assert snapshot == {"tank": {"id": "tank-9", "name": "Office Nano"}}
    assert "[snapshot] event=snapshot_loaded user_id=alex tank_id=tank-9" in trace_buffer.getvalue()


@pytest.mark.parametrize("content", [None, "{not json", "[1, 2]"])
def test_missing_or_broken_profile_falls_back_to_no_tank(
    tmp_memory_dir: Path, trace_buffer: io.StringIO, content: str | None
) -> None:
    if content is not None:
        (tmp_memory_dir / "profiles" / "alex.json").write_text(content, encoding="utf-8")
    output = io.StringIO()

    snapshot = _store(tmp_memory_dir, output).load_snapshot("alex")

    assert snapshot is None
    assert output.getvalue() == "[SNAPSHOT] No tank data for alex - chatting without tank context\n"
    assert "event=snapshot_not_found" in trace_buffer.getvalue()


def test_write_session_state_persists_history_and_summary(
    tmp_memory_dir: Path, trace_buffer: io.StringIO, fresh_chat_state: dict[str, Any]
) -> None:
    state = dict(fresh_chat_state)
    state.update(
        turn_id=2,
        conversation_history=[
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "hello"},
        ],
        summary="Tank is cycling",
        summarized_count=4,
    )

    written = _store(tmp_memory_dir).write_session_state(
        state, "2025-10-19T10:00:00Z", "2025-10-19T10:05:00Z"
    )

    assert written == tmp_memory_dir / "sessions" / "session-test-state" / "state.json"
    payload = json.loads(written.read_text(encoding="utf-8"))
    assert payload["user_id"] == "demo"
    assert payload["conversation_history"][1] == {"role": "assistant", "content": "hello"}
    assert payload["summary"] == "Tank is cycling"
    assert payload["summarized_count"] == 4
    assert payload["turn_count"] == 2
    assert "event=session_written session_id=session-test-state turn_count=2" in trace_buffer.getvalue()


def test_write_session_state_requires_session_and_user(tmp_memory_dir: Path) -> None:
    assert _store(tmp_memory_dir).write_session_state({"user_id": "demo"}, "a", "b") is None


def test_load_latest_session_picks_newest_for_user(
    tmp_memory_dir: Path, trace_buffer: io.StringIO
) -> None:
    store = _store(tmp_memory_dir)
    for session_id, user_id, ended in [
        ("s-old", "demo", "2025-10-01T00:00:00Z"),
        ("s-new", "demo", "2025-10-18T00:00:00Z"),
        ("s-other", "alex", "2025-10-19T00:00:00Z"),
    ]:
        store.write_session_state(
            {"session_id": session_id, "user_id": user_id, "conversation_history": []},
            ended,
            ended,
        )
    (tmp_memory_dir / "sessions" / "broken").mkdir()
    (tmp_memory_dir / "sessions" / "broken" / "state.json").write_text("{", encoding="utf-8")

    latest = store.load_latest_session("demo")

    assert latest is not None
    assert latest["session_id"] == "s-new"
    assert store.load_latest_session("nobody") is None


def test_greeting_names_first_worsening_parameter(
    demo_snapshot: dict[str, Any], trace_buffer: io.StringIO
) -> None:
    greeting = build_proactive_greeting(demo_snapshot, "demo")

    assert greeting == (
        "Welcome back, Sam. Ammonia in Living Room Reef has been moving the wrong way "
        "over your last few tests. Want to look at it together?"
    )
    assert "event=greeting_fired user_id=demo parameter=ammonia" in trace_buffer.getvalue()


def test_no_greeting_when_trends_are_healthy() -> None:
    readings = [
        {"measured_at": f"2025-10-0{day}", "ph": 8.2, "nitrate": 10}
        for day in range(1, 7)
    ]
    snapshot = {"tank": {"id": "t1", "name": "Quiet Tank"}, "parameters": readings}

    assert build_proactive_greeting(snapshot, "demo") is None
    assert build_proactive_greeting({}, "demo") is None
