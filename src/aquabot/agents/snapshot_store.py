from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, TextIO

from aquabot.agents.parameter_trends import TRACKED_PARAMETERS, worsening_parameters
from aquabot.agents.context_builder import build_tank_context
from aquabot.trace import trace


class SnapshotStore:
    """File-backed stand-in for the tank database.

    ``memory/profiles/<user>.json`` holds the rows the chat needs (tank, user,
    preferences, parameters, livestock, maintenance); finished chat sessions
    are written to ``memory/sessions/<session>/state.json``.
    """

    def __init__(
        self,
        profiles_dir: Path | None = None,
        sessions_dir: Path | None = None,
        output_writer: TextIO | None = None,
    ) -> None:
        repo_root = Path(__file__).resolve().parents[3]
        self._profiles_dir = profiles_dir or repo_root / "memory" / "profiles"
        self._sessions_dir = sessions_dir or repo_root / "memory" / "sessions"
        self._output_writer = output_writer or sys.stdout

    def load_snapshot(self, user_id: str) -> dict[str, Any] | None:
        profile_path = self._profiles_dir / f"{user_id}.json"
        try:
            with profile_path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except (FileNotFoundError, json.JSONDecodeError):
            self._warn_not_found(user_id)
            return None

        if not isinstance(payload, dict):
            self._warn_not_found(user_id)
            return None

        tank = payload.get("tank")
        trace(
            "snapshot",
            event="snapshot_loaded",
            user_id=user_id,
            tank_id=tank.get("id") if isinstance(tank, dict) else None,
        )
        return payload

    def _warn_not_found(self, user_id: str) -> None:
        self._output_writer.write(
            f"[SNAPSHOT] No tank data for {user_id} - chatting without tank context\n"
        )
        self._output_writer.flush()
        trace("snapshot", event="snapshot_not_found", user_id=user_id)

    def load_latest_session(self, user_id: str) -> dict[str, Any] | None:
        if not self._sessions_dir.exists():
            return None

        latest: dict[str, Any] | None = None
        latest_sort_key = ""
        for state_file in self._sessions_dir.glob("*/state.json"):
            try:
                with state_file.open("r", encoding="utf-8") as handle:
                    payload = json.load(handle)
            except (OSError, json.JSONDecodeError):
                continue
            if not isinstance(payload, dict) or payload.get("user_id") != user_id:
                continue
            sort_key = str(payload.get("timestamp_end") or payload.get("timestamp_start") or "")
            if latest is None or sort_key > latest_sort_key:
                latest = payload
                latest_sort_key = sort_key
        return latest

    def write_session_state(
        self,
        state: dict[str, Any],
        timestamp_start: str,
        timestamp_end: str,
    ) -> Path | None:
        session_id = str(state.get("session_id") or "").strip()
        user_id = str(state.get("user_id") or "").strip()
        if not session_id or not user_id:
            return None

        history = state.get("conversation_history")
        turn_count = int(state.get("turn_id") or 0)
        payload = {
            "session_id": session_id,
            "user_id": user_id,
            "timestamp_start": timestamp_start,
            "timestamp_end": timestamp_end,
            "conversation_history": history if isinstance(history, list) else [],
            "summary": state.get("summary"),
            "summarized_count": int(state.get("summarized_count") or 0),
            "turn_count": turn_count,
        }

        session_dir = self._sessions_dir / session_id
        session_dir.mkdir(parents=True, exist_ok=True)
        session_file = session_dir / "state.json"
        with session_file.open("w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2, ensure_ascii=False)
            handle.write("\n")
        trace("snapshot", event="session_written", session_id=session_id, turn_count=turn_count)
        return session_file


def build_proactive_greeting(snapshot: dict[str, Any], user_id: str) -> str | None:
    context = build_tank_context(snapshot)
    if context is None:
        return None

    worsening = worsening_parameters(context["parameters"])
    if not worsening:
        return None

    name = str(snapshot.get("preferred_name") or user_id).strip() or user_id
    parameter = worsening[0]
    display_name = TRACKED_PARAMETERS[parameter][0]
    trace("snapshot", event="greeting_fired", user_id=user_id, parameter=parameter)
    return (
        f"Welcome back, {name}. "
        f"{display_name} in {context['tank']['name']} has been moving the wrong way "
        "over your last few tests. Want to look at it together?"
    )
