from __future__ import annotations

import argparse
from datetime import datetime, timezone
import importlib
import os
import sys
from pathlib import Path
from typing import Any, Callable
from uuid import uuid4


_MIN_PYTHON = (3, 11)
_EXIT_COMMANDS = {"exit", "quit"}
_FAST_MODE_BANNER = "[FAST MODE] Using claude-haiku-4-5 for every agent"
_SESSION_PERSIST_FAILURE_MESSAGE = "Session could not be saved - your next chat starts fresh"
_NO_TANK_COACHING_MESSAGE = "Add a tank to your profile to get coaching tips."


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="AquaBot aquarium assistant CLI")
    parser.add_argument("--user", required=True, help="User id whose tank snapshot is loaded")
    parser.add_argument(
        "--fast-mode",
        action="store_true",
        help="Use claude-haiku-4-5 for every agent during development.",
    )
    parser.add_argument(
        "--coach",
        action="store_true",
        help="Print one coaching tip for the user's tank and exit.",
    )
    return parser


def _ensure_supported_python() -> bool:
    if tuple(sys.version_info[:2]) >= _MIN_PYTHON:
        return True
    print("Python 3.11+ required", file=sys.stderr)
    return False


def _ensure_src_on_path() -> None:
    repo_root = Path(__file__).resolve().parent
    src_path = str(repo_root / "src")
    if src_path not in sys.path:
        sys.path.insert(0, src_path)


def _load_runtime_dependencies() -> tuple[Any, Callable[..., dict[str, Any]]]:
    _ensure_src_on_path()

    validate_config = importlib.import_module("validate_config")
    validate_config.run_checks()

    graph_module = importlib.import_module("aquabot.graph")
    state_module = importlib.import_module("aquabot.state")
    return graph_module.compiled_graph, state_module.initialize_state


def _snapshot_store() -> Any:
    store_module = importlib.import_module("aquabot.agents.snapshot_store")
    return store_module.SnapshotStore()


def _emit_proactive_greeting(user_id: str, snapshot: dict[str, Any] | None) -> None:
    if not isinstance(snapshot, dict):
        return

    store_module = importlib.import_module("aquabot.agents.snapshot_store")
    greeting = store_module.build_proactive_greeting(snapshot, user_id)
    if greeting:
        print(greeting)


def _restore_previous_session(state: dict[str, Any], previous: dict[str, Any] | None) -> None:
    if not isinstance(previous, dict):
        return
    history = previous.get("conversation_history")
    if isinstance(history, list):
        state["conversation_history"] = history
    state["summary"] = previous.get("summary")
    state["summarized_count"] = int(previous.get("summarized_count") or 0)


def _iso_utc_now() -> str:
    return (
        datetime.now(timezone.utc)
        .replace(microsecond=0)
        .isoformat()
        .replace("+00:00", "Z")
    )


def _persist_session_state(state: dict[str, Any], timestamp_start: str) -> None:
    if not state.get("conversation_history"):
        return

    try:
        written = _snapshot_store().write_session_state(
            state=state,
            timestamp_start=timestamp_start,
            timestamp_end=_iso_utc_now(),
        )
    except OSError:
        written = None

    if written is None:
        state["error"] = _SESSION_PERSIST_FAILURE_MESSAGE
        print(_SESSION_PERSIST_FAILURE_MESSAGE)


def _run_coaching(snapshot: dict[str, Any] | None) -> int:
    coaching_module = importlib.import_module("aquabot.agents.coaching")
    context = coaching_module.build_coaching_context(snapshot)
    if context is None:
        print(_NO_TANK_COACHING_MESSAGE)
        return 1

    result = coaching_module.CoachingAgent().generate(context)
    print(result.message)
    return 0


def _run_loop(
    compiled_graph: Any,
    state: dict[str, Any],
    input_reader: Callable[[str], str],
) -> int:
    while True:
        try:
            user_input = input_reader("")
        except EOFError:
            return 0
        except KeyboardInterrupt:
            print()
            return 0

        normalized = user_input.strip()
        if not normalized:
            continue
        if normalized.lower() in _EXIT_COMMANDS:
            return 0

        state["turn_id"] = int(state.get("turn_id", 0)) + 1
        state["current_input"] = normalized

        result = compiled_graph.invoke(state)
        if isinstance(result, dict):
            state.clear()
            state.update(result)
        response = str(state.get("current_response") or "").strip()
        if response:
            print(response)


def main(argv: list[str] | None = None, input_reader: Callable[[str], str] = input) -> int:
    if not _ensure_supported_python():
        return 1

    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.fast_mode:
        os.environ["FAST_MODE"] = "1"

    try:
        compiled_graph, initialize_state = _load_runtime_dependencies()
    except SystemExit as exc:
        return int(exc.code) if isinstance(exc.code, int) else 1

    if args.fast_mode:
        print(_FAST_MODE_BANNER)

    store = _snapshot_store()
    snapshot = store.load_snapshot(args.user)
    if args.coach:
        return _run_coaching(snapshot)

    state = initialize_state(
        user_id=args.user,
        session_id=f"session-{uuid4().hex}",
        current_input="",
        turn_id=0,
    )
    state["tank_snapshot"] = snapshot
    _restore_previous_session(state, store.load_latest_session(args.user))
    timestamp_start = _iso_utc_now()
    _emit_proactive_greeting(args.user, snapshot)
    exit_code = _run_loop(compiled_graph=compiled_graph, state=state, input_reader=input_reader)
    _persist_session_state(state, timestamp_start)
    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())
