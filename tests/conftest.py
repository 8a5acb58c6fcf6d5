"""
Root conftest.py - shared state factories, snapshot data and tmp path helpers.
No API mocking at root level (integration/conftest.py owns that).
"""
import json
from pathlib import Path

import pytest

from aquabot.state import initialize_state


REPO_ROOT = Path(__file__).parent.parent


@pytest.fixture
def repo_root() -> Path:
    """Returns the absolute path to the repository root."""
    return REPO_ROOT


@pytest.fixture
def demo_snapshot() -> dict[str, object]:
    """The demo user's tank snapshot as stored in memory/profiles."""
    with (REPO_ROOT / "memory" / "profiles" / "demo.json").open("r", encoding="utf-8") as handle:
        return json.load(handle)


@pytest.fixture
def tmp_memory_dir(tmp_path: Path) -> Path:
    """Creates a temporary memory directory structure for tests."""
    profiles = tmp_path / "memory" / "profiles"
    sessions = tmp_path / "memory" / "sessions"
    profiles.mkdir(parents=True)
    sessions.mkdir(parents=True)
    (sessions / ".gitkeep").touch()
    return tmp_path / "memory"


@pytest.fixture
def fresh_chat_state() -> dict[str, object]:
    """Fresh state fixture with session id and optional outputs initialized."""
    return dict(
        initialize_state(
            user_id="demo",
            session_id="session-test-state",
            current_input="",
            turn_id=0,
        )
    )


@pytest.fixture
def no_api_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
