from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Any

import yaml

from aquabot.agents.context_builder import build_tank_context
from aquabot.agents.system_prompt import generate_summarizer_prompt, generate_system_prompt
from aquabot.agents.user_context import UserContextForAI


def test_system_prompt_without_tank_asks_user_to_select_one() -> None:
    prompt = generate_system_prompt(None, today=date(2025, 10, 19))

    assert prompt.startswith("You are AquaBot")
    assert "# Tank Context" in prompt
    assert "No tank selected" in prompt
    assert "## Skill Level" not in prompt
    assert "## Available Actions" in prompt
    assert prompt.endswith("## Current Date: 2025-10-19")


def test_system_prompt_includes_skill_level_tank_and_preferences(
    demo_snapshot: dict[str, Any],
) -> None:
    context = build_tank_context(demo_snapshot)
    prefs = UserContextForAI.from_row(demo_snapshot["preferences"])

    prompt = generate_system_prompt(context, prefs, today=date(2025, 10, 19))

    assert "## Skill Level: Intermediate" in prompt
    assert "# Current Tank Context" in prompt
    assert "## Tank: Living Room Reef" in prompt
    assert "## User Profile & Memory" in prompt
    assert "- Doses two-part alkalinity weekly" in prompt
    assert prompt.index("# Current Tank Context") < prompt.index("## Available Actions")


def test_unknown_skill_level_falls_back_to_beginner() -> None:
    context = build_tank_context({"tank": {"id": "t1"}, "user": {"skill_level": "wizard"}})

    prompt = generate_system_prompt(context, today=date(2025, 1, 1))

    assert "## Skill Level: Beginner" in prompt


def test_system_prompt_reads_prompt_text_from_versioned_yaml(tmp_path: Path) -> None:
    chat_dir = tmp_path / "chat"
    chat_dir.mkdir()
    (chat_dir / "policy.yaml").write_text(
        yaml.safe_dump(
            {
                "agent_name": "chat",
                "model": "claude-sonnet-4-5",
                "prompt_version": "v2",
                "max_tokens": 100,
            }
        ),
        encoding="utf-8",
    )
    (chat_dir / "v2.yaml").write_text(
        yaml.safe_dump({"base": "Custom persona", "no_tank": "Pick a tank", "actions": "No actions"}),
        encoding="utf-8",
    )

    prompt = generate_system_prompt(None, today=date(2025, 1, 1), prompts_dir=tmp_path)

    assert prompt.startswith("Custom persona")
    assert "Pick a tank" in prompt
    assert "No actions" in prompt


def test_summarizer_prompt_lists_numbered_instructions() -> None:
    prompt = generate_summarizer_prompt()

    assert prompt.startswith("You are a summarizer for aquarium conversation history. Your task is to:")
    assert "1. Extract key facts about the tank, livestock, and issues discussed" in prompt
    assert "4. Preserve context needed for future conversations" in prompt
    assert "Keep summaries under 300 words" in prompt
