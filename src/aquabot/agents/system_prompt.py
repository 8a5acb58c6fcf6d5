from __future__ import annotations

from datetime import date
from pathlib import Path

from aquabot.agents.context_builder import TankContext, format_context_for_prompt
from aquabot.agents.user_context import UserContextForAI, format_user_preferences_for_prompt
from aquabot.policy import load_prompt


DEFAULT_SKILL_LEVEL = "beginner"


def generate_system_prompt(
    context: TankContext | None,
    user_preferences: UserContextForAI | None = None,
    today: date | None = None,
    prompts_dir: Path | None = None,
) -> str:
    """Assemble the chat system prompt from the persona, tank and user context."""
    prompt = load_prompt("chat", prompts_dir=prompts_dir)
    skill_levels = prompt.get("skill_levels") or {}
    parts = [str(prompt["base"]).strip()]

    if context is not None:
        skill_level = context["user"]["skill_level"] or DEFAULT_SKILL_LEVEL
        skill_prompt = skill_levels.get(skill_level) or skill_levels.get(DEFAULT_SKILL_LEVEL)
        if skill_prompt:
            parts.append(f"\n{str(skill_prompt).strip()}")
        parts.append("\n# Current Tank Context\n")
        parts.append(format_context_for_prompt(context))
    else:
        parts.append("\n# Tank Context\n")
        parts.append(str(prompt.get("no_tank") or "").strip())

    if user_preferences is not None:
        parts.append("")
        parts.append(format_user_preferences_for_prompt(user_preferences))

    parts.append(f"\n{str(prompt.get('actions') or '').strip()}")
    parts.append(f"\n## Current Date: {(today or date.today()).isoformat()}")
    return "\n".join(parts)


def generate_summarizer_prompt(prompts_dir: Path | None = None) -> str:
    prompt = load_prompt("summarizer", prompts_dir=prompts_dir)
    instructions = prompt.get("instructions") or []
    numbered = "\n".join(
        f"{index}. {item}" for index, item in enumerate(instructions, start=1)
    )
    return (
        f"{str(prompt.get('role') or '').strip()} Your task is to:\n\n"
        f"{numbered}\n\n"
        f"{str(prompt.get('output_format') or '').strip()}"
    ).strip()
