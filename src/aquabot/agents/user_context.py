"""User preferences rendered into the chat system prompt."""

from __future__ import annotations

from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, field_validator


MAX_LEARNED_FACTS = 10

EXPERIENCE_LEVELS = {
    "first_timer": "First-time aquarium keeper",
    "returning": "Returning to the hobby",
    "experienced": "Experienced aquarist",
    "expert": "Expert/Breeder level",
}
SITUATIONS = {
    "new_tank": "Setting up a new tank",
    "existing_tank": "Managing an existing tank",
    "exploring": "Exploring options before starting",
    "multiple_tanks": "Managing multiple tanks",
}
EXPLANATION_DEPTHS = {
    "brief": "Brief and to-the-point",
    "moderate": "Moderate detail",
    "detailed": "Detailed explanations with background",
}
CHALLENGES = {
    "keeping_alive": "Keeping fish alive",
    "water_quality": "Maintaining water quality",
    "compatibility": "Species compatibility",
    "maintenance": "Regular maintenance",
    "chemistry": "Understanding water chemistry",
    "none": "No current challenges",
}
GOALS = {
    "low_maintenance": "Low-maintenance setup",
    "planted_tank": "Beautiful planted tank",
    "specific_fish": "Keep specific fish species",
    "reef_tank": "Reef/coral tank",
}


class UserContextForAI(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    experience_level: str | None = None
    years_in_hobby: int | None = None
    previous_tank_types: list[str] | None = None
    current_situation: str | None = None
    primary_goal: str | None = None
    motivation: str | None = None
    explanation_depth: str = "moderate"
    wants_scientific_names: bool = False
    communication_style: str = "friendly"
    current_challenges: list[str] | None = None
    avoided_topics: list[str] | None = None
    ai_learned_facts: list[Any] = []
    ai_interaction_summary: str | None = None
    has_completed_onboarding: bool = False

    @field_validator("explanation_depth", "communication_style", mode="before")
    @classmethod
    def default_when_blank(cls, value: Any, info: Any) -> Any:
        if value:
            return value
        return "moderate" if info.field_name == "explanation_depth" else "friendly"

    @field_validator("wants_scientific_names", mode="before")
    @classmethod
    def default_false(cls, value: Any) -> Any:
        return bool(value)

    @field_validator("ai_learned_facts", mode="before")
    @classmethod
    def default_empty(cls, value: Any) -> Any:
        return value or []

    @classmethod
    def from_row(cls, row: Mapping[str, Any] | None) -> "UserContextForAI | None":
        """Build from a ``user_preferences`` row; ``None`` when the user has none."""
        if not isinstance(row, Mapping) or not row:
            return None
        data = dict(row)
        data["has_completed_onboarding"] = bool(data.get("onboarding_completed_at"))
        return cls.model_validate(data)


def _format_experience(level: str | None, years: int | None) -> str:
    if not level:
        return "Unknown"
    formatted = EXPERIENCE_LEVELS.get(level, level)
    if years is not None and years > 0:
        return f"{formatted} ({years} year{'' if years == 1 else 's'} in hobby)"
    return formatted


def _format_challenges(challenges: list[str] | None) -> str:
    if not challenges:
        return "None specified"
    return ", ".join(CHALLENGES.get(item, item) for item in challenges)


def _fact_text(fact: Any) -> str | None:
    if isinstance(fact, str):
        return fact
    if isinstance(fact, Mapping) and "fact" in fact:
        return str(fact["fact"])
    return None


def format_user_preferences_for_prompt(prefs: UserContextForAI) -> str:
    lines = [
        "## User Profile & Memory",
        "",
        "This user's background and preferences:",
        "",
        f"- **Experience:** {_format_experience(prefs.experience_level, prefs.years_in_hobby)}",
        "- **Current situation:** "
        + (SITUATIONS.get(prefs.current_situation, prefs.current_situation) if prefs.current_situation else "Not specified"),
    ]
    if prefs.primary_goal:
        lines.append(f"- **Goal:** {GOALS.get(prefs.primary_goal, prefs.primary_goal)}")
    lines.append(f"- **Current challenges:** {_format_challenges(prefs.current_challenges)}")
    lines.append(
        "- **Explanation preference:** "
        + EXPLANATION_DEPTHS.get(prefs.explanation_depth, prefs.explanation_depth)
    )
    if prefs.wants_scientific_names:
        lines.append("- **Prefers scientific names** when discussing species")
    if prefs.previous_tank_types:
        lines.append(f"- **Previous tank types:** {', '.join(prefs.previous_tank_types)}")

    facts = [text for text in map(_fact_text, prefs.ai_learned_facts[:MAX_LEARNED_FACTS]) if text]
    if facts:
        lines.extend(["", "### Previously Learned Facts"])
        lines.extend(f"- {fact}" for fact in facts)

    if prefs.ai_interaction_summary:
        lines.extend(["", "### Conversation History Summary", prefs.ai_interaction_summary])

    if prefs.avoided_topics:
        lines.extend([
            "",
            "### Topics to Avoid",
            "The user has indicated they prefer not to discuss: " + ", ".join(prefs.avoided_topics),
        ])

    guidelines = [
        "Tailor explanations to their experience level",
        "Reference their stated goal when making recommendations",
        "Address their current challenges proactively when relevant",
        "Match their preferred explanation depth",
    ]
    if prefs.wants_scientific_names:
        guidelines.append("Include scientific names for species")
    if prefs.communication_style == "professional":
        guidelines.append("Use a professional, technical tone")
    elif prefs.communication_style == "casual":
        guidelines.append("Keep the tone casual and approachable")

    lines.extend(["", "### Personalization Guidelines", "", "Use this context to:"])
    lines.extend(f"{index}. {text}" for index, text in enumerate(guidelines, start=1))
    return "\n".join(lines)


def get_user_context_summary(prefs: UserContextForAI | None) -> str:
    if prefs is None:
        return "No user preferences (using defaults)"

    parts: list[str] = []
    if prefs.experience_level:
        parts.append(f"exp:{prefs.experience_level}")
    if prefs.explanation_depth:
        parts.append(f"depth:{prefs.explanation_depth}")
    if prefs.has_completed_onboarding:
        parts.append("onboarded")
    return ", ".join(parts) if parts else "Preferences set but minimal"
