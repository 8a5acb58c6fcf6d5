"""Short personalised coaching tips generated from tank state and preferences."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from pydantic import BaseModel, Field

from aquabot.agents.context_builder import build_tank_context
from aquabot.agents.llm import create_client, extract_text, usage_tokens
from aquabot.agents.user_context import UserContextForAI
from aquabot.policy import AgentPolicy, load_agent_policy, load_prompt
from aquabot.trace import trace


class CoachingUser(BaseModel):
    experience_level: str | None = None
    primary_goal: str | None = None
    current_challenges: list[str] = Field(default_factory=list)


class CoachingTank(BaseModel):
    name: str
    type: str
    volume_gallons: float
    setup_date: str | None = None


class CoachingParameters(BaseModel):
    ph: float | None = None
    ammonia: float | None = None
    nitrite: float | None = None
    nitrate: float | None = None
    temperature: float | None = None


class CoachingContext(BaseModel):
    user: CoachingUser
    tank: CoachingTank
    parameters: CoachingParameters | None = None
    livestock_count: int = 0
    pending_tasks_count: int = 0


@dataclass(frozen=True)
class CoachingResult:
    message: str
    input_tokens: int
    output_tokens: int


_PARAMETER_LABELS = (
    ("ph", "pH", ""),
    ("ammonia", "Ammonia", " ppm"),
    ("nitrite", "Nitrite", " ppm"),
    ("nitrate", "Nitrate", " ppm"),
    ("temperature", "Temp", "F"),
)


def build_coaching_context(snapshot: Mapping[str, Any] | None) -> CoachingContext | None:
    tank_context = build_tank_context(snapshot)
    if tank_context is None or snapshot is None:
        return None

    prefs = UserContextForAI.from_row(snapshot.get("preferences"))
    latest = tank_context["parameters"][0] if tank_context["parameters"] else None
    tank = tank_context["tank"]
    return CoachingContext(
        user=CoachingUser(
            experience_level=prefs.experience_level if prefs else None,
            primary_goal=prefs.primary_goal if prefs else None,
            current_challenges=list(prefs.current_challenges or []) if prefs else [],
        ),
        tank=CoachingTank(
            name=tank["name"],
            type=tank["type"],
            volume_gallons=tank["volume_gallons"],
            setup_date=tank.get("setup_date"),
        ),
        parameters=(
            CoachingParameters.model_validate({key: value for key, value in latest.items() if value})
            if latest
            else None
        ),
        livestock_count=sum(animal["quantity"] for animal in tank_context["livestock"]),
        pending_tasks_count=sum(1 for task in tank_context["maintenance"] if task["next_due"]),
    )


def build_coaching_system_prompt(
    context: CoachingContext,
    prompts_dir: Path | None = None,
) -> str:
    prompt = load_prompt("coaching", prompts_dir=prompts_dir)
    lines = [str(prompt.get("role") or "").strip(), str(prompt.get("task") or "").strip(), "", "Guidelines:"]
    lines.extend(f"- {item}" for item in prompt.get("guidelines") or [])
    lines.extend(["", "Context:"])
    lines.append(
        f"- Tank: {context.tank.name} ({context.tank.type}, {context.tank.volume_gallons:g} gallons)"
    )
    if context.user.experience_level:
        lines.append(f"- Experience: {context.user.experience_level}")
    if context.user.primary_goal:
        lines.append(f"- Goal: {context.user.primary_goal}")
    if context.user.current_challenges:
        lines.append(f"- Challenges: {', '.join(context.user.current_challenges)}")

    if context.parameters is not None:
        values = [
            f"{label}: {getattr(context.parameters, key):g}{unit}"
            for key, label, unit in _PARAMETER_LABELS
            if getattr(context.parameters, key) is not None
        ]
        if values:
            lines.append(f"- Latest parameters: {', '.join(values)}")

    lines.append(f"- Livestock count: {context.livestock_count}")
    lines.append(f"- Pending maintenance tasks: {context.pending_tasks_count}")
    if context.tank.setup_date:
        lines.append(f"- Tank setup date: {context.tank.setup_date}")
    return "\n".join(lines)


class CoachingAgent:
    def __init__(
        self,
        policy: AgentPolicy | None = None,
        prompts_dir: Path | None = None,
    ) -> None:
        self._prompts_dir = prompts_dir
        self._policy = policy or load_agent_policy("coaching", prompts_dir)

    def generate(self, context: CoachingContext) -> CoachingResult:
        prompt = load_prompt("coaching", prompts_dir=self._prompts_dir)
        response = create_client().messages.create(
            model=self._policy.model,
            max_tokens=self._policy.max_tokens,
            system=build_coaching_system_prompt(context, self._prompts_dir),
            messages=[{"role": "user", "content": str(prompt.get("request") or "").strip()}],
        )
        input_tokens, output_tokens = usage_tokens(response)
        trace(
            "coaching",
            event="tip_generated",
            model=self._policy.model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )
        return CoachingResult(
            message=extract_text(response),
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )
