from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator


AGENTS = ("chat", "summarizer", "coaching")
FAST_MODE_MODEL = "claude-haiku-4-5"
REPO_ROOT = Path(__file__).resolve().parents[2]
PROMPTS_DIR = REPO_ROOT / "prompts"


class AgentPolicy(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    agent_name: str
    configured_model: str = Field(alias="model")
    prompt_version: str
    max_tokens: int
    max_retries: int = 1

    @property
    def model(self) -> str:
        if os.environ.get("FAST_MODE") == "1":
            return FAST_MODE_MODEL
        return self.configured_model

    @field_validator("max_tokens", "max_retries")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be a positive integer")
        return value

    @field_validator("prompt_version")
    @classmethod
    def validate_prompt_version(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must be non-empty")
        return value.strip()


def load_yaml_mapping(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle)
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a YAML mapping/object")
    return data


def load_agent_policy(agent: str, prompts_dir: Path | None = None) -> AgentPolicy:
    policy_path = (prompts_dir or PROMPTS_DIR) / agent / "policy.yaml"
    policy = AgentPolicy.model_validate(load_yaml_mapping(policy_path))
    if policy.agent_name != agent:
        raise ValueError(
            f"{policy_path} has agent_name={policy.agent_name!r}, expected {agent!r}"
        )
    return policy


def load_prompt(
    agent: str,
    prompt_version: str | None = None,
    prompts_dir: Path | None = None,
) -> dict[str, Any]:
    root = prompts_dir or PROMPTS_DIR
    if prompt_version is None:
        prompt_version = load_agent_policy(agent, root).prompt_version
    return load_yaml_mapping(root / agent / f"{prompt_version}.yaml")
