from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import yaml
from pydantic import ValidationError

from aquabot.agents.token_counter import TokenLimits, load_token_limits
from aquabot.policy import AGENTS, AgentPolicy, load_agent_policy


ALLOWED_MODEL_PREFIXES = (
    "claude-opus-4",
    "claude-sonnet-4",
    "claude-haiku-4",
)
CHECK_NAMES = (
    "check_python_version",
    "check_anthropic_api_key_present",
    "check_policy_yaml_schema",
    "check_prompt_version_files_exist",
    "check_model_allowlist",
    "check_token_limits_schema",
    "check_policy_max_tokens_within_limits",
    "check_langgraph_version_major_1",
    "check_demo_profile_json",
    "check_anthropic_api_probe",
)
_POLICY_CHECKS = {
    "check_prompt_version_files_exist",
    "check_model_allowlist",
    "check_policy_max_tokens_within_limits",
}


def _resolve_repo_root(repo_root: Path | str | None = None) -> Path:
    if repo_root is None:
        return Path(__file__).resolve().parent
    return Path(repo_root).resolve()


def _load_policy_map(repo_root: Path | str | None = None) -> dict[str, AgentPolicy]:
    prompts_dir = _resolve_repo_root(repo_root) / "prompts"
    errors: list[str] = []
    policies: dict[str, AgentPolicy] = {}

    for agent in AGENTS:
        policy_path = prompts_dir / agent / "policy.yaml"
        if not policy_path.exists():
            errors.append(f"{policy_path} is missing")
            continue
        try:
            policies[agent] = load_agent_policy(agent, prompts_dir)
        except yaml.YAMLError as exc:
            errors.append(f"{policy_path} is not valid YAML: {exc}")
        except ValidationError as exc:
            errors.append(
                f"{policy_path} failed AgentPolicy validation: "
                f"{exc.errors(include_url=False)}"
            )
        except ValueError as exc:
            errors.append(str(exc))

    if errors:
        raise ValueError("\n".join(errors))
    return policies


def _load_limits(repo_root: Path | str | None = None) -> TokenLimits:
    return load_token_limits(_resolve_repo_root(repo_root) / "config" / "token_limits.yaml")


def check_python_version(repo_root: Path | str | None = None) -> list[str]:
    del repo_root
    if tuple(sys.version_info[:2]) >= (3, 11):
        return []
    current = ".".join(map(str, sys.version_info[:3]))
    return [f"Python 3.11+ required. Current version: {current}. Install Python 3.11 or newer."]


def check_anthropic_api_key_present(repo_root: Path | str | None = None) -> list[str]:
    del repo_root
    if os.environ.get("ANTHROPIC_API_KEY", "").strip():
        return []
    return [
        "ANTHROPIC_API_KEY is missing. Set ANTHROPIC_API_KEY in your environment or .env file."
    ]


def check_policy_yaml_schema(repo_root: Path | str | None = None) -> list[str]:
    try:
        _load_policy_map(repo_root)
        return []
    except ValueError as exc:
        return [line for line in str(exc).splitlines() if line.strip()]


def check_prompt_version_files_exist(
    policies: dict[str, AgentPolicy],
    repo_root: Path | str | None = None,
) -> list[str]:
    root = _resolve_repo_root(repo_root)
    return [
        f"prompts/{agent}/{policy.prompt_version}.yaml not found"
        for agent, policy in policies.items()
        if not (root / "prompts" / agent / f"{policy.prompt_version}.yaml").exists()
    ]


def check_model_allowlist(
    policies: dict[str, AgentPolicy],
    repo_root: Path | str | None = None,
) -> list[str]:
    del repo_root
    return [
        f"prompts/{agent}/policy.yaml has unsupported model {policy.model!r}. "
        f"Use one of families: {', '.join(ALLOWED_MODEL_PREFIXES)}."
        for agent, policy in policies.items()
        if not policy.model.startswith(ALLOWED_MODEL_PREFIXES)
    ]


def check_token_limits_schema(repo_root: Path | str | None = None) -> list[str]:
    limits_path = _resolve_repo_root(repo_root) / "config" / "token_limits.yaml"
    try:
        _load_limits(repo_root)
    except yaml.YAMLError as exc:
        return [f"{limits_path} is not valid YAML: {exc}"]
    except ValidationError as exc:
        return [
            f"{limits_path} failed TokenLimits validation: "
            f"{exc.errors(include_url=False)}"
        ]
    except ValueError as exc:
        return [str(exc)]
    return []


def check_policy_max_tokens_within_limits(
    policies: dict[str, AgentPolicy],
    repo_root: Path | str | None = None,
) -> list[str]:
    try:
        limits = _load_limits(repo_root)
    except (ValueError, yaml.YAMLError):
        return []

    caps = {"chat": limits.max_response, "summarizer": limits.max_summary}
    errors: list[str] = []
    for agent, cap in caps.items():
        policy = policies.get(agent)
        if policy is None:
            errors.append(f"prompts/{agent}/policy.yaml missing or invalid; cannot validate max_tokens.")
        elif policy.max_tokens > cap:
            errors.append(f"{agent} max_tokens ({policy.max_tokens}) must not exceed {cap}")
    return errors


def check_langgraph_version_major_1(repo_root: Path | str | None = None) -> list[str]:
    del repo_root
    import importlib.metadata

    try:
        version = importlib.metadata.version("langgraph")
    except importlib.metadata.PackageNotFoundError:
        return ["langgraph is not installed. Install the project with `pip install -e .`."]
    if version.startswith("1."):
        return []
    return [f"langgraph major version must start with '1.', found {version!r}"]


def check_demo_profile_json(repo_root: Path | str | None = None) -> list[str]:
    demo_path = _resolve_repo_root(repo_root) / "memory" / "profiles" / "demo.json"
    if not demo_path.exists():
        return [f"{demo_path} is missing"]

    try:
        with demo_path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
    except json.JSONDecodeError as exc:
        return [f"{demo_path} is not valid JSON: {exc}"]

    if not isinstance(data, dict) or not isinstance(data.get("tank"), dict):
        return [f"{demo_path} must contain a JSON object with a tank"]
    return []


def check_anthropic_api_probe(repo_root: Path | str | None = None) -> list[str]:
    del repo_root
    if os.environ.get("SKIP_API_PROBE") == "1":
        return []
    if not os.environ.get("ANTHROPIC_API_KEY", "").strip():
        return []

    import anthropic

    try:
        client = anthropic.Anthropic(timeout=5.0)
        client.models.list(limit=1)
    except anthropic.AuthenticationError:
        return [
            "ANTHROPIC_API_KEY appears invalid or expired. "
            "Update ANTHROPIC_API_KEY with a valid active key."
        ]
    except anthropic.APITimeoutError:
        return ["API probe timed out - check network. Key format appears valid."]
    except anthropic.APIError as exc:  # pragma: no cover - network dependent
        return [f"Anthropic API probe failed: {exc}"]
    return []


def run_checks(repo_root: Path | str | None = None) -> None:
    resolved_root = _resolve_repo_root(repo_root)
    failures: list[str] = []
    policy_cache: dict[str, AgentPolicy] | None = None

    for check_name in CHECK_NAMES:
        check_fn = globals()[check_name]

        if check_name in _POLICY_CHECKS:
            if policy_cache is None:
                try:
                    policy_cache = _load_policy_map(resolved_root)
                except ValueError:
                    policy_cache = {}
            errors = check_fn(policy_cache, repo_root=resolved_root)
        else:
            errors = check_fn(repo_root=resolved_root)

        failures.extend(errors)

    if failures:
        print("[CONFIG ERROR] One or more configuration checks failed:", file=sys.stderr)
        for index, message in enumerate(failures, start=1):
            print(f"{index}. {message}", file=sys.stderr)
        raise SystemExit(1)


def main() -> int:
    run_checks()
    print("[CONFIG OK]")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
