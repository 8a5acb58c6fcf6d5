from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path

import pytest
import yaml


REPO_ROOT = Path(__file__).resolve().parents[2]


def test_check_order_contract() -> None:
    import validate_config

    assert validate_config.CHECK_NAMES == (
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


def test_python_version_failure_is_human_readable(monkeypatch: pytest.MonkeyPatch) -> None:
    import validate_config

    monkeypatch.setattr(validate_config.sys, "version_info", (3, 10, 9))

    errors = validate_config.check_python_version()
    assert errors
    assert "Python 3.11+ required" in errors[0]


def test_missing_api_key_mentions_variable(monkeypatch: pytest.MonkeyPatch) -> None:
    import validate_config

    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    errors = validate_config.check_anthropic_api_key_present()
    assert errors
    assert "ANTHROPIC_API_KEY" in errors[0]


def test_repository_policies_and_limits_are_valid(monkeypatch: pytest.MonkeyPatch) -> None:
    import validate_config

    monkeypatch.delenv("FAST_MODE", raising=False)
    policies = validate_config._load_policy_map(REPO_ROOT)

    assert set(policies) == {"chat", "summarizer", "coaching"}
    assert validate_config.check_policy_yaml_schema(REPO_ROOT) == []
    assert validate_config.check_prompt_version_files_exist(policies, REPO_ROOT) == []
    assert validate_config.check_model_allowlist(policies, REPO_ROOT) == []
    assert validate_config.check_token_limits_schema(REPO_ROOT) == []
    assert validate_config.check_policy_max_tokens_within_limits(policies, REPO_ROOT) == []
    assert validate_config.check_demo_profile_json(REPO_ROOT) == []


def _write_repo(root: Path, limits: dict[str, int], chat_max_tokens: int = 2000) -> None:
    (root / "config").mkdir(parents=True)
    (root / "config" / "token_limits.yaml").write_text(yaml.safe_dump(limits), encoding="utf-8")
    for agent, model, max_tokens in [
        ("chat", "gpt-4o", chat_max_tokens),
        ("summarizer", "claude-haiku-4-5", 300),
        ("coaching", "claude-haiku-4-5", 300),
    ]:
        agent_dir = root / "prompts" / agent
        agent_dir.mkdir(parents=True)
        (agent_dir / "policy.yaml").write_text(
            yaml.safe_dump(
                {
                    "agent_name": agent,
                    "model": model,
                    "prompt_version": "v1",
                    "max_tokens": max_tokens,
                }
            ),
            encoding="utf-8",
        )


def test_bad_model_and_oversized_max_tokens_are_reported(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    import validate_config

    monkeypatch.delenv("FAST_MODE", raising=False)
    _write_repo(tmp_path, {"max_response": 1000}, chat_max_tokens=1500)
    policies = validate_config._load_policy_map(tmp_path)

    model_errors = validate_config.check_model_allowlist(policies, tmp_path)
    assert len(model_errors) == 1
    assert "unsupported model 'gpt-4o'" in model_errors[0]

    prompt_errors = validate_config.check_prompt_version_files_exist(policies, tmp_path)
    assert "prompts/chat/v1.yaml not found" in prompt_errors

    token_errors = validate_config.check_policy_max_tokens_within_limits(policies, tmp_path)
    assert token_errors == ["chat max_tokens (1500) must not exceed 1000"]


def test_inconsistent_token_limits_are_reported(tmp_path: Path) -> None:
    import validate_config

    _write_repo(tmp_path, {"max_summary": 9000})

    errors = validate_config.check_token_limits_schema(tmp_path)

    assert len(errors) == 1
    assert "failed TokenLimits validation" in errors[0]


def test_demo_profile_without_tank_is_rejected(tmp_path: Path) -> None:
    import validate_config

    profiles = tmp_path / "memory" / "profiles"
    profiles.mkdir(parents=True)
    (profiles / "demo.json").write_text('{"preferred_name": "Sam"}', encoding="utf-8")

    errors = validate_config.check_demo_profile_json(tmp_path)

    assert errors and "must contain a JSON object with a tank" in errors[0]


def test_run_checks_lists_multiple_failures_before_exit(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    import validate_config

    def _ok(*_args, **_kwargs) -> list[str]:
        return []

    for name in validate_config.CHECK_NAMES:
        monkeypatch.setattr(validate_config, name, _ok)
    monkeypatch.setattr(
        validate_config,
        "check_model_allowlist",
        lambda *_args, **_kwargs: ["prompts/chat/policy.yaml has unsupported model 'gpt-4o'."],
    )
    monkeypatch.setattr(
        validate_config,
        "check_token_limits_schema",
        lambda *_args, **_kwargs: ["config/token_limits.yaml failed TokenLimits validation"],
    )

    with pytest.raises(SystemExit) as exc:
        validate_config.run_checks(repo_root=REPO_ROOT)

    assert exc.value.code == 1
    output = capsys.readouterr().err
    assert "[CONFIG ERROR]" in output
    assert "1. prompts/chat/policy.yaml has unsupported model 'gpt-4o'." in output
    assert "2. config/token_limits.yaml failed TokenLimits validation" in output


def test_standalone_validate_config_prints_config_ok() -> None:
    pytest.importorskip("langgraph")

    env = os.environ.copy()
    env["ANTHROPIC_API_KEY"] = "test-key"
    env["SKIP_API_PROBE"] = "1"
    env["PYTHONPATH"] = os.pathsep.join(
        [str(REPO_ROOT / "src"), env.get("PYTHONPATH", "")]
    ).rstrip(os.pathsep)
    env.pop("FAST_MODE", None)

    result = subprocess.run(
        [sys.executable, str(REPO_ROOT / "validate_config.py")],
        cwd=REPO_ROOT,
        env=env,
        text=True,
        capture_output=True,
        check=False,
    )

    assert result.returncode == 0, result.stderr
    assert "[CONFIG OK]" in result.stdout
