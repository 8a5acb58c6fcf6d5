"""
Integration test conftest - autouse mock Anthropic client fixture.
Real API calls are never made in pytest.
"""
from unittest.mock import MagicMock, patch

import pytest


@pytest.fixture(autouse=True)
def mock_anthropic_client(monkeypatch: pytest.MonkeyPatch) -> MagicMock:
    """
    Patches anthropic.Anthropic for all integration tests.
    Every agent builds its client through anthropic.Anthropic(), so one patch covers chat,
    summarizer and coaching calls.
    """
    monkeypatch.setenv("ANTHROPIC_API_KEY", "test-key-sk-fake-do-not-use")
    monkeypatch.delenv("FAST_MODE", raising=False)
    mock = MagicMock()
    with patch("anthropic.Anthropic", return_value=mock):
        yield mock
