"""Pytest configuration and fixtures."""

import itertools
from typing import List, Optional

import pytest

from reaper.auth.vault import MemoryVault
from reaper.config import Settings, get_settings
from reaper.providers.base import BaseProvider, ChatMessage, CompletionResponse, TokenUsage
from reaper.providers.descriptors import ProviderKind

PROVIDER_ENV_VARS = (
    "OPENAI_API_KEY",
    "ANTHROPIC_API_KEY",
    "XAI_API_KEY",
    "AZURE_OPENAI_API_KEY",
    "AZURE_OPENAI_ENDPOINT",
    "AZURE_OPENAI_DEPLOYMENT",
    "GITHUB_COPILOT_TOKEN",
    "REAPER_PROVIDER_PRIORITIES",
    "REAPER_OLLAMA_ENABLED",
)


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """Keep developer credentials and cached settings out of tests."""
    for name in PROVIDER_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class FakeClock:
    """Manually advanced clock; ``sleep`` advances it instead of blocking."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class ScriptedProvider(BaseProvider):
    """Provider whose replies are scripted.

    Each call consumes the next outcome: an exception instance is raised,
    a string becomes the reply content. Once the script runs out every call
    succeeds with ``default_reply``.
    """

    def __init__(self, kind: ProviderKind, outcomes=None, default_reply: str = "ok"):
        self.kind = kind
        super().__init__()
        self.outcomes = list(outcomes or [])
        self.default_reply = default_reply
        self.calls: List[str] = []
        self.authenticated = False
        self.closed = False
        self._ids = itertools.count(1)

    def authenticate(self, vault) -> None:
        self.authenticated = True

    def chat(
        self,
        messages: List[ChatMessage],
        model: str,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> CompletionResponse:
        self.calls.append(model)
        outcome = self.outcomes.pop(0) if self.outcomes else self.default_reply
        if isinstance(outcome, Exception):
            raise outcome
        return CompletionResponse(
            id=f"{self.name}-{next(self._ids)}",
            model=model,
            content=outcome,
            finish_reason="stop",
            usage=TokenUsage(prompt_tokens=1, completion_tokens=1, total_tokens=2),
            provider=self.kind,
        )

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def memory_vault():
    return MemoryVault()


@pytest.fixture
def test_settings():
    """Settings isolated from the environment and any ``.env`` file."""
    return Settings(
        _env_file=None,
        environment="test",
        retry_base_delay_ms=0,
        retry_max_delay_ms=0,
    )


@pytest.fixture
def user_messages():
    return [ChatMessage(role="user", content="Hello")]


@pytest.fixture
def make_provider():
    """Factory for scripted providers: ``make_provider(kind, outcomes)``."""
    return ScriptedProvider
