"""Shared pytest fixtures."""

import asyncio
from collections.abc import AsyncIterator
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from config.config_loader import AppConfig, DefaultsConfig, ModelConfig, PromptsConfig
from deliberation.models import Agent, Err, Message, Ok, Round, RoundResponse
from deliberation.providers.base import TextCapability


@pytest.fixture
def sample_model_config() -> ModelConfig:
    return ModelConfig(
        name="test_model",
        sdk="test",
        model="test-model-1",
        api_key_env="TEST_API_KEY",
        timeout_sec=30,
        max_tokens=1024,
        base_url=None,
    )


@pytest.fixture
def sample_prompts_config() -> PromptsConfig:
    return PromptsConfig(
        quick_persona="Answer briefly.",
        synthesizer_persona="You are the synthesizer.",
        roundtable_instruction="React: agree, disagree, or extend.",
        synthesis_standard="Give the best answer.",
        synthesis_deep="This is complex, take your time.",
        context_header="Private user context:",
    )


@pytest.fixture
def sample_defaults_config(tmp_path: Path) -> DefaultsConfig:
    return DefaultsConfig(
        mode="thoughtful",
        synthesizer="claude",
        output_dir=tmp_path / "output",
    )


@pytest.fixture
def sample_app_config(
    sample_defaults_config: DefaultsConfig,
    sample_prompts_config: PromptsConfig,
) -> AppConfig:
    model_cfg = ModelConfig(
        name="claude",
        sdk="anthropic",
        model="claude-sonnet-4-20250514",
        api_key_env="ANTHROPIC_API_KEY",
        timeout_sec=60,
        max_tokens=4096,
    )
    return AppConfig(
        defaults=sample_defaults_config,
        models={"claude": model_cfg},
        prompts=sample_prompts_config,
        agents=[
            Agent("quick", "Quick", "claude", "Be quick."),
            Agent("strategist", "The Strategist", "claude", "Think long-term."),
            Agent("builder", "The Builder", "openai", "Be practical."),
        ],
        available_providers={"claude"},
    )


@pytest.fixture
def three_agents() -> list[Agent]:
    return [
        Agent("alpha", "Alpha", "cap_alpha", "You are Alpha."),
        Agent("beta", "Beta", "cap_beta", "You are Beta."),
        Agent("gamma", "Gamma", "cap_gamma", "You are Gamma."),
    ]


@pytest.fixture
def sample_round() -> Round:
    return Round(
        number=1,
        kind="panel",
        responses=[
            RoundResponse("alpha", "Alpha", Ok("Use YAML for config.")),
            RoundResponse("beta", "Beta", Err("[cap_beta] API call failed: 500")),
            RoundResponse("gamma", "Gamma", Ok("Use TOML.")),
        ],
    )


class MockCapability(TextCapability):
    """Test double TextCapability."""

    def __init__(self, capability_name: str = "mock", response_content: str = "Mock response") -> None:
        self._name = capability_name
        self._response_content = response_content
        # Shadow the class method with an AsyncMock at the instance level.
        # ABC check passes because generate is defined in the class body below.
        self.generate = AsyncMock(return_value=response_content)  # type: ignore[assignment]

    def name(self) -> str:
        return self._name

    def model_string(self) -> str:
        return "mock-model"

    async def generate(self, messages: list[Message], *, temperature: float | None = None) -> str:  # type: ignore[override]
        """Default implementation; replaced by AsyncMock in __init__."""
        return self._response_content


class ScriptedCapability(TextCapability):
    """Records every conversation it receives and replies from a script.

    ``replies`` is consumed one item per call; an Exception item is raised
    instead of returned. ``delay`` lets tests skew completion order.
    """

    def __init__(
        self,
        capability_name: str,
        replies: list[str | Exception] | None = None,
        delay: float = 0.0,
        chunks: list[str] | None = None,
    ) -> None:
        self._name = capability_name
        self._replies = list(replies or [f"Reply from {capability_name}"])
        self._delay = delay
        self._chunks = chunks
        self.calls: list[list[Message]] = []

    def name(self) -> str:
        return self._name

    def model_string(self) -> str:
        return "scripted-model"

    async def generate(self, messages: list[Message], *, temperature: float | None = None) -> str:
        self.calls.append(messages)
        if self._delay:
            await asyncio.sleep(self._delay)
        reply = self._replies.pop(0) if len(self._replies) > 1 else self._replies[0]
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def generate_stream(
        self, messages: list[Message], *, temperature: float | None = None
    ) -> AsyncIterator[str]:
        if self._chunks is None:
            yield await self.generate(messages, temperature=temperature)
            return
        self.calls.append(messages)
        for chunk in self._chunks:
            yield chunk


@pytest.fixture
def mock_capability() -> MockCapability:
    return MockCapability()


@pytest.fixture
def scripted_capabilities(three_agents) -> dict[str, ScriptedCapability]:
    """One scripted capability per agent, keyed by agent id."""
    return {a.id: ScriptedCapability(a.capability, [f"Answer from {a.display_name}"]) for a in three_agents}
