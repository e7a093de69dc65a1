"""Tests for deliberation/orchestrator.py: the mode phase plans end to end."""

import pytest

from deliberation.errors import ConfigurationError, SynthesisError
from deliberation.models import Agent, AskOptions, Mode, RoutingDecision
from deliberation.orchestrator import FALLBACK_ANSWER, Orchestrator
from deliberation.providers.base import ProviderError
from tests.conftest import ScriptedCapability


def _agents(n: int) -> list[Agent]:
    return [Agent(f"a{i}", f"Agent {i}", f"cap{i}", f"Persona {i}") for i in range(n)]


class Harness:
    """Orchestrator wired to scripted capabilities; counts every call."""

    def __init__(self, prompts, agents, synth_reply: str | Exception = "Final answer", **kwargs) -> None:
        self.caps = {a.capability: ScriptedCapability(a.capability, [f"{a.id} says hi"]) for a in agents}
        self.synth = ScriptedCapability("synth", [synth_reply], chunks=kwargs.pop("synth_chunks", None))
        self.caps["synth"] = self.synth
        self.resolved: list[str] = []
        self.orchestrator = Orchestrator(
            resolve=self._resolve,
            synthesizer="synth",
            prompts=prompts,
            **kwargs,
        )

    def _resolve(self, name: str):
        self.resolved.append(name)
        if name not in self.caps:
            raise KeyError(name)
        return self.caps[name]

    def agent_calls(self) -> int:
        return sum(len(c.calls) for name, c in self.caps.items() if name != "synth")


class FixedClassifier:
    def __init__(self, decision: RoutingDecision) -> None:
        self.decision = decision
        self.questions: list[str] = []

    def classify(self, question: str) -> RoutingDecision:
        self.questions.append(question)
        return self.decision


def _decision(complexity: int, suggestion: str = "none", question_type: str = "factual") -> RoutingDecision:
    return RoutingDecision(question_type, complexity, None, 0.85, False, suggestion)


# --- call counts per mode ---

async def test_quick_mode_single_call_no_synthesis(sample_prompts_config):
    agents = _agents(3)
    h = Harness(sample_prompts_config, agents)
    result = await h.orchestrator.ask("Capital of France?", agents, AskOptions(mode="quick"))
    assert h.agent_calls() == 1
    assert h.synth.calls == []
    assert result.mode is Mode.QUICK
    assert result.answer == "a0 says hi"


async def test_quick_mode_returns_answer_without_transcript(sample_prompts_config):
    agents = [Agent("solo", "Solo", "paris_cap", "")]
    h = Harness(sample_prompts_config, agents)
    h.caps["paris_cap"] = ScriptedCapability("paris_cap", ["Paris"])
    result = await h.orchestrator.ask("Capital of France?", agents, AskOptions(mode="quick"))
    assert result.answer == "Paris"
    assert result.transcript is None
    assert h.synth.calls == []


async def test_quick_mode_empty_content_uses_fallback(sample_prompts_config):
    agents = _agents(1)
    h = Harness(sample_prompts_config, agents)
    h.caps["cap0"] = ScriptedCapability("cap0", [""])
    result = await h.orchestrator.ask("Q?", agents, AskOptions(mode=Mode.QUICK))
    assert result.answer == FALLBACK_ANSWER


async def test_quick_mode_failure_uses_fallback(sample_prompts_config):
    agents = _agents(1)
    h = Harness(sample_prompts_config, agents)
    h.caps["cap0"] = ScriptedCapability("cap0", [ProviderError("cap0", "down")])
    result = await h.orchestrator.ask("Q?", agents, AskOptions(mode="quick", include_transcript=True))
    assert result.answer == FALLBACK_ANSWER
    assert result.transcript[0].responses[0].error


async def test_quick_mode_uses_dedicated_agent(sample_prompts_config):
    agents = _agents(2)
    fast = Agent("fast", "Fast", "fast_cap", "")
    h = Harness(sample_prompts_config, agents, quick_agent=fast)
    h.caps["fast_cap"] = ScriptedCapability("fast_cap", ["fast answer"])
    result = await h.orchestrator.ask("Q?", agents, AskOptions(mode="quick"))
    assert result.answer == "fast answer"
    assert h.agent_calls() == 1
    # quick persona fills in for an agent without one
    assert h.caps["fast_cap"].calls[0][0].content == sample_prompts_config.quick_persona


@pytest.mark.parametrize("n", [2, 3, 5])
async def test_thoughtful_call_count(sample_prompts_config, n):
    agents = _agents(n)
    h = Harness(sample_prompts_config, agents)
    await h.orchestrator.ask("Q?", agents, AskOptions(mode="thoughtful"))
    assert h.agent_calls() == 2 * n
    assert len(h.synth.calls) == 1


async def test_thoughtful_single_agent_skips_roundtable(sample_prompts_config):
    agents = _agents(1)
    h = Harness(sample_prompts_config, agents)
    result = await h.orchestrator.ask("Q?", agents, AskOptions(mode="thoughtful", include_transcript=True))
    assert h.agent_calls() == 1
    assert len(h.synth.calls) == 1
    assert len(result.transcript) == 1


@pytest.mark.parametrize("n", [2, 3])
async def test_contemplate_call_count_and_deep_instruction(sample_prompts_config, n):
    agents = _agents(n)
    h = Harness(sample_prompts_config, agents)
    await h.orchestrator.ask("Q?", agents, AskOptions(mode="contemplate"))
    assert h.agent_calls() == 3 * n
    assert len(h.synth.calls) == 1
    assert h.synth.calls[0][-1].content == sample_prompts_config.synthesis_deep


async def test_thoughtful_uses_standard_instruction(sample_prompts_config):
    agents = _agents(2)
    h = Harness(sample_prompts_config, agents)
    await h.orchestrator.ask("Q?", agents, AskOptions(mode="thoughtful"))
    assert h.synth.calls[0][-1].content == sample_prompts_config.synthesis_standard


async def test_council_uses_caller_rounds(sample_prompts_config):
    agents = _agents(2)
    h = Harness(sample_prompts_config, agents)
    result = await h.orchestrator.ask(
        "Q?", agents, AskOptions(mode="council", council_rounds=3, include_transcript=True)
    )
    assert len(result.transcript) == 4
    assert h.agent_calls() == 8
    assert h.synth.calls[0][-1].content == sample_prompts_config.synthesis_deep


async def test_council_defaults_to_configured_rounds(sample_prompts_config):
    agents = _agents(2)
    h = Harness(sample_prompts_config, agents, default_council_rounds=1)
    result = await h.orchestrator.ask("Q?", agents, AskOptions(mode="council", include_transcript=True))
    assert len(result.transcript) == 2


async def test_council_rounds_out_of_range(sample_prompts_config):
    agents = _agents(2)
    h = Harness(sample_prompts_config, agents, max_roundtables=3)
    with pytest.raises(ConfigurationError, match="between 0 and 3"):
        await h.orchestrator.ask("Q?", agents, AskOptions(mode="council", council_rounds=4))
    assert h.agent_calls() == 0


# --- transcript and failure behaviour ---

async def test_thoughtful_three_agents_transcript(sample_prompts_config):
    agents = _agents(3)
    h = Harness(sample_prompts_config, agents, synth_reply="The panel agrees.")
    result = await h.orchestrator.ask("Q?", agents, AskOptions(mode="thoughtful", include_transcript=True))
    assert result.answer == "The panel agrees."
    assert len(result.transcript) == 2
    assert [rnd.kind for rnd in result.transcript] == ["panel", "roundtable"]
    for rnd in result.transcript:
        assert [r.agent_id for r in rnd.responses] == ["a0", "a1", "a2"]
        assert [r.content for r in rnd.responses] == ["a0 says hi", "a1 says hi", "a2 says hi"]


async def test_transcript_omitted_by_default(sample_prompts_config):
    agents = _agents(2)
    h = Harness(sample_prompts_config, agents)
    result = await h.orchestrator.ask("Q?", agents, AskOptions(mode="thoughtful"))
    assert result.transcript is None


async def test_one_failed_agent_keeps_round_size(sample_prompts_config):
    agents = _agents(3)
    h = Harness(sample_prompts_config, agents)
    h.caps["cap1"] = ScriptedCapability("cap1", [ProviderError("cap1", "boom"), "recovered"])
    result = await h.orchestrator.ask("Q?", agents, AskOptions(mode="thoughtful", include_transcript=True))

    panel = result.transcript[0]
    assert len(panel.responses) == 3
    assert [r.agent_id for r in panel.responses if r.error] == ["a1"]

    a1_roundtable_prompt = h.caps["cap1"].calls[1]
    assert not any(m.role == "assistant" for m in a1_roundtable_prompt)


async def test_all_agents_fail_still_synthesizes(sample_prompts_config):
    agents = _agents(2)
    h = Harness(sample_prompts_config, agents, synth_reply="Sorry, the panel is unavailable.")
    for a in agents:
        h.caps[a.capability] = ScriptedCapability(a.capability, [ProviderError(a.capability, "down")])
    result = await h.orchestrator.ask("Q?", agents, AskOptions(mode="thoughtful"))
    assert result.answer == "Sorry, the panel is unavailable."
    summary = h.synth.calls[0][-2].content
    assert "[Error -" in summary


async def test_synthesis_failure_propagates(sample_prompts_config):
    agents = _agents(2)
    h = Harness(sample_prompts_config, agents, synth_reply=ProviderError("synth", "overloaded"))
    with pytest.raises(SynthesisError):
        await h.orchestrator.ask("Q?", agents, AskOptions(mode="thoughtful"))


async def test_context_reaches_agents_and_synthesizer(sample_prompts_config):
    agents = _agents(2)
    h = Harness(sample_prompts_config, agents)
    await h.orchestrator.ask("Q?", agents, AskOptions(mode="thoughtful", context="Allergic to nuts."))
    assert any("Allergic to nuts." in m.content for m in h.caps["cap0"].calls[0])
    assert any("Allergic to nuts." in m.content for m in h.synth.calls[0])


# --- fail-fast configuration errors ---

async def test_empty_agent_list_fails_fast(sample_prompts_config):
    h = Harness(sample_prompts_config, [])
    with pytest.raises(ConfigurationError, match="At least one agent"):
        await h.orchestrator.ask("Q?", [], AskOptions(mode="thoughtful"))


async def test_unknown_mode_fails_fast(sample_prompts_config):
    agents = _agents(2)
    h = Harness(sample_prompts_config, agents)
    with pytest.raises(ConfigurationError, match="Unknown mode"):
        await h.orchestrator.ask("Q?", agents, AskOptions(mode="ponder"))
    assert h.agent_calls() == 0


async def test_duplicate_agent_ids_fail_fast(sample_prompts_config):
    agents = [Agent("x", "X", "cap0"), Agent("x", "X again", "cap1")]
    h = Harness(sample_prompts_config, _agents(2))
    with pytest.raises(ConfigurationError, match="Duplicate agent id"):
        await h.orchestrator.ask("Q?", agents, AskOptions(mode="thoughtful"))


async def test_unresolvable_capability_fails_before_any_call(sample_prompts_config):
    agents = _agents(2) + [Agent("ghost", "Ghost", "missing_cap")]
    h = Harness(sample_prompts_config, _agents(2))
    with pytest.raises(ConfigurationError, match="missing_cap"):
        await h.orchestrator.ask("Q?", agents, AskOptions(mode="thoughtful"))
    assert h.agent_calls() == 0


async def test_unresolvable_synthesizer_fails_before_any_call(sample_prompts_config):
    agents = _agents(2)
    h = Harness(sample_prompts_config, agents)
    del h.caps["synth"]
    with pytest.raises(ConfigurationError, match="synthesis"):
        await h.orchestrator.ask("Q?", agents, AskOptions(mode="thoughtful"))
    assert h.agent_calls() == 0


async def test_empty_question_fails_fast(sample_prompts_config):
    agents = _agents(2)
    h = Harness(sample_prompts_config, agents)
    with pytest.raises(ConfigurationError):
        await h.orchestrator.ask("   ", agents)


# --- routing ---

async def test_no_mode_uses_classifier(sample_prompts_config):
    agents = _agents(2)
    classifier = FixedClassifier(_decision(complexity=1))
    h = Harness(sample_prompts_config, agents, classifier=classifier)
    result = await h.orchestrator.ask("What is 2+2?", agents)
    assert result.mode is Mode.QUICK
    assert result.routing == classifier.decision
    assert classifier.questions == ["What is 2+2?"]


async def test_no_mode_no_classifier_defaults_to_thoughtful(sample_prompts_config):
    agents = _agents(2)
    h = Harness(sample_prompts_config, agents)
    result = await h.orchestrator.ask("Q?", agents)
    assert result.mode is Mode.THOUGHTFUL


async def test_explicit_mode_not_adjusted_without_flag(sample_prompts_config):
    agents = _agents(2)
    classifier = FixedClassifier(_decision(complexity=1))
    h = Harness(sample_prompts_config, agents, classifier=classifier)
    result = await h.orchestrator.ask("Q?", agents, AskOptions(mode="contemplate"))
    assert result.mode is Mode.CONTEMPLATE
    assert classifier.questions == []


async def test_auto_adjust_downgrades_simple_question(sample_prompts_config):
    agents = _agents(3)
    classifier = FixedClassifier(_decision(complexity=1))
    h = Harness(sample_prompts_config, agents, classifier=classifier)
    result = await h.orchestrator.ask("Q?", agents, AskOptions(mode="thoughtful", auto_adjust=True))
    assert result.mode is Mode.QUICK
    assert h.agent_calls() == 1
    assert h.synth.calls == []


# --- streaming ---

async def test_ask_stream_streams_only_synthesis(sample_prompts_config):
    agents = _agents(2)
    h = Harness(sample_prompts_config, agents, synth_chunks=["Final ", "answer"])
    chunks = [c async for c in h.orchestrator.ask_stream("Q?", agents, AskOptions(mode="thoughtful"))]
    assert chunks == ["Final ", "answer"]
    assert h.agent_calls() == 4


async def test_ask_stream_quick_fallback_when_empty(sample_prompts_config):
    agents = _agents(1)
    h = Harness(sample_prompts_config, agents)
    h.caps["cap0"] = ScriptedCapability("cap0", chunks=[])
    chunks = [c async for c in h.orchestrator.ask_stream("Q?", agents, AskOptions(mode="quick"))]
    assert chunks == [FALLBACK_ANSWER]


class BrokenStreamCapability(ScriptedCapability):
    """Yields its chunks, then fails mid-stream."""

    async def generate_stream(self, messages, *, temperature=None):
        self.calls.append(messages)
        for chunk in self._chunks:
            yield chunk
        raise ProviderError(self._name, "connection reset")


async def test_ask_stream_quick_failure_mid_stream_ends_quietly(sample_prompts_config):
    agents = _agents(1)
    h = Harness(sample_prompts_config, agents)
    h.caps["cap0"] = BrokenStreamCapability("cap0", chunks=["Par"])
    chunks = [c async for c in h.orchestrator.ask_stream("Q?", agents, AskOptions(mode="quick"))]
    assert chunks == ["Par"]


async def test_ask_stream_quick_failure_before_output_uses_fallback(sample_prompts_config):
    agents = _agents(1)
    h = Harness(sample_prompts_config, agents)
    h.caps["cap0"] = BrokenStreamCapability("cap0", chunks=[])
    chunks = [c async for c in h.orchestrator.ask_stream("Q?", agents, AskOptions(mode="quick"))]
    assert chunks == [FALLBACK_ANSWER]


async def test_quick_mode_dedicated_agent_with_empty_panel(sample_prompts_config):
    fast = Agent("fast", "Fast", "fast_cap", "")
    h = Harness(sample_prompts_config, [], quick_agent=fast)
    h.caps["fast_cap"] = ScriptedCapability("fast_cap", ["fast answer"])
    result = await h.orchestrator.ask("Q?", [], AskOptions(mode="quick"))
    assert result.answer == "fast answer"


async def test_empty_panel_still_rejected_outside_quick_mode(sample_prompts_config):
    fast = Agent("fast", "Fast", "fast_cap", "")
    h = Harness(sample_prompts_config, [], quick_agent=fast)
    with pytest.raises(ConfigurationError, match="At least one agent"):
        await h.orchestrator.ask("Q?", [], AskOptions(mode="thoughtful"))


async def test_ask_stream_quick_streams_agent(sample_prompts_config):
    agents = _agents(1)
    h = Harness(sample_prompts_config, agents)
    h.caps["cap0"] = ScriptedCapability("cap0", chunks=["Pa", "ris"])
    chunks = [c async for c in h.orchestrator.ask_stream("Q?", agents, AskOptions(mode="quick"))]
    assert "".join(chunks) == "Paris"
    assert h.synth.calls == []
