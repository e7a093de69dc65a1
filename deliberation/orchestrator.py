"""Depth state machine: maps a mode to its phase plan and runs the phases in order.

A request flows through at most three phases:

    panel round -> roundtable x N -> synthesis

Quick mode replaces all of them with a single agent call. How many
roundtables run, and whether synthesis gets the deep-analysis instruction,
comes from PHASE_PLANS; the orchestrator holds no state between requests.
"""

import logging
from collections.abc import AsyncIterator, Callable

from config.config_loader import PromptsConfig
from deliberation.errors import ConfigurationError
from deliberation.invocation import invoke
from deliberation.models import (
    PHASE_PLANS,
    Agent,
    AskOptions,
    AskResult,
    Mode,
    PhasePlan,
    Round,
    RoutingDecision,
    Transcript,
)
from deliberation.prompts import panel_messages, quick_messages
from deliberation.providers.base import TextCapability
from deliberation.roundtable import run_roundtable
from deliberation.rounds import run_round
from deliberation.routing import Classifier, select_mode
from deliberation.synthesis import synthesize, synthesize_stream

logger = logging.getLogger(__name__)

FALLBACK_ANSWER = "I apologize, but I encountered an error processing your question."

CapabilityResolver = Callable[[str], TextCapability]


class Orchestrator:
    """Entry point for answering one question with a panel of agents.

    Args:
        resolve: Maps an agent's capability name to a TextCapability.
            Raising (any exception) marks the name as unusable.
        synthesizer: Capability name used for the synthesis call.
        prompts: Prompt templates from config.
        classifier: Optional routing service; consulted when no mode is
            given or when auto-adjust is requested.
        quick_agent: Dedicated fast-path agent. Defaults to the first
            supplied agent.
        agent_timeout_sec: Optional per-agent timeout applied in every round.
        default_council_rounds: Roundtables for council mode when the caller
            does not say.
        max_roundtables: Upper bound on caller-defined roundtables.
    """

    def __init__(
        self,
        resolve: CapabilityResolver,
        synthesizer: str,
        prompts: PromptsConfig,
        classifier: Classifier | None = None,
        quick_agent: Agent | None = None,
        agent_timeout_sec: float | None = None,
        default_council_rounds: int = 2,
        max_roundtables: int = 5,
    ) -> None:
        self._resolve = resolve
        self._synthesizer = synthesizer
        self._prompts = prompts
        self._classifier = classifier
        self._quick_agent = quick_agent
        self._agent_timeout_sec = agent_timeout_sec
        self._default_council_rounds = default_council_rounds
        self._max_roundtables = max_roundtables

    # --- validation -----------------------------------------------------

    def _resolve_capability(self, name: str, owner: str) -> TextCapability:
        try:
            return self._resolve(name)
        except Exception as exc:
            raise ConfigurationError(f"Cannot resolve capability '{name}' for {owner}: {exc}") from exc

    def _check_agents(self, agents: list[Agent]) -> None:
        if not agents:
            raise ConfigurationError("At least one agent is required")
        seen: set[str] = set()
        for agent in agents:
            if agent.id in seen:
                raise ConfigurationError(f"Duplicate agent id '{agent.id}'")
            seen.add(agent.id)

    def _select_mode(self, question: str, options: AskOptions) -> tuple[Mode, RoutingDecision | None]:
        requested = Mode.parse(options.mode) if options.mode is not None else None
        decision: RoutingDecision | None = None
        if self._classifier is not None and (requested is None or options.auto_adjust):
            decision = self._classifier.classify(question)
        mode = select_mode(requested, decision, options.auto_adjust)
        if requested is not None and mode is not requested:
            logger.info("Mode %s adjusted to %s by routing", requested.value, mode.value)
        return mode, decision

    def _roundtable_count(self, plan: PhasePlan, options: AskOptions, agent_count: int) -> int:
        count = plan.roundtables
        if plan.caller_rounds:
            count = options.council_rounds if options.council_rounds is not None else self._default_council_rounds
            if not 0 <= count <= self._max_roundtables:
                raise ConfigurationError(
                    f"Council rounds must be between 0 and {self._max_roundtables}, got {count}"
                )
        if agent_count < 2 and count:
            logger.info("Single agent panel, skipping %d roundtable(s)", count)
            return 0
        return count

    # --- phases ---------------------------------------------------------

    async def _deliberate(
        self,
        question: str,
        agents: list[Agent],
        capabilities: dict[str, TextCapability],
        roundtables: int,
        context: str | None,
    ) -> Transcript:
        """Panel round followed by chained roundtables, strictly in sequence."""
        prompts = self._prompts

        panel = await run_round(
            agents,
            lambda agent: panel_messages(agent, question, prompts, context),
            capabilities,
            number=1,
            kind="panel",
            timeout_sec=self._agent_timeout_sec,
        )
        transcript: Transcript = [panel]

        for _ in range(roundtables):
            transcript.append(
                await run_roundtable(
                    agents,
                    question,
                    transcript[-1],
                    capabilities,
                    prompts,
                    context=context,
                    timeout_sec=self._agent_timeout_sec,
                )
            )
        return transcript

    async def _quick(self, question: str, agent: Agent, capability: TextCapability, context: str | None) -> Round:
        response = await invoke(
            agent,
            quick_messages(agent, question, self._prompts, context),
            capability,
            self._agent_timeout_sec,
        )
        return Round(number=1, kind="panel", responses=[response])

    def _prepare(self, question: str, agents: list[Agent], options: AskOptions):
        """Validate the whole request before any network call is made."""
        if not question or not question.strip():
            raise ConfigurationError("Question must not be empty")
        mode, decision = self._select_mode(question, options)
        plan = PHASE_PLANS[mode]

        # a dedicated quick agent answers on its own, so the panel may be empty
        if not (plan.single_agent and self._quick_agent is not None):
            self._check_agents(agents)

        if plan.single_agent:
            agent = self._quick_agent or agents[0]
            capability = self._resolve_capability(agent.capability, f"agent '{agent.id}'")
            return mode, decision, plan, [agent], {agent.id: capability}, 0, None

        capabilities = {
            agent.id: self._resolve_capability(agent.capability, f"agent '{agent.id}'")
            for agent in agents
        }
        roundtables = self._roundtable_count(plan, options, len(agents))
        synthesizer = self._resolve_capability(self._synthesizer, "synthesis") if plan.synthesize else None
        return mode, decision, plan, agents, capabilities, roundtables, synthesizer

    # --- public API -----------------------------------------------------

    async def ask(self, question: str, agents: list[Agent], options: AskOptions | None = None) -> AskResult:
        """Answer a question with the protocol selected by the request's mode.

        Raises:
            ConfigurationError: Invalid request, raised before any agent call.
            SynthesisError: The synthesizer failed; no fallback answer exists.
        """
        options = options or AskOptions()
        mode, decision, plan, agents, capabilities, roundtables, synthesizer = self._prepare(
            question, agents, options
        )
        logger.info("Answering in %s mode with %d agent(s)", mode.value, len(agents))

        if plan.single_agent:
            agent = agents[0]
            first = await self._quick(question, agent, capabilities[agent.id], options.context)
            answer = first.responses[0].content or FALLBACK_ANSWER
            return AskResult(
                answer=answer,
                mode=mode,
                transcript=[first] if options.include_transcript else None,
                routing=decision,
            )

        transcript = await self._deliberate(question, agents, capabilities, roundtables, options.context)

        answer = await synthesize(
            question,
            transcript,
            synthesizer,
            self._prompts,
            context=options.context,
            deep_analysis=plan.deep_analysis,
        )
        return AskResult(
            answer=answer,
            mode=mode,
            transcript=transcript if options.include_transcript else None,
            routing=decision,
        )

    async def ask_stream(
        self, question: str, agents: list[Agent], options: AskOptions | None = None
    ) -> AsyncIterator[str]:
        """Like ask(), but streams the final answer.

        Panel and roundtable rounds run to completion first; only the
        synthesis call (or the quick agent's reply) is streamed.
        """
        options = options or AskOptions()
        mode, decision, plan, agents, capabilities, roundtables, synthesizer = self._prepare(
            question, agents, options
        )
        logger.info("Streaming answer in %s mode with %d agent(s)", mode.value, len(agents))

        if plan.single_agent:
            agent = agents[0]
            async for chunk in self._quick_stream(question, agent, capabilities[agent.id], options.context):
                yield chunk
            return

        transcript = await self._deliberate(question, agents, capabilities, roundtables, options.context)
        async for chunk in synthesize_stream(
            question,
            transcript,
            synthesizer,
            self._prompts,
            context=options.context,
            deep_analysis=plan.deep_analysis,
        ):
            yield chunk

    async def _quick_stream(
        self, question: str, agent: Agent, capability: TextCapability, context: str | None
    ) -> AsyncIterator[str]:
        messages = quick_messages(agent, question, self._prompts, context)
        produced = False
        try:
            async for chunk in capability.generate_stream(messages):
                if chunk:
                    produced = True
                    yield chunk
        except Exception as exc:
            logger.warning("Quick agent %s failed while streaming: %s", agent.id, exc)
        if not produced:
            yield FALLBACK_ANSWER
