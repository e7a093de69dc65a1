"""Prompt assembly for panel, roundtable, quick and synthesis calls."""

from config.config_loader import PromptsConfig
from deliberation.models import Agent, Message, Round, RoundResponse, Transcript

_CONTEXT_OPEN = "--- CONTEXT ---"
_CONTEXT_CLOSE = "--- END CONTEXT ---"


def _context_block(header: str, context: str) -> str:
    return f"{header}\n\n{_CONTEXT_OPEN}\n{context}\n{_CONTEXT_CLOSE}"


def panel_messages(
    agent: Agent,
    question: str,
    prompts: PromptsConfig,
    context: str | None = None,
) -> list[Message]:
    """Persona, optional shared context, then the user's question."""
    messages: list[Message] = []
    if agent.persona:
        messages.append(Message("system", agent.persona))
    if context:
        messages.append(Message("system", _context_block(prompts.context_header, context)))
    messages.append(Message("user", question))
    return messages


def quick_messages(
    agent: Agent,
    question: str,
    prompts: PromptsConfig,
    context: str | None = None,
) -> list[Message]:
    """Fast-path prompt: the agent's own persona, or the configured quick persona."""
    persona = agent.persona or prompts.quick_persona
    return panel_messages(
        Agent(agent.id, agent.display_name, agent.capability, persona), question, prompts, context,
    )


def _render_others(others: list[RoundResponse]) -> str:
    return "\n\n".join(f"**{r.display_name}**:\n{r.content}" for r in others)


def roundtable_messages(
    agent: Agent,
    question: str,
    prior: Round,
    prompts: PromptsConfig,
    context: str | None = None,
) -> list[Message]:
    """Build one agent's roundtable prompt from the preceding round.

    The agent's own prior answer becomes its previous assistant turn; when
    that answer failed the turn is left out. Other agents' successful answers
    are listed by display name, never including the agent's own.
    """
    messages = panel_messages(agent, question, prompts, context)

    own = next((r for r in prior.responses if r.agent_id == agent.id), None)
    if own is not None and own.ok:
        messages.append(Message("assistant", own.content))

    others = [r for r in prior.responses if r.agent_id != agent.id and r.ok]
    if others:
        discussion = f"Other panel members answered:\n\n{_render_others(others)}"
    else:
        discussion = "No other panel member produced an answer in the previous round."
    messages.append(Message("user", f"{discussion}\n\n{prompts.roundtable_instruction}"))
    return messages


def _round_title(rnd: Round) -> str:
    if rnd.kind == "panel":
        return "=== Initial Panel Responses ==="
    return f"=== Roundtable Discussion {rnd.number - 1} (Reactions & Refinements) ==="


def render_transcript(transcript: Transcript) -> str:
    """Format all rounds as text; failed entries appear as [Error - message]."""
    parts: list[str] = []
    for rnd in transcript:
        parts.append(_round_title(rnd))
        for resp in rnd.responses:
            if resp.ok:
                parts.append(f"{resp.display_name}:\n{resp.content}")
            else:
                parts.append(f"{resp.display_name}: [Error - {resp.error}]")
    return "\n\n".join(parts)


def synthesis_messages(
    question: str,
    transcript: Transcript,
    prompts: PromptsConfig,
    context: str | None = None,
    deep_analysis: bool = False,
) -> list[Message]:
    messages: list[Message] = [
        Message("system", prompts.synthesizer_persona),
        Message("user", f"User's question: {question}"),
    ]
    if context:
        messages.append(Message("system", _context_block(prompts.context_header, context)))
    messages.append(Message("system", f"Panel Discussion Summary:\n\n{render_transcript(transcript)}"))
    closing = prompts.synthesis_deep if deep_analysis else prompts.synthesis_standard
    messages.append(Message("user", closing))
    return messages
