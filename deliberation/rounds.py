"""Panel round: fan one prompt per agent out concurrently and join every result."""

import asyncio
import logging
from collections.abc import Callable, Mapping
from typing import Literal

from deliberation.invocation import invoke
from deliberation.models import Agent, Message, Round
from deliberation.providers.base import TextCapability

logger = logging.getLogger(__name__)

PromptBuilder = Callable[[Agent], list[Message]]


async def run_round(
    agents: list[Agent],
    build_messages: PromptBuilder,
    capabilities: Mapping[str, TextCapability],
    number: int = 1,
    kind: Literal["panel", "roundtable"] = "panel",
    timeout_sec: float | None = None,
) -> Round:
    """Run one round across all agents.

    Args:
        agents: Agents to call, in the order results should appear.
        build_messages: Builds the full prompt for a single agent.
        capabilities: Resolved capability per agent id.
        number: Round number within the transcript (1-indexed).
        kind: "panel" for the first round, "roundtable" afterwards.
        timeout_sec: Optional per-agent timeout.

    Returns:
        Round whose responses line up positionally with ``agents``. A failed
        agent is an Err entry; the round itself never fails.
    """
    if not agents:
        logger.debug("Round %d has no agents, skipping", number)
        return Round(number=number, kind=kind)

    logger.info("Starting %s round %d with %d agents", kind, number, len(agents))

    tasks = [
        invoke(agent, build_messages(agent), capabilities[agent.id], timeout_sec)
        for agent in agents
    ]
    responses = await asyncio.gather(*tasks)

    current = Round(number=number, kind=kind, responses=list(responses))
    succeeded = len(agents) - len(current.failed)
    if succeeded == 0:
        logger.warning("Every agent failed in round %d; continuing with an all-error round", number)
    logger.info("Round %d complete: %d/%d agents succeeded", number, succeeded, len(agents))
    return current
