"""Roundtable phase: each agent reacts to the others' answers from the previous round."""

import logging
from collections.abc import Mapping

from config.config_loader import PromptsConfig
from deliberation.models import Agent, Round
from deliberation.prompts import roundtable_messages
from deliberation.providers.base import TextCapability
from deliberation.rounds import run_round

logger = logging.getLogger(__name__)


async def run_roundtable(
    agents: list[Agent],
    question: str,
    prior: Round,
    capabilities: Mapping[str, TextCapability],
    prompts: PromptsConfig,
    context: str | None = None,
    number: int | None = None,
    timeout_sec: float | None = None,
) -> Round:
    """Run one critique round built from ``prior`` only.

    Earlier rounds are not shown to the agents; chain calls to go deeper.
    """
    number = number if number is not None else prior.number + 1
    if prior.failed:
        logger.debug(
            "Roundtable %d: no prior turn for %s",
            number,
            ", ".join(r.agent_id for r in prior.failed),
        )

    def build(agent: Agent):
        return roundtable_messages(agent, question, prior, prompts, context)

    return await run_round(
        agents,
        build,
        capabilities,
        number=number,
        kind="roundtable",
        timeout_sec=timeout_sec,
    )
