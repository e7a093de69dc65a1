"""Single agent call: the failure-isolation boundary of every round."""

import asyncio
import logging

from deliberation.models import Agent, Err, Message, Ok, RoundResponse
from deliberation.providers.base import ProviderError, TextCapability

logger = logging.getLogger(__name__)


async def invoke(
    agent: Agent,
    messages: list[Message],
    capability: TextCapability,
    timeout_sec: float | None = None,
) -> RoundResponse:
    """Call one agent's capability and capture the outcome.

    Never raises. Any failure, timeout, or empty reply comes back as an
    Err outcome. Task cancellation still propagates.
    """
    try:
        if timeout_sec is not None:
            content = await asyncio.wait_for(capability.generate(messages), timeout=timeout_sec)
        else:
            content = await capability.generate(messages)
    except TimeoutError:
        message = f"Timed out after {timeout_sec}s"
        logger.warning("Agent %s (%s): %s", agent.id, capability.name(), message)
        return RoundResponse(agent.id, agent.display_name, Err(message))
    except ProviderError as exc:
        logger.warning("Agent %s (%s) failed: %s", agent.id, capability.name(), exc)
        return RoundResponse(agent.id, agent.display_name, Err(str(exc)))
    except Exception as exc:
        logger.warning("Agent %s (%s) unexpected failure: %s", agent.id, capability.name(), exc)
        return RoundResponse(agent.id, agent.display_name, Err(f"Unexpected error: {exc}"))

    if not content or not content.strip():
        logger.warning("Agent %s (%s) returned empty content", agent.id, capability.name())
        return RoundResponse(agent.id, agent.display_name, Err("Empty response content"))

    return RoundResponse(agent.id, agent.display_name, Ok(content))
