"""Final synthesis: render the transcript, call the synthesizer, return its text."""

import logging
from collections.abc import AsyncIterator

from config.config_loader import PromptsConfig
from deliberation.errors import SynthesisError
from deliberation.models import Transcript
from deliberation.prompts import synthesis_messages
from deliberation.providers.base import TextCapability

logger = logging.getLogger(__name__)


async def synthesize(
    question: str,
    transcript: Transcript,
    synthesizer: TextCapability,
    prompts: PromptsConfig,
    context: str | None = None,
    deep_analysis: bool = False,
) -> str:
    """Run synthesis and return the final answer verbatim.

    Raises:
        SynthesisError: If the synthesizer call fails or returns nothing.
    """
    messages = synthesis_messages(question, transcript, prompts, context, deep_analysis)

    logger.info(
        "Running %ssynthesis via %s over %d rounds",
        "deep " if deep_analysis else "",
        synthesizer.name(),
        len(transcript),
    )

    try:
        answer = await synthesizer.generate(messages)
    except Exception as exc:
        raise SynthesisError(synthesizer.name(), f"Synthesis failed: {exc}") from exc

    if not answer or not answer.strip():
        raise SynthesisError(synthesizer.name(), "Synthesizer returned empty content")

    return answer


async def synthesize_stream(
    question: str,
    transcript: Transcript,
    synthesizer: TextCapability,
    prompts: PromptsConfig,
    context: str | None = None,
    deep_analysis: bool = False,
) -> AsyncIterator[str]:
    """Same prompt as synthesize(), but yields the answer as it is generated."""
    messages = synthesis_messages(question, transcript, prompts, context, deep_analysis)
    logger.info("Streaming synthesis via %s over %d rounds", synthesizer.name(), len(transcript))

    produced = False
    try:
        async for chunk in synthesizer.generate_stream(messages):
            if chunk:
                produced = produced or bool(chunk.strip())
                yield chunk
    except Exception as exc:
        raise SynthesisError(synthesizer.name(), f"Synthesis failed: {exc}") from exc

    if not produced:
        raise SynthesisError(synthesizer.name(), "Synthesizer returned empty content")
