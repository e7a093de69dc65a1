"""Capability health checks run by the CLI before a question reaches the panel."""

import asyncio
import logging
import time
from dataclasses import dataclass

from deliberation.models import Message
from deliberation.providers.base import TextCapability

logger = logging.getLogger(__name__)

_PING_MESSAGES = [
    Message("system", "You are a connectivity check."),
    Message("user", "Reply with the word OK only."),
]
_TIMEOUT_SEC = 15.0


@dataclass(frozen=True)
class HealthResult:
    name: str
    model: str
    ok: bool
    error: str = ""
    latency_sec: float = 0.0


async def _ping(name: str, capability: TextCapability) -> HealthResult:
    start = time.monotonic()
    try:
        reply = await asyncio.wait_for(capability.generate(_PING_MESSAGES), timeout=_TIMEOUT_SEC)
    except Exception as exc:
        logger.debug("Health check failed for %s: %r", name, exc)
        error = str(exc) or type(exc).__name__
        return HealthResult(name, capability.model_string(), False, error, time.monotonic() - start)

    latency = time.monotonic() - start
    if not reply or not reply.strip():
        return HealthResult(name, capability.model_string(), False, "Empty reply", latency)
    return HealthResult(name, capability.model_string(), True, "", latency)


async def run_health_checks(capabilities: dict[str, TextCapability]) -> dict[str, HealthResult]:
    """Ping every capability concurrently, keyed by capability name."""
    results = await asyncio.gather(*(_ping(n, c) for n, c in capabilities.items()))
    return {r.name: r for r in results}
