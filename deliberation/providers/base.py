"""Abstract base for all text-generation capabilities."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from deliberation.models import Message


class ProviderError(Exception):
    """Raised when a provider call fails."""

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] {message}")


def split_system(messages: list[Message]) -> tuple[str, list[Message]]:
    """Pull system messages out of a conversation.

    Returns:
        (joined system text, remaining user/assistant messages with
        consecutive same-role turns merged)
    """
    system_parts = [m.content for m in messages if m.role == "system"]
    turns: list[Message] = []
    for m in messages:
        if m.role == "system":
            continue
        if turns and turns[-1].role == m.role:
            turns[-1] = Message(m.role, f"{turns[-1].content}\n\n{m.content}")
        else:
            turns.append(m)
    return "\n\n".join(system_parts), turns


class TextCapability(ABC):
    """Abstract base for all text-generation capabilities."""

    @abstractmethod
    def name(self) -> str:
        """Return the short provider name (e.g. 'gemini', 'claude')."""
        ...

    @abstractmethod
    def model_string(self) -> str:
        """Return the actual model identifier string."""
        ...

    @abstractmethod
    async def generate(self, messages: list[Message], *, temperature: float | None = None) -> str:
        """Generate a reply for a role-tagged conversation.

        Raises:
            ProviderError: On API failure, timeout, or empty response.
        """
        ...

    async def generate_stream(
        self, messages: list[Message], *, temperature: float | None = None
    ) -> AsyncIterator[str]:
        """Yield the reply incrementally. Backends without streaming yield it whole."""
        yield await self.generate(messages, temperature=temperature)
