"""Errors raised by the deliberation engine."""


class DeliberationError(Exception):
    """Base class for engine errors."""


class ConfigurationError(DeliberationError, ValueError):
    """Raised before any network call when a request cannot be run as given."""


class SynthesisError(DeliberationError):
    """Raised when the synthesizer call fails; there is no fallback answer."""

    def __init__(self, synthesizer_name: str, message: str) -> None:
        self.synthesizer_name = synthesizer_name
        super().__init__(f"[{synthesizer_name}] {message}")
