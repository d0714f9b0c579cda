"""Abstract base for all language model backends."""

from abc import ABC, abstractmethod

from chamber.models import GenerationRequest, GenerationResponse


class ServiceError(Exception):
    """Raised when a remote model call fails (network, quota, malformed request, timeout)."""

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] {message}")


class EmptyOutputError(Exception):
    """Raised by callers when a call succeeded but produced no usable text or binary."""


class LanguageModelClient(ABC):
    """Abstract base for all language model backends."""

    @abstractmethod
    def name(self) -> str:
        """Return the short backend name (e.g. 'gemini', 'claude')."""
        ...

    @abstractmethod
    def model_string(self) -> str:
        """Return the default text model identifier."""
        ...

    @abstractmethod
    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        """Send one generation request.

        Args:
            request: Model id, ordered content parts, system instruction and
                tool/budget options.

        Returns:
            GenerationResponse. ``text`` is None when the model produced no
            text; that is not an error at this level.

        Raises:
            ServiceError: On API failure or timeout.
        """
        ...
