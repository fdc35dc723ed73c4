"""Abstract base for all reasoning backend providers."""

from abc import ABC, abstractmethod

from diligence.models import ModelResponse


class ProviderError(Exception):
    """Raised when a provider call fails."""

    def __init__(self, provider_name: str, message: str, *, timed_out: bool = False) -> None:
        self.provider_name = provider_name
        self.timed_out = timed_out
        super().__init__(f"[{provider_name}] {message}")


class AIProvider(ABC):
    """Abstract base for all reasoning backend providers."""

    @abstractmethod
    def name(self) -> str:
        """Return the short provider name (e.g. 'gemini', 'claude')."""
        ...

    @abstractmethod
    def model_string(self) -> str:
        """Return the actual model identifier string."""
        ...

    @abstractmethod
    async def generate(
        self,
        system: str,
        prompt: str,
        max_tokens: int | None = None,
        timeout_sec: float | None = None,
    ) -> ModelResponse:
        """Generate a response for the given instruction and input.

        Args:
            system: Role-specific instruction (system prompt).
            prompt: The user-turn text to send.
            max_tokens: Output cap; None uses the provider's configured value.
            timeout_sec: Wait bound; None uses the provider's configured value.

        Returns:
            ModelResponse dataclass with content and metadata.

        Raises:
            ProviderError: On API failure, timeout, or empty response.
        """
        ...
