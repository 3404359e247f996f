"""
NoteDigest Backend — Abstract LLM Service Interface
====================================================

What:  Abstract base class defining the contract for text-generation services.
How:   Concrete implementations inherit from LLMService and implement generate().
Who:   Called by the Summarizer; the concrete provider is injected.

Design Decision:
    The Summarizer owns prompt construction and output validation; the
    provider only turns a prompt into text. Tests substitute a fake provider.
"""

from abc import ABC, abstractmethod


class LLMService(ABC):
    """
    Abstract interface for prompt-in, text-out generation.

    Contract:
        - generate() returns the raw generated text (may be empty)
        - Implementations handle their own retry logic and error translation
        - Provider errors surface as SummarizationUnavailableError
    """

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Identifier of the model that generates text; stored on each Note."""
        ...

    @abstractmethod
    async def generate(self, prompt: str, max_output_tokens: int) -> str:
        """
        Generate text for a prompt.

        Args:
            prompt:            The complete prompt.
            max_output_tokens: Upper bound on generated tokens.

        Returns:
            The generated text, stripped. Never None.

        Raises:
            SummarizationUnavailableError: The provider failed after retries.
            CircuitBreakerOpenError: Too many consecutive failures recently.
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Lightweight reachability check that consumes no generation quota."""
        ...
