"""NLUClient ABC: the narrow text-completion contract the dialogue relies on.

Any completion backend (Anthropic, Ollama, ...) implements this ABC. The
dialogue layer composes the full instruction and context itself and only
ever asks for one completion at a time.
"""

from abc import ABC, abstractmethod


class NLUClient(ABC):
    """Abstract completion backend."""

    name: str = "nlu"

    @abstractmethod
    async def complete(
        self,
        system: str,
        prompt: str,
        *,
        max_tokens: int = 200,
        temperature: float = 0.2,
    ) -> str:
        """Return the completion text for ``prompt`` under ``system``.

        Raises:
            NLUError: the backend failed or returned an empty completion.
        """

    async def aclose(self) -> None:
        """Release transport resources. Safe to call multiple times."""
