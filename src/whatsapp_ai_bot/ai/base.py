"""Common interface for the interchangeable AI backends."""
from abc import ABC, abstractmethod


class AIBackend(ABC):
    """
    A hosted AI provider that answers chat text.

    Backends keep their own per-chat conversation state, keyed by the
    WhatsApp chat id, so follow-up questions are answered in context.
    """

    name: str = "backend"

    async def prepare_session(self, chat_id: str) -> None:
        """Make sure a conversation session exists for chat_id."""
        return None

    @abstractmethod
    async def generate(self, text: str, chat_id: str) -> str:
        """
        Answer text in the conversation identified by chat_id.

        Raises:
            AIBackendError: If the provider fails or returns no text.
        """

    async def close(self) -> None:
        """Release provider resources."""
        return None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"
