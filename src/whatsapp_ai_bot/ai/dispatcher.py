"""
AI Dispatcher - routes aggregated chat text to the selected AI backend.

The backend is chosen once at startup from AI_SELECTED and used for every
conversation. Each question is retried a bounded number of times, with no
delay between attempts unless a backoff policy is given.
"""
import logging
from typing import Optional

from whatsapp_ai_bot.ai.base import AIBackend
from whatsapp_ai_bot.ai.retry import BackoffPolicy, RetryOutcome, no_backoff, retry_async
from whatsapp_ai_bot.core.config import BotSettings
from whatsapp_ai_bot.core.models import AISelection

logger = logging.getLogger(__name__)

MAX_RETRIES = 3


def build_backend(settings: BotSettings) -> AIBackend:
    """
    Instantiate the backend selected in settings.

    Provider SDKs are imported lazily so only the selected one has to be
    importable.
    """
    if settings.ai_selected == AISelection.GPT:
        from whatsapp_ai_bot.ai.openai_backend import OpenAIBackend
        return OpenAIBackend(
            api_key=settings.openai_key,
            prompt_id=settings.openai_assistant,
            model=settings.openai_model,
        )

    from whatsapp_ai_bot.ai.gemini_backend import GeminiBackend
    return GeminiBackend(
        api_key=settings.gemini_key,
        model=settings.gemini_model,
        system_prompt=settings.ai_system_prompt,
    )


class AIDispatcher:
    """
    Asks the configured backend for answers, retrying on failure.

    Example:
        dispatcher = AIDispatcher(build_backend(settings))
        answer = await dispatcher.get_answer("Hello", "5511999999999@c.us")
    """

    def __init__(
        self,
        backend: AIBackend,
        max_retries: int = MAX_RETRIES,
        backoff: Optional[BackoffPolicy] = None,
    ):
        if max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        self._backend = backend
        self._max_retries = max_retries
        self._backoff = backoff or no_backoff

    @property
    def backend(self) -> AIBackend:
        return self._backend

    @property
    def max_retries(self) -> int:
        return self._max_retries

    async def prepare_session(self, chat_id: str) -> None:
        """Let the backend set up conversation state for a new chat."""
        await self._backend.prepare_session(chat_id)

    async def try_answer(self, text: str, chat_id: str) -> RetryOutcome[str]:
        """Ask the backend, returning a tagged outcome instead of raising."""
        return await retry_async(
            lambda: self._backend.generate(text, chat_id),
            attempts=self._max_retries,
            backoff=self._backoff,
            description=f"{self._backend.name} answer for {chat_id}",
        )

    async def get_answer(self, text: str, chat_id: str) -> str:
        """
        Get an answer for text in chat chat_id.

        Returns:
            The first successful answer

        Raises:
            Exception: The error of the last attempt once retries are exhausted
        """
        outcome = await self.try_answer(text, chat_id)
        if not outcome.ok:
            logger.error(
                f"{self._backend.name} failed {outcome.attempts} time(s) for {chat_id}"
            )
        return outcome.unwrap()

    async def close(self) -> None:
        await self._backend.close()
