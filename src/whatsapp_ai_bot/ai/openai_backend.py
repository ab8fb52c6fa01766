"""
OpenAI GPT backend.

Each WhatsApp chat is one stateful conversation on the OpenAI Responses API:
the id of the last response in a chat is passed as previous_response_id on
the next call, so the model keeps the whole dialog as context.

OPENAI_ASSISTANT holds the id of a reusable prompt configured in the OpenAI
dashboard (instructions, model and tools live there, like an assistant).
"""
import logging
from typing import Optional

import openai

from whatsapp_ai_bot.ai.base import AIBackend
from whatsapp_ai_bot.core.exceptions import AIBackendError

logger = logging.getLogger(__name__)


class OpenAIBackend(AIBackend):
    """GPT answers through the OpenAI Responses API, one chain per chat."""

    name = "GPT"

    def __init__(
        self,
        api_key: str,
        prompt_id: str,
        model: Optional[str] = None,
        client: Optional[openai.AsyncOpenAI] = None,
    ):
        """
        Args:
            api_key: OpenAI API key (OPENAI_KEY)
            prompt_id: Reusable prompt id (OPENAI_ASSISTANT)
            model: Optional model override; the prompt's model is used otherwise
            client: Preconfigured AsyncOpenAI client (mainly for tests)
        """
        if not api_key and client is None:
            raise ValueError("OPENAI_KEY is required for the GPT backend")
        if not prompt_id:
            raise ValueError("OPENAI_ASSISTANT is required for the GPT backend")

        self._client = client or openai.AsyncOpenAI(api_key=api_key)
        self._prompt_id = prompt_id
        self._model = model
        # chat_id -> id of the last response in that chat (None = fresh session)
        self._sessions: dict[str, Optional[str]] = {}

        logger.info(f"OpenAI backend initialized (prompt: {prompt_id})")

    def has_session(self, chat_id: str) -> bool:
        return chat_id in self._sessions

    async def prepare_session(self, chat_id: str) -> None:
        """Start a new conversation chain for chat_id if it has none."""
        if chat_id not in self._sessions:
            self._sessions[chat_id] = None
            logger.info(f"New GPT session for {chat_id}")

    def reset_session(self, chat_id: str) -> None:
        """Forget the conversation chain for chat_id."""
        self._sessions.pop(chat_id, None)

    async def generate(self, text: str, chat_id: str) -> str:
        await self.prepare_session(chat_id)

        request = {
            "prompt": {"id": self._prompt_id},
            "input": text,
        }
        if self._model:
            request["model"] = self._model
        previous_id = self._sessions.get(chat_id)
        if previous_id:
            request["previous_response_id"] = previous_id

        try:
            response = await self._client.responses.create(**request)
        except openai.OpenAIError as e:
            raise AIBackendError(self.name, str(e)) from e

        answer = (response.output_text or "").strip()
        if not answer:
            raise AIBackendError(self.name, "empty response")

        self._sessions[chat_id] = response.id
        logger.debug(f"GPT answered {chat_id} ({len(answer)} chars, response {response.id})")
        return answer

    async def close(self) -> None:
        await self._client.close()
