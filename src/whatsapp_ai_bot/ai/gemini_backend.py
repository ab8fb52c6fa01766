"""
Google Gemini backend.

Uses the google-genai SDK. One async chat session is kept per WhatsApp chat
so Gemini sees the dialog history; sessions are created lazily on the first
message of a chat.
"""
import logging
from typing import Any, Optional

from google import genai
from google.genai import types

from whatsapp_ai_bot.ai.base import AIBackend
from whatsapp_ai_bot.core.exceptions import AIBackendError

logger = logging.getLogger(__name__)


class GeminiBackend(AIBackend):
    """Gemini answers through google-genai async chats, one per chat id."""

    name = "GEMINI"

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.0-flash",
        system_prompt: Optional[str] = None,
        client: Optional[genai.Client] = None,
    ):
        """
        Args:
            api_key: Gemini API key (GEMINI_KEY)
            model: Gemini model name
            system_prompt: Optional system instruction for every chat
            client: Preconfigured genai.Client (mainly for tests)
        """
        if not api_key and client is None:
            raise ValueError("GEMINI_KEY is required for the Gemini backend")

        self._client = client or genai.Client(api_key=api_key)
        self._model = model
        self._system_prompt = system_prompt
        self._chats: dict[str, Any] = {}

        logger.info(f"Gemini backend initialized (model: {model})")

    def _get_chat(self, chat_id: str) -> Any:
        chat = self._chats.get(chat_id)
        if chat is None:
            config = None
            if self._system_prompt:
                config = types.GenerateContentConfig(
                    system_instruction=self._system_prompt
                )
            chat = self._client.aio.chats.create(model=self._model, config=config)
            self._chats[chat_id] = chat
            logger.info(f"New Gemini chat for {chat_id}")
        return chat

    def reset_session(self, chat_id: str) -> None:
        self._chats.pop(chat_id, None)

    async def generate(self, text: str, chat_id: str) -> str:
        chat = self._get_chat(chat_id)

        try:
            response = await chat.send_message(text)
        except Exception as e:
            raise AIBackendError(self.name, str(e)) from e

        answer = (response.text or "").strip()
        if not answer:
            raise AIBackendError(self.name, "empty response")

        logger.debug(f"Gemini answered {chat_id} ({len(answer)} chars)")
        return answer
