"""Temporal processing (debounced message buffering)."""

from whatsapp_ai_bot.temporal.message_buffer import MessageBuffer, join_messages

__all__ = [
    "MessageBuffer",
    "join_messages",
]
