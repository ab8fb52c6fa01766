"""Human-like reply delivery (splitting and pacing)."""

from whatsapp_ai_bot.humanizer.splitter import split_messages
from whatsapp_ai_bot.humanizer.sender import send_messages_with_delay, TextSender

__all__ = [
    "split_messages",
    "send_messages_with_delay",
    "TextSender",
]
