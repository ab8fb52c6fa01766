"""Core bot modules (models, settings, errors)."""

from whatsapp_ai_bot.core.models import (
    AISelection,
    BufferedMessage,
    FlushResult,
    InboundMessage,
    SessionState,
    STATUS_BROADCAST_CHAT_ID,
)
from whatsapp_ai_bot.core.config import BotSettings, load_settings
from whatsapp_ai_bot.core.exceptions import (
    WhatsAppAIBotError,
    ConfigurationError,
    AIBackendError,
    RetriesExhaustedError,
    BridgeError,
    BridgeCommandError,
)

__all__ = [
    "AISelection",
    "BufferedMessage",
    "FlushResult",
    "InboundMessage",
    "SessionState",
    "STATUS_BROADCAST_CHAT_ID",
    "BotSettings",
    "load_settings",
    "WhatsAppAIBotError",
    "ConfigurationError",
    "AIBackendError",
    "RetriesExhaustedError",
    "BridgeError",
    "BridgeCommandError",
]
