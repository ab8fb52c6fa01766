"""WhatsApp session access through the websocket bridge."""

from whatsapp_ai_bot.whatsapp.bridge_client import WhatsAppBridgeClient

__all__ = [
    "WhatsAppBridgeClient",
]
