"""Web interface (QR login page, status endpoint)."""

from whatsapp_ai_bot.web.app import create_app, PUBLIC_DIR

__all__ = [
    "create_app",
    "PUBLIC_DIR",
]
