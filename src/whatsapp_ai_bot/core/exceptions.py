"""Exception hierarchy for the WhatsApp AI bot."""
from typing import Optional


class WhatsAppAIBotError(Exception):
    """Base exception for all bot errors."""
    pass


class ConfigurationError(WhatsAppAIBotError):
    """Raised at startup when required settings or credentials are missing."""
    pass


class AIBackendError(WhatsAppAIBotError):
    """Raised when an AI provider call fails or returns no usable text."""

    def __init__(self, backend: str, message: str):
        self.backend = backend
        super().__init__(f"{backend}: {message}")


class RetriesExhaustedError(WhatsAppAIBotError):
    """Raised when every attempt of a retried operation failed."""

    def __init__(self, attempts: int, last_error: Optional[BaseException]):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Gave up after {attempts} attempt(s): {last_error}")


class BridgeError(WhatsAppAIBotError):
    """Raised when the WhatsApp bridge is unreachable or not connected."""
    pass


class BridgeCommandError(BridgeError):
    """Raised when the bridge rejects a command (e.g. a failed send)."""

    def __init__(self, command: str, code: str, message: str):
        self.command = command
        self.code = code
        super().__init__(f"{command} failed [{code}]: {message}")
