"""AI backends and the dispatcher that retries them."""

from whatsapp_ai_bot.ai.base import AIBackend
from whatsapp_ai_bot.ai.dispatcher import AIDispatcher, MAX_RETRIES, build_backend
from whatsapp_ai_bot.ai.retry import RetryOutcome, retry_async, no_backoff, exponential_backoff

__all__ = [
    "AIBackend",
    "AIDispatcher",
    "MAX_RETRIES",
    "build_backend",
    "RetryOutcome",
    "retry_async",
    "no_backoff",
    "exponential_backoff",
]
