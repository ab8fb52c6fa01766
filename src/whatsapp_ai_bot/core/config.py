"""
Settings for the WhatsApp AI bot.

All configuration comes from environment variables (optionally loaded from a
.env file). Settings are immutable once built; the AI selection in particular
is fixed for the lifetime of the process.

Usage:
    settings = load_settings()   # raises ConfigurationError on bad config
    print(settings.ai_selected)
"""
import logging
import os
from typing import Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from whatsapp_ai_bot.core.exceptions import ConfigurationError
from whatsapp_ai_bot.core.models import AISelection

logger = logging.getLogger(__name__)

GEMINI_KEY_HELP = (
    "GEMINI_KEY is required when AI_SELECTED=GEMINI. "
    "Create one for free at https://aistudio.google.com/app/apikey"
)
OPENAI_KEY_HELP = (
    "OPENAI_KEY and OPENAI_ASSISTANT are required when AI_SELECTED=GPT."
)

LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")

DEFAULT_FALLBACK_MESSAGE = (
    "Sorry, I couldn't process your message right now. Please try again in a moment."
)


class BotSettings(BaseModel):
    """Root settings container - single source of truth for configuration."""
    model_config = ConfigDict(frozen=True)

    ai_selected: AISelection = AISelection.GEMINI

    # Provider credentials (required conditionally on ai_selected)
    gemini_key: Optional[str] = None
    gemini_model: str = "gemini-2.0-flash"
    openai_key: Optional[str] = None
    openai_assistant: Optional[str] = None
    openai_model: Optional[str] = None
    ai_system_prompt: Optional[str] = None

    # HTTP server
    host: str = "0.0.0.0"
    port: int = 3000

    # WhatsApp bridge
    whatsapp_bridge_url: str = "ws://localhost:3001"
    whatsapp_session: str = "sessionName"

    # Relay behavior
    quiet_period_seconds: float = 1.0
    send_delay_seconds: float = 1.0
    max_retries: int = 3
    max_buffered_messages: int = 50
    fallback_message: str = DEFAULT_FALLBACK_MESSAGE

    log_level: str = "INFO"

    @field_validator("ai_selected", mode="before")
    @classmethod
    def normalize_ai_selected(cls, v):
        if isinstance(v, str):
            return v.strip().upper() or AISelection.GEMINI.value
        return v

    @field_validator("quiet_period_seconds", "send_delay_seconds")
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Delays must be non-negative")
        return v

    @field_validator("max_retries", "max_buffered_messages")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Must be at least 1")
        return v

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        if not 1 <= v <= 65535:
            raise ValueError("Port must be between 1 and 65535")
        return v

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level {v!r}, expected one of {', '.join(LOG_LEVELS)}")
        return level

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "BotSettings":
        """
        Build settings from environment variables.

        Unset or empty variables fall back to the field defaults.

        Raises:
            ConfigurationError: If a value cannot be parsed.
        """
        env = os.environ if environ is None else environ
        mapping = {
            "ai_selected": "AI_SELECTED",
            "gemini_key": "GEMINI_KEY",
            "gemini_model": "GEMINI_MODEL",
            "openai_key": "OPENAI_KEY",
            "openai_assistant": "OPENAI_ASSISTANT",
            "openai_model": "OPENAI_MODEL",
            "ai_system_prompt": "AI_SYSTEM_PROMPT",
            "host": "HOST",
            "port": "PORT",
            "whatsapp_bridge_url": "WHATSAPP_BRIDGE_URL",
            "whatsapp_session": "WHATSAPP_SESSION",
            "quiet_period_seconds": "QUIET_PERIOD_SECONDS",
            "send_delay_seconds": "SEND_DELAY_SECONDS",
            "max_retries": "MAX_RETRIES",
            "max_buffered_messages": "MAX_BUFFERED_MESSAGES",
            "fallback_message": "FALLBACK_MESSAGE",
            "log_level": "LOG_LEVEL",
        }
        values = {
            field: env[var]
            for field, var in mapping.items()
            if env.get(var, "").strip()
        }
        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    def with_overrides(self, **overrides) -> "BotSettings":
        """
        Return a copy with some fields replaced, validated like the original.

        Raises:
            ConfigurationError: If an override is invalid.
        """
        try:
            return self.__class__(**{**self.model_dump(), **overrides})
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    def validate_environment(self) -> None:
        """
        Check that credentials for the selected AI backend are present.

        Raises:
            ConfigurationError: If a required credential is missing.
        """
        if self.ai_selected == AISelection.GEMINI and not self.gemini_key:
            raise ConfigurationError(GEMINI_KEY_HELP)
        if self.ai_selected == AISelection.GPT and (
            not self.openai_key or not self.openai_assistant
        ):
            raise ConfigurationError(OPENAI_KEY_HELP)


def load_settings(
    environ: Optional[Mapping[str, str]] = None,
    dotenv: bool = True,
) -> BotSettings:
    """
    Load .env (when reading the real environment), build and validate settings.

    Raises:
        ConfigurationError: On invalid values or missing credentials.
    """
    if environ is None and dotenv:
        load_dotenv()

    settings = BotSettings.from_env(environ)
    settings.validate_environment()
    logger.debug(
        f"Settings loaded: ai_selected={settings.ai_selected.value}, "
        f"port={settings.port}, bridge={settings.whatsapp_bridge_url}"
    )
    return settings
