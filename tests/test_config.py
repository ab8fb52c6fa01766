import pytest
from pydantic import ValidationError

from whatsapp_ai_bot.core.config import (
    GEMINI_KEY_HELP,
    BotSettings,
    load_settings,
)
from whatsapp_ai_bot.core.exceptions import ConfigurationError
from whatsapp_ai_bot.core.models import AISelection


def test_defaults():
    settings = load_settings({"GEMINI_KEY": "g-key"})

    assert settings.ai_selected == AISelection.GEMINI
    assert settings.port == 3000
    assert settings.quiet_period_seconds == 1.0
    assert settings.send_delay_seconds == 1.0
    assert settings.max_retries == 3
    assert settings.whatsapp_session == "sessionName"


def test_gemini_without_key_fails_fast():
    with pytest.raises(ConfigurationError) as exc_info:
        load_settings({"AI_SELECTED": "GEMINI"})

    assert str(exc_info.value) == GEMINI_KEY_HELP
    assert "aistudio.google.com" in str(exc_info.value)


def test_unset_selection_means_gemini():
    with pytest.raises(ConfigurationError, match="GEMINI_KEY"):
        load_settings({})


@pytest.mark.parametrize("env", [
    {"AI_SELECTED": "GPT"},
    {"AI_SELECTED": "GPT", "OPENAI_KEY": "sk-test"},
    {"AI_SELECTED": "GPT", "OPENAI_ASSISTANT": "pmpt_123"},
])
def test_gpt_requires_key_and_assistant(env):
    with pytest.raises(ConfigurationError, match="OPENAI_KEY and OPENAI_ASSISTANT"):
        load_settings(env)


def test_gpt_with_credentials():
    settings = load_settings({
        "AI_SELECTED": "gpt",
        "OPENAI_KEY": "sk-test",
        "OPENAI_ASSISTANT": "pmpt_123",
    })

    assert settings.ai_selected == AISelection.GPT
    assert settings.openai_assistant == "pmpt_123"


def test_unknown_selection_is_rejected():
    with pytest.raises(ConfigurationError, match="Invalid configuration"):
        load_settings({"AI_SELECTED": "CLAUDE", "GEMINI_KEY": "g-key"})


def test_values_are_parsed_from_strings():
    settings = load_settings({
        "GEMINI_KEY": "g-key",
        "PORT": "8080",
        "QUIET_PERIOD_SECONDS": "2.5",
        "SEND_DELAY_SECONDS": "0",
        "MAX_RETRIES": "5",
        "LOG_LEVEL": "debug",
        "WHATSAPP_BRIDGE_URL": "ws://bridge:9000",
    })

    assert settings.port == 8080
    assert settings.quiet_period_seconds == 2.5
    assert settings.send_delay_seconds == 0
    assert settings.max_retries == 5
    assert settings.log_level == "DEBUG"
    assert settings.whatsapp_bridge_url == "ws://bridge:9000"


def test_empty_values_fall_back_to_defaults():
    settings = load_settings({"GEMINI_KEY": "g-key", "PORT": "", "MAX_RETRIES": "  "})

    assert settings.port == 3000
    assert settings.max_retries == 3


@pytest.mark.parametrize("env", [
    {"PORT": "not-a-port"},
    {"MAX_RETRIES": "0"},
    {"QUIET_PERIOD_SECONDS": "-1"},
    {"LOG_LEVEL": "verbose"},
    {"PORT": "0"},
    {"PORT": "70000"},
])
def test_invalid_values_raise_configuration_error(env):
    with pytest.raises(ConfigurationError):
        BotSettings.from_env({"GEMINI_KEY": "g-key", **env})


def test_settings_are_immutable():
    settings = BotSettings(gemini_key="g-key")

    with pytest.raises(ValidationError):
        settings.port = 1234


def test_overrides_are_validated_and_normalized():
    settings = BotSettings(gemini_key="g-key")

    updated = settings.with_overrides(port=8080, log_level="debug")

    assert updated.port == 8080
    assert updated.log_level == "DEBUG"
    assert updated.gemini_key == "g-key"
    assert updated.ai_selected == AISelection.GEMINI
    assert settings.port == 3000


@pytest.mark.parametrize("overrides", [
    {"port": -1},
    {"log_level": "verbose"},
])
def test_invalid_overrides_raise_configuration_error(overrides):
    with pytest.raises(ConfigurationError):
        BotSettings(gemini_key="g-key").with_overrides(**overrides)
