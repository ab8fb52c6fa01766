"""Tests for the retry wrapper and the AI dispatcher."""
import pytest

from whatsapp_ai_bot.ai import retry as retry_module
from whatsapp_ai_bot.ai.dispatcher import MAX_RETRIES, AIDispatcher, build_backend
from whatsapp_ai_bot.ai.retry import exponential_backoff, retry_async
from whatsapp_ai_bot.core.config import BotSettings
from whatsapp_ai_bot.core.exceptions import AIBackendError, RetriesExhaustedError

from conftest import FailingBackend, FakeBackend


@pytest.mark.asyncio
async def test_first_success_is_returned():
    backend = FakeBackend(["Hi there!"])
    dispatcher = AIDispatcher(backend)

    assert await dispatcher.get_answer("Hello", "a@c.us") == "Hi there!"
    assert backend.calls == [("Hello", "a@c.us")]


@pytest.mark.asyncio
async def test_retries_until_success():
    backend = FakeBackend([
        AIBackendError("FAKE", "timeout"),
        AIBackendError("FAKE", "rate limited"),
        "third time lucky",
    ])
    dispatcher = AIDispatcher(backend)

    outcome = await dispatcher.try_answer("Hello", "a@c.us")

    assert outcome.ok
    assert outcome.value == "third time lucky"
    assert outcome.attempts == 3
    assert len(backend.calls) == 3


@pytest.mark.asyncio
async def test_gives_up_after_max_retries():
    backend = FailingBackend()
    dispatcher = AIDispatcher(backend)

    with pytest.raises(AIBackendError, match="boom #3"):
        await dispatcher.get_answer("Hello", "a@c.us")

    assert len(backend.calls) == MAX_RETRIES == 3


@pytest.mark.asyncio
async def test_failed_outcome_carries_last_error():
    dispatcher = AIDispatcher(FailingBackend(), max_retries=2)

    outcome = await dispatcher.try_answer("Hello", "a@c.us")

    assert not outcome.ok
    assert outcome.value is None
    assert isinstance(outcome.error, RetriesExhaustedError)
    assert outcome.error.attempts == 2
    assert "boom #2" in str(outcome.error.last_error)


@pytest.mark.asyncio
async def test_prepare_session_and_close_reach_backend():
    backend = FakeBackend()
    dispatcher = AIDispatcher(backend)

    await dispatcher.prepare_session("a@c.us")
    await dispatcher.close()

    assert backend.prepared == ["a@c.us"]
    assert backend.closed


def test_dispatcher_requires_at_least_one_attempt():
    with pytest.raises(ValueError):
        AIDispatcher(FakeBackend(), max_retries=0)


@pytest.mark.asyncio
async def test_retry_async_waits_between_failed_attempts(monkeypatch):
    delays = []

    async def fake_sleep(seconds):
        delays.append(seconds)

    monkeypatch.setattr(retry_module.asyncio, "sleep", fake_sleep)

    async def always_fails():
        raise ConnectionError("down")

    outcome = await retry_async(
        always_fails,
        attempts=3,
        backoff=exponential_backoff(initial=0.5, factor=2.0),
    )

    assert not outcome.ok
    # No wait after the final attempt
    assert delays == [0.5, 1.0]


@pytest.mark.asyncio
async def test_retry_async_rejects_zero_attempts():
    async def op():
        return 1

    with pytest.raises(ValueError):
        await retry_async(op, attempts=0)


def test_exponential_backoff_is_capped():
    policy = exponential_backoff(initial=1.0, factor=3.0, max_delay=5.0)
    assert [policy(n) for n in (1, 2, 3, 4)] == [1.0, 3.0, 5.0, 5.0]


def test_build_backend_selects_gemini():
    from whatsapp_ai_bot.ai.gemini_backend import GeminiBackend

    settings = BotSettings(ai_selected="GEMINI", gemini_key="test-key")
    assert isinstance(build_backend(settings), GeminiBackend)


def test_build_backend_selects_gpt():
    from whatsapp_ai_bot.ai.openai_backend import OpenAIBackend

    settings = BotSettings(
        ai_selected="GPT",
        openai_key="sk-test",
        openai_assistant="pmpt_123",
    )
    assert isinstance(build_backend(settings), OpenAIBackend)
