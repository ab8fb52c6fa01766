"""Shared fakes and fixtures for the WhatsApp AI bot tests."""
from typing import Optional

import pytest

from whatsapp_ai_bot.ai.base import AIBackend
from whatsapp_ai_bot.core.config import BotSettings
from whatsapp_ai_bot.core.exceptions import AIBackendError, BridgeCommandError, BridgeError
from whatsapp_ai_bot.core.models import InboundMessage, SessionState


class FakeBackend(AIBackend):
    """Backend that replays scripted answers; Exception instances are raised."""

    name = "FAKE"

    def __init__(self, script: Optional[list] = None, default: str = "ok"):
        self.script = list(script or [])
        self.default = default
        self.calls: list[tuple[str, str]] = []
        self.prepared: list[str] = []
        self.closed = False

    async def prepare_session(self, chat_id: str) -> None:
        self.prepared.append(chat_id)

    async def generate(self, text: str, chat_id: str) -> str:
        self.calls.append((text, chat_id))
        item = self.script.pop(0) if self.script else self.default
        if isinstance(item, Exception):
            raise item
        return item

    async def close(self) -> None:
        self.closed = True


class FailingBackend(FakeBackend):
    """Backend whose every call fails."""

    async def generate(self, text: str, chat_id: str) -> str:
        self.calls.append((text, chat_id))
        raise AIBackendError(self.name, f"boom #{len(self.calls)}")


class FakeWhatsAppClient:
    """Stands in for WhatsAppBridgeClient; records every sent text."""

    def __init__(self, fail_on_send: Optional[int] = None):
        self.bridge_url = "ws://fake-bridge"
        self.sent: list[tuple[str, str]] = []
        self.handlers = []
        self.fail_on_send = fail_on_send
        self.qr_code_data = ""
        self.state = SessionState.CONNECTED
        self.last_status = "inChat"
        self.connected = True
        self.stopped = False

    def on_message(self, handler) -> None:
        self.handlers.append(handler)

    async def send_text(self, to: str, text: str) -> dict:
        if self.stopped:
            raise BridgeError("WhatsApp bridge not connected")
        if self.fail_on_send is not None and len(self.sent) + 1 >= self.fail_on_send:
            raise BridgeCommandError("send_text", "ERR_SEND", "chat unavailable")
        self.sent.append((to, text))
        return {"id": f"msg-{len(self.sent)}"}

    async def run(self) -> None:
        return None

    async def stop(self) -> None:
        self.stopped = True
        self.connected = False


def make_message(
    body: str,
    chat_id: str = "5511999999999@c.us",
    **overrides,
) -> InboundMessage:
    data = {
        "id": f"wamid-{body[:8]}",
        "chatId": chat_id,
        "from": chat_id,
        "body": body,
        "type": "chat",
        "isGroupMsg": False,
    }
    data.update(overrides)
    return InboundMessage.from_payload(data)


@pytest.fixture
def settings() -> BotSettings:
    return BotSettings(
        gemini_key="test-key",
        quiet_period_seconds=0.05,
        send_delay_seconds=0,
    )
