"""
Pydantic models for the WhatsApp AI bot.

Shared by the bridge client, the message buffer and the daemon.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

# Pseudo chat used by WhatsApp for status updates
STATUS_BROADCAST_CHAT_ID = "status@broadcast"


class AISelection(str, Enum):
    """AI backend used for every conversation, fixed at startup."""
    GPT = "GPT"
    GEMINI = "GEMINI"


class SessionState(str, Enum):
    """Last known state of the WhatsApp session reported by the bridge."""
    STARTING = "starting"
    QR_PENDING = "qr_pending"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class InboundMessage(BaseModel):
    """A single message received from the WhatsApp bridge."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = ""
    chat_id: str = Field(alias="chatId")
    sender: str = Field(default="", alias="from")
    body: str = ""
    type: str = "chat"
    is_group_msg: bool = Field(default=False, alias="isGroupMsg")
    timestamp: datetime = Field(default_factory=datetime.now)

    @property
    def reply_target(self) -> str:
        """Address replies go to (the sender, falling back to the chat)."""
        return self.sender or self.chat_id

    def is_relayable(self) -> bool:
        """True for plain text messages in private chats."""
        return (
            self.type == "chat"
            and not self.is_group_msg
            and self.chat_id != STATUS_BROADCAST_CHAT_ID
        )

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "InboundMessage":
        """Build from a bridge `message` frame payload."""
        return cls.model_validate(payload)


class BufferedMessage(BaseModel):
    """
    Single buffered message waiting for the quiet period to elapse.

    Attributes:
        message_id: Bridge message ID for tracking
        text: The message body
        reply_target: Where the reply to this batch should be sent
        timestamp: When the message was received
    """
    message_id: str = ""
    text: str
    reply_target: str = ""
    timestamp: datetime = Field(default_factory=datetime.now)

    @classmethod
    def from_inbound(cls, message: InboundMessage) -> "BufferedMessage":
        return cls(
            message_id=message.id,
            text=message.body,
            reply_target=message.reply_target,
            timestamp=message.timestamp,
        )


class FlushResult(BaseModel):
    """Outcome of one flush of a conversation buffer."""

    chat_id: str
    messages_consumed: int = 0
    chunks_sent: int = 0
    answer: Optional[str] = None
    error: Optional[str] = None
    fallback_sent: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None
