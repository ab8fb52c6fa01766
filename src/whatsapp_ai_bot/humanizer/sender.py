"""
Paced delivery of multi-chunk replies.

Chunks are sent one by one with a fixed pause in between so a long reply
arrives as a natural sequence of messages instead of a single burst.
"""
import asyncio
import logging
from typing import Protocol, Sequence

logger = logging.getLogger(__name__)


class TextSender(Protocol):
    """Anything that can deliver a text message to a WhatsApp address."""

    async def send_text(self, to: str, text: str) -> dict: ...


async def send_messages_with_delay(
    client: TextSender,
    messages: Sequence[str],
    target_number: str,
    delay_seconds: float = 1.0,
) -> int:
    """
    Send each chunk in order, pausing between consecutive sends.

    Each send is awaited before the pause and the next chunk. A failing send
    propagates immediately and the remaining chunks are not sent.

    Args:
        client: Connected WhatsApp client
        messages: Chunks to send, in order
        target_number: WhatsApp address of the recipient
        delay_seconds: Pause between two consecutive chunks

    Returns:
        Number of chunks sent
    """
    sent = 0
    for index, message in enumerate(messages):
        if index > 0 and delay_seconds > 0:
            await asyncio.sleep(delay_seconds)

        await client.send_text(target_number, message)
        sent += 1
        logger.debug(
            f"Sent chunk {index + 1}/{len(messages)} to {target_number} "
            f"({len(message)} chars)"
        )

    return sent
