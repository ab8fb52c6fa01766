"""
Message Buffer - per-chat debouncing of incoming WhatsApp messages.

People often type one thought as several short messages. Instead of answering
each of them, the buffer collects the messages of a chat and hands them over
as one batch once the chat has been quiet for a short period.

The debounce pattern works as follows:
1. When a message arrives, it's appended to the chat's buffer
2. The chat's timer is (re)started; any earlier timer for that chat is cancelled
3. When the timer expires, the buffer is swapped out and passed to the callback
4. Messages arriving while the callback runs start a fresh buffer and timer,
   so they are answered by the next flush instead of being lost
5. Flushes of one chat run one at a time; the next one waits for the
   previous callback to finish, so replies keep their order
6. A safety cap flushes immediately when a chat never goes quiet
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from whatsapp_ai_bot.core.models import BufferedMessage, FlushResult

logger = logging.getLogger(__name__)

# Type alias for the flush callback signature
FlushCallback = Callable[[str, list[BufferedMessage]], Awaitable[Optional[FlushResult]]]


def join_messages(messages: list[BufferedMessage]) -> str:
    """Concatenate buffered bodies in arrival order, one per line."""
    return "\n".join(msg.text for msg in messages)


class MessageBuffer:
    """
    Per-chat message batching with reset-on-new-message timers.

    At most one buffer and one pending timer exist per chat id, and they are
    created and removed together. Chats are fully independent: a message in
    one chat never touches another chat's buffer or timer.

    Attributes:
        quiet_period: Seconds without new messages before a chat is flushed
        flush_callback: Async function called with (chat_id, messages)
        max_messages: Buffer size that triggers an immediate flush

    Example:
        async def answer(chat_id: str, messages: list[BufferedMessage]) -> FlushResult:
            text = join_messages(messages)
            ...

        buffer = MessageBuffer(quiet_period=1.0, flush_callback=answer)
        await buffer.add_message("5511999999999@c.us", BufferedMessage(text="Hi"))
    """

    def __init__(
        self,
        quiet_period: float = 1.0,
        flush_callback: Optional[FlushCallback] = None,
        max_messages: int = 50,
    ):
        """
        Initialize the MessageBuffer.

        Args:
            quiet_period: Seconds of inactivity after which a chat's buffer is flushed.
            flush_callback: Async function to call when a buffer is flushed.
                           Signature: async def callback(chat_id: str, messages: list[BufferedMessage])
            max_messages: Number of buffered messages that forces an immediate flush.
        """
        if quiet_period < 0:
            raise ValueError("quiet_period must be non-negative")
        if max_messages < 1:
            raise ValueError("max_messages must be >= 1")

        self._buffers: dict[str, list[BufferedMessage]] = {}
        self._timers: dict[str, asyncio.Task] = {}
        self._inflight: set[asyncio.Task] = set()
        self._flush_locks: dict[str, asyncio.Lock] = {}
        self._quiet_period = quiet_period
        self._flush_callback = flush_callback
        self._max_messages = max_messages

        logger.debug(
            f"MessageBuffer initialized: quiet_period={quiet_period}, "
            f"max_messages={max_messages}"
        )

    async def add_message(self, chat_id: str, message: BufferedMessage) -> None:
        """
        Add a message to the chat's buffer and restart its quiet-period timer.

        Args:
            chat_id: Conversation key (WhatsApp chat id)
            message: The BufferedMessage to add
        """
        if chat_id not in self._buffers:
            self._buffers[chat_id] = []
            logger.debug(f"Created new buffer for {chat_id}")

        self._buffers[chat_id].append(message)
        buffer_size = len(self._buffers[chat_id])
        logger.debug(f"Added message to buffer for {chat_id}, buffer size: {buffer_size}")

        self._cancel_pending_timer(chat_id)

        if buffer_size >= self._max_messages:
            logger.info(
                f"Buffer for {chat_id} reached max size ({buffer_size}), "
                f"forcing immediate flush"
            )
            self._start_timer(chat_id, delay=0.0)
        else:
            self._start_timer(chat_id, delay=self._quiet_period)

    def _start_timer(self, chat_id: str, delay: float) -> None:
        """Arm the single-shot flush timer for a chat."""
        logger.debug(f"Waiting {delay:.2f}s for more messages from {chat_id}")

        async def timer_task() -> None:
            try:
                await asyncio.sleep(delay)
            except asyncio.CancelledError:
                logger.debug(f"Timer cancelled for {chat_id}")
                raise
            await self._flush_buffer(chat_id)

        task = asyncio.create_task(timer_task())
        self._timers[chat_id] = task
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    def _cancel_pending_timer(self, chat_id: str) -> None:
        # No await here: buffer and timer updates for a chat must not interleave
        timer = self._timers.pop(chat_id, None)
        if timer is None or timer.done():
            return
        timer.cancel()
        logger.debug(f"Cancelled existing timer for {chat_id}")

    def _take_buffer(self, chat_id: str) -> list[BufferedMessage]:
        """Swap out the chat's buffer and timer entry in one step."""
        messages = self._buffers.pop(chat_id, [])
        timer = self._timers.pop(chat_id, None)
        # A timer armed while this flush waited for its turn is now redundant
        if timer is not None and timer is not asyncio.current_task():
            timer.cancel()
        return messages

    def _flush_lock(self, chat_id: str) -> asyncio.Lock:
        lock = self._flush_locks.get(chat_id)
        if lock is None:
            lock = self._flush_locks[chat_id] = asyncio.Lock()
        return lock

    async def _flush_buffer(self, chat_id: str) -> Optional[FlushResult]:
        """
        Flush the chat's buffer through the callback.

        Flushes of one chat are serialized: the buffer is taken only once the
        previous flush of that chat has finished, and detached before the
        callback runs. Errors raised by the callback are logged against the
        chat and turned into a FlushResult; they never propagate to the
        event loop.

        Args:
            chat_id: Conversation key

        Returns:
            The callback's FlushResult (None when there was nothing to flush)
        """
        async with self._flush_lock(chat_id):
            messages = self._take_buffer(chat_id)

            if not messages:
                logger.debug(f"No messages to flush for {chat_id}")
                return None

            logger.info(f"Flushing buffer for {chat_id}: {len(messages)} message(s)")

            if not self._flush_callback:
                logger.warning(
                    f"No flush callback configured, {len(messages)} messages "
                    f"for {chat_id} were discarded"
                )
                return None

            try:
                result = await self._flush_callback(chat_id, messages)
            except Exception as e:
                logger.exception(
                    f"Error in flush callback for {chat_id}: {e}. "
                    f"Messages were: {[m.text[:50] for m in messages]}"
                )
                result = FlushResult(
                    chat_id=chat_id,
                    messages_consumed=len(messages),
                    error=str(e) or e.__class__.__name__,
                )

        if result is not None:
            if result.ok:
                logger.info(
                    f"Flush for {chat_id} done: {result.messages_consumed} message(s) in, "
                    f"{result.chunks_sent} chunk(s) out"
                )
            else:
                logger.error(f"Flush for {chat_id} failed: {result.error}")
        return result

    async def flush_now(self, chat_id: str) -> Optional[FlushResult]:
        """Flush a chat immediately, bypassing its quiet period."""
        self._cancel_pending_timer(chat_id)
        return await self._flush_buffer(chat_id)

    def get_buffer_size(self, chat_id: str) -> int:
        """Number of messages currently buffered for a chat (0 if none)."""
        return len(self._buffers.get(chat_id, []))

    def get_buffered_messages(self, chat_id: str) -> list[BufferedMessage]:
        """Copy of the chat's buffered messages, without flushing."""
        return list(self._buffers.get(chat_id, []))

    def has_pending_buffer(self, chat_id: str) -> bool:
        """True if the chat has messages waiting for its quiet period."""
        return bool(self._buffers.get(chat_id))

    def has_pending_timer(self, chat_id: str) -> bool:
        timer = self._timers.get(chat_id)
        return timer is not None and not timer.done()

    def get_all_pending_chat_ids(self) -> list[str]:
        """Chat ids with non-empty buffers (useful at shutdown)."""
        return [cid for cid, msgs in self._buffers.items() if msgs]

    @property
    def pending_count(self) -> int:
        return len(self.get_all_pending_chat_ids())

    async def wait_idle(self) -> None:
        """Wait until no timer is pending and no flush is running."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def flush_all(self) -> None:
        """
        Flush all pending buffers right away.

        Used for graceful shutdown so buffered messages still get an answer.
        """
        chat_ids = list(self._buffers.keys())
        logger.info(f"Flushing all buffers: {len(chat_ids)} chat(s)")

        for chat_id in chat_ids:
            await self.flush_now(chat_id)

    async def cancel_all(self) -> None:
        """
        Cancel all pending timers and drop their buffers without flushing.

        Used for forced shutdown. Flushes already running are not interrupted.
        """
        chat_ids = set(self._timers) | set(self._buffers)
        logger.info(f"Cancelling all timers: {len(chat_ids)} chat(s)")

        for chat_id in chat_ids:
            self._cancel_pending_timer(chat_id)
            discarded = self._buffers.pop(chat_id, [])
            if discarded:
                logger.warning(
                    f"Discarded {len(discarded)} unanswered message(s) for {chat_id}"
                )

    @property
    def quiet_period(self) -> float:
        return self._quiet_period

    @property
    def max_messages(self) -> int:
        return self._max_messages

    def __repr__(self) -> str:
        return (
            f"MessageBuffer(quiet_period={self._quiet_period}, "
            f"max_messages={self._max_messages}, "
            f"active_buffers={self.pending_count}, "
            f"active_timers={len(self._timers)})"
        )
