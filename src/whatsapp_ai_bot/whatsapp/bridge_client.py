"""
WhatsApp session client over a websocket bridge.

The WhatsApp Web session (QR login, device pairing, encryption) lives in a
separate bridge process. This client connects to it, receives QR codes,
status changes and chat messages, and sends text messages back.

Frames are JSON objects with a "type" and a "payload":

    bridge -> bot   qr        {"base64": str, "ascii": str, "attempts": int}
                    status    {"status": str, "session": str}
                    message   {"id", "chatId", "from", "body", "type", "isGroupMsg"}
                    response  {"ok": bool, "result": {...}, "error": {...}}  (+ "requestId")
                    error     {"error": str}
    bot -> bridge   start     {"session": str}                              (+ "requestId")
                    send_text {"to": str, "text": str}                      (+ "requestId")
"""
import asyncio
import contextlib
import json
import logging
import random
import uuid
from typing import Any, Awaitable, Callable, Optional

import websockets
from websockets.exceptions import WebSocketException

from whatsapp_ai_bot.core.exceptions import BridgeCommandError, BridgeError
from whatsapp_ai_bot.core.models import InboundMessage, SessionState

logger = logging.getLogger(__name__)

MessageHandler = Callable[[InboundMessage], Awaitable[None]]
# (base64 image, ascii art, attempt number)
QRHandler = Callable[[str, str, int], None]
# (status, session name)
StatusHandler = Callable[[str, str], None]

CONNECTED_STATUSES = {"isLogged", "inChat", "qrReadSuccess", "successChat", "connected"}
DISCONNECTED_STATUSES = {"notLogged", "browserClose", "desconnectedMobile", "disconnected", "autocloseCalled"}


class WhatsAppBridgeClient:
    """
    Client for the WhatsApp websocket bridge.

    Usage:
        client = WhatsAppBridgeClient("ws://localhost:3001", session="sessionName")
        client.on_message(handle_message)
        await client.run()          # runs until stop() is called
    """

    def __init__(
        self,
        bridge_url: str,
        session: str = "sessionName",
        on_qr: Optional[QRHandler] = None,
        on_status: Optional[StatusHandler] = None,
        command_timeout: float = 20.0,
        reconnect_initial: float = 1.0,
        reconnect_max: float = 30.0,
    ):
        self.bridge_url = bridge_url
        self.session = session
        self._on_qr = on_qr
        self._on_status = on_status
        self._command_timeout = command_timeout
        self._reconnect_initial = reconnect_initial
        self._reconnect_max = reconnect_max

        self._ws: Any = None
        self._running = False
        self._send_lock = asyncio.Lock()
        self._pending: dict[str, asyncio.Future] = {}
        self._message_handlers: list[MessageHandler] = []
        self._handler_tasks: set[asyncio.Task] = set()

        self.state = SessionState.STARTING
        self.last_status: str = ""
        self.qr_code_data: str = ""

    @property
    def connected(self) -> bool:
        return self._ws is not None

    def on_message(self, handler: MessageHandler) -> None:
        """Register an async handler called for every inbound chat message."""
        self._message_handlers.append(handler)

    async def run(self) -> None:
        """Connect to the bridge and process frames, reconnecting on failure."""
        self._running = True
        attempt = 0

        while self._running:
            try:
                logger.info(f"Connecting to WhatsApp bridge at {self.bridge_url}...")
                async with websockets.connect(
                    self.bridge_url,
                    ping_interval=20,
                    ping_timeout=20,
                ) as ws:
                    self._ws = ws
                    attempt = 0
                    reader = asyncio.create_task(self._read_loop(ws))
                    try:
                        await self._send_command("start", {"session": self.session})
                        logger.info(f"WhatsApp session '{self.session}' started on bridge")
                        await reader
                    finally:
                        reader.cancel()
                        with contextlib.suppress(asyncio.CancelledError):
                            await reader
            except asyncio.CancelledError:
                raise
            except (OSError, WebSocketException, BridgeError) as e:
                logger.warning(f"WhatsApp bridge connection error: {e}")
            finally:
                self._ws = None
                self._fail_pending("Bridge connection closed")

            if not self._running:
                break

            attempt += 1
            self.state = SessionState.DISCONNECTED
            delay = self._compute_backoff(attempt)
            logger.info(f"Reconnecting to WhatsApp bridge in {delay:.1f}s...")
            await asyncio.sleep(delay)

    async def stop(self) -> None:
        """Close the bridge connection and stop reconnecting."""
        self._running = False
        for task in list(self._handler_tasks):
            task.cancel()
        self._handler_tasks.clear()
        if self._ws is not None:
            await self._ws.close()
            self._ws = None
        self._fail_pending("Client stopped")

    async def send_text(self, to: str, text: str) -> dict:
        """
        Send a text message to a WhatsApp address.

        Raises:
            BridgeError: If the bridge is not connected
            BridgeCommandError: If the bridge reports the send as failed
        """
        return await self._send_command("send_text", {"to": to, "text": text})

    async def _read_loop(self, ws: Any) -> None:
        async for raw in ws:
            await self._handle_frame(raw)

    async def _handle_frame(self, raw: str | bytes) -> None:
        try:
            frame = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Invalid JSON from WhatsApp bridge")
            return

        if not isinstance(frame, dict):
            logger.warning("Invalid bridge frame shape")
            return

        frame_type = frame.get("type")
        payload = frame.get("payload")
        if not isinstance(payload, dict):
            payload = {}

        if frame_type == "response":
            self._resolve_pending(frame.get("requestId"), payload)
        elif frame_type == "message":
            self._dispatch_message(payload)
        elif frame_type == "qr":
            self._handle_qr(payload)
        elif frame_type == "status":
            self._handle_status(payload)
        elif frame_type == "error":
            logger.error(f"WhatsApp bridge error: {payload.get('error')}")
        else:
            logger.debug(f"Ignoring bridge frame of type {frame_type!r}")

    def _handle_qr(self, payload: dict) -> None:
        self.qr_code_data = str(payload.get("base64") or "")
        self.state = SessionState.QR_PENDING
        if self._on_qr:
            self._on_qr(
                self.qr_code_data,
                str(payload.get("ascii") or ""),
                int(payload.get("attempts") or 0),
            )

    def _handle_status(self, payload: dict) -> None:
        status = str(payload.get("status") or "")
        session = str(payload.get("session") or self.session)
        self.last_status = status
        if status in CONNECTED_STATUSES:
            self.state = SessionState.CONNECTED
            self.qr_code_data = ""
        elif status in DISCONNECTED_STATUSES:
            self.state = SessionState.DISCONNECTED
        logger.info(f"WhatsApp session status: {status} (session: {session})")
        if self._on_status:
            self._on_status(status, session)

    def _dispatch_message(self, payload: dict) -> None:
        try:
            message = InboundMessage.from_payload(payload)
        except ValueError as e:
            logger.warning(f"Dropping malformed message frame: {e}")
            return

        # Handlers run as tasks so the read loop keeps consuming command responses
        for handler in self._message_handlers:
            task = asyncio.create_task(handler(message))
            self._handler_tasks.add(task)
            task.add_done_callback(self._on_handler_done)

    def _on_handler_done(self, task: asyncio.Task) -> None:
        self._handler_tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Message handler failed: {error}", exc_info=error)

    async def _send_command(self, command: str, payload: dict) -> dict:
        if self._ws is None:
            raise BridgeError("WhatsApp bridge not connected")

        request_id = uuid.uuid4().hex
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future

        frame = {"type": command, "requestId": request_id, "payload": payload}
        try:
            async with self._send_lock:
                await self._ws.send(json.dumps(frame))
            return await asyncio.wait_for(future, timeout=self._command_timeout)
        except asyncio.TimeoutError as e:
            raise BridgeError(f"{command} timed out after {self._command_timeout}s") from e
        finally:
            self._pending.pop(request_id, None)

    def _resolve_pending(self, request_id: Any, payload: dict) -> None:
        future = self._pending.get(request_id) if isinstance(request_id, str) else None
        if future is None or future.done():
            return

        if payload.get("ok"):
            result = payload.get("result")
            future.set_result(result if isinstance(result, dict) else {})
            return

        error = payload.get("error") if isinstance(payload.get("error"), dict) else {}
        future.set_exception(BridgeCommandError(
            command=str(error.get("command") or "command"),
            code=str(error.get("code") or "ERR_INTERNAL"),
            message=str(error.get("message") or "Bridge command failed"),
        ))

    def _fail_pending(self, reason: str) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(BridgeError(reason))
        self._pending.clear()

    def _compute_backoff(self, attempt: int) -> float:
        raw = self._reconnect_initial * (2 ** max(0, attempt - 1))
        capped = min(self._reconnect_max, raw)
        return random.uniform(capped * 0.8, capped * 1.2)
