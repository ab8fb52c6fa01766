#!/usr/bin/env python3
"""
WhatsApp AI Bot Daemon.
Long-running service that relays WhatsApp chats to the selected AI backend.
Serves the QR login page and status endpoint alongside the bridge session.
"""
import argparse
import asyncio
import logging
import signal
import sys
from datetime import datetime
from typing import Any, Optional

import uvicorn
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from whatsapp_ai_bot.ai.dispatcher import AIDispatcher, build_backend
from whatsapp_ai_bot.core.config import BotSettings, load_settings
from whatsapp_ai_bot.core.exceptions import BridgeError, ConfigurationError
from whatsapp_ai_bot.core.models import BufferedMessage, FlushResult, InboundMessage
from whatsapp_ai_bot.humanizer.sender import send_messages_with_delay
from whatsapp_ai_bot.humanizer.splitter import split_messages
from whatsapp_ai_bot.temporal.message_buffer import MessageBuffer, join_messages
from whatsapp_ai_bot.web.app import create_app
from whatsapp_ai_bot.whatsapp.bridge_client import WhatsAppBridgeClient

console = Console()
logger = logging.getLogger(__name__)

STATUS_INTERVAL_SECONDS = 60 * 5


class WhatsAppAIDaemon:
    """Main daemon that wires the WhatsApp session, the buffer and the AI."""

    def __init__(
        self,
        settings: BotSettings,
        dispatcher: Optional[AIDispatcher] = None,
        client: Optional[WhatsAppBridgeClient] = None,
    ):
        self.settings = settings
        self.dispatcher = dispatcher
        self.client = client
        self.message_buffer: Optional[MessageBuffer] = None
        self.server: Optional[uvicorn.Server] = None
        self.running = False
        self.stats = {
            "messages_received": 0,
            "messages_ignored": 0,
            "messages_sent": 0,
            "batches_processed": 0,
            "failed_batches": 0,
            "started_at": None,
        }

    async def initialize(self) -> None:
        """Initialize all components."""
        console.print("[bold blue]Initializing WhatsApp AI Bot...[/bold blue]")

        if self.dispatcher is None:
            backend = build_backend(self.settings)
            self.dispatcher = AIDispatcher(backend, max_retries=self.settings.max_retries)
        console.print(
            f"  [green]✓[/green] AI backend ready: {self.dispatcher.backend.name} "
            f"(max {self.dispatcher.max_retries} attempts)"
        )

        if self.client is None:
            self.client = WhatsAppBridgeClient(
                self.settings.whatsapp_bridge_url,
                session=self.settings.whatsapp_session,
                on_qr=self._handle_qr,
                on_status=self._handle_status,
            )
        console.print(f"  [green]✓[/green] WhatsApp bridge: {self.client.bridge_url}")

        self.message_buffer = MessageBuffer(
            quiet_period=self.settings.quiet_period_seconds,
            flush_callback=self._process_message_batch,
            max_messages=self.settings.max_buffered_messages,
        )
        console.print(
            f"  [green]✓[/green] Message buffer initialized "
            f"(quiet period {self.settings.quiet_period_seconds}s)"
        )

        self._register_handlers()
        console.print("  [green]✓[/green] Message handlers registered")

    def _register_handlers(self) -> None:
        self.client.on_message(self.handle_incoming)

    @property
    def qr_code_data(self) -> str:
        return self.client.qr_code_data if self.client else ""

    def status_snapshot(self) -> dict[str, Any]:
        """Current session and relay status (served on GET /status)."""
        started_at = self.stats["started_at"]
        return {
            "session": self.settings.whatsapp_session,
            "state": self.client.state.value if self.client else "starting",
            "status": self.client.last_status if self.client else "",
            "bridgeConnected": bool(self.client and self.client.connected),
            "aiSelected": self.settings.ai_selected.value,
            "pendingConversations": self.message_buffer.pending_count if self.message_buffer else 0,
            "startedAt": started_at.isoformat() if started_at else None,
            "stats": {k: v for k, v in self.stats.items() if k != "started_at"},
        }

    def _handle_qr(self, base64_qr: str, ascii_qr: str, attempts: int) -> None:
        console.print(f"[bold]Terminal qrcode (attempt {attempts}):[/bold]")
        if ascii_qr:
            console.print(ascii_qr, highlight=False)
        console.print(
            f"[dim]Or open http://localhost:{self.settings.port} to scan it in the browser[/dim]"
        )

    def _handle_status(self, status: str, session: str) -> None:
        console.print(f"[blue]Status Session: {status}[/blue] [dim](session: {session})[/dim]")

    async def handle_incoming(self, message: InboundMessage) -> None:
        """Buffer a relayable message; ignore groups, status broadcasts and media."""
        if not message.is_relayable():
            self.stats["messages_ignored"] += 1
            logger.debug(
                f"Ignoring {message.type} message in {message.chat_id} "
                f"(group={message.is_group_msg})"
            )
            return

        self.stats["messages_received"] += 1
        console.print(f"[cyan]Message received from {message.chat_id}:[/cyan] {message.body[:80]}")

        await self.dispatcher.prepare_session(message.chat_id)
        await self.message_buffer.add_message(
            message.chat_id,
            BufferedMessage.from_inbound(message),
        )
        console.print("[dim]Waiting for more messages...[/dim]")

    async def _process_message_batch(
        self,
        chat_id: str,
        messages: list[BufferedMessage],
    ) -> FlushResult:
        """Answer one batch of messages from a chat.

        Called by MessageBuffer when the chat's quiet period expires.
        """
        self.stats["batches_processed"] += 1
        combined_text = join_messages(messages)
        target = messages[-1].reply_target or chat_id

        outcome = await self.dispatcher.try_answer(combined_text, chat_id)
        if not outcome.ok:
            return await self._send_fallback(chat_id, target, len(messages), outcome.error)

        chunks = split_messages(outcome.value)
        console.print(f"[cyan]Sending {len(chunks)} message(s) to {target}...[/cyan]")
        try:
            sent = await send_messages_with_delay(
                self.client,
                chunks,
                target,
                delay_seconds=self.settings.send_delay_seconds,
            )
        except BridgeError as e:
            return await self._send_fallback(chat_id, target, len(messages), e)

        self.stats["messages_sent"] += sent
        return FlushResult(
            chat_id=chat_id,
            messages_consumed=len(messages),
            chunks_sent=sent,
            answer=outcome.value,
        )

    async def _send_fallback(
        self,
        chat_id: str,
        target: str,
        consumed: int,
        error: Exception,
    ) -> FlushResult:
        """Tell the user something went wrong instead of staying silent."""
        self.stats["failed_batches"] += 1
        console.print(f"[red]Could not answer {chat_id}: {error}[/red]")

        fallback_sent = False
        if self.settings.fallback_message:
            try:
                await self.client.send_text(target, self.settings.fallback_message)
                fallback_sent = True
                self.stats["messages_sent"] += 1
            except BridgeError as e:
                logger.warning(f"Fallback message to {target} failed: {e}")

        return FlushResult(
            chat_id=chat_id,
            messages_consumed=consumed,
            error=str(error) or error.__class__.__name__,
            fallback_sent=fallback_sent,
        )

    def _create_status_table(self) -> Table:
        """Create a status table for display."""
        table = Table(title="WhatsApp AI Bot Status")
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="green")

        if self.stats["started_at"]:
            uptime = datetime.now() - self.stats["started_at"]
            table.add_row("Uptime", str(uptime).split('.')[0])

        table.add_row("Session State", self.client.state.value)
        table.add_row("Messages Received", str(self.stats["messages_received"]))
        table.add_row("Messages Ignored", str(self.stats["messages_ignored"]))
        table.add_row("Messages Sent", str(self.stats["messages_sent"]))
        table.add_row("Batches Processed", str(self.stats["batches_processed"]))
        table.add_row("Failed Batches", str(self.stats["failed_batches"]))
        table.add_row("Pending Conversations", str(self.message_buffer.pending_count))

        return table

    async def run(self) -> None:
        """Run the web server and the WhatsApp session until stopped."""
        self.running = True
        self.stats["started_at"] = datetime.now()

        app = create_app(self)
        self.server = uvicorn.Server(uvicorn.Config(
            app,
            host=self.settings.host,
            port=self.settings.port,
            log_level=self.settings.log_level.lower(),
        ))
        server_task = asyncio.create_task(self.server.serve())
        client_task = asyncio.create_task(self.client.run())

        console.print(Panel.fit(
            f"[bold green]WhatsApp AI Bot Started[/bold green]\n"
            f"Server is running on http://localhost:{self.settings.port}\n"
            f"AI: {self.settings.ai_selected.value}\n"
            "Press Ctrl+C to stop",
            title="Status"
        ))

        last_check = datetime.now()
        try:
            while self.running:
                if server_task.done():
                    console.print("[yellow]Web server stopped[/yellow]")
                    break
                if client_task.done():
                    console.print("[yellow]WhatsApp session ended[/yellow]")
                    break

                if (datetime.now() - last_check).total_seconds() >= STATUS_INTERVAL_SECONDS:
                    console.print(self._create_status_table())
                    last_check = datetime.now()

                await asyncio.sleep(1)

        except asyncio.CancelledError:
            console.print("\n[yellow]Shutdown requested...[/yellow]")
        finally:
            await self.shutdown()
            for task in (server_task, client_task):
                if not task.done():
                    task.cancel()
            await asyncio.gather(server_task, client_task, return_exceptions=True)

    async def shutdown(self) -> None:
        """Gracefully shutdown the daemon."""
        self.running = False
        console.print("[yellow]Shutting down...[/yellow]")

        # Answer whatever is still buffered while the bridge is up
        if self.message_buffer:
            pending = self.message_buffer.get_all_pending_chat_ids()
            if self.client and self.client.connected:
                if pending:
                    console.print(f"[cyan]Flushing {len(pending)} pending buffer(s)...[/cyan]")
                    await self.message_buffer.flush_all()
                # Replies still being generated need the bridge to be sent
                await self.message_buffer.wait_idle()
                console.print("[green]Message buffers flushed[/green]")
            await self.message_buffer.cancel_all()

        if self.server:
            self.server.should_exit = True

        if self.client:
            await self.client.stop()
            console.print("[green]Disconnected from WhatsApp bridge[/green]")

        if self.dispatcher:
            await self.dispatcher.close()

        console.print(Panel.fit(
            f"[bold]Final Stats[/bold]\n"
            f"Messages Received: {self.stats['messages_received']}\n"
            f"Messages Ignored: {self.stats['messages_ignored']}\n"
            f"Messages Sent: {self.stats['messages_sent']}\n"
            f"Batches Processed: {self.stats['batches_processed']}\n"
            f"Failed Batches: {self.stats['failed_batches']}",
            title="Session Summary"
        ))


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(name)s: %(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


async def run_daemon(settings: BotSettings) -> None:
    daemon = WhatsAppAIDaemon(settings)

    loop = asyncio.get_running_loop()

    def signal_handler():
        daemon.running = False

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, signal_handler)
        except NotImplementedError:
            # Windows event loops have no signal handler support
            pass

    try:
        await daemon.initialize()
        await daemon.run()
    except Exception as e:
        console.print(f"[red bold]Fatal error: {e}[/red bold]")
        raise


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="WhatsApp AI Bot Daemon")
    parser.add_argument(
        '--port',
        type=int,
        default=None,
        help='HTTP port for the QR login page (overrides PORT)',
    )
    parser.add_argument(
        '--log-level',
        default=None,
        help='Logging level (overrides LOG_LEVEL)',
    )
    parser.add_argument(
        '--check-config',
        action='store_true',
        help='Validate configuration and exit',
    )
    args = parser.parse_args(argv)

    overrides = {}
    if args.port is not None:
        overrides["port"] = args.port
    if args.log_level:
        overrides["log_level"] = args.log_level

    try:
        settings = load_settings()
        if overrides:
            settings = settings.with_overrides(**overrides)
    except ConfigurationError as e:
        console.print(f"[red bold]Configuration error:[/red bold] {e}")
        return 1

    setup_logging(settings.log_level)

    if args.check_config:
        console.print(
            f"[green]✓[/green] Configuration OK "
            f"(AI_SELECTED={settings.ai_selected.value}, PORT={settings.port})"
        )
        return 0

    try:
        asyncio.run(run_daemon(settings))
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
