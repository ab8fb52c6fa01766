"""
FastAPI web app - QR login page and session status.

Routes:
    GET /          HTML page showing the WhatsApp login QR code
    GET /qrcode    {"qrCodeData": "<base64 image or empty string>"}
    GET /status    session and relay status as JSON
    other paths    static files from the public directory
"""
import logging
from pathlib import Path
from typing import Any, Protocol

from fastapi import FastAPI
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles

logger = logging.getLogger(__name__)

PUBLIC_DIR = Path(__file__).parent / "public"


class SessionStatusSource(Protocol):
    """What the web app needs to know about the running bot."""

    @property
    def qr_code_data(self) -> str: ...

    def status_snapshot(self) -> dict[str, Any]: ...


def create_app(source: SessionStatusSource, public_dir: Path = PUBLIC_DIR) -> FastAPI:
    """
    Build the web app bound to a running bot.

    Args:
        source: Provides the latest QR code and status (the daemon)
        public_dir: Directory with index.html and static assets
    """
    app = FastAPI(
        title="WhatsApp AI Bot",
        description="QR login and status for the WhatsApp AI relay",
    )
    app.state.source = source

    @app.get("/qrcode")
    async def get_qrcode() -> dict[str, str]:
        return {"qrCodeData": app.state.source.qr_code_data or ""}

    @app.get("/status")
    async def get_status() -> dict[str, Any]:
        return app.state.source.status_snapshot()

    @app.get("/", include_in_schema=False)
    async def index() -> FileResponse:
        return FileResponse(public_dir / "index.html")

    # Registered last so the routes above take precedence
    if public_dir.is_dir():
        app.mount("/", StaticFiles(directory=public_dir), name="public")
    else:
        logger.warning(f"Public directory not found: {public_dir}")

    return app
