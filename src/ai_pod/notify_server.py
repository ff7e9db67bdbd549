"""HTTP endpoint that containers call when the agent finishes a task."""

import json
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI, Request
from starlette.concurrency import run_in_threadpool

from . import __version__
from .notify_backend import send_notification

logger = structlog.get_logger()

DEFAULT_TITLE = "Claude Code"
DEFAULT_MESSAGE = "Task completed."
MAX_FIELD_LENGTH = 256


def _field(payload: Any, key: str, default: str) -> str:
    if isinstance(payload, dict):
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()[:MAX_FIELD_LENGTH]
    return default


def notification_from_body(body: bytes) -> tuple[str, str]:
    """Title and message from an optional JSON body; anything else gets defaults."""
    payload: Any = None
    if body:
        try:
            payload = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError):
            payload = None
    return _field(payload, "title", DEFAULT_TITLE), _field(payload, "message", DEFAULT_MESSAGE)


def create_app() -> FastAPI:
    app = FastAPI(title="ai-pod notifications", version=__version__)

    @app.post("/notify")
    async def notify(request: Request) -> dict[str, str]:
        """Forward a completion event to the desktop. Always 200."""
        title, message = notification_from_body(await request.body())
        client = request.client.host if request.client else None
        logger.info("Completion event received", client=client)
        # Dispatch shells out; keep it off the event loop
        await run_in_threadpool(send_notification, title, message)
        return {"status": "ok"}

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "healthy", "version": __version__}

    return app


app = create_app()


def run_server(port: int, host: str = "0.0.0.0") -> None:
    """Serve until stopped. Exits non-zero if the port is already taken."""
    logger.info("Notification server starting", host=host, port=port)
    uvicorn.run(app, host=host, port=port, log_level="info", access_log=False)
