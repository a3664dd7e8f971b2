"""Webhook server for the WhatsApp bridge.

Routes:
- ``GET /webhook``: subscription handshake (``hub.*`` query parameters)
- ``POST /webhook``: message deliveries, acknowledged before processing
- ``GET /health``: liveness probe
- ``/output``: rendered table images, linked from outbound messages
"""

import asyncio
import json
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from fastapi import BackgroundTasks, FastAPI, Query, Request
from fastapi.responses import PlainTextResponse
from fastapi.staticfiles import StaticFiles

from tablebot.config import BotSettings, load_settings
from tablebot.core.bridge import ARTIFACT_ROUTE, MessageBridge
from tablebot.core.logger import get_logger, set_level

logger = get_logger()


def create_app(settings: Optional[BotSettings] = None, bridge: Optional[MessageBridge] = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Resolved settings; loaded from YAML/env when omitted.
        bridge: Message bridge; built from ``settings`` when omitted, which
            requires the WhatsApp credentials to be configured.
    """
    settings = settings or load_settings()
    set_level(settings.log_level)
    if bridge is None:
        settings.require_messaging()
        bridge = MessageBridge.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        shops = await asyncio.to_thread(bridge.refresh_shops)
        logger.info("api.startup shops=%d webhook=http://%s:%d/webhook", len(shops), settings.host, settings.port)
        yield

    app = FastAPI(
        title="tablebot",
        description="WhatsApp bridge that answers table prompts with rendered images",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.bridge = bridge

    output_dir = Path(settings.render.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    app.mount(ARTIFACT_ROUTE, StaticFiles(directory=str(output_dir)), name="output")

    @app.get("/webhook", response_class=PlainTextResponse)
    async def verify_webhook(
        mode: Optional[str] = Query(None, alias="hub.mode"),
        token: Optional[str] = Query(None, alias="hub.verify_token"),
        challenge: Optional[str] = Query(None, alias="hub.challenge"),
    ) -> PlainTextResponse:
        logger.info("api.verify mode=%s challenge=%s", mode, challenge)
        if mode == "subscribe" and settings.verify_token and token == settings.verify_token:
            logger.info("api.verify ok")
            return PlainTextResponse(challenge or "", status_code=200)
        logger.warning("api.verify rejected mode=%s", mode)
        return PlainTextResponse("Forbidden", status_code=403)

    @app.post("/webhook", response_class=PlainTextResponse)
    async def receive_webhook(request: Request, background_tasks: BackgroundTasks) -> PlainTextResponse:
        raw = await request.body()
        try:
            payload = json.loads(raw or b"{}")
        except ValueError:
            logger.warning("api.webhook invalid_json bytes=%d", len(raw))
            return PlainTextResponse("OK", status_code=200)
        logger.info("api.webhook received body=%.2000s", json.dumps(payload))
        background_tasks.add_task(bridge.handle_webhook, payload)
        return PlainTextResponse("OK", status_code=200)

    @app.get("/health")
    async def health() -> dict:
        logger.debug("api.health")
        return {"status": "OK", "timestamp": datetime.now(timezone.utc).isoformat()}

    return app
