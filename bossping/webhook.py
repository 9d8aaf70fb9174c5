"""HTTP surface: LINE webhook and liveness routes."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Header, Request
from fastapi.responses import PlainTextResponse

from bossping.broadcast import BroadcastEngine
from bossping.config import Settings
from bossping.debounce import DebounceTracker
from bossping.events import EventHandler
from bossping.line_client import LineMessagingClient, MessagingClient, verify_signature
from bossping.scheduler import BroadcastScheduler
from bossping.subscribers import SubscriberStore

LOGGER = logging.getLogger(__name__)


def create_app(settings: Settings, client: MessagingClient | None = None) -> FastAPI:
    """Wire the store, engine, handler and scheduler into a FastAPI app.

    The scheduler only runs inside the app lifespan, so constructing the app
    has no background side effects beyond loading the subscriber file.
    """

    if client is None:
        client = LineMessagingClient(
            channel_access_token=settings.line_channel_access_token,
            base_url=settings.line_api_base_url,
            timeout_seconds=settings.request_timeout_seconds,
        )

    store = SubscriberStore(settings.subscribers_path)
    store.load()
    engine = BroadcastEngine(
        store=store,
        tracker=DebounceTracker(),
        client=client,
        min_interval_seconds=settings.debounce_seconds,
        send_timeout_seconds=settings.request_timeout_seconds,
    )
    handler = EventHandler(store=store, engine=engine, client=client, welcome_text=settings.welcome_text)
    scheduler = BroadcastScheduler(
        store=store,
        engine=engine,
        schedule=settings.broadcast_cron,
        timezone=settings.broadcast_timezone,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        scheduler_task: asyncio.Task[None] | None = None
        if settings.broadcast_enabled:
            scheduler_task = asyncio.create_task(scheduler.run_forever(), name="broadcast-scheduler")
            LOGGER.info(
                "Broadcast scheduled with %r (%s)", settings.broadcast_cron, settings.broadcast_timezone
            )
        try:
            yield
        finally:
            await stop_scheduler(scheduler, scheduler_task, timeout=settings.request_timeout_seconds * 2)
            LOGGER.info("Bot shutdown complete")

    app = FastAPI(title="bossping", lifespan=lifespan)
    app.state.store = store
    app.state.handler = handler

    @app.get("/", response_class=PlainTextResponse)
    async def liveness() -> str:
        return "LINE bot is running"

    @app.post("/webhook")
    async def webhook(
        request: Request,
        x_line_signature: str | None = Header(default=None, alias="X-Line-Signature"),
    ) -> dict[str, str]:
        # LINE redelivers on non-2xx, so every outcome below answers 200.
        body = await request.body()
        if not verify_signature(body, x_line_signature, settings.line_channel_secret):
            client_ip = request.client.host if request.client else "unknown"
            LOGGER.warning("Rejected webhook with missing or invalid signature from %s", client_ip)
            return {"status": "ok"}

        events = _parse_events(body)
        if events:
            await asyncio.gather(*(_handle_safely(handler, event) for event in events))
        return {"status": "ok"}

    return app


async def stop_scheduler(
    scheduler: BroadcastScheduler, task: asyncio.Task[None] | None, timeout: float
) -> None:
    """Stop the scheduler, letting a running broadcast pass finish within ``timeout``."""

    scheduler.stop()
    if task is None:
        return
    try:
        await asyncio.wait_for(task, timeout=timeout)
    except asyncio.TimeoutError:
        LOGGER.warning("Broadcast pass still running after %ss, cancelled it", timeout)
    except asyncio.CancelledError:
        if not task.cancelled():
            raise
    except Exception:  # noqa: BLE001
        LOGGER.exception("Broadcast scheduler exited with an error")


def _parse_events(body: bytes) -> list[Any]:
    try:
        payload = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        LOGGER.warning("Webhook body is not valid JSON")
        return []
    events = payload.get("events") if isinstance(payload, dict) else None
    if not isinstance(events, list):
        LOGGER.warning("Webhook body has no events list")
        return []
    return events


async def _handle_safely(handler: EventHandler, event: Any) -> None:
    try:
        await handler.handle(event)
    except Exception:  # noqa: BLE001
        LOGGER.exception("Failed to handle webhook event")
