"""Cron-driven periodic broadcast."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from zoneinfo import ZoneInfo

from croniter import croniter

from bossping.broadcast import BroadcastEngine
from bossping.models import BroadcastOutcome
from bossping.subscribers import SubscriberStore

LOGGER = logging.getLogger(__name__)


class BroadcastScheduler:
    """Reloads the subscriber list and broadcasts to it on a cron schedule."""

    def __init__(
        self,
        store: SubscriberStore,
        engine: BroadcastEngine,
        schedule: str,
        timezone: str,
    ) -> None:
        self._store = store
        self._engine = engine
        self._schedule = schedule
        self._tz = ZoneInfo(timezone)
        self._stop_event = asyncio.Event()

    def next_run(self, now: datetime | None = None) -> datetime:
        """Return the next fire time after ``now`` in the configured zone."""

        base = now.astimezone(self._tz) if now is not None else datetime.now(self._tz)
        return croniter(self._schedule, base).get_next(datetime)

    async def run_once(self) -> dict[str, BroadcastOutcome]:
        """Broadcast to every stored group right now."""

        self._store.reload()
        return await self._engine.broadcast_all(self._store.snapshot())

    async def run_forever(self) -> None:
        """Run scheduler loop until stop() is called."""

        while not self._stop_event.is_set():
            due = self.next_run()
            delay = max((due - datetime.now(self._tz)).total_seconds(), 0.0)
            LOGGER.info("Next broadcast at %s", due.isoformat())
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass
            else:
                break

            try:
                outcomes = await self.run_once()
            except Exception:  # noqa: BLE001
                LOGGER.exception("Scheduled broadcast failed")
                continue
            sent = sum(1 for outcome in outcomes.values() if outcome is BroadcastOutcome.SENT)
            LOGGER.info("Scheduled broadcast finished: %d/%d sent", sent, len(outcomes))

    def stop(self) -> None:
        """Signal the loop to stop."""

        self._stop_event.set()
