"""Debounce-gated delivery of the prompt message to tracked groups."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Iterable

from bossping.debounce import DebounceTracker
from bossping.errors import DeliveryError
from bossping.line_client import MessagingClient
from bossping.models import BroadcastMessage, BroadcastOutcome
from bossping.subscribers import SubscriberStore

LOGGER = logging.getLogger(__name__)

# Debounce entries older than this many intervals are dropped on each full pass.
_PRUNE_AFTER_INTERVALS = 10


class BroadcastEngine:
    """Sends the prompt to one or many groups.

    Both the reactive path (a message arrives in a group) and the periodic
    path (the scheduler fires) go through ``broadcast_one``, so the debounce
    gate and the pruning of unreachable groups apply to both.
    """

    def __init__(
        self,
        store: SubscriberStore,
        tracker: DebounceTracker,
        client: MessagingClient,
        min_interval_seconds: float = 60.0,
        send_timeout_seconds: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
        message_factory: Callable[[], BroadcastMessage] = BroadcastMessage,
    ) -> None:
        self._store = store
        self._tracker = tracker
        self._client = client
        self._min_interval_seconds = min_interval_seconds
        self._send_timeout_seconds = send_timeout_seconds
        self._clock = clock
        self._message_factory = message_factory
        self._gate = asyncio.Lock()
        self._in_flight: set[str] = set()

    async def broadcast_one(self, group_id: str) -> BroadcastOutcome:
        """Push the prompt to ``group_id`` unless it was pushed too recently."""

        async with self._gate:
            started = self._clock()
            if group_id in self._in_flight:
                LOGGER.debug("Skipping %s, a push is already in flight", group_id)
                return BroadcastOutcome.DEBOUNCED
            if not self._tracker.allow(group_id, started, self._min_interval_seconds):
                LOGGER.debug("Skipping %s, sent less than %ss ago", group_id, self._min_interval_seconds)
                return BroadcastOutcome.DEBOUNCED
            self._in_flight.add(group_id)

        try:
            message = self._message_factory()
            await asyncio.wait_for(
                self._client.push_message(group_id, [message.to_payload()]),
                timeout=self._send_timeout_seconds,
            )
        except DeliveryError as exc:
            if exc.permanent:
                self._store.remove(group_id)
                LOGGER.warning("Removed unreachable group %s (status %s)", group_id, exc.status_code)
                return BroadcastOutcome.PRUNED
            LOGGER.warning("Push to %s failed: %s", group_id, exc)
            return BroadcastOutcome.FAILED
        except asyncio.TimeoutError:
            LOGGER.warning("Push to %s timed out after %ss", group_id, self._send_timeout_seconds)
            return BroadcastOutcome.FAILED
        finally:
            self._in_flight.discard(group_id)

        self._tracker.record(group_id, started)
        LOGGER.info("Pushed prompt to %s", group_id)
        return BroadcastOutcome.SENT

    async def broadcast_all(self, group_ids: Iterable[str]) -> dict[str, BroadcastOutcome]:
        """Push the prompt to every id in a snapshot of ``group_ids``."""

        targets = tuple(group_ids)
        evicted = self._tracker.prune(
            self._clock(), self._min_interval_seconds * _PRUNE_AFTER_INTERVALS
        )
        if evicted:
            LOGGER.debug("Evicted %d stale debounce entries", evicted)

        LOGGER.info("Broadcasting prompt to %d groups", len(targets))
        outcomes: dict[str, BroadcastOutcome] = {}
        for group_id in targets:
            try:
                outcomes[group_id] = await self.broadcast_one(group_id)
            except Exception:  # noqa: BLE001
                LOGGER.exception("Unexpected error broadcasting to %s", group_id)
                outcomes[group_id] = BroadcastOutcome.FAILED
        return outcomes
