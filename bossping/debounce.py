"""In-memory rate limiting of pushes per group."""

from __future__ import annotations


class DebounceTracker:
    """Remembers when each group last received a push."""

    def __init__(self) -> None:
        self._last_sent: dict[str, float] = {}

    def allow(self, group_id: str, now: float, min_interval: float) -> bool:
        """Return True if ``group_id`` may be sent to at ``now``. Has no side effects."""

        last = self._last_sent.get(group_id)
        return last is None or now - last >= min_interval

    def record(self, group_id: str, now: float) -> None:
        self._last_sent[group_id] = now

    def last_sent(self, group_id: str) -> float | None:
        return self._last_sent.get(group_id)

    def prune(self, now: float, max_age: float) -> int:
        """Forget entries recorded more than ``max_age`` seconds before ``now``."""

        stale = [group_id for group_id, ts in self._last_sent.items() if now - ts > max_age]
        for group_id in stale:
            del self._last_sent[group_id]
        return len(stale)

    def __len__(self) -> int:
        return len(self._last_sent)
