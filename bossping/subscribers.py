"""JSON-file backed set of subscribed group identifiers."""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path

LOGGER = logging.getLogger(__name__)


class SubscriberStore:
    """Ordered, duplicate-free list of group ids persisted as a JSON array.

    The in-memory list is the source of truth for the running process. Every
    mutation rewrites the whole backing file; write failures are logged and
    the store keeps working from memory.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._ids: list[str] = []
        self._dirty = False
        self._lock = threading.RLock()

    @property
    def dirty(self) -> bool:
        """True while the last write failed and memory is ahead of the file."""

        return self._dirty

    def load(self) -> None:
        """Replace the in-memory list with the contents of the backing file."""

        with self._lock:
            if not self._path.exists():
                LOGGER.info("Subscriber file %s not found, creating an empty one", self._path)
                self._ids = []
                self.save()
                return

            ids = self._read()
            self._ids = ids if ids is not None else []
            LOGGER.info("Loaded %d subscribers from %s", len(self._ids), self._path)

    def reload(self) -> None:
        """Pick up external edits to the backing file without losing memory state.

        While a previous write failed, memory stays authoritative: the file is
        not read and the pending state is written again instead. An unreadable
        or corrupt file never replaces the in-memory list.
        """
        with self._lock:
            if self._dirty:
                LOGGER.warning("Subscriber file %s is behind memory, rewriting it", self._path)
                self.save()
                return

            if not self._path.exists():
                LOGGER.warning("Subscriber file %s disappeared, rewriting it", self._path)
                self.save()
                return

            ids = self._read()
            if ids is None:
                return
            self._ids = ids

    def _read(self) -> list[str] | None:
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            LOGGER.warning("Could not read subscriber file %s: %s", self._path, exc)
            return None

        if not isinstance(raw, list):
            LOGGER.warning("Subscriber file %s does not hold a list, ignoring it", self._path)
            return None
        return _unique_strings(raw)

    def save(self) -> bool:
        """Overwrite the backing file with the current list.

        Returns:
            True if the file was written, False if the write failed.
        """
        with self._lock:
            data = json.dumps(self._ids, ensure_ascii=False, indent=2)
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(
                    prefix=f".{self._path.name}.", suffix=".tmp", dir=self._path.parent
                )
                try:
                    with os.fdopen(fd, "w", encoding="utf-8") as handle:
                        handle.write(data)
                    os.replace(tmp_name, self._path)
                except BaseException:
                    Path(tmp_name).unlink(missing_ok=True)
                    raise
            except OSError:
                LOGGER.exception("Failed to write subscriber file %s", self._path)
                self._dirty = True
                return False
            self._dirty = False
            return True

    def add(self, group_id: str) -> bool:
        """Track ``group_id``. Returns True if it was not tracked before."""

        with self._lock:
            if group_id in self._ids:
                return False
            self._ids.append(group_id)
            self.save()
        LOGGER.info("Subscribed group %s", group_id)
        return True

    def remove(self, group_id: str) -> bool:
        """Stop tracking ``group_id``. Returns True if it was tracked."""

        with self._lock:
            if group_id not in self._ids:
                return False
            self._ids.remove(group_id)
            self.save()
        LOGGER.info("Unsubscribed group %s", group_id)
        return True

    def snapshot(self) -> tuple[str, ...]:
        """Return a copy of the current ids; later mutations do not affect it."""

        with self._lock:
            return tuple(self._ids)

    def __contains__(self, group_id: object) -> bool:
        with self._lock:
            return group_id in self._ids

    def __len__(self) -> int:
        with self._lock:
            return len(self._ids)


def _unique_strings(raw: list[object]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for item in raw:
        if not isinstance(item, str) or not item or item in seen:
            continue
        seen.add(item)
        result.append(item)
    return result
