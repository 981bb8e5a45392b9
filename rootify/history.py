from __future__ import annotations

import json
import logging
import queue
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from .models import HistoryEntry
from .store import StoreError, write_json_atomic

logger = logging.getLogger(__name__)


class HistoryLog:
    """
    Append-only log of complete translations.

    history.json: {"next_id": 7, "entries": [{id, chineseText, englishText, createdAt}, ...]}
    Entries are kept oldest-first on disk. Ids keep increasing across clear().
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = path
        self._lock = threading.Lock()
        self._entries: List[HistoryEntry] = []
        self._next_id = 1

    @classmethod
    def load(cls, path: Path) -> "HistoryLog":
        log = cls(path)
        if not path.exists():
            return log
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            entries = [HistoryEntry(**e) for e in raw.get("entries", [])]
        except (OSError, ValueError, TypeError, AttributeError) as e:
            raise StoreError(f"failed to read {path}: {e}") from e

        log._entries = entries
        top = max((e.id for e in entries), default=0)
        log._next_id = max(int(raw.get("next_id", 1)), top + 1)
        logger.info("Loaded %d history entries from %s", len(entries), path)
        return log

    def __len__(self) -> int:
        return len(self._entries)

    def save(self, chinese: str, english: str) -> HistoryEntry:
        with self._lock:
            entry = HistoryEntry(
                id=self._next_id,
                chineseText=chinese,
                englishText=english,
                createdAt=datetime.now(timezone.utc),
            )
            entries = self._entries + [entry]
            self._persist(entries, self._next_id + 1)
            self._entries = entries
            self._next_id += 1
        return entry

    def list(self, limit: Optional[int] = None) -> List[HistoryEntry]:
        """Most recent first."""
        out = list(reversed(self._entries))
        if limit is not None:
            out = out[:limit]
        return out

    def clear(self) -> None:
        with self._lock:
            self._persist([], self._next_id)
            self._entries = []

    def flush(self) -> None:
        with self._lock:
            self._persist(self._entries, self._next_id)

    def _persist(self, entries: List[HistoryEntry], next_id: int) -> None:
        if self.path is None:
            return
        write_json_atomic(
            self.path,
            {"next_id": next_id, "entries": [e.model_dump(mode="json") for e in entries]},
        )


_STOP = object()


class HistoryWriter:
    """
    Fire-and-forget front for a HistoryLog.

    submit() only enqueues; a single worker thread does the writes. Anything the
    log raises is reported on this module's logger and dropped, so callers on the
    translation path never see it.
    """

    def __init__(self, log: HistoryLog):
        self.log = log
        self._queue: "queue.Queue[object]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self.failures = 0

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._thread = threading.Thread(target=self._run, name="history-writer", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        if not self._thread:
            return
        self._queue.put(_STOP)
        self._thread.join(timeout)
        self._thread = None

    def submit(self, chinese: str, english: str) -> None:
        try:
            self._queue.put_nowait((chinese, english))
        except queue.Full:
            self.failures += 1
            logger.warning("History queue full, dropping %r", chinese)

    def drain(self) -> None:
        """Block until everything submitted so far has been handled."""
        self._queue.join()

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                chinese, english = item
                self.log.save(chinese, english)
            except Exception:
                self.failures += 1
                logger.exception("Failed to save translation history")
            finally:
                self._queue.task_done()
