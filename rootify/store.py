from __future__ import annotations

import csv
import io
import json
import logging
import os
import threading
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional, Tuple

from .models import RootsJson
from .segmenter import RootSnapshot

logger = logging.getLogger(__name__)

EXPORT_HEADER = "中文词根,英文对应"


class StoreError(RuntimeError):
    """Persisting or loading a store failed."""


def write_json_atomic(path: Path, payload) -> None:
    """Write JSON next to `path` then swap it in, so readers never see half a file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    try:
        tmp.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        os.replace(tmp, path)
    except OSError as e:
        raise StoreError(f"failed to write {path}: {e}") from e


def _clean_pair(chinese, english) -> Optional[Tuple[str, str]]:
    c = (chinese or "").strip()
    e = (english or "").strip()
    if not c or not e:
        return None
    return c, e


class RootStore:
    """
    Owner of the root dictionary.

    Writers serialize on a lock and swap in a fresh dict on every change
    (copy-on-write); readers take `snapshot()` without locking and keep a
    consistent view for as long as they hold it. Every mutation is written
    through to `path`; if that fails the in-memory state is left as it was.
    """

    def __init__(self, path: Optional[Path] = None, roots: Optional[Mapping[str, str]] = None):
        self.path = path
        self._lock = threading.Lock()
        self._roots: Dict[str, str] = dict(roots or {})
        self._snapshot = RootSnapshot(self._roots)

    @classmethod
    def load(cls, path: Path) -> "RootStore":
        if not path.exists():
            return cls(path)
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise StoreError(f"failed to read {path}: {e}") from e

        roots: Dict[str, str] = {}
        if isinstance(raw, dict):
            items: Iterable = raw.items()
        elif isinstance(raw, list):
            # also accept [{"chinese": ..., "english": ...}, ...]
            items = ((r.get("chinese"), r.get("english")) for r in raw if isinstance(r, dict))
        else:
            raise StoreError(f"unexpected JSON shape in {path}: {type(raw).__name__}")

        for c, e in items:
            if not isinstance(c, str) or not isinstance(e, str):
                continue
            pair = _clean_pair(c, e)
            if pair:
                roots[pair[0]] = pair[1]

        logger.info("Loaded %d roots from %s", len(roots), path)
        return cls(path, roots)

    def flush(self) -> None:
        with self._lock:
            self._persist(self._roots)

    # --- reads ---

    def snapshot(self) -> RootSnapshot:
        return self._snapshot

    def get_all(self) -> RootsJson:
        return self._snapshot.as_dict()

    def __len__(self) -> int:
        return len(self._snapshot)

    # --- writes ---

    def add(self, chinese: str, english: str) -> bool:
        pair = _clean_pair(chinese, english)
        if pair is None:
            return False
        c, e = pair
        with self._lock:
            nxt = dict(self._roots)
            nxt[c] = e
            self._commit(nxt)
        logger.info("Upserted root %s -> %s", c, e)
        return True

    def delete(self, chinese: str) -> bool:
        with self._lock:
            if chinese not in self._roots:
                return False
            nxt = dict(self._roots)
            del nxt[chinese]
            self._commit(nxt)
        logger.info("Deleted root %s", chinese)
        return True

    def clear(self) -> None:
        with self._lock:
            n = len(self._roots)
            self._commit({})
        logger.info("Cleared %d roots", n)

    def import_merge(self, entries: Mapping[str, str]) -> int:
        """Upsert every pair in one step. Returns how many pairs were applied."""
        cleaned = [p for p in (_clean_pair(c, e) for c, e in entries.items()) if p]
        with self._lock:
            nxt = dict(self._roots)
            nxt.update(cleaned)
            self._commit(nxt)
        logger.info("Imported %d roots (%d total)", len(cleaned), len(nxt))
        return len(cleaned)

    def export_all(self) -> str:
        roots = self._snapshot
        buf = io.StringIO()
        buf.write(EXPORT_HEADER + "\n")
        writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
        for chinese, english in roots.items():
            writer.writerow([chinese, english])
        return buf.getvalue()

    # --- internals (caller holds the lock) ---

    def _commit(self, nxt: Dict[str, str]) -> None:
        self._persist(nxt)
        self._roots = nxt
        self._snapshot = RootSnapshot(nxt)

    def _persist(self, roots: Dict[str, str]) -> None:
        if self.path is None:
            return
        write_json_atomic(self.path, roots)
