"""Seen-question history kept in the key-value store.

Hashes of every question a user has finished are stored as a JSON array under a
single key. The list is advisory: it is fed to the generator as "avoid these"
and nothing else depends on it, so reads and writes never raise.
"""
from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from typing import Any, Protocol

from dmvprep.core.config import settings

logger = logging.getLogger(__name__)

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


class KeyValueStore(Protocol):
    def get(self, key: str) -> Any: ...

    def set(self, key: str, value: str) -> Any: ...


def _to_base36(n: int) -> str:
    if n == 0:
        return "0"
    sign = "-" if n < 0 else ""
    n = abs(n)
    digits: list[str] = []
    while n:
        n, rem = divmod(n, 36)
        digits.append(_BASE36[rem])
    return sign + "".join(reversed(digits))


def simple_hash(text: str) -> str:
    """32-bit rolling hash over UTF-16 code units, rendered in base 36.

    Produces the same values as the browser build of the app, so histories
    written there stay valid.
    """
    h = 0
    raw = (text or "").encode("utf-16-le", errors="surrogatepass")
    for i in range(0, len(raw), 2):
        code = raw[i] | (raw[i + 1] << 8)
        h = ((h << 5) - h + code) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return _to_base36(h)


def _question_text(item: object) -> str:
    if isinstance(item, Mapping):
        return str(item.get("question") or "")
    return str(getattr(item, "question", "") or "")


class HistoryStore:
    def __init__(self, store: KeyValueStore, *, key: str | None = None, limit: int | None = None):
        self.store = store
        self.key = key or settings.history_key
        self.limit = int(limit if limit is not None else settings.history_limit)

    def _load(self) -> list[str]:
        raw = self.store.get(self.key)
        if raw is None:
            return []
        if isinstance(raw, (bytes, bytearray)):
            raw = raw.decode("utf-8")
        data = json.loads(raw)
        if not isinstance(data, list):
            raise ValueError(f"history value is {type(data).__name__}, expected list")
        return [x for x in data if isinstance(x, str)]

    def seen_hashes(self) -> list[str]:
        try:
            return self._load()
        except Exception as e:
            logger.warning("history: read failed: %s: %s", type(e).__name__, e)
            return []

    def seen_count(self) -> int:
        return len(self.seen_hashes())

    def record_seen(self, questions: Iterable[object]) -> None:
        try:
            try:
                history = self._load()
            except (ValueError, TypeError) as e:
                logger.warning("history: discarding corrupt value under %s: %s", self.key, e)
                history = []

            merged: list[str] = []
            known: set[str] = set()
            for h in [*history, *(simple_hash(_question_text(q)) for q in questions)]:
                if h in known:
                    continue
                known.add(h)
                merged.append(h)

            if self.limit > 0:
                merged = merged[-self.limit :]
            self.store.set(self.key, json.dumps(merged))
        except Exception as e:
            logger.warning("history: failed to save question history: %s: %s", type(e).__name__, e)
