"""Station-local suppression of rapid repeat scans.

A badge held under the camera decodes many times per second. Within the TTL
window an identical (event, type, option, code) submission is answered from
this cache instead of going back to the server. The cache is advisory: the
server's unique index is what guarantees a single redemption.
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from typing import Any, Callable, NamedTuple, Optional, Tuple

from onsite_redemption.config import Config

logger = logging.getLogger(__name__)


class ScanKey(NamedTuple):
    event_id: str
    resource_type: str
    resource_option_id: str
    code: str

    @classmethod
    def build(cls, event_id: str, resource_type: str, resource_option_id: str, code: str) -> "ScanKey":
        return cls(event_id, resource_type, resource_option_id, (code or "").strip())


class ScanDeduplicationCache:
    def __init__(
        self,
        ttl_seconds: float = Config.DEDUP_TTL_SECONDS,
        max_entries: int = Config.DEDUP_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_entries = max(1, max_entries)
        self.clock = clock
        self._entries: "OrderedDict[ScanKey, Tuple[float, Any]]" = OrderedDict()

    def should_suppress(self, key: ScanKey) -> bool:
        return self._live_entry(key) is not None

    def get(self, key: ScanKey) -> Optional[Any]:
        entry = self._live_entry(key)
        return entry[1] if entry else None

    def remember(self, key: ScanKey, result: Any, ttl: Optional[float] = None) -> None:
        ttl = self.ttl_seconds if ttl is None else ttl
        if ttl <= 0:
            return
        self._entries.pop(key, None)
        self._entries[key] = (self.clock() + ttl, result)
        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Evicted %s from scan cache", evicted)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        self._evict_expired(self.clock())
        return len(self._entries)

    def _live_entry(self, key: ScanKey) -> Optional[Tuple[float, Any]]:
        now = self.clock()
        self._evict_expired(now)
        return self._entries.get(key)

    def _evict_expired(self, now: float) -> None:
        expired = [key for key, (expires_at, _) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
