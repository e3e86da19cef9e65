# decision_engine/services/tool_cache.py
"""
In-process cache for the loaded tool collection.

Holds the full Tool list as a single value stamped with the time it was stored.
A read returns the value only while it is younger than the TTL.

Features:
- Configurable TTL (default 60 seconds)
- Injectable clock so expiry can be driven from tests
- Hit/miss statistics
- Lock around every read and write
"""
from __future__ import annotations
import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional

from decision_engine.models import Tool

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

DEFAULT_TTL_SECONDS = 60.0


class ToolCache:
    """Time-boxed holder for the last loaded tool list."""

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS,
                 clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._tools: Optional[List[Tool]] = None
        self._stored_at: Optional[float] = None
        self._stats = {"hits": 0, "misses": 0}

    def get(self) -> Optional[List[Tool]]:
        """
        Return the cached tools if they are younger than the TTL.

        Returns:
            The cached list (same object that was stored), or None on miss/expiry.
        """
        with self._lock:
            if self._tools is None or self._stored_at is None:
                self._stats["misses"] += 1
                return None
            age = self._clock() - self._stored_at
            if age >= self.ttl_seconds:
                self._stats["misses"] += 1
                logger.debug("Tool cache expired (age=%.1fs ttl=%.1fs)", age, self.ttl_seconds)
                return None
            self._stats["hits"] += 1
            logger.debug("Tool cache hit (age=%.1fs)", age)
            return self._tools

    def peek(self) -> Optional[List[Tool]]:
        """Like get(), but leaves the hit/miss counters alone."""
        with self._lock:
            if self._tools is None or self._stored_at is None:
                return None
            if self._clock() - self._stored_at >= self.ttl_seconds:
                return None
            return self._tools

    def set(self, tools: List[Tool]) -> None:
        with self._lock:
            self._tools = tools
            self._stored_at = self._clock()
        logger.debug("Cached %d tools", len(tools))

    def clear(self) -> None:
        with self._lock:
            self._tools = None
            self._stored_at = None

    def stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            total = self._stats["hits"] + self._stats["misses"]
            hit_rate = (self._stats["hits"] / total * 100) if total > 0 else 0
            age = (self._clock() - self._stored_at) if self._stored_at is not None else None
            return {
                "hits": self._stats["hits"],
                "misses": self._stats["misses"],
                "total_requests": total,
                "hit_rate_percent": round(hit_rate, 2),
                "ttl_seconds": self.ttl_seconds,
                "age_seconds": age,
                "cached_tools": len(self._tools) if self._tools is not None else 0,
            }
