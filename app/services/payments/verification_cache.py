"""In-memory verification cache with a fixed time-to-live.

Holds verification records keyed by (provider, reference) so a repeated
verify within the TTL does not hit the provider again. Each provider has
its own key space; a Paystack verify never sees an M-Pesa record.
Entries are hidden from `get` once expired and removed by `sweep()`,
which the background sweeper calls periodically.
"""

from __future__ import annotations

import asyncio
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from app.core.logging_config import get_logger

logger = get_logger("verification_cache")


@dataclass
class VerificationRecord:
    reference: str
    provider: str
    success: bool
    status: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)
    verified_at: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reference": self.reference,
            "provider": self.provider,
            "success": self.success,
            "status": self.status,
            "data": self.data,
            "metadata": self.metadata,
            "verified_at": self.verified_at,
        }


class VerificationCache:
    """Thread-safe TTL map from (provider, reference) to VerificationRecord."""

    def __init__(self, ttl_seconds: float = 300, clock: Callable[[], float] = time.monotonic):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._store: Dict[tuple[str, str], tuple[float, VerificationRecord]] = {}

    def get(self, provider: str, reference: str) -> Optional[VerificationRecord]:
        key = (provider, reference)
        now = self._clock()
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            expires_at, record = entry
            if expires_at <= now:
                self._store.pop(key, None)
                return None
            return record

    def set(self, record: VerificationRecord) -> None:
        expires_at = self._clock() + self.ttl_seconds
        with self._lock:
            self._store[(record.provider, record.reference)] = (expires_at, record)

    def delete(self, provider: str, reference: str) -> None:
        with self._lock:
            self._store.pop((provider, reference), None)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def sweep(self) -> int:
        """Drop expired entries; returns how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [key for key, (expires_at, _) in self._store.items() if expires_at <= now]
            for key in expired:
                del self._store[key]
        if expired:
            logger.debug(f"Verification cache sweep removed {len(expired)} entries")
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)


async def run_cache_sweeper(cache: VerificationCache, poll_seconds: int = 60):
    """Background loop: periodically drop expired verification records."""
    logger.info(f"Starting verification cache sweeper (interval={poll_seconds}s)")
    try:
        while True:
            try:
                cache.sweep()
            except Exception as e:
                logger.exception(f"Verification cache sweeper error: {e}")
            await asyncio.sleep(poll_seconds)
    except asyncio.CancelledError:
        logger.info("Verification cache sweeper cancelled; shutting down")
        raise
