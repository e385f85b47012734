"""
Membership Cache

TTL cache of the membership/stats pair per customer, stored as three string
keys in a synchronous key-value medium. Medium failures never propagate:
they are logged and reported as a miss.
"""

import json
import logging
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Dict, Optional

from pydantic import ValidationError

from .models import CacheEntry, Membership, MembershipStats
from .protocols import KeyValueStoreProtocol

logger = logging.getLogger(__name__)


MEMBERSHIP_KEY = "loyalty_membership"
STATS_KEY = "loyalty_membership_stats"
LAST_UPDATED_KEY = "loyalty_membership_last_updated"

DEFAULT_TTL_SECONDS = 300


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ====================
# Storage Media
# ====================


class InMemoryKeyValueStore:
    """Dict-backed store, process lifetime only"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def put(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self):
        return list(self._data.keys())


class FileKeyValueStore:
    """
    Store persisted as a single JSON document on disk.

    A missing file reads as empty. A corrupted file makes reads raise
    ValueError; the next write replaces it with a fresh document.
    """

    def __init__(self, path: str):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read_all(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        text = self.path.read_text(encoding="utf-8").strip()
        if not text:
            return {}
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError(f"Cache file {self.path} does not hold a JSON object")
        return data

    def _read_for_write(self) -> Dict[str, str]:
        try:
            return self._read_all()
        except ValueError as e:
            logger.warning(f"Discarding unreadable cache file {self.path}: {e}")
            return {}

    def _write_all(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        tmp_path.replace(self.path)

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._read_all().get(key)

    def put(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read_for_write()
            data[key] = value
            self._write_all(data)

    def delete(self, key: str) -> None:
        with self._lock:
            data = self._read_for_write()
            if key in data:
                del data[key]
                self._write_all(data)


# ====================
# Cache
# ====================


class MembershipCache:
    """TTL cache for a customer's membership and stats"""

    def __init__(
        self,
        store: KeyValueStoreProtocol,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.ttl = timedelta(seconds=ttl_seconds)
        self.clock = clock or utc_now
        self._generations: Dict[str, int] = {}

    @staticmethod
    def _keys(customer_id: str):
        return (
            f"{MEMBERSHIP_KEY}:{customer_id}",
            f"{STATS_KEY}:{customer_id}",
            f"{LAST_UPDATED_KEY}:{customer_id}",
        )

    def generation(self, customer_id: str) -> int:
        """Counter bumped by every invalidate; a fetch records it before reading the remote"""
        return self._generations.get(customer_id, 0)

    def get(self, customer_id: str) -> Optional[CacheEntry]:
        """
        Return the cached pair for a customer, or None on a miss.

        A miss is any of: a key absent, an entry at or past its TTL, or a
        medium failure. A cached membership of None means "no membership".
        """
        membership_key, stats_key, updated_key = self._keys(customer_id)
        try:
            raw_membership = self.store.get(membership_key)
            raw_stats = self.store.get(stats_key)
            raw_updated = self.store.get(updated_key)
            if raw_membership is None or raw_stats is None or raw_updated is None:
                return None

            last_updated_at = datetime.fromisoformat(raw_updated)
            if last_updated_at.tzinfo is None:
                last_updated_at = last_updated_at.replace(tzinfo=timezone.utc)
            if self.clock() - last_updated_at >= self.ttl:
                logger.debug(f"Cache entry for {customer_id} is stale")
                return None

            membership_data = json.loads(raw_membership)
            stats_data = json.loads(raw_stats)
            entry = CacheEntry(
                membership=Membership.model_validate(membership_data) if membership_data is not None else None,
                stats=MembershipStats.model_validate(stats_data) if stats_data is not None else None,
                last_updated_at=last_updated_at,
            )
            logger.debug(f"Cache hit for {customer_id}")
            return entry

        except (ValueError, TypeError, ValidationError) as e:
            logger.warning(f"Ignoring corrupted cache entry for {customer_id}: {e}")
            return None
        except Exception as e:
            logger.warning(f"Cache read failed for {customer_id}: {e}")
            return None

    def put(
        self,
        customer_id: str,
        membership: Optional[Membership],
        stats: Optional[MembershipStats],
        generation: Optional[int] = None,
    ) -> bool:
        """
        Write the pair; the timestamp goes last so a partial write reads as a miss.

        When generation is given and the customer was invalidated since, the
        write is skipped and False returned.
        """
        if generation is not None and generation != self.generation(customer_id):
            logger.debug(f"Skipping cache write for {customer_id}: invalidated during fetch")
            return False

        membership_key, stats_key, updated_key = self._keys(customer_id)
        try:
            self.store.put(
                membership_key,
                membership.model_dump_json(by_alias=True) if membership is not None else "null",
            )
            self.store.put(
                stats_key,
                stats.model_dump_json(by_alias=True) if stats is not None else "null",
            )
            self.store.put(updated_key, self.clock().isoformat())
        except Exception as e:
            logger.warning(f"Cache write failed for {customer_id}: {e}")
            return False
        return True

    def invalidate(self, customer_id: str) -> None:
        """Delete all keys for a customer and bump its generation"""
        self._generations[customer_id] = self.generation(customer_id) + 1
        for key in self._keys(customer_id):
            try:
                self.store.delete(key)
            except Exception as e:
                logger.warning(f"Cache delete failed for {key}: {e}")


__all__ = [
    "MembershipCache",
    "InMemoryKeyValueStore",
    "FileKeyValueStore",
    "MEMBERSHIP_KEY",
    "STATS_KEY",
    "LAST_UPDATED_KEY",
    "DEFAULT_TTL_SECONDS",
    "utc_now",
]
