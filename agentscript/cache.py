from __future__ import annotations
import hashlib
import os
import tempfile
import threading
import time
from pathlib import Path
from typing import Callable, List, Optional

from loguru import logger
from pydantic import BaseModel, Field, ValidationError

# Per-domain TTLs in seconds
TTL_STOCK = 60
TTL_CRYPTO = 60
TTL_NEWS = 300
TTL_REDDIT = 300
TTL_WEATHER = 600
TTL_RSS = 600
TTL_SEARCH = 1800
TTL_JOBS = 3600

# fixed pool of per-entry locks, picked by file name
LOCK_STRIPES = 64

# temp files older than this are leftovers of an interrupted write
STALE_TMP_SECONDS = 60


def default_cache_dir() -> Path:
    env = os.getenv("AGENTSCRIPT_CACHE_DIR")
    if env:
        return Path(env)
    return Path.home() / ".agentscript" / "cache"


class CacheEntry(BaseModel):
    """One cached collaborator result, stored as a JSON record."""
    data: str
    namespace: str
    key: str
    created_at: float = Field(description="Unix timestamp of the write")
    ttl_seconds: int = Field(ge=0)

    def expired(self, now: float) -> bool:
        return now - self.created_at > self.ttl_seconds


class TTLCache:
    """File-backed namespaced cache with lazy per-entry expiry.

    Each entry lives in its own JSON file whose name is derived from a hash
    of (namespace, key). Expired or unreadable entries are removed when read;
    nothing sweeps the directory in the background.
    """

    def __init__(self, directory: Optional[str | Path] = None, clock: Callable[[], float] = time.time):
        self.directory = Path(directory) if directory is not None else default_cache_dir()
        self.directory.mkdir(parents=True, exist_ok=True)
        self.clock = clock
        self._locks: List[threading.Lock] = [threading.Lock() for _ in range(LOCK_STRIPES)]

    def _path(self, namespace: str, key: str) -> Path:
        digest = hashlib.sha256(f"{namespace}\x00{key}".encode("utf-8")).hexdigest()[:32]
        safe_ns = "".join(c for c in namespace if c.isalnum() or c in ("-", "_")) or "default"
        return self.directory / f"{safe_ns}_{digest}.json"

    def _lock(self, path: Path) -> threading.Lock:
        digest = hashlib.sha256(path.name.encode("utf-8")).digest()
        return self._locks[digest[0] % LOCK_STRIPES]

    def get(self, namespace: str, key: str) -> Optional[str]:
        path = self._path(namespace, key)
        with self._lock(path):
            try:
                raw = path.read_bytes()
            except FileNotFoundError:
                return None
            try:
                entry = CacheEntry.model_validate_json(raw)
            except (ValidationError, UnicodeDecodeError):
                logger.debug("[cache] corrupt entry for {}/{}, removing", namespace, key)
                path.unlink(missing_ok=True)
                return None
            now = self.clock()
            if entry.expired(now):
                logger.debug("[cache] expired {}/{} (age {:.1f}s, ttl {}s)", namespace, key, now - entry.created_at, entry.ttl_seconds)
                path.unlink(missing_ok=True)
                return None
            logger.debug("[cache] HIT {}/{} (age {:.1f}s)", namespace, key, now - entry.created_at)
            return entry.data

    def set(self, namespace: str, key: str, value: str, ttl_seconds: int) -> None:
        path = self._path(namespace, key)
        entry = CacheEntry(data=value, namespace=namespace, key=key, created_at=self.clock(), ttl_seconds=ttl_seconds)
        with self._lock(path):
            fd, tmp = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(entry.model_dump_json())
                os.replace(tmp, path)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
        logger.debug("[cache] SET {}/{} (ttl {}s)", namespace, key, ttl_seconds)

    def invalidate(self, namespace: str, key: str) -> None:
        path = self._path(namespace, key)
        with self._lock(path):
            path.unlink(missing_ok=True)
        logger.debug("[cache] INVALIDATED {}/{}", namespace, key)

    def clear(self) -> int:
        """Delete every entry and any stale temp files. Returns the number of entries removed."""
        count = 0
        for p in self.directory.glob("*.json"):
            with self._lock(p):
                try:
                    p.unlink()
                except FileNotFoundError:
                    continue
            count += 1
        # a temp file younger than this may belong to a set() still in progress
        cutoff = time.time() - STALE_TMP_SECONDS
        for p in self.directory.glob("*.tmp"):
            try:
                if p.stat().st_mtime < cutoff:
                    p.unlink()
            except FileNotFoundError:
                continue
        logger.debug("[cache] CLEARED {} entries", count)
        return count

    def stats(self) -> str:
        count = expired = 0
        total_size = 0
        now = self.clock()
        for p in self.directory.glob("*.json"):
            count += 1
            try:
                total_size += p.stat().st_size
                if CacheEntry.model_validate_json(p.read_bytes()).expired(now):
                    expired += 1
            except (OSError, ValidationError, UnicodeDecodeError):
                continue
        return f"Cache: {count} entries ({expired} expired), {total_size / 1024:.1f} KB, dir: {self.directory}"


def cached_get(cache: Optional[TTLCache], namespace: str, key: str, ttl: int, fetch: Callable[[], str]) -> str:
    """Return the cached value for (namespace, key), calling `fetch` on a miss.

    Only successful fetches are stored. Passing `cache=None` always fetches.
    """
    if cache is not None:
        hit = cache.get(namespace, key)
        if hit is not None:
            return hit
    data = fetch()
    if cache is not None:
        cache.set(namespace, key, data, ttl)
    return data
