"""
Response caches with an explicit time-to-live policy.

Services receive one of these objects instead of keeping hidden module state,
so tests can inject a cache (or none) and control expiry with a fake clock.
``TTLCache`` keeps entries in memory; ``FileTTLCache`` persists JSON-safe
values on disk between runs.
"""

import hashlib
import json
import logging
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple


DEFAULT_TTL_SECONDS = 5 * 60


class TTLCache:
    """In-memory cache whose entries expire ``ttl_seconds`` after being stored."""

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.time):
        """
        Initialize the cache.

        Args:
            ttl_seconds: Lifetime of each entry in seconds
            clock: Time source, injectable for tests
        """
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self.logger = logging.getLogger(__name__)

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None if missing or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None

        stored_at, value = entry
        if self.clock() - stored_at >= self.ttl_seconds:
            self.logger.debug(f"Cache expired for {key}")
            del self._entries[key]
            return None

        return value

    def set(self, key: str, value: Any) -> None:
        now = self.clock()
        self.purge_expired(now)
        self._entries[key] = (now, value)

    def purge_expired(self, now: Optional[float] = None) -> int:
        """Drop every expired entry and return how many were removed."""
        now = self.clock() if now is None else now
        expired = [key for key, (stored_at, _) in self._entries.items() if now - stored_at >= self.ttl_seconds]
        for key in expired:
            del self._entries[key]
        if expired:
            self.logger.debug(f"Purged {len(expired)} expired cache entries")
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class FileTTLCache:
    """Filesystem cache of JSON documents, expired by file age."""

    CACHE_VERSION = "1.0"

    def __init__(
        self,
        cache_dir: Optional[Path] = None,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize the file cache.

        Args:
            cache_dir: Directory for cache files. If None, uses default.
            ttl_seconds: Lifetime of each entry in seconds
            clock: Time source, injectable for tests
        """
        self.logger = logging.getLogger(__name__)

        if cache_dir is None:
            cache_dir = Path.home() / '.mtg_deck_engine' / 'cache'

        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.ttl_seconds = ttl_seconds
        self.clock = clock

    def _get_cache_path(self, key: str) -> Path:
        """Get cache file path for a key."""
        key_hash = hashlib.md5(key.encode('utf-8')).hexdigest()
        safe_name = "".join(c for c in key if c.isalnum() or c in ('-', '_')).strip()[:50]
        return self.cache_dir / f"{safe_name}_{key_hash}.json"

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value if present, current and readable."""
        cache_path = self._get_cache_path(key)
        if not cache_path.exists():
            return None

        try:
            with open(cache_path, 'r', encoding='utf-8') as f:
                cache_data = json.load(f)

            if cache_data.get('version') != self.CACHE_VERSION:
                self.logger.debug(f"Cache version mismatch for {key}")
                cache_path.unlink()
                return None

            cache_age = self.clock() - float(cache_data.get('timestamp', 0))
            if cache_age >= self.ttl_seconds:
                self.logger.debug(f"Cache expired for {key}, age: {cache_age:.0f}s")
                cache_path.unlink()
                return None

            return cache_data['data']

        except (json.JSONDecodeError, KeyError, ValueError, OSError) as e:
            self.logger.warning(f"Failed to load cache for {key}: {e}")
            try:
                cache_path.unlink()
            except OSError:
                pass
            return None

    def set(self, key: str, value: Any) -> None:
        """Store a JSON-serializable value."""
        cache_path = self._get_cache_path(key)
        cache_data = {
            'version': self.CACHE_VERSION,
            'timestamp': self.clock(),
            'key': key,
            'data': value,
        }

        try:
            with open(cache_path, 'w', encoding='utf-8') as f:
                json.dump(cache_data, f, indent=2, ensure_ascii=False)
            self.logger.debug(f"Cached data for {key}")
        except (OSError, TypeError) as e:
            self.logger.warning(f"Failed to save cache for {key}: {e}")

    def clear(self) -> None:
        """Remove every cache file."""
        try:
            for cache_file in self.cache_dir.glob("*.json"):
                cache_file.unlink()
            self.logger.info("Cache cleared successfully")
        except OSError as e:
            self.logger.error(f"Failed to clear cache: {e}")
