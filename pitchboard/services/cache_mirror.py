"""
Local Cache Mirror: durable, process-local copy of each collection.

Provides:
  - get(key)    → list of record dicts, or None when absent/unreadable
  - set(key, records)
  - remove(key)

Backends, chosen by CACHE_URL:
  redis://…     Redis (falls back to the file backend if unreachable at startup)
  file:///dir   one JSON file per key, atomic replace on write (default)
  memory://     plain dict, for tests

Values are JSON-encoded lists. Anything else read back (invalid JSON, a
non-list, non-dict items) is logged and treated as absent. Backend I/O errors
never propagate: reads degrade to None, writes are logged and dropped.
"""

import json
import logging
import os
import tempfile
from urllib.parse import urlparse

logger = logging.getLogger(__name__)


# ── Backends ─────────────────────────────────────────────────────────────────


class _MemoryBackend:
    """Simple dict store for tests."""

    name = "memory"

    def __init__(self):
        self._store: dict = {}

    def get(self, key):
        return self._store.get(key)

    def set(self, key, value):
        self._store[key] = value

    def delete(self, key):
        self._store.pop(key, None)

    def ping(self):
        return True


class _FileBackend:
    """One ``<key>.json`` file per key inside *directory*."""

    name = "file"

    def __init__(self, directory):
        self.directory = directory
        os.makedirs(directory, exist_ok=True)

    def _path(self, key):
        safe = "".join(c for c in key if c.isalnum() or c in "-_")
        return os.path.join(self.directory, f"{safe}.json")

    def get(self, key):
        path = self._path(key)
        if not os.path.exists(path):
            return None
        with open(path, encoding="utf-8") as fh:
            return fh.read()

    def set(self, key, value):
        # Write to a temp file in the same directory, then rename over the target
        fd, tmp_path = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(value)
            os.replace(tmp_path, self._path(key))
        except OSError:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def delete(self, key):
        path = self._path(key)
        if os.path.exists(path):
            os.remove(path)

    def ping(self):
        return os.path.isdir(self.directory)


class _RedisBackend:
    """Thin adapter so redis-py matches the backend protocol."""

    name = "redis"

    def __init__(self, client):
        self._client = client

    def get(self, key):
        return self._client.get(key)

    def set(self, key, value):
        self._client.set(key, value)

    def delete(self, key):
        self._client.delete(key)

    def ping(self):
        return self._client.ping()


def _default_file_dir():
    return os.path.join(tempfile.gettempdir(), "pitchboard-cache")


def build_backend(cache_url):
    """Build a backend from *cache_url*; Redis degrades to the file backend."""
    cache_url = cache_url or "memory://"
    parsed = urlparse(cache_url)

    if parsed.scheme in ("redis", "rediss"):
        try:
            import redis as _redis
            client = _redis.from_url(cache_url, decode_responses=True)
            client.ping()
            logger.info("Cache mirror: using Redis at %s", cache_url.split("@")[-1])
            return _RedisBackend(client)
        except Exception as exc:
            logger.warning("Redis unavailable (%s): falling back to file cache mirror", exc)
            return _FileBackend(_default_file_dir())

    if parsed.scheme == "file":
        directory = parsed.path or _default_file_dir()
        logger.info("Cache mirror: using files in %s", directory)
        return _FileBackend(directory)

    return _MemoryBackend()


# ── Mirror ───────────────────────────────────────────────────────────────────


class LocalCacheMirror:
    """Key → serialized collection store used while the primary store is down.

    Only the sync gateway and the restore orchestrator write to it.
    """

    def __init__(self, backend=None):
        self._backend = backend or _MemoryBackend()

    @classmethod
    def from_url(cls, cache_url):
        return cls(build_backend(cache_url))

    @property
    def backend_name(self):
        return self._backend.name

    def get(self, key):
        """Return the cached list for *key*, or None on miss / corrupt data."""
        try:
            raw = self._backend.get(key)
        except Exception as exc:
            logger.warning("Cache mirror read failed key=%s: %s", key, exc)
            return None
        if raw is None:
            return None
        try:
            value = json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            logger.warning("Cache mirror entry is not valid JSON key=%s: treating as empty", key)
            return None
        if not isinstance(value, list) or not all(isinstance(item, dict) for item in value):
            logger.warning("Cache mirror entry has unexpected shape key=%s: treating as empty", key)
            return None
        return value

    def set(self, key, records):
        """Persist *records* under *key*. Failures are logged, never raised."""
        try:
            self._backend.set(key, json.dumps(list(records), default=str))
        except Exception as exc:
            logger.error("Cache mirror write failed key=%s: %s", key, exc)

    def remove(self, key):
        try:
            self._backend.delete(key)
        except Exception as exc:
            logger.error("Cache mirror delete failed key=%s: %s", key, exc)

    def health_check(self):
        """Return cache backend status."""
        try:
            self._backend.ping()
            return {"status": "ok", "backend": self._backend.name}
        except Exception as exc:
            return {"status": "error", "backend": self._backend.name, "detail": str(exc)}
