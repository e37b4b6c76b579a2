"""Durable request -> response cache store for the offline worker.

A ``CacheStorage`` holds named, versioned caches. Each ``Cache`` maps a
request key to a ``CachedResponse``. With a root directory the store lives on
disk and survives restarts; without one it is kept in memory. Writes are
scoped per key and last-write-wins.
"""

from __future__ import annotations

import base64
import hashlib
import json
import shutil
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable
from urllib.parse import urlsplit, urlunsplit

from fuelkl.common.errors import CacheInstallError
from fuelkl.common.fs import ensure_dir, write_bytes_atomic


@dataclass(frozen=True)
class CachedResponse:
    url: str
    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "status": self.status,
            "headers": dict(self.headers),
            "body": base64.b64encode(self.body).decode("ascii"),
        }

    @classmethod
    def from_dict(cls, payload: dict) -> "CachedResponse":
        return cls(
            url=payload["url"],
            status=int(payload["status"]),
            headers=dict(payload.get("headers") or {}),
            body=base64.b64decode(payload.get("body") or ""),
        )


def cache_key(url: str, *, ignore_query: bool = False) -> str:
    parts = urlsplit(url)
    query = "" if ignore_query else parts.query
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, ""))


class Cache:
    def __init__(self, name: str, directory: Path | None = None) -> None:
        self.name = name
        self.directory = directory
        self._entries: dict[str, CachedResponse] = {}
        self._lock = threading.Lock()
        if directory is not None:
            ensure_dir(directory)

    def _entry_path(self, key: str) -> Path:
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self.directory / f"{digest}.json"

    def match(self, key: str) -> CachedResponse | None:
        if self.directory is None:
            return self._entries.get(key)
        path = self._entry_path(key)
        if not path.exists():
            return None
        payload = json.loads(path.read_text(encoding="utf-8"))
        return CachedResponse.from_dict(payload["response"])

    def put(self, key: str, response: CachedResponse) -> None:
        if self.directory is None:
            with self._lock:
                self._entries[key] = response
            return
        payload = {"key": key, "response": response.to_dict()}
        write_bytes_atomic(self._entry_path(key), json.dumps(payload, sort_keys=True).encode("utf-8"))

    def delete(self, key: str) -> bool:
        if self.directory is None:
            with self._lock:
                return self._entries.pop(key, None) is not None
        path = self._entry_path(key)
        if not path.exists():
            return False
        path.unlink()
        return True

    def keys(self) -> list[str]:
        if self.directory is None:
            return sorted(self._entries)
        keys = []
        for path in self.directory.glob("*.json"):
            keys.append(json.loads(path.read_text(encoding="utf-8"))["key"])
        return sorted(keys)

    def add_all(self, urls: Iterable[str], fetch: Callable[[str], CachedResponse]) -> None:
        """Fetch every URL, then store them all; any failure stores nothing."""
        fetched: list[tuple[str, CachedResponse]] = []
        for url in urls:
            try:
                response = fetch(url)
            except Exception as exc:
                raise CacheInstallError(f"Failed to fetch {url}: {exc}") from exc
            if not response.ok:
                raise CacheInstallError(f"Failed to fetch {url}: HTTP status {response.status}")
            fetched.append((url, response))
        for url, response in fetched:
            self.put(cache_key(url), response)


class CacheStorage:
    def __init__(self, root: Path | None = None) -> None:
        self.root = root
        self._caches: dict[str, Cache] = {}
        self._lock = threading.Lock()

    def open(self, name: str) -> Cache:
        with self._lock:
            cache = self._caches.get(name)
            if cache is None:
                directory = self.root / name if self.root is not None else None
                cache = Cache(name, directory)
                self._caches[name] = cache
            return cache

    def has(self, name: str) -> bool:
        return name in self.names()

    def names(self) -> list[str]:
        names = set(self._caches)
        if self.root is not None and self.root.exists():
            names.update(path.name for path in self.root.iterdir() if path.is_dir())
        return sorted(names)

    def delete(self, name: str) -> bool:
        with self._lock:
            existed = self._caches.pop(name, None) is not None
        if self.root is not None and (self.root / name).is_dir():
            shutil.rmtree(self.root / name)
            existed = True
        return existed

    def match(self, key: str, *, prefer: str | None = None) -> CachedResponse | None:
        """Look ``key`` up in ``prefer`` first, then in every other cache."""
        names = self.names()
        if prefer in names:
            names = [prefer] + [name for name in names if name != prefer]
        for name in names:
            response = self.open(name).match(key)
            if response is not None:
                return response
        return None
