"""Offline-first request policy for the client-side price cache.

The worker goes through ``UNINSTALLED -> INSTALLING -> ACTIVE``. Once active,
every request is classified by ``select_strategy`` and answered by one of two
executors:

* network-first for the price document, falling back to the stored copy,
* cache-first for shell resources (markup, manifest, icons).

Lookups try the profile's own cache before any older-named one.
"""

from __future__ import annotations

import enum
import logging
from typing import Any, Callable, Iterable

from fuelkl.common.errors import CacheInstallError, WorkerStateError
from fuelkl.common.http import NetworkError
from fuelkl.common.logging import log_event
from fuelkl.common.models import CacheProfile
from fuelkl.offline.store import CacheStorage, CachedResponse, cache_key

Fetcher = Callable[[str], CachedResponse]


class Strategy(enum.Enum):
    NETWORK_FIRST = "network-first"
    CACHE_FIRST = "cache-first"


class WorkerState(enum.Enum):
    UNINSTALLED = "uninstalled"
    INSTALLING = "installing"
    ACTIVE = "active"


def _log(logger: logging.Logger | None, message: str, **event_fields: Any) -> None:
    if logger is not None:
        log_event(logger, message, **event_fields)


def key_for(url: str, profile: CacheProfile) -> str:
    # The price document is stored under one key whatever its query string.
    return cache_key(url, ignore_query=profile.is_dynamic(url))


def select_strategy(url: str, profile: CacheProfile) -> Strategy:
    if profile.is_dynamic(url):
        return Strategy.NETWORK_FIRST
    return Strategy.CACHE_FIRST


def network_first(
    url: str,
    profile: CacheProfile,
    storage: CacheStorage,
    fetch: Fetcher,
    logger: logging.Logger | None = None,
) -> CachedResponse:
    key = key_for(url, profile)
    try:
        response = fetch(url)
    except NetworkError as exc:
        cached = storage.match(key, prefer=profile.cache_name)
        if cached is None:
            raise
        _log(
            logger,
            f"network failed ({exc}); serving stored copy",
            level=logging.WARNING,
            stage="cache",
            source=key,
            event="CACHE_FALLBACK",
            status="ok",
        )
        return cached
    if response.ok:
        # Stored before it is handed back.
        storage.open(profile.cache_name).put(key, response)
    return response


def cache_first(
    url: str,
    profile: CacheProfile,
    storage: CacheStorage,
    fetch: Fetcher,
    logger: logging.Logger | None = None,
) -> CachedResponse:
    key = key_for(url, profile)
    cached = storage.match(key, prefer=profile.cache_name)
    if cached is not None:
        return cached
    response = fetch(url)
    if profile.seed_on_miss and response.ok:
        storage.open(profile.cache_name).put(key, response)
        _log(logger, "seeded cache on miss", level=logging.DEBUG, stage="cache", source=key, event="CACHE_SEED")
    return response


EXECUTORS = {
    Strategy.NETWORK_FIRST: network_first,
    Strategy.CACHE_FIRST: cache_first,
}


class OfflineWorker:
    def __init__(
        self,
        profile: CacheProfile,
        storage: CacheStorage,
        fetch: Fetcher,
        logger: logging.Logger | None = None,
    ) -> None:
        self.profile = profile
        self.storage = storage
        self.fetch = fetch
        self.logger = logger
        self.state = WorkerState.UNINSTALLED
        self.controlled_clients: set[str] = set()

    def _require(self, *states: WorkerState) -> None:
        if self.state not in states:
            expected = ", ".join(state.value for state in states)
            raise WorkerStateError(f"Worker is {self.state.value}; expected {expected}")

    def install(self) -> None:
        self._require(WorkerState.UNINSTALLED)
        self.state = WorkerState.INSTALLING
        try:
            self.storage.open(self.profile.cache_name).add_all(self.profile.manifest_urls(), self.fetch)
        except CacheInstallError as exc:
            self.state = WorkerState.UNINSTALLED
            _log(
                self.logger,
                f"offline cache seeding failed: {exc}",
                level=logging.ERROR,
                stage="cache",
                source=self.profile.cache_name,
                event="CACHE_INSTALL",
                status="error",
                error_code=exc.error_code,
            )
            raise
        _log(
            self.logger,
            "offline cache seeded",
            stage="cache",
            source=self.profile.cache_name,
            event="CACHE_INSTALL",
            status="ok",
        )

    def activate(self, open_clients: Iterable[str] = ()) -> set[str]:
        """Take control of every open client now, without waiting for a reload."""
        self._require(WorkerState.INSTALLING)
        if self.profile.purge_stale_caches:
            for name in self.storage.names():
                if name != self.profile.cache_name:
                    self.storage.delete(name)
        self.state = WorkerState.ACTIVE
        self.controlled_clients = set(open_clients)
        return set(self.controlled_clients)

    def restore(self) -> bool:
        """Resume as active over a cache seeded by an earlier run."""
        self._require(WorkerState.UNINSTALLED)
        if not self.storage.has(self.profile.cache_name) or not self.storage.open(self.profile.cache_name).keys():
            return False
        self.state = WorkerState.ACTIVE
        return True

    def claim(self, client_id: str) -> None:
        self._require(WorkerState.ACTIVE)
        self.controlled_clients.add(client_id)

    def handle_fetch(self, url: str) -> CachedResponse:
        if self.state is not WorkerState.ACTIVE:
            return self.fetch(url)
        strategy = select_strategy(url, self.profile)
        return EXECUTORS[strategy](url, self.profile, self.storage, self.fetch, self.logger)
