"""Data models shared by the updater and its consumers."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any
from urllib.parse import urljoin, urlsplit

Number = float | int


@dataclass(frozen=True)
class PriceRecord:
    petrol: Number
    diesel: Number
    updated_at: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


DistrictPriceMap = dict[str, PriceRecord]


@dataclass(frozen=True)
class CacheProfile:
    """One deployable configuration of the offline cache policy."""

    cache_name: str
    dynamic_document: str
    precache: tuple[str, ...]
    scope: str
    seed_on_miss: bool = False
    purge_stale_caches: bool = False

    def resolve(self, path: str) -> str:
        return urljoin(self.scope, path)

    def manifest_urls(self) -> list[str]:
        return [self.resolve(path) for path in self.precache]

    def is_dynamic(self, url: str) -> bool:
        return urlsplit(url).path.endswith(self.dynamic_document)
