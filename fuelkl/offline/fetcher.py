"""Network fetcher used by the offline worker."""

from __future__ import annotations

from types import TracebackType

from fuelkl.common.http import HttpClient, TimeoutConfig
from fuelkl.offline.store import CachedResponse


class HttpFetcher:
    def __init__(self, client: HttpClient | None = None, timeout: TimeoutConfig | None = None) -> None:
        self.owns_client = client is None
        self.client = client or HttpClient()
        self.timeout = timeout

    def __call__(self, url: str) -> CachedResponse:
        response = self.client.fetch(url, headers={"Accept": "*/*"}, timeout=self.timeout)
        return CachedResponse(
            url=url,
            status=response.status_code,
            headers=dict(response.headers),
            body=response.content,
        )

    def close(self) -> None:
        if self.owns_client:
            self.client.close()

    def __enter__(self) -> "HttpFetcher":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
