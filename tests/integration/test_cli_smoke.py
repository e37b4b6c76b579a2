from __future__ import annotations

import json
from pathlib import Path

import pytest

from fuelkl import cli
from fuelkl.cli import main
from fuelkl.common.http import HttpRequestError, NetworkError
from fuelkl.offline.store import CachedResponse
from fuelkl.update import driver


def _fake_client_factory(payload_for):
    class FakeHttpClient:
        def __init__(self, **_kwargs):
            pass

        def get_json(self, url: str, **_kwargs):
            payload = payload_for(url)
            if payload is None:
                raise HttpRequestError("HTTP status: 500", status=500)
            return payload

        def close(self):
            return None

    return FakeHttpClient


@pytest.mark.integration
def test_cli_update_writes_district_map_and_summary(monkeypatch, tmp_path: Path):
    monkeypatch.setenv("RAPIDAPI_KEY", "secret")
    monkeypatch.delenv("SOURCE_URL", raising=False)
    monkeypatch.setattr(
        driver,
        "HttpClient",
        _fake_client_factory(lambda url: {"petrol": 107.56, "diesel": 96.48} if url.endswith("/kollam") else None),
    )

    exit_code = main(
        [
            "update",
            "--data-dir",
            str(tmp_path / "data"),
            "--output",
            str(tmp_path / "prices.json"),
            "--run-id",
            "run-cli",
        ]
    )

    assert exit_code == 0
    written = json.loads((tmp_path / "prices.json").read_text(encoding="utf-8"))
    assert list(written) == ["kollam"]
    summary = json.loads((tmp_path / "data" / "run_meta" / "run-cli.summary.json").read_text(encoding="utf-8"))
    assert summary["status"] == "partial"
    assert (tmp_path / "data" / "run_meta" / "run-cli.log.jsonl").exists()


@pytest.mark.integration
def test_cli_update_exits_2_when_everything_fails(monkeypatch, tmp_path: Path):
    monkeypatch.setenv("RAPIDAPI_KEY", "secret")
    monkeypatch.delenv("SOURCE_URL", raising=False)
    monkeypatch.setattr(driver, "HttpClient", _fake_client_factory(lambda _url: None))

    exit_code = main(["update", "--data-dir", str(tmp_path / "data"), "--output", str(tmp_path / "prices.json")])

    assert exit_code == 2
    assert not (tmp_path / "prices.json").exists()


class FakeFetcher:
    online = True
    bodies = {
        "https://fuel.example/index.html": b"<html></html>",
        "https://fuel.example/manifest.json": b"{}",
        "https://fuel.example/icons/icon-192.png": b"png",
        "https://fuel.example/icons/icon-512.png": b"png",
        "https://fuel.example/prices.json": b'{"kollam": {}}',
    }

    def __init__(self, *_args, **_kwargs):
        pass

    def __call__(self, url: str) -> CachedResponse:
        if not FakeFetcher.online:
            raise NetworkError("offline")
        body = self.bodies.get(url.split("?")[0])
        return CachedResponse(url=url, status=200 if body is not None else 404, body=body or b"")

    def __enter__(self):
        return self

    def __exit__(self, *_exc):
        return None


@pytest.mark.integration
def test_cli_cache_install_then_offline_fetch(monkeypatch, tmp_path: Path):
    monkeypatch.setattr(cli, "HttpFetcher", FakeFetcher)
    monkeypatch.setattr(FakeFetcher, "online", True)
    common = ["--base-url", "https://fuel.example/", "--cache-dir", str(tmp_path / "cache")]

    assert main(["cache", "install", *common]) == 0
    assert main(["cache", "fetch", "https://fuel.example/prices.json?t=1", *common, "--output", str(tmp_path / "a.json")]) == 0

    monkeypatch.setattr(FakeFetcher, "online", False)
    assert main(["cache", "fetch", "https://fuel.example/prices.json?t=2", *common, "--output", str(tmp_path / "b.json")]) == 0
    assert (tmp_path / "b.json").read_bytes() == b'{"kollam": {}}'
    assert main(["cache", "fetch", "https://fuel.example/index.html", *common, "--output", str(tmp_path / "c.html")]) == 0
    assert (tmp_path / "c.html").read_bytes() == b"<html></html>"


@pytest.mark.integration
def test_cli_cache_fetch_offline_without_copy_exits_3(monkeypatch, tmp_path: Path):
    monkeypatch.setattr(cli, "HttpFetcher", FakeFetcher)
    monkeypatch.setattr(FakeFetcher, "online", True)
    common = ["--base-url", "https://fuel.example/", "--cache-dir", str(tmp_path / "cache")]
    assert main(["cache", "install", *common]) == 0

    monkeypatch.setattr(FakeFetcher, "online", False)
    assert main(["cache", "fetch", "https://fuel.example/prices.json", *common]) == 3
