from __future__ import annotations

import json
from pathlib import Path

import pytest

from fuelkl.common.config_loader import UpdateConfig
from fuelkl.common.http import HttpClient, HttpRequestError, NetworkError, RetryableHttpError, RetryConfig
from fuelkl.common.logging import build_logger, close_logger
from fuelkl.update.driver import run_update
from fuelkl.update.reports import write_run_summary

TEMPLATE = "https://prices.test/kerala/{district}"


class FakePriceClient:
    def __init__(self, outcomes: dict[str, object]):
        self.outcomes = outcomes
        self.calls: list[tuple[str, dict]] = []

    def get_json(self, url: str, **kwargs):
        self.calls.append((url, kwargs))
        outcome = self.outcomes.get(url, HttpRequestError("HTTP status: 404", status=404))
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def close(self):
        return None


def _config(tmp_path: Path, districts=("a", "b")) -> UpdateConfig:
    return UpdateConfig(
        api_key="secret",
        api_host="prices.test",
        url_template=TEMPLATE,
        districts=tuple(districts),
        fallback_district="palakkad",
        output_path=tmp_path / "out" / "prices.json",
    )


def _log_lines(tmp_path: Path, run_id: str) -> list[dict]:
    path = tmp_path / "data" / "run_meta" / f"{run_id}.log.jsonl"
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


@pytest.fixture
def logger(tmp_path: Path):
    built = build_logger("run-test", data_dir=tmp_path / "data", level="DEBUG")
    yield built
    close_logger(built)


@pytest.mark.integration
def test_failed_district_is_omitted(tmp_path: Path, logger):
    client = FakePriceClient(
        {
            "https://prices.test/kerala/a": RetryableHttpError("Retryable HTTP status: 500", status=500),
            "https://prices.test/kerala/b": {"petrol": 106.2, "diesel": 95.1, "updated_at": "2026-02-17"},
        }
    )

    result = run_update(_config(tmp_path), logger=logger, run_id="run-test", client=client)

    assert result.exit_code == 0
    assert result.succeeded == ["b"]
    assert result.failed == ["a"]
    written = json.loads((tmp_path / "out" / "prices.json").read_text(encoding="utf-8"))
    assert written == {"b": {"diesel": 95.1, "petrol": 106.2, "updated_at": "2026-02-17"}}


@pytest.mark.integration
def test_requests_are_sequential_with_source_headers(tmp_path: Path, logger):
    client = FakePriceClient({})

    run_update(_config(tmp_path, districts=("kollam", "thrissur")), logger=logger, run_id="run-test", client=client)

    urls = [url for url, _ in client.calls]
    assert urls == [
        "https://prices.test/kerala/kollam",
        "https://prices.test/kerala/thrissur",
        "https://prices.test/kerala/palakkad",
    ]
    headers = client.calls[0][1]["headers"]
    assert headers == {"x-rapidapi-host": "prices.test", "x-rapidapi-key": "secret", "Accept": "application/json"}


@pytest.mark.integration
def test_fallback_writes_bare_record(tmp_path: Path, logger):
    client = FakePriceClient(
        {
            "https://prices.test/kerala/a": NetworkError("refused"),
            "https://prices.test/kerala/palakkad": [{"petrol_price": "105.50", "diesel_price": "94.40", "updated": "2026-02-17"}],
        }
    )

    result = run_update(_config(tmp_path), logger=logger, run_id="run-test", client=client)

    assert result.exit_code == 0
    assert result.fallback_used is True
    written = json.loads((tmp_path / "out" / "prices.json").read_text(encoding="utf-8"))
    assert written == {"diesel": 94.4, "petrol": 105.5, "updated_at": "2026-02-17"}


@pytest.mark.integration
def test_no_output_when_fallback_also_fails(tmp_path: Path, logger):
    result = run_update(_config(tmp_path), logger=logger, run_id="run-test", client=FakePriceClient({}))

    assert result.exit_code == 2
    assert result.output_path is None
    assert not (tmp_path / "out" / "prices.json").exists()


@pytest.mark.integration
def test_unrecognised_body_is_logged_with_truncated_sample(tmp_path: Path, logger):
    noise = {"message": "x" * 2000}
    client = FakePriceClient(
        {
            "https://prices.test/kerala/a": noise,
            "https://prices.test/kerala/b": {"petrol": 1.0, "diesel": 2.0},
        }
    )

    run_update(_config(tmp_path), logger=logger, run_id="run-test", client=client)

    lines = _log_lines(tmp_path, "run-test")
    parse_fail = [line for line in lines if line["event"] == "PARSE_FAIL"]
    assert len(parse_fail) == 1
    assert parse_fail[0]["district"] == "a"
    assert parse_fail[0]["level"] == "WARNING"
    sample = parse_fail[0]["message"].split("sample: ", 1)[1]
    assert len(sample) == 800


@pytest.mark.integration
def test_new_run_replaces_previous_document(tmp_path: Path, logger):
    output = tmp_path / "out" / "prices.json"
    output.parent.mkdir(parents=True)
    output.write_text(json.dumps({"old": {"petrol": 1, "diesel": 1, "updated_at": "x"}}), encoding="utf-8")
    client = FakePriceClient({"https://prices.test/kerala/a": {"petrol": 100.0, "diesel": 90.0, "updated_at": "t"}})

    run_update(_config(tmp_path), logger=logger, run_id="run-test", client=client)

    assert set(json.loads(output.read_text(encoding="utf-8"))) == {"a"}


@pytest.mark.integration
def test_run_summary_records_outcome(tmp_path: Path, logger):
    client = FakePriceClient({"https://prices.test/kerala/b": {"petrol": 100.0, "diesel": 90.0}})
    result = run_update(_config(tmp_path), logger=logger, run_id="run-test", client=client)

    summary_path = write_run_summary(tmp_path / "data", "run-test", result)

    summary = json.loads(summary_path.read_text(encoding="utf-8"))
    assert summary["status"] == "partial"
    assert summary["failed_districts"] == ["a"]
    assert summary["succeeded_districts"] == ["b"]
    assert summary["exit_code"] == 0


class TextResponse:
    def __init__(self, text: str):
        self.status_code = 200
        self.text = text

    def json(self):
        return json.loads(self.text)


@pytest.mark.integration
def test_deeply_nested_body_does_not_abort_run(monkeypatch, tmp_path: Path, logger):
    bodies = {
        "https://prices.test/kerala/a": "[" * 100000 + "]" * 100000,
        "https://prices.test/kerala/b": json.dumps({"petrol": 106.2, "diesel": 95.1, "updated_at": "2026-02-17"}),
    }
    client = HttpClient(retry=RetryConfig(max_attempts=1))
    monkeypatch.setattr(client.session, "request", lambda **kwargs: TextResponse(bodies[kwargs["url"]]))

    result = run_update(_config(tmp_path), logger=logger, run_id="run-test", client=client)

    assert result.exit_code == 0
    assert result.failed == ["a"]
    written = json.loads((tmp_path / "out" / "prices.json").read_text(encoding="utf-8"))
    assert list(written) == ["b"]
