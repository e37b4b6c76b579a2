"""Fetch-and-persist driver.

Districts are fetched one at a time. Every district failure is logged and
skipped. The output document is the district map, or the bare fallback
record when no district produced data.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from fuelkl.common.config_loader import UpdateConfig
from fuelkl.common.constants import EXIT_NO_DATA, EXIT_SUCCESS, SAMPLE_CHARS
from fuelkl.common.fs import write_json
from fuelkl.common.http import HttpClient, HttpRequestError
from fuelkl.common.logging import log_event
from fuelkl.common.models import DistrictPriceMap, PriceRecord
from fuelkl.update.extract import extract_prices


@dataclass
class UpdateResult:
    exit_code: int
    output_path: Path | None
    succeeded: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    fallback_used: bool = False


def _sample(payload: Any) -> str:
    try:
        text = json.dumps(payload, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        text = repr(payload)
    return text[:SAMPLE_CHARS]


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def fetch_district(
    district: str,
    config: UpdateConfig,
    client: HttpClient,
    logger: logging.Logger,
    run_id: str | None = None,
) -> PriceRecord | None:
    url = config.source_url(district)
    started = time.monotonic()
    try:
        payload = client.get_json(url, headers=config.source_headers())
    except HttpRequestError as exc:
        log_event(
            logger,
            f"fetch {district} failed: {exc}",
            level=logging.WARNING,
            run_id=run_id,
            stage="fetch",
            district=district,
            event="FETCH_FAIL",
            status="error",
            duration_ms=_elapsed_ms(started),
            error_code=exc.error_code,
        )
        return None

    record = extract_prices(payload)
    if record is None:
        log_event(
            logger,
            f"could not parse response for {district}; sample: {_sample(payload)}",
            level=logging.WARNING,
            run_id=run_id,
            stage="extract",
            district=district,
            event="PARSE_FAIL",
            status="error",
            duration_ms=_elapsed_ms(started),
            error_code="UNRECOGNISED_PAYLOAD",
        )
        return None

    log_event(
        logger,
        f"fetched {district}: petrol={record.petrol}, diesel={record.diesel}",
        run_id=run_id,
        stage="fetch",
        district=district,
        event="FETCH_OK",
        status="ok",
        duration_ms=_elapsed_ms(started),
    )
    return record


def _fetch_all(
    config: UpdateConfig,
    client: HttpClient,
    logger: logging.Logger,
    run_id: str | None,
) -> tuple[DistrictPriceMap, list[str]]:
    prices: DistrictPriceMap = {}
    failed: list[str] = []
    for district in config.districts:
        record = fetch_district(district, config, client, logger, run_id)
        if record is None:
            failed.append(district)
            log_event(logger, f"no data for {district}", run_id=run_id, stage="fetch", district=district, event="NO_DATA")
        else:
            prices[district] = record
    return prices, failed


def run_update(
    config: UpdateConfig,
    *,
    logger: logging.Logger,
    run_id: str | None = None,
    client: HttpClient | None = None,
) -> UpdateResult:
    owns_client = client is None
    client = client or HttpClient(
        timeout=config.timeout,
        retry=config.retry,
        rate_per_sec=config.rate_limit_per_sec,
    )
    try:
        prices, failed = _fetch_all(config, client, logger, run_id)
        if prices:
            write_json(config.output_path, {district: record.to_dict() for district, record in prices.items()})
            log_event(
                logger,
                f"wrote district-mapped {config.output_path} with {len(prices)} districts",
                run_id=run_id,
                stage="write",
                event="WRITE_OK",
                status="ok",
            )
            return UpdateResult(EXIT_SUCCESS, config.output_path, list(prices), failed)

        log_event(
            logger,
            f"no district data fetched; attempting fallback fetch ({config.fallback_district})",
            level=logging.ERROR,
            run_id=run_id,
            stage="fallback",
            district=config.fallback_district,
            event="FALLBACK_START",
        )
        fallback = fetch_district(config.fallback_district, config, client, logger, run_id)
    finally:
        if owns_client:
            client.close()

    if fallback is None:
        log_event(
            logger,
            "fallback failed; no output written",
            level=logging.ERROR,
            run_id=run_id,
            stage="fallback",
            district=config.fallback_district,
            event="FALLBACK_FAIL",
            status="error",
            error_code="NO_DATA",
        )
        return UpdateResult(EXIT_NO_DATA, None, [], failed, fallback_used=True)

    # Bare record, deliberately not wrapped in a district map.
    write_json(config.output_path, fallback.to_dict())
    log_event(
        logger,
        f"wrote flat {config.output_path} (fallback)",
        run_id=run_id,
        stage="write",
        district=config.fallback_district,
        event="WRITE_OK",
        status="ok",
    )
    return UpdateResult(EXIT_SUCCESS, config.output_path, [], failed, fallback_used=True)
