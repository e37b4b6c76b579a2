"""CLI entrypoint for the fuel price updater and its offline cache."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from fuelkl.common.config_loader import load_cache_profile, load_update_config
from fuelkl.common.constants import EXIT_CACHE_FAILURE, EXIT_MISSING_CREDENTIAL, EXIT_SUCCESS
from fuelkl.common.errors import ConfigError, PipelineError
from fuelkl.common.ids import generate_run_id
from fuelkl.common.logging import build_logger, close_logger, log_event
from fuelkl.offline.fetcher import HttpFetcher
from fuelkl.offline.policy import OfflineWorker
from fuelkl.offline.store import CacheStorage
from fuelkl.update.driver import run_update
from fuelkl.update.reports import write_run_summary


def _add_config_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config-dir", default="./config")
    parser.add_argument("--overlay-config-dir", default=None)
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    commands = parser.add_subparsers(dest="command", required=True)

    update = commands.add_parser("update", help="fetch district prices and write the price document")
    _add_config_args(update)
    update.add_argument("--data-dir", default="./data")
    update.add_argument("--output", default=None)
    update.add_argument("--run-id", default=None)

    cache = commands.add_parser("cache", help="offline cache operations")
    cache_commands = cache.add_subparsers(dest="cache_command", required=True)

    install = cache_commands.add_parser("install", help="seed and activate the offline cache")
    fetch = cache_commands.add_parser("fetch", help="resolve one request through the offline policy")
    fetch.add_argument("url")
    fetch.add_argument("--output", default=None)
    for sub in (install, fetch):
        _add_config_args(sub)
        sub.add_argument("--base-url", required=True)
        sub.add_argument("--profile", default=None)
        sub.add_argument("--cache-dir", default="./data/offline_cache")

    return parser.parse_args(argv)


def run_update_command(args: argparse.Namespace) -> int:
    run_id = args.run_id or generate_run_id()
    data_dir = Path(args.data_dir)
    try:
        config = load_update_config(
            Path(args.config_dir),
            overlay_config_dir=Path(args.overlay_config_dir) if args.overlay_config_dir else None,
            output_path=Path(args.output) if args.output else None,
        )
    except ConfigError as exc:
        logger = build_logger(run_id, level=args.log_level)
        log_event(
            logger,
            str(exc),
            level=logging.ERROR,
            run_id=run_id,
            stage="config",
            event="CONFIG_FAIL",
            status="error",
            error_code=exc.error_code,
        )
        close_logger(logger)
        return EXIT_MISSING_CREDENTIAL

    logger = build_logger(run_id, data_dir=data_dir, level=args.log_level)
    try:
        log_event(logger, "update start", run_id=run_id, stage="update", event="RUN_START", status="ok")
        result = run_update(config, logger=logger, run_id=run_id)
        write_run_summary(data_dir, run_id, result)
        log_event(logger, "update end", run_id=run_id, stage="update", event="RUN_END", status="ok")
        return result.exit_code
    finally:
        close_logger(logger)


def run_cache_command(args: argparse.Namespace) -> int:
    run_id = generate_run_id()
    logger = build_logger(run_id, level=args.log_level)
    try:
        profile = load_cache_profile(
            Path(args.config_dir),
            profile_name=args.profile,
            scope=args.base_url,
            overlay_config_dir=Path(args.overlay_config_dir) if args.overlay_config_dir else None,
        )
        storage = CacheStorage(Path(args.cache_dir))
        with HttpFetcher() as fetch:
            worker = OfflineWorker(profile, storage, fetch, logger=logger)
            if args.cache_command == "install" or not worker.restore():
                worker.install()
                worker.activate()
            if args.cache_command == "install":
                log_event(logger, f"installed {profile.cache_name}", run_id=run_id, stage="cache", event="CACHE_READY", status="ok")
                return EXIT_SUCCESS
            response = worker.handle_fetch(args.url)
    except ConfigError as exc:
        log_event(
            logger,
            str(exc),
            level=logging.ERROR,
            run_id=run_id,
            stage="config",
            event="CONFIG_FAIL",
            status="error",
            error_code=exc.error_code,
        )
        return EXIT_MISSING_CREDENTIAL
    except PipelineError as exc:
        log_event(
            logger,
            str(exc),
            level=logging.ERROR,
            run_id=run_id,
            stage="cache",
            event="CACHE_FAIL",
            status="error",
            error_code=exc.error_code,
        )
        return EXIT_CACHE_FAILURE
    finally:
        close_logger(logger)

    if args.output:
        Path(args.output).write_bytes(response.body)
    else:
        sys.stdout.buffer.write(response.body)
    return EXIT_SUCCESS if response.ok else EXIT_CACHE_FAILURE


def run_command(args: argparse.Namespace) -> int:
    if args.command == "update":
        return run_update_command(args)
    return run_cache_command(args)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    return run_command(args)


if __name__ == "__main__":
    raise SystemExit(main())
