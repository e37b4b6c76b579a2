"""Configuration loading and validation."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from fuelkl.common.constants import CREDENTIAL_ENV, DISTRICT_PLACEHOLDER, SOURCE_URL_ENV
from fuelkl.common.errors import ConfigError, MissingCredentialError
from fuelkl.common.fs import read_yaml
from fuelkl.common.http import RetryConfig, TimeoutConfig
from fuelkl.common.models import CacheProfile
from fuelkl.common.schema import (
    validate_offline_cache_config,
    validate_update_config,
    validate_url_template,
)


@dataclass(frozen=True)
class UpdateConfig:
    api_key: str = field(repr=False)
    api_host: str
    url_template: str
    districts: tuple[str, ...]
    fallback_district: str
    output_path: Path
    timeout: TimeoutConfig = TimeoutConfig()
    retry: RetryConfig = RetryConfig()
    rate_limit_per_sec: float | None = None

    def source_url(self, district: str) -> str:
        return self.url_template.replace(DISTRICT_PLACEHOLDER, district)

    def source_headers(self) -> dict[str, str]:
        return {
            "x-rapidapi-host": self.api_host,
            "x-rapidapi-key": self.api_key,
            "Accept": "application/json",
        }


def _deep_merge(base: Any, overlay: Any) -> Any:
    if isinstance(base, dict) and isinstance(overlay, dict):
        merged = dict(base)
        for key, value in overlay.items():
            if key in merged:
                merged[key] = _deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged
    return overlay


def _load_yaml_with_overlay(path: Path, overlay_path: Path | None) -> dict:
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    base = read_yaml(path) or {}
    if overlay_path is None or not overlay_path.exists():
        return base
    overlay = read_yaml(overlay_path)
    if overlay is None:
        return base
    return _deep_merge(base, overlay)


def _overlay_path(overlay_config_dir: Path | None, name: str) -> Path | None:
    if overlay_config_dir is None:
        return None
    return overlay_config_dir / name


def require_credential(env: Mapping[str, str]) -> str:
    api_key = (env.get(CREDENTIAL_ENV) or "").strip()
    if not api_key:
        raise MissingCredentialError(f"{CREDENTIAL_ENV} not set")
    return api_key


def load_update_config(
    config_dir: Path,
    *,
    env: Mapping[str, str] | None = None,
    overlay_config_dir: Path | None = None,
    output_path: Path | None = None,
    allow_unknown: bool = False,
) -> UpdateConfig:
    env = os.environ if env is None else env
    # Checked before touching any file or the network.
    api_key = require_credential(env)

    cfg = validate_update_config(
        _load_yaml_with_overlay(config_dir / "update.yml", _overlay_path(overlay_config_dir, "update.yml")),
        allow_unknown=allow_unknown,
    )
    source = cfg["source"]
    url_template = validate_url_template(env.get(SOURCE_URL_ENV) or source["url_template"])

    timeout_cfg = source.get("timeout") or {}
    timeout = TimeoutConfig(
        connect=float(timeout_cfg.get("connect", TimeoutConfig.connect)),
        read=float(timeout_cfg.get("read", TimeoutConfig.read)),
    )
    retry = RetryConfig(max_attempts=int(source.get("max_attempts", RetryConfig.max_attempts)))
    rate = source.get("rate_limit_per_sec")

    return UpdateConfig(
        api_key=api_key,
        api_host=str(source["host"]),
        url_template=url_template,
        districts=tuple(cfg["districts"]),
        fallback_district=cfg["fallback_district"],
        output_path=output_path or Path(cfg["output"]["filename"]),
        timeout=timeout,
        retry=retry,
        rate_limit_per_sec=float(rate) if rate else None,
    )


def load_cache_profile(
    config_dir: Path,
    *,
    profile_name: str | None = None,
    scope: str,
    overlay_config_dir: Path | None = None,
) -> CacheProfile:
    cfg = validate_offline_cache_config(
        _load_yaml_with_overlay(
            config_dir / "offline_cache.yml",
            _overlay_path(overlay_config_dir, "offline_cache.yml"),
        )
    )
    name = profile_name or cfg["default_profile"]
    if name not in cfg["profiles"]:
        raise ConfigError(f"Unknown offline cache profile: {name}")
    profile = cfg["profiles"][name]
    return CacheProfile(
        cache_name=profile["cache_name"],
        dynamic_document=profile["dynamic_document"],
        precache=tuple(profile["precache"]),
        scope=scope,
        seed_on_miss=bool(profile.get("seed_on_miss", False)),
        purge_stale_caches=bool(profile.get("purge_stale_caches", False)),
    )
