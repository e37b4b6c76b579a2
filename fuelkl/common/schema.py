"""Minimal strict schemas for YAML config validation."""

from __future__ import annotations

from fuelkl.common.constants import DISTRICT_PLACEHOLDER
from fuelkl.common.errors import ConfigError


def _assert_required_keys(obj: dict, required: set[str], ctx: str) -> None:
    if not isinstance(obj, dict):
        raise ConfigError(f"{ctx} must be a mapping")
    missing = required - set(obj)
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise ConfigError(f"Missing keys in {ctx}: {missing_str}")


def _assert_no_unknown_keys(obj: dict, known: set[str], ctx: str, allow_unknown: bool) -> None:
    if allow_unknown:
        return
    unknown = set(obj) - known
    if unknown:
        unknown_str = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown keys in {ctx}: {unknown_str}")


def _assert_slug_list(values, ctx: str) -> None:
    if not isinstance(values, list) or not values:
        raise ConfigError(f"{ctx} must be a non-empty list")
    for value in values:
        if not isinstance(value, str) or not value.strip():
            raise ConfigError(f"{ctx} entries must be non-empty strings")
    dupes = {value for value in values if values.count(value) > 1}
    if dupes:
        raise ConfigError(f"Duplicate entries in {ctx}: {', '.join(sorted(dupes))}")


def validate_url_template(template: str) -> str:
    if not isinstance(template, str) or DISTRICT_PLACEHOLDER not in template:
        raise ConfigError(f"Source URL template must contain {DISTRICT_PLACEHOLDER}")
    return template


def validate_update_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    top_required = {"source", "districts", "fallback_district", "output"}
    _assert_required_keys(cfg, top_required, "update config")
    _assert_no_unknown_keys(cfg, top_required, "update config", allow_unknown)

    _assert_required_keys(cfg["source"], {"host", "url_template"}, "source")
    _assert_no_unknown_keys(
        cfg["source"],
        {"host", "url_template", "timeout", "max_attempts", "rate_limit_per_sec"},
        "source",
        allow_unknown,
    )
    validate_url_template(cfg["source"]["url_template"])
    if "timeout" in cfg["source"]:
        _assert_required_keys(cfg["source"]["timeout"], {"connect", "read"}, "source.timeout")

    _assert_slug_list(cfg["districts"], "districts")
    if not isinstance(cfg["fallback_district"], str) or not cfg["fallback_district"].strip():
        raise ConfigError("fallback_district must be a non-empty string")
    _assert_required_keys(cfg["output"], {"filename"}, "output")
    return cfg


def validate_offline_cache_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    _assert_required_keys(cfg, {"default_profile", "profiles"}, "offline_cache")
    if not isinstance(cfg["profiles"], dict) or not cfg["profiles"]:
        raise ConfigError("offline_cache.profiles must be a non-empty mapping")
    if cfg["default_profile"] not in cfg["profiles"]:
        raise ConfigError(f"Unknown default profile: {cfg['default_profile']}")

    profile_required = {"cache_name", "dynamic_document", "precache"}
    profile_known = profile_required | {"seed_on_miss", "purge_stale_caches"}
    for name, profile in cfg["profiles"].items():
        ctx = f"profiles.{name}"
        _assert_required_keys(profile, profile_required, ctx)
        _assert_no_unknown_keys(profile, profile_known, ctx, allow_unknown)
        _assert_slug_list(profile["precache"], f"{ctx}.precache")
    return cfg
