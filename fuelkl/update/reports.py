"""Run report for a price update."""

from __future__ import annotations

from pathlib import Path

from fuelkl.common.fs import write_json
from fuelkl.update.driver import UpdateResult


def _status(result: UpdateResult) -> str:
    if result.output_path is None:
        return "error"
    if result.fallback_used:
        return "fallback"
    if result.failed:
        return "partial"
    return "success"


def write_run_summary(data_dir: Path, run_id: str, result: UpdateResult) -> Path:
    summary_path = data_dir / "run_meta" / f"{run_id}.summary.json"
    payload = {
        "run_id": run_id,
        "status": _status(result),
        "exit_code": result.exit_code,
        "output_path": str(result.output_path) if result.output_path is not None else None,
        "succeeded_districts": sorted(result.succeeded),
        "failed_districts": sorted(result.failed),
        "fallback_used": result.fallback_used,
    }
    write_json(summary_path, payload)
    return summary_path
