"""Run report aggregation."""

from __future__ import annotations

from collections import Counter
from pathlib import Path

from feedback_pipeline.common.fs import write_json


def stage_result(stage: str, candidates: int, counts: Counter) -> dict:
    return {
        "stage": stage,
        "candidates": candidates,
        "counts": dict(sorted(counts.items())),
    }


def build_run_summary(run_id: str, run_date: str, results: list[dict], failed_stages: list[str]) -> dict:
    totals: Counter = Counter()
    for result in results:
        totals.update(result["counts"])

    status = "success"
    if failed_stages:
        status = "error"
    elif totals.get("failed", 0) > 0:
        status = "partial"

    return {
        "run_id": run_id,
        "run_date": run_date,
        "status": status,
        "failed_stages": failed_stages,
        "totals": dict(sorted(totals.items())),
        "stages": results,
    }


def write_run_summary(path: Path, summary: dict) -> Path:
    write_json(path, summary)
    return path
