"""Configuration loading and validation."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from feedback_pipeline.common.constants import (
    DEFAULT_APPEND_ATTEMPTS,
    DEFAULT_APPEND_INITIAL_DELAY_MS,
    DEFAULT_FEED_TIMEOUT_SECONDS,
)
from feedback_pipeline.common.errors import ConfigError
from feedback_pipeline.common.fs import read_yaml
from feedback_pipeline.common.schema import validate_pipeline_config

CONFIG_FILENAME = "pipeline.yml"


@dataclass(frozen=True)
class StoreConfig:
    uri: str
    database: str
    feedback_collection: str
    survey_collection: str


@dataclass(frozen=True)
class TierFeedConfig:
    tier1_url: str
    tier2_url: str
    timeout_seconds: float = 60.0


@dataclass(frozen=True)
class SheetsConfig:
    service_account_file: Path
    tier2_spreadsheet_id: str
    url_range: str
    duplicate_spreadsheet_id: str
    duplicate_range: str
    max_attempts: int = 3
    initial_delay_ms: int = 1000


@dataclass(frozen=True)
class AirtableConfig:
    api_key: str
    table: str
    bases: dict[str, str]


@dataclass(frozen=True)
class CleaningConfig:
    home_page_url: str
    max_comment_length: int


@dataclass(frozen=True)
class SyncConfig:
    max_records: int
    initial_status: str


@dataclass(frozen=True)
class PipelineConfig:
    store: StoreConfig
    tiers: TierFeedConfig
    sheets: SheetsConfig
    airtable: AirtableConfig
    cleaning: CleaningConfig
    sync: SyncConfig


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
    base = read_yaml(path)
    if overlay_path is None or not overlay_path.exists():
        return base
    overlay = read_yaml(overlay_path)
    if overlay is None:
        return base
    if not isinstance(overlay, dict):
        raise ConfigError(f"Overlay config must be a mapping: {overlay_path}")
    return _deep_merge(base, overlay)


def _require_env(env: Mapping[str, str], name: str) -> str:
    value = env.get(name)
    if not value:
        raise ConfigError(f"Environment variable {name} is not set")
    return value


def build_pipeline_config(cfg: dict, env: Mapping[str, str]) -> PipelineConfig:
    store = cfg["store"]
    tiers = cfg["tiers"]
    sheets = cfg["sheets"]
    airtable = cfg["airtable"]
    return PipelineConfig(
        store=StoreConfig(
            uri=_require_env(env, store["uri_env"]),
            database=store["database"],
            feedback_collection=store["feedback_collection"],
            survey_collection=store["survey_collection"],
        ),
        tiers=TierFeedConfig(
            tier1_url=tiers["tier1_url"],
            tier2_url=tiers["tier2_url"],
            timeout_seconds=float(tiers.get("timeout_seconds", DEFAULT_FEED_TIMEOUT_SECONDS)),
        ),
        sheets=SheetsConfig(
            service_account_file=Path(sheets["service_account_file"]),
            tier2_spreadsheet_id=sheets["tier2_spreadsheet_id"],
            url_range=sheets["url_range"],
            duplicate_spreadsheet_id=sheets["duplicate_spreadsheet_id"],
            duplicate_range=sheets["duplicate_range"],
            max_attempts=int(sheets.get("max_attempts", DEFAULT_APPEND_ATTEMPTS)),
            initial_delay_ms=int(sheets.get("initial_delay_ms", DEFAULT_APPEND_INITIAL_DELAY_MS)),
        ),
        airtable=AirtableConfig(
            api_key=_require_env(env, airtable["api_key_env"]),
            table=airtable["table"],
            bases={name.lower(): base_id for name, base_id in airtable["bases"].items()},
        ),
        cleaning=CleaningConfig(
            home_page_url=cfg["cleaning"]["home_page_url"],
            max_comment_length=cfg["cleaning"]["max_comment_length"],
        ),
        sync=SyncConfig(
            max_records=cfg["sync"]["max_records"],
            initial_status=cfg["sync"]["initial_status"],
        ),
    )


def load_pipeline_config(
    config_dir: Path,
    *,
    allow_unknown: bool = False,
    overlay_config_dir: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> PipelineConfig:
    overlay_path = None
    if overlay_config_dir is not None:
        overlay_path = overlay_config_dir / CONFIG_FILENAME
    raw = _load_yaml_with_overlay(config_dir / CONFIG_FILENAME, overlay_path)
    validated = validate_pipeline_config(raw, allow_unknown=allow_unknown)
    return build_pipeline_config(validated, os.environ if env is None else env)
