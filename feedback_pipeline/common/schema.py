"""Minimal strict schemas for YAML config validation."""

from __future__ import annotations

from feedback_pipeline.common.constants import PARTITION_NAMES
from feedback_pipeline.common.errors import ConfigError


def _assert_mapping(obj: object, ctx: str) -> dict:
    if not isinstance(obj, dict):
        raise ConfigError(f"{ctx} must be a mapping")
    return obj


def _assert_required_keys(obj: dict, required: set[str], ctx: str) -> None:
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


def _assert_positive_int(value: object, ctx: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigError(f"{ctx} must be a positive integer")


def _section(cfg: dict, name: str, required: set[str], optional: set[str], allow_unknown: bool) -> dict:
    section = _assert_mapping(cfg[name], name)
    _assert_required_keys(section, required, name)
    _assert_no_unknown_keys(section, required | optional, name, allow_unknown)
    return section


def validate_pipeline_config(cfg: object, *, allow_unknown: bool = False) -> dict:
    cfg = _assert_mapping(cfg, "pipeline config")
    top_required = {"store", "tiers", "sheets", "airtable", "cleaning", "sync"}
    _assert_required_keys(cfg, top_required, "pipeline config")
    _assert_no_unknown_keys(cfg, top_required, "pipeline config", allow_unknown)

    _section(
        cfg,
        "store",
        {"uri_env", "database", "feedback_collection", "survey_collection"},
        set(),
        allow_unknown,
    )
    _section(cfg, "tiers", {"tier1_url", "tier2_url"}, {"timeout_seconds"}, allow_unknown)
    sheets = _section(
        cfg,
        "sheets",
        {
            "service_account_file",
            "tier2_spreadsheet_id",
            "url_range",
            "duplicate_spreadsheet_id",
            "duplicate_range",
        },
        {"max_attempts", "initial_delay_ms"},
        allow_unknown,
    )
    airtable = _section(cfg, "airtable", {"api_key_env", "table", "bases"}, set(), allow_unknown)
    cleaning = _section(cfg, "cleaning", {"home_page_url", "max_comment_length"}, set(), allow_unknown)
    sync = _section(cfg, "sync", {"max_records", "initial_status"}, set(), allow_unknown)

    bases = _assert_mapping(airtable["bases"], "airtable.bases")
    unknown_partitions = {name.lower() for name in bases} - set(PARTITION_NAMES)
    if unknown_partitions:
        raise ConfigError(f"Unknown airtable partitions: {', '.join(sorted(unknown_partitions))}")

    _assert_positive_int(cleaning["max_comment_length"], "cleaning.max_comment_length")
    _assert_positive_int(sync["max_records"], "sync.max_records")
    if "max_attempts" in sheets:
        _assert_positive_int(sheets["max_attempts"], "sheets.max_attempts")
    if "initial_delay_ms" in sheets:
        _assert_positive_int(sheets["initial_delay_ms"], "sheets.initial_delay_ms")

    return cfg
