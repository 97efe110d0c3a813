"""Sync stage: tier routing of cleaned feedback into Airtable.

Each cleaned, unsynced record has its UTM parameters captured and its URL
normalized, then goes to exactly one of three routes:

* unknown URL: registered as a new tier 2 URL, no Airtable row;
* tier 2 URL: inventory only, no Airtable row;
* tier 1 URL: a row is created in the Airtable base named by the tier 1 feed.

All three routes mark the record synced. Routed records are written back in
one batch at the end of the stage, and at most ``max_records`` are routed per
run; records that fail do not count toward that limit.

Unlike the other stages, sync also reads the cleaning flag: records whose
``personalInfoProcessed`` is still pending are left for a later run so that
unscrubbed text never reaches Airtable or the tier 2 sheet.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any

from feedback_pipeline.common.cancellation import CancellationToken
from feedback_pipeline.common.config_loader import SyncConfig
from feedback_pipeline.common.logging import log_event, log_failure
from feedback_pipeline.common.models import FeedbackRecord, ProgressFlag
from feedback_pipeline.common.urls import extract_utm_values, normalize_url
from feedback_pipeline.pipeline.reports import stage_result
from feedback_pipeline.sources.airtable import PartitionWriter
from feedback_pipeline.sources.store import DocumentStore
from feedback_pipeline.sources.tier_registry import TierRegistry

SYNC_FLAG = "airTableSync"


def build_airtable_row(record: FeedbackRecord, utm_values: str, initial_status: str) -> dict[str, Any]:
    row = {
        "Unique ID": record.id,
        "Date": record.problem_date,
        "Timestamp": record.timestamp,
        "URL": record.url,
        "Lang": (record.language or "").upper(),
        "Comment": record.details,
        "Main Section": record.section,
        "Institution": record.institution,
        "Theme": record.theme,
        "Page Title": record.title,
        "UTM": utm_values,
        "Status": initial_status,
        "Refining details": "",
    }
    return {key: value for key, value in row.items() if value is not None}


def route_record(
    record: FeedbackRecord,
    *,
    registry: TierRegistry,
    partitions: PartitionWriter,
    initial_status: str,
    logger: logging.Logger,
) -> str:
    if not record.url:
        raise ValueError(f"record {record.id} has no URL")
    # UTM values must be read before normalization drops the query string.
    utm_values = extract_utm_values(record.url)
    record.url = normalize_url(record.url)
    url = record.url

    if not registry.is_tier1(url) and not registry.is_tier2(url):
        registry.register_tier2(url)
        outcome = "tier2_registered"
    elif registry.is_tier2(url):
        log_event(logger, "tier 2 URL already exists", stage="sync", event="TIER2_KNOWN", status="ok", record_id=record.id)
        outcome = "tier2_known"
    else:
        base = registry.tier1_base(url) or ""
        row = build_airtable_row(record, utm_values, initial_status)
        if partitions.create(base, row):
            log_event(
                logger,
                f"synced to airtable base {base.upper()}",
                stage="sync",
                event="TIER1_CREATED",
                status="ok",
                record_id=record.id,
                url=url,
            )
            outcome = "tier1_created"
        else:
            # TODO: confirm with the tier 1 feed owners whether unknown bases should stay unsynced.
            logger.warning(
                "tier 1 base %r matches no airtable partition; no row created",
                base,
                extra={"stage": "sync", "event": "UNKNOWN_PARTITION", "status": "warning", "record_id": record.id},
            )
            outcome = "unknown_partition"

    record.airtable_sync = ProgressFlag.DONE
    return outcome


def _eligible(doc: dict) -> bool:
    return ProgressFlag.from_raw(doc.get("personalInfoProcessed")).done


def run_sync(
    store: DocumentStore,
    *,
    collection: str,
    registry: TierRegistry,
    partitions: PartitionWriter,
    sync: SyncConfig,
    logger: logging.Logger,
    cancel_token: CancellationToken | None = None,
) -> dict:
    pending = store.find_pending(collection, SYNC_FLAG)
    eligible = [doc for doc in pending if _eligible(doc)]
    log_event(
        logger,
        f"found {len(eligible)} records to sync, routing at most {sync.max_records}",
        stage="sync",
        event="STAGE_INPUT",
        rows_in=len(eligible),
    )

    counts: Counter = Counter()
    counts["awaiting_cleaning"] = len(pending) - len(eligible)
    routed: list[FeedbackRecord] = []
    attempted = 0
    for doc in eligible:
        # The cap counts routed records; failures do not use up a slot.
        if len(routed) >= sync.max_records:
            break
        if cancel_token is not None and cancel_token.is_cancelled():
            log_event(logger, "cancellation requested, stopping sync", stage="sync", event="CANCELLED", status="warning")
            break
        attempted += 1
        try:
            record = FeedbackRecord.from_document(doc)
            outcome = route_record(
                record,
                registry=registry,
                partitions=partitions,
                initial_status=sync.initial_status,
                logger=logger,
            )
        except Exception:
            counts["failed"] += 1
            log_failure(
                logger,
                "could not sync record",
                stage="sync",
                event="RECORD_FAILED",
                record_id=str(doc.get("_id")),
                url=doc.get("url"),
                error_code="RECORD_ERROR",
            )
            continue
        counts[outcome] += 1
        routed.append(record)

    if routed:
        store.save_many(collection, [(record.id, record.to_update()) for record in routed])
        log_event(logger, f"batch saved {len(routed)} records", stage="sync", event="BATCH_SAVED", status="ok", rows_out=len(routed))
    counts["synced"] = len(routed)
    counts["deferred"] = len(eligible) - attempted

    return stage_result("sync", attempted, counts)
