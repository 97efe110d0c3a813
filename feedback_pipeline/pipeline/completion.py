"""Completion stage: finalize records that are both cleaned and synced."""

from __future__ import annotations

import logging
from collections import Counter

from feedback_pipeline.common.logging import log_event, log_failure
from feedback_pipeline.common.models import FeedbackRecord, ProgressFlag
from feedback_pipeline.pipeline.reports import stage_result
from feedback_pipeline.sources.store import DocumentStore

PROCESSED_FLAG = "processed"


def is_ready_for_completion(record: FeedbackRecord) -> bool:
    return record.personal_info_processed.done and record.airtable_sync.done and not record.processed.done


def run_complete(store: DocumentStore, *, collection: str, run_date: str, logger: logging.Logger) -> dict:
    docs = store.find_pending(collection, PROCESSED_FLAG)
    counts: Counter = Counter()
    for doc in docs:
        try:
            record = FeedbackRecord.from_document(doc)
            if not is_ready_for_completion(record):
                counts["not_ready"] += 1
                continue
            record.processed_date = run_date
            record.processed = ProgressFlag.DONE
            store.save(collection, record.id, record.to_update())
        except Exception:
            counts["failed"] += 1
            log_failure(
                logger,
                "could not mark completed",
                stage="complete",
                event="RECORD_FAILED",
                record_id=str(doc.get("_id")),
                error_code="RECORD_ERROR",
            )
            continue
        counts["completed"] += 1

    log_event(
        logger,
        "finished processing",
        stage="complete",
        event="STAGE_OUTPUT",
        status="ok",
        rows_in=len(docs),
        rows_out=counts["completed"],
    )
    return stage_result("complete", len(docs), counts)
