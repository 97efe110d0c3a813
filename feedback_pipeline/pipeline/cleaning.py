"""Cleaning stage: junk removal, intra-run dedup and PII scrubbing.

Feedback records pending ``personalInfoProcessed`` are checked in order:
junk records are deleted, records repeating a comment already seen in this
run are logged to the duplicate tracker sheet and deleted, and the rest are
scrubbed and marked as PII processed.

Survey records pending ``processed`` are deleted when any free-text answer
contains markup; otherwise whitespace-only answers are blanked, every answer
is scrubbed and the record is finalized in the same pass.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Protocol, Sequence

from feedback_pipeline.common.config_loader import CleaningConfig
from feedback_pipeline.common.logging import log_event, log_failure
from feedback_pipeline.common.models import FeedbackRecord, ProgressFlag, SurveyRecord
from feedback_pipeline.common.sanitizer import TextSanitizer
from feedback_pipeline.common.validation import (
    any_contains_html,
    contains_html,
    is_duplicate_comment,
    is_whitespace_garbage,
    normalize_comment,
)
from feedback_pipeline.pipeline.reports import stage_result
from feedback_pipeline.sources.store import DocumentStore

PII_FLAG = "personalInfoProcessed"
PROCESSED_FLAG = "processed"


class RowAppender(Protocol):
    def append_row(self, target_id: str, cell_range: str, values: Sequence[str]) -> None: ...


@dataclass(frozen=True)
class DuplicateTracker:
    spreadsheet_id: str
    cell_range: str


def is_junk_feedback(record: FeedbackRecord, cleaning: CleaningConfig) -> bool:
    details = record.details
    if details is None or not details.strip():
        return True
    return (
        contains_html(details)
        or record.url == cleaning.home_page_url
        or len(details) > cleaning.max_comment_length
    )


def _log_duplicate(
    record: FeedbackRecord,
    appender: RowAppender,
    tracker: DuplicateTracker,
    run_date: str,
    logger: logging.Logger,
) -> None:
    row = [record.problem_date or run_date, record.timestamp or "", record.url or "", record.details or ""]
    try:
        appender.append_row(tracker.spreadsheet_id, tracker.cell_range, row)
    except Exception:
        log_failure(
            logger,
            "error writing duplicate to spreadsheet",
            stage="clean",
            event="DUPLICATE_LOG_FAILED",
            record_id=record.id,
            url=record.url,
            error_code="APPEND_ERROR",
        )


def _clean_feedback_record(
    record: FeedbackRecord,
    seen_comments: set[str],
    *,
    store: DocumentStore,
    collection: str,
    sanitizer: TextSanitizer,
    appender: RowAppender,
    tracker: DuplicateTracker,
    cleaning: CleaningConfig,
    run_date: str,
    logger: logging.Logger,
) -> str:
    if is_junk_feedback(record, cleaning):
        log_event(logger, "deleting junk comment", stage="clean", event="JUNK_DELETED", status="ok", record_id=record.id)
        store.delete(collection, record.id)
        return "deleted_junk"

    normalized = normalize_comment(record.details or "")
    if is_duplicate_comment(normalized, seen_comments):
        log_event(
            logger,
            "deleting duplicate comment",
            stage="clean",
            event="DUPLICATE_DELETED",
            status="ok",
            record_id=record.id,
            url=record.url,
        )
        _log_duplicate(record, appender, tracker, run_date, logger)
        store.delete(collection, record.id)
        return "deleted_duplicate"
    seen_comments.add(normalized)

    record.details = sanitizer.clean(record.details or "")
    record.personal_info_processed = ProgressFlag.DONE
    store.save(collection, record.id, record.to_update())
    return "cleaned"


def run_clean_feedback(
    store: DocumentStore,
    *,
    collection: str,
    sanitizer: TextSanitizer,
    appender: RowAppender,
    tracker: DuplicateTracker,
    cleaning: CleaningConfig,
    run_date: str,
    logger: logging.Logger,
) -> dict:
    seen_comments: set[str] = set()
    docs = store.find_pending(collection, PII_FLAG)
    log_event(logger, f"{len(docs)} feedback records to clean", stage="clean", event="STAGE_INPUT", rows_in=len(docs))

    counts: Counter = Counter()
    for doc in docs:
        try:
            record = FeedbackRecord.from_document(doc)
            outcome = _clean_feedback_record(
                record,
                seen_comments,
                store=store,
                collection=collection,
                sanitizer=sanitizer,
                appender=appender,
                tracker=tracker,
                cleaning=cleaning,
                run_date=run_date,
                logger=logger,
            )
        except Exception:
            counts["failed"] += 1
            log_failure(
                logger,
                "could not process feedback record",
                stage="clean",
                event="RECORD_FAILED",
                record_id=str(doc.get("_id")),
                url=doc.get("url"),
                error_code="RECORD_ERROR",
            )
            continue
        counts[outcome] += 1

    return stage_result("clean-feedback", len(docs), counts)


def _clean_survey_record(
    record: SurveyRecord,
    *,
    store: DocumentStore,
    collection: str,
    sanitizer: TextSanitizer,
    run_date: str,
    logger: logging.Logger,
) -> str:
    if any_contains_html(record.text_fields().values()):
        logger.warning(
            "deleting survey response with markup",
            extra={"stage": "clean", "event": "JUNK_DELETED", "status": "ok", "record_id": record.id},
        )
        store.delete(collection, record.id)
        return "deleted_junk"

    for name, value in record.text_fields().items():
        if is_whitespace_garbage(value):
            logger.debug("blanking whitespace-only %s", name, extra={"record_id": record.id})
            record.set_text_field(name, "")

    for name, value in record.text_fields().items():
        if value is not None:
            record.set_text_field(name, sanitizer.clean(value))

    record.personal_info_processed = ProgressFlag.DONE
    record.processed = ProgressFlag.DONE
    record.processed_date = run_date
    store.save(collection, record.id, record.to_update())
    return "cleaned"


def run_clean_surveys(
    store: DocumentStore,
    *,
    collection: str,
    sanitizer: TextSanitizer,
    run_date: str,
    logger: logging.Logger,
) -> dict:
    docs = store.find_pending(collection, PROCESSED_FLAG)
    log_event(logger, f"{len(docs)} survey records to clean", stage="clean", event="STAGE_INPUT", rows_in=len(docs))

    counts: Counter = Counter()
    for doc in docs:
        try:
            record = SurveyRecord.from_document(doc)
            outcome = _clean_survey_record(
                record,
                store=store,
                collection=collection,
                sanitizer=sanitizer,
                run_date=run_date,
                logger=logger,
            )
        except Exception:
            counts["failed"] += 1
            log_failure(
                logger,
                "could not process survey record",
                stage="clean",
                event="RECORD_FAILED",
                record_id=str(doc.get("_id")),
                error_code="RECORD_ERROR",
            )
            continue
        counts[outcome] += 1

    return stage_result("clean-surveys", len(docs), counts)
