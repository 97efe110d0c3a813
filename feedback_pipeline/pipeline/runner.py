"""Stage wiring: builds the collaborators for a run and executes stages."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from feedback_pipeline.common.cancellation import CancellationToken
from feedback_pipeline.common.config_loader import PipelineConfig
from feedback_pipeline.common.sanitizer import RegexSanitizer, TextSanitizer
from feedback_pipeline.pipeline.cleaning import DuplicateTracker, run_clean_feedback, run_clean_surveys
from feedback_pipeline.pipeline.completion import run_complete
from feedback_pipeline.pipeline.sync import run_sync
from feedback_pipeline.sources.airtable import AirtablePartitions, PartitionWriter
from feedback_pipeline.sources.http import TimeoutConfig
from feedback_pipeline.sources.sheets import SheetsAppendClient, service_account_session_factory
from feedback_pipeline.sources.store import DocumentStore, MongoDocumentStore
from feedback_pipeline.sources.tier_registry import Tier2Target, TierRegistry


@dataclass
class PipelineContext:
    config: PipelineConfig
    store: DocumentStore
    sanitizer: TextSanitizer
    sheets: SheetsAppendClient
    registry: TierRegistry
    partitions: PartitionWriter
    run_date: str
    logger: logging.Logger
    cancel_token: CancellationToken

    def close(self) -> None:
        self.sheets.close()
        if hasattr(self.store, "close"):
            self.store.close()


def build_context(
    config: PipelineConfig,
    *,
    run_date: str,
    logger: logging.Logger,
    cancel_token: CancellationToken,
) -> PipelineContext:
    sheets = SheetsAppendClient(
        session_factory=service_account_session_factory(config.sheets.service_account_file),
        max_attempts=config.sheets.max_attempts,
        initial_delay_ms=config.sheets.initial_delay_ms,
        cancel_token=cancel_token,
        logger=logger,
    )
    registry = TierRegistry(
        tier1_url=config.tiers.tier1_url,
        tier2_url=config.tiers.tier2_url,
        tier2_target=Tier2Target(config.sheets.tier2_spreadsheet_id, config.sheets.url_range),
        appender=sheets,
        timeout=TimeoutConfig(connect=20.0, read=config.tiers.timeout_seconds),
        logger=logger,
    )
    return PipelineContext(
        config=config,
        store=MongoDocumentStore(config.store.uri, config.store.database),
        sanitizer=RegexSanitizer(),
        sheets=sheets,
        registry=registry,
        partitions=AirtablePartitions(config.airtable.api_key, config.airtable.table, config.airtable.bases),
        run_date=run_date,
        logger=logger,
        cancel_token=cancel_token,
    )


def execute_stage(stage: str, ctx: PipelineContext) -> list[dict]:
    config = ctx.config
    if stage == "clean":
        feedback = run_clean_feedback(
            ctx.store,
            collection=config.store.feedback_collection,
            sanitizer=ctx.sanitizer,
            appender=ctx.sheets,
            tracker=DuplicateTracker(config.sheets.duplicate_spreadsheet_id, config.sheets.duplicate_range),
            cleaning=config.cleaning,
            run_date=ctx.run_date,
            logger=ctx.logger,
        )
        surveys = run_clean_surveys(
            ctx.store,
            collection=config.store.survey_collection,
            sanitizer=ctx.sanitizer,
            run_date=ctx.run_date,
            logger=ctx.logger,
        )
        return [feedback, surveys]
    if stage == "sync":
        ctx.registry.load()
        return [
            run_sync(
                ctx.store,
                collection=config.store.feedback_collection,
                registry=ctx.registry,
                partitions=ctx.partitions,
                sync=config.sync,
                logger=ctx.logger,
                cancel_token=ctx.cancel_token,
            )
        ]
    if stage == "complete":
        return [
            run_complete(
                ctx.store,
                collection=config.store.feedback_collection,
                run_date=ctx.run_date,
                logger=ctx.logger,
            )
        ]
    raise ValueError(f"Unknown stage: {stage}")
