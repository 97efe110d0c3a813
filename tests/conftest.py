from __future__ import annotations

import logging
from collections import defaultdict

import pytest

from feedback_pipeline.common.config_loader import CleaningConfig, SyncConfig
from feedback_pipeline.common.errors import RetryableAppendError
from feedback_pipeline.sources.tier_registry import Tier2Target, TierRegistry


class InMemoryStore:
    def __init__(self):
        self.collections: dict[str, dict[str, dict]] = defaultdict(dict)
        self.saved: list[tuple[str, str]] = []
        self.deleted: list[tuple[str, str]] = []
        self.save_many_calls = 0

    def insert(self, collection: str, doc: dict) -> None:
        self.collections[collection][str(doc["_id"])] = dict(doc)

    def get(self, collection: str, record_id: str) -> dict | None:
        return self.collections[collection].get(record_id)

    def find_pending(self, collection: str, flag: str) -> list[dict]:
        return [dict(doc) for doc in self.collections[collection].values() if doc.get(flag) in (None, "false")]

    def save(self, collection: str, record_id: str, fields: dict) -> None:
        self.collections[collection][record_id].update(fields)
        self.saved.append((collection, record_id))

    def save_many(self, collection: str, updates) -> int:
        self.save_many_calls += 1
        count = 0
        for record_id, fields in updates:
            self.save(collection, record_id, fields)
            count += 1
        return count

    def delete(self, collection: str, record_id: str) -> None:
        del self.collections[collection][record_id]
        self.deleted.append((collection, record_id))


class RecordingAppender:
    def __init__(self, fail: bool = False):
        self.rows: list[tuple[str, str, list]] = []
        self.fail = fail

    def append_row(self, target_id, cell_range, values):
        if self.fail:
            raise RetryableAppendError("sheets unavailable")
        self.rows.append((target_id, cell_range, list(values)))

    def append_single_column(self, target_id, cell_range, value):
        self.append_row(target_id, cell_range, [value])


class FakePartitions:
    known = ("main", "health", "cra", "travel", "ircc")

    def __init__(self):
        self.created: list[tuple[str, dict]] = []

    def create(self, partition, row):
        if partition.lower() not in self.known:
            return False
        self.created.append((partition.lower(), row))
        return True


class MarkingSanitizer:
    """Marks scrubbed text so tests can see which values went through cleaning."""

    def clean(self, text):
        return f"[clean]{text}"


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def appender():
    return RecordingAppender()


@pytest.fixture
def failing_appender():
    return RecordingAppender(fail=True)


@pytest.fixture
def partitions():
    return FakePartitions()


@pytest.fixture
def sanitizer():
    return MarkingSanitizer()


@pytest.fixture
def logger():
    return logging.getLogger("feedback_pipeline.tests")


@pytest.fixture
def cleaning_config():
    return CleaningConfig(home_page_url="https://www.canada.ca/", max_comment_length=301)


@pytest.fixture
def sync_config():
    return SyncConfig(max_records=150, initial_status="New")


@pytest.fixture
def registry(appender, logger):
    reg = TierRegistry(
        tier1_url="https://feeds.test/tier1.csv",
        tier2_url="https://feeds.test/tier2.csv",
        tier2_target=Tier2Target("tier2-sheet", "A1:A50000"),
        appender=appender,
        logger=logger,
    )
    return reg


def feedback_doc(record_id: str, **overrides) -> dict:
    doc = {
        "_id": record_id,
        "url": "https://www.canada.ca/en/services/benefits.html",
        "problemDetails": "The page is broken",
        "problemDate": "2026-10-17",
        "timeStamp": "2026-10-17T10:00:00",
        "language": "en",
        "institution": "ESDC",
        "section": "benefits",
        "theme": "Benefits",
        "title": "Benefits - Canada.ca",
    }
    doc.update(overrides)
    return doc


def survey_doc(record_id: str, **overrides) -> dict:
    doc = {
        "_id": record_id,
        "dateTime": "2026-10-17 10:00",
        "themeOther": None,
        "taskOther": None,
        "taskImproveComment": None,
        "taskWhyNotComment": None,
        "processed": "false",
    }
    doc.update(overrides)
    return doc


@pytest.fixture
def make_feedback():
    return feedback_doc


@pytest.fixture
def make_survey():
    return survey_doc
