"""Tier 1 / Tier 2 URL registries loaded from the published CSV exports.

Tier 1 URLs carry a destination base ("partition") and are forwarded to
Airtable. Tier 2 URLs are tracked for inventory only. URLs seen for the first
time during a run are added to tier 2 both in memory and on the tier 2
spreadsheet.
"""

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass
from typing import Callable, Iterator, Protocol

from feedback_pipeline.common.errors import FeedLoadError
from feedback_pipeline.common.logging import log_event
from feedback_pipeline.sources.http import HttpClient, HttpRequestError, TimeoutConfig

URL_COLUMN = "URL"
MODEL_COLUMN = "MODEL"
BASE_COLUMN = "BASE"


class SingleColumnAppender(Protocol):
    def append_single_column(self, target_id: str, cell_range: str, value: str) -> None: ...


@dataclass(frozen=True)
class Tier1Entry:
    model: str | None
    base: str


@dataclass(frozen=True)
class Tier2Target:
    spreadsheet_id: str
    cell_range: str


class MalformedRowError(ValueError):
    pass


def _iter_feed_rows(text: str, tier_name: str) -> Iterator[dict[str, str | None]]:
    reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))
    fieldnames = [name.strip() for name in (reader.fieldnames or []) if name]
    if URL_COLUMN not in fieldnames:
        raise FeedLoadError(f"{tier_name} feed has no {URL_COLUMN} column")
    reader.fieldnames = [name.strip() if name else name for name in reader.fieldnames or []]
    yield from reader


def _row_url(row: dict[str, str | None]) -> str:
    url = (row.get(URL_COLUMN) or "").strip()
    if not url:
        raise MalformedRowError("row has no URL")
    return url.lower()


class TierRegistry:
    def __init__(
        self,
        *,
        tier1_url: str,
        tier2_url: str,
        tier2_target: Tier2Target,
        appender: SingleColumnAppender,
        http_client: HttpClient | None = None,
        timeout: TimeoutConfig | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.tier1_url = tier1_url
        self.tier2_url = tier2_url
        self.tier2_target = tier2_target
        self.appender = appender
        self.http_client = http_client
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)
        self.tier1: dict[str, Tier1Entry] = {}
        self.tier2: set[str] = set()

    def _fetch(self, url: str, tier_name: str) -> str:
        owns_client = self.http_client is None
        client = self.http_client or HttpClient()
        try:
            return client.get_text(url, timeout=self.timeout)
        except HttpRequestError as exc:
            raise FeedLoadError(f"{tier_name} feed unreachable: {exc}") from exc
        finally:
            if owns_client:
                client.close()

    def _import_rows(self, text: str, tier_name: str, handle_row: Callable[[dict], None]) -> int:
        imported = 0
        for line_no, row in enumerate(_iter_feed_rows(text, tier_name), start=2):
            try:
                handle_row(row)
            except MalformedRowError as exc:
                log_event(
                    self.logger,
                    f"skipping malformed {tier_name} row {line_no}: {exc}",
                    stage="sync",
                    event="FEED_ROW_SKIPPED",
                    status="warning",
                    error_code="MALFORMED_FEED_ROW",
                )
                continue
            imported += 1
        return imported

    def _add_tier1_row(self, row: dict[str, str | None]) -> None:
        url = _row_url(row)
        # A blank or missing BASE keeps the URL in tier 1; routing treats it as an unknown partition.
        base = (row.get(BASE_COLUMN) or "").strip()
        self.tier1[url] = Tier1Entry(model=row.get(MODEL_COLUMN), base=base.lower())

    def _add_tier2_row(self, row: dict[str, str | None]) -> None:
        self.tier2.add(_row_url(row))

    def load(self) -> None:
        tier1_text = self._fetch(self.tier1_url, "Tier 1")
        tier2_text = self._fetch(self.tier2_url, "Tier 2")

        self.tier1.clear()
        self.tier2.clear()
        tier1_rows = self._import_rows(tier1_text, "Tier 1", self._add_tier1_row)
        tier2_rows = self._import_rows(tier2_text, "Tier 2", self._add_tier2_row)
        log_event(
            self.logger,
            f"imported {len(self.tier1)} tier 1 and {len(self.tier2)} tier 2 URLs",
            stage="sync",
            event="TIERS_LOADED",
            status="ok",
            rows_in=tier1_rows + tier2_rows,
            rows_out=len(self.tier1) + len(self.tier2),
        )

    def is_tier1(self, url: str) -> bool:
        return url in self.tier1

    def is_tier2(self, url: str) -> bool:
        return url in self.tier2

    def tier1_base(self, url: str) -> str | None:
        entry = self.tier1.get(url)
        return entry.base if entry is not None else None

    def register_tier2(self, url: str) -> None:
        # Cached before the append and kept even when the append fails.
        self.tier2.add(url)
        self.appender.append_single_column(self.tier2_target.spreadsheet_id, self.tier2_target.cell_range, url)
        log_event(
            self.logger,
            "URL not in spreadsheet, added to tier 2",
            stage="sync",
            event="TIER2_REGISTERED",
            status="ok",
            url=url,
        )
