"""Data models used across the pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ProgressFlag(Enum):
    """Decoded form of the legacy ``"true"`` / ``"false"`` / absent flags.

    Absent and ``"false"`` both decode to PENDING.
    """

    PENDING = "false"
    DONE = "true"

    @classmethod
    def from_raw(cls, value: object) -> "ProgressFlag":
        if isinstance(value, str) and value.strip().lower() == "true":
            return cls.DONE
        return cls.PENDING

    @property
    def done(self) -> bool:
        return self is ProgressFlag.DONE


# Stored values that mean "still needs processing".
PENDING_RAW_VALUES = (None, ProgressFlag.PENDING.value)


@dataclass
class FeedbackRecord:
    id: str
    url: str | None
    details: str | None
    problem_date: str | None = None
    timestamp: str | None = None
    language: str | None = None
    institution: str | None = None
    section: str | None = None
    theme: str | None = None
    title: str | None = None
    personal_info_processed: ProgressFlag = ProgressFlag.PENDING
    airtable_sync: ProgressFlag = ProgressFlag.PENDING
    processed: ProgressFlag = ProgressFlag.PENDING
    processed_date: str | None = None

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "FeedbackRecord":
        return cls(
            id=str(doc["_id"]),
            url=doc.get("url"),
            details=doc.get("problemDetails"),
            problem_date=doc.get("problemDate"),
            timestamp=doc.get("timeStamp"),
            language=doc.get("language"),
            institution=doc.get("institution"),
            section=doc.get("section"),
            theme=doc.get("theme"),
            title=doc.get("title"),
            personal_info_processed=ProgressFlag.from_raw(doc.get("personalInfoProcessed")),
            airtable_sync=ProgressFlag.from_raw(doc.get("airTableSync")),
            processed=ProgressFlag.from_raw(doc.get("processed")),
            processed_date=doc.get("processedDate"),
        )

    def to_update(self) -> dict[str, Any]:
        """Pipeline-owned fields, for a partial ``$set`` update."""
        update: dict[str, Any] = {
            "url": self.url,
            "problemDetails": self.details,
            "personalInfoProcessed": self.personal_info_processed.value,
            "airTableSync": self.airtable_sync.value,
            "processed": self.processed.value,
        }
        if self.processed_date is not None:
            update["processedDate"] = self.processed_date
        return update


SURVEY_TEXT_FIELDS = ("themeOther", "taskOther", "taskImproveComment", "taskWhyNotComment")


@dataclass
class SurveyRecord:
    id: str
    date_time: str | None = None
    theme_other: str | None = None
    task_other: str | None = None
    task_improve_comment: str | None = None
    task_why_not_comment: str | None = None
    personal_info_processed: ProgressFlag = ProgressFlag.PENDING
    processed: ProgressFlag = ProgressFlag.PENDING
    processed_date: str | None = None

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "SurveyRecord":
        return cls(
            id=str(doc["_id"]),
            date_time=doc.get("dateTime"),
            theme_other=doc.get("themeOther"),
            task_other=doc.get("taskOther"),
            task_improve_comment=doc.get("taskImproveComment"),
            task_why_not_comment=doc.get("taskWhyNotComment"),
            personal_info_processed=ProgressFlag.from_raw(doc.get("personalInfoProcessed")),
            processed=ProgressFlag.from_raw(doc.get("processed")),
            processed_date=doc.get("processedDate"),
        )

    def text_fields(self) -> dict[str, str | None]:
        return {
            "themeOther": self.theme_other,
            "taskOther": self.task_other,
            "taskImproveComment": self.task_improve_comment,
            "taskWhyNotComment": self.task_why_not_comment,
        }

    def set_text_field(self, name: str, value: str | None) -> None:
        attr = {
            "themeOther": "theme_other",
            "taskOther": "task_other",
            "taskImproveComment": "task_improve_comment",
            "taskWhyNotComment": "task_why_not_comment",
        }[name]
        setattr(self, attr, value)

    def to_update(self) -> dict[str, Any]:
        update: dict[str, Any] = dict(self.text_fields())
        update["personalInfoProcessed"] = self.personal_info_processed.value
        update["processed"] = self.processed.value
        if self.processed_date is not None:
            update["processedDate"] = self.processed_date
        return update
