"""Personal information scrubbing for free-text fields."""

from __future__ import annotations

import re
from typing import Protocol

MASK_CHAR = "#"

EMAIL_PATTERN = re.compile(r"[\w.+-]+@[\w-]+(?:\.[\w-]+)+")
PHONE_PATTERN = re.compile(r"(?<!\d)(?:\+?1[\s.-]?)?\(?\d{3}\)?[\s.-]?\d{3}[\s.-]?\d{4}(?!\d)")
SIN_PATTERN = re.compile(r"(?<!\d)\d{3}[\s-]\d{3}[\s-]\d{3}(?!\d)")
POSTAL_CODE_PATTERN = re.compile(r"\b[ABCEGHJ-NPRSTVXY]\d[ABCEGHJ-NPRSTV-Z][ -]?\d[ABCEGHJ-NPRSTV-Z]\d\b", re.IGNORECASE)
LONG_NUMBER_PATTERN = re.compile(r"(?<!\d)\d{8,}(?!\d)")

DEFAULT_PATTERNS = (
    EMAIL_PATTERN,
    PHONE_PATTERN,
    SIN_PATTERN,
    POSTAL_CODE_PATTERN,
    LONG_NUMBER_PATTERN,
)


class TextSanitizer(Protocol):
    def clean(self, text: str) -> str: ...


def _mask(match: re.Match[str]) -> str:
    return MASK_CHAR * len(match.group(0))


class RegexSanitizer:
    """Masks matches of each pattern, in order, with ``#`` characters."""

    def __init__(self, patterns: tuple[re.Pattern[str], ...] = DEFAULT_PATTERNS) -> None:
        self.patterns = patterns

    def clean(self, text: str) -> str:
        for pattern in self.patterns:
            text = pattern.sub(_mask, text)
        return text
