"""Content checks used by the cleaning stage."""

from __future__ import annotations

import re
from typing import Iterable

from bs4 import BeautifulSoup

_WHITESPACE_RUN = re.compile(r"\s+")


def _normalize_space(text: str) -> str:
    return _WHITESPACE_RUN.sub(" ", text).strip()


def contains_html(text: str | None) -> bool:
    """True when parsing ``text`` as HTML changes its visible length.

    Tags and entities both shrink the parsed text. Whitespace is collapsed
    first so that runs of spaces between words do not register as markup.
    """
    if text is None:
        return False
    collapsed = _normalize_space(text)
    parsed = _normalize_space(BeautifulSoup(collapsed, "html.parser").get_text())
    return len(parsed) != len(collapsed)


def any_contains_html(values: Iterable[str | None]) -> bool:
    return any(contains_html(value) for value in values)


def normalize_comment(text: str) -> str:
    return text.strip().lower()


def is_duplicate_comment(normalized_comment: str, seen_comments: set[str]) -> bool:
    return normalized_comment in seen_comments


def is_whitespace_garbage(value: str | None) -> bool:
    return value is not None and value != "" and value.strip() == ""
