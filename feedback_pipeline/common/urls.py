"""URL helpers for tier matching and UTM capture."""

from __future__ import annotations

from urllib.parse import parse_qsl, urlsplit, urlunsplit

UTM_PREFIX = "utm_"


def extract_utm_values(url: str | None) -> str:
    """Return ``utm_*`` query parameters as ``name=value`` pairs joined by ``&``.

    Relative or unparseable URLs yield an empty string.
    """
    if not url:
        return ""
    try:
        parsed = urlsplit(url)
    except ValueError:
        return ""
    if not parsed.scheme or not parsed.netloc:
        return ""
    pairs = parse_qsl(parsed.query, keep_blank_values=True)
    return "&".join(f"{name}={value}" for name, value in pairs if name.startswith(UTM_PREFIX))


def remove_query_and_fragment(url: str) -> str:
    try:
        parsed = urlsplit(url)
    except ValueError:
        return url
    return urlunsplit((parsed.scheme, parsed.netloc, parsed.path, "", ""))


def normalize_url(url: str) -> str:
    return remove_query_and_fragment(url.strip().lower())
