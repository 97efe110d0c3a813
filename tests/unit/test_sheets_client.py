from __future__ import annotations

import threading
import time

import pytest
import requests

from feedback_pipeline.common.cancellation import CancellationToken
from feedback_pipeline.common.errors import AppendError, RetryableAppendError, RetryInterruptedError
from feedback_pipeline.sources.sheets import SheetsAppendClient


class FakeResponse:
    def __init__(self, status_code: int):
        self.status_code = status_code


class ScriptedSession:
    """Returns (or raises) the scripted outcomes in order, one per post."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.posts = []
        self.closed = False

    def post(self, url, **kwargs):
        self.posts.append((url, kwargs))
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return FakeResponse(outcome)

    def close(self):
        self.closed = True


def _client(session, waits=None, **kwargs):
    recorded = waits if waits is not None else []

    def fake_wait(seconds):
        recorded.append(seconds)
        return False

    return SheetsAppendClient(session_factory=lambda: session, wait=fake_wait, **kwargs)


def test_append_row_posts_single_row_to_range():
    session = ScriptedSession([200])
    client = _client(session)

    client.append_row("dup-sheet", "A1:D50000", ["2026-10-17", "10:00", "https://canada.ca/page", "broken"])

    url, kwargs = session.posts[0]
    assert url.endswith("/dup-sheet/values/A1%3AD50000:append")
    assert kwargs["json"] == {"values": [["2026-10-17", "10:00", "https://canada.ca/page", "broken"]]}
    assert kwargs["params"]["valueInputOption"] == "USER_ENTERED"
    assert kwargs["params"]["insertDataOption"] == "INSERT_ROWS"


def test_append_single_column_wraps_value():
    session = ScriptedSession([200])
    client = _client(session)

    client.append_single_column("tier2-sheet", "A1:A50000", "https://canada.ca/page")

    assert session.posts[0][1]["json"] == {"values": [["https://canada.ca/page"]]}


def test_fails_twice_then_succeeds_with_exponential_waits():
    waits: list[float] = []
    session = ScriptedSession([503, requests.ConnectionError("reset"), 200])
    client = _client(session, waits)

    client.append_single_column("tier2-sheet", "A1:A50000", "https://canada.ca/page")

    assert len(session.posts) == 3
    assert waits == [pytest.approx(1.0), pytest.approx(2.0)]


def test_three_failures_surface_last_error_without_fourth_attempt():
    waits: list[float] = []
    session = ScriptedSession([503, 503, requests.Timeout("slow"), 200])
    client = _client(session, waits)

    with pytest.raises(RetryableAppendError, match="Transport failure"):
        client.append_single_column("tier2-sheet", "A1:A50000", "https://canada.ca/page")

    assert len(session.posts) == 3
    assert waits == [pytest.approx(1.0), pytest.approx(2.0)]


def test_non_retryable_status_raises_immediately():
    waits: list[float] = []
    session = ScriptedSession([403, 200])
    client = _client(session, waits)

    with pytest.raises(AppendError) as excinfo:
        client.append_single_column("tier2-sheet", "A1:A50000", "https://canada.ca/page")

    assert not isinstance(excinfo.value, RetryableAppendError)
    assert len(session.posts) == 1
    assert waits == []


def test_cancellation_during_backoff_raises_interrupted():
    token = CancellationToken()
    token.cancel()
    session = ScriptedSession([503, 200])
    client = SheetsAppendClient(session_factory=lambda: session, cancel_token=token)

    with pytest.raises(RetryInterruptedError):
        client.append_single_column("tier2-sheet", "A1:A50000", "https://canada.ca/page")

    assert len(session.posts) == 1


def test_backoff_uses_real_wait_durations():
    session = ScriptedSession([503, 200])
    client = SheetsAppendClient(session_factory=lambda: session, initial_delay_ms=50)

    started = time.monotonic()
    client.append_single_column("tier2-sheet", "A1:A50000", "https://canada.ca/page")
    elapsed = time.monotonic() - started

    assert 0.04 <= elapsed < 1.0


def test_session_is_created_once_and_reused():
    created = []

    def factory():
        created.append(1)
        return ScriptedSession([200, 200])

    client = SheetsAppendClient(session_factory=factory)
    client.append_single_column("s", "A1:A2", "a")
    client.append_single_column("s", "A1:A2", "b")

    assert len(created) == 1


def test_clear_cache_forces_new_session():
    sessions = [ScriptedSession([200]), ScriptedSession([200])]
    client = SheetsAppendClient(session_factory=lambda: sessions.pop(0))

    client.append_single_column("s", "A1:A2", "a")
    client.clear_cache()
    client.append_single_column("s", "A1:A2", "b")

    assert sessions == []


def test_concurrent_first_use_creates_single_session():
    created = []
    barrier = threading.Barrier(8)

    def slow_factory():
        created.append(1)
        time.sleep(0.05)
        return ScriptedSession([])

    client = SheetsAppendClient(session_factory=slow_factory)
    seen = []

    def worker():
        barrier.wait()
        seen.append(client._session())

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(created) == 1
    assert all(session is seen[0] for session in seen)


def test_close_releases_cached_session():
    session = ScriptedSession([200])
    client = SheetsAppendClient(session_factory=lambda: session)
    client.append_single_column("s", "A1:A2", "a")

    client.close()

    assert session.closed
