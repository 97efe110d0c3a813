"""Google Sheets append client with bounded exponential backoff.

Every append is attempted up to ``max_attempts`` times. After a recoverable
failure the client waits ``initial_delay * 2 ** (attempt - 1)`` before trying
again (1s, 2s with the defaults) and re-raises the last failure once the
attempts run out. Waits happen on a :class:`CancellationToken`, so a
cancelled run stops retrying with :class:`RetryInterruptedError`.

The authorized HTTP session is created on first use and shared by every
caller of the client until :meth:`SheetsAppendClient.clear_cache`.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Callable, Sequence
from urllib.parse import quote

import requests
from google.auth.transport.requests import AuthorizedSession
from google.oauth2 import service_account
from tenacity import RetryCallState, Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from feedback_pipeline.common.cancellation import CancellationToken
from feedback_pipeline.common.constants import SHEETS_API_ROOT, SHEETS_SCOPE
from feedback_pipeline.common.errors import AppendError, ConfigError, RetryableAppendError, RetryInterruptedError
from feedback_pipeline.common.logging import log_event
from feedback_pipeline.sources.http import RETRYABLE_STATUS_CODES, TimeoutConfig

SessionFactory = Callable[[], requests.Session]


def service_account_session_factory(key_file: Path) -> SessionFactory:
    def _factory() -> requests.Session:
        if not key_file.exists():
            raise ConfigError(f"Service account key file not found: {key_file}")
        credentials = service_account.Credentials.from_service_account_file(
            str(key_file),
            scopes=[SHEETS_SCOPE],
        )
        return AuthorizedSession(credentials)

    return _factory


class SheetsAppendClient:
    def __init__(
        self,
        *,
        session_factory: SessionFactory,
        max_attempts: int = 3,
        initial_delay_ms: int = 1000,
        cancel_token: CancellationToken | None = None,
        wait: Callable[[float], bool] | None = None,
        timeout: TimeoutConfig | None = None,
        api_root: str = SHEETS_API_ROOT,
        logger: logging.Logger | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.max_attempts = max_attempts
        self.initial_delay_ms = initial_delay_ms
        self.cancel_token = cancel_token or CancellationToken()
        self._wait = wait or self.cancel_token.wait
        self.timeout = timeout or TimeoutConfig(connect=20.0, read=60.0)
        self.api_root = api_root.rstrip("/")
        self.logger = logger or logging.getLogger(__name__)
        self._cached_session: requests.Session | None = None
        self._lock = threading.Lock()

    def _session(self) -> requests.Session:
        session = self._cached_session
        if session is None:
            with self._lock:
                session = self._cached_session
                if session is None:
                    self.logger.debug("initializing sheets session")
                    session = self.session_factory()
                    self._cached_session = session
        return session

    def clear_cache(self) -> None:
        with self._lock:
            self._cached_session = None

    def close(self) -> None:
        with self._lock:
            session = self._cached_session
            self._cached_session = None
        if session is not None:
            session.close()

    def _append_url(self, target_id: str, cell_range: str) -> str:
        return f"{self.api_root}/{target_id}/values/{quote(cell_range, safe='')}:append"

    def _append_once(self, target_id: str, cell_range: str, values: list[Any]) -> None:
        session = self._session()
        try:
            response = session.post(
                self._append_url(target_id, cell_range),
                params={
                    "valueInputOption": "USER_ENTERED",
                    "insertDataOption": "INSERT_ROWS",
                    "includeValuesInResponse": "false",
                },
                json={"values": [values]},
                timeout=(self.timeout.connect, self.timeout.read),
            )
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise RetryableAppendError(f"Transport failure appending to {target_id}: {exc}") from exc

        status = response.status_code
        if status in RETRYABLE_STATUS_CODES:
            raise RetryableAppendError(f"Retryable HTTP status {status} appending to {target_id}")
        if status >= 400:
            raise AppendError(f"HTTP status {status} appending to {target_id}")

    def _backoff(self, seconds: float) -> None:
        if self._wait(seconds):
            raise RetryInterruptedError("Retry interrupted")

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome is not None else None
        delay = retry_state.next_action.sleep if retry_state.next_action is not None else None
        self.logger.warning(
            "append attempt %s/%s failed: %s; retrying in %s s",
            retry_state.attempt_number,
            self.max_attempts,
            exc,
            delay,
            extra={"event": "APPEND_RETRY", "status": "retry", "attempt": retry_state.attempt_number},
        )

    def append_row(self, target_id: str, cell_range: str, values: Sequence[Any]) -> None:
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.initial_delay_ms / 1000.0, exp_base=2),
            retry=retry_if_exception_type(RetryableAppendError),
            sleep=self._backoff,
            before_sleep=self._log_retry,
            reraise=True,
        )
        retrying(self._append_once, target_id, cell_range, list(values))
        log_event(self.logger, f"appended row to spreadsheet {target_id}", event="APPENDED", status="ok")

    def append_single_column(self, target_id: str, cell_range: str, value: str) -> None:
        self.append_row(target_id, cell_range, [value])
