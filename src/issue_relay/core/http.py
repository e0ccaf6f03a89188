"""Blocking JSON-over-HTTP client shared by the Notion and Discord adapters.

Each adapter subclasses ``ApiClient`` with its base URL and auth headers, and
overrides ``_error_message`` to pull the human message out of the remote's
error body. Status codes are mapped onto the typed errors in
``issue_relay.errors``; retries are left to the next reconciliation pass.
"""

from __future__ import annotations

import email.utils
import logging
import threading
from datetime import datetime, timezone
from typing import Any

import requests

from ..errors import AuthError, NotFoundError, TransientError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = (10, 30)


def parse_retry_after(raw: str | None) -> float | None:
    """Parse a ``Retry-After`` header value (delta-seconds or HTTP date)."""
    if not raw:
        return None
    try:
        return max(0.0, float(raw))
    except ValueError:
        pass
    try:
        dt = email.utils.parsedate_to_datetime(raw)
    except (TypeError, ValueError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return max(0.0, (dt - datetime.now(timezone.utc)).total_seconds())


class ApiClient:
    """Thread-safe base client: one ``requests.Session`` per worker thread."""

    base_url: str = ""

    def __init__(self, timeout: float | tuple[float, float] = DEFAULT_TIMEOUT):
        self.timeout = timeout
        self._thread_local = threading.local()

    @property
    def session(self) -> requests.Session:
        """Return the current thread's session."""
        return self._get_session()

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update(self._default_headers())
        return session

    def _default_headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json"}

    def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Send a request and return the decoded JSON body (``None`` for 204).

        Raises:
            AuthError: 401/403.
            NotFoundError: 404.
            ValidationError: other 4xx responses.
            TransientError: 409/429/5xx, timeouts and connection failures.
        """
        url = f"{self.base_url}{path}"
        try:
            response = self._get_session().request(
                method,
                url,
                json=json,
                params=params,
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            raise TransientError(f"{method} {path} timed out: {e}") from e
        except requests.ConnectionError as e:
            raise TransientError(f"{method} {path} connection failed: {e}") from e

        if response.status_code < 400:
            if response.status_code == 204 or not response.content:
                return None
            return response.json()

        self._raise_for_response(method, path, response)

    def _raise_for_response(
        self, method: str, path: str, response: requests.Response
    ) -> None:
        status = response.status_code
        try:
            body = response.json()
        except ValueError:
            body = None
        message = self._error_message(body) or response.text[:200]
        detail = f"{method} {path} failed ({status}): {message}"
        logger.debug("HTTP error: %s", detail)

        if status in (401, 403):
            raise AuthError(detail)
        if status == 404:
            raise NotFoundError(detail)
        if status in (409, 429) or status >= 500:
            retry_after = parse_retry_after(response.headers.get("Retry-After"))
            if retry_after is None and isinstance(body, dict):
                raw = body.get("retry_after")
                if isinstance(raw, (int, float)):
                    retry_after = float(raw)
            raise TransientError(detail, retry_after=retry_after)
        raise ValidationError(detail)

    def _error_message(self, body: Any) -> str | None:
        if isinstance(body, dict):
            msg = body.get("message")
            if msg:
                return str(msg)
        return None
