"""
Moodle Client - Authenticated page fetches against the Moodle instance.
=======================================================================

Every request:
- carries the ``MoodleSession`` cookie of the caller's credential
- never follows redirects; any 3xx means the session is gone
- has a bounded timeout
- is retried with exponential backoff on connection errors and timeouts only

4xx/5xx bodies are handed back unchanged. Deciding what they mean is left
to the extractors.
"""

import json as jsonlib
import threading
from concurrent.futures import ThreadPoolExecutor
from http.cookiejar import DefaultCookiePolicy
from typing import Any, Callable, Optional, Sequence, Union

import requests
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from better_mycourses.shared.config import Settings, get_settings
from better_mycourses.shared.errors import FetchError, SessionExpiredError
from better_mycourses.shared.logging import get_logger
from better_mycourses.shared.schemas import SessionCredential
from better_mycourses.shared.utils import short_hash

logger = get_logger(__name__)

RETRYABLE_ERRORS = (requests.ConnectionError, requests.Timeout)

FetchOutcome = Union[str, Exception]


def is_redirect(response: requests.Response) -> bool:
    """True for any 3xx status, with or without a ``Location`` header."""
    return 300 <= response.status_code < 400


class MoodleClient:
    """
    Stateless fetcher bound to one Moodle deployment.

    Connections are pooled per thread; the cookie jar of the pooled session
    refuses all cookies so one user's ``Set-Cookie`` can never leak into
    another user's request.

    Example:
        >>> client = MoodleClient()
        >>> html = client.fetch(credential, "/user/profile.php")
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        session_factory: Callable[[], requests.Session] = requests.Session,
    ):
        settings = settings or get_settings()
        self.moodle = settings.get_effective_moodle()
        self._session_factory = session_factory
        self._local = threading.local()

        logger.debug(
            f"MoodleClient initialized: base_url={self.moodle.base_url}, "
            f"timeout={self.moodle.timeout}s, retries={self.moodle.max_retries}"
        )

    @property
    def session(self) -> requests.Session:
        """Get or create the requests session of the current thread."""
        http = getattr(self._local, "session", None)
        if http is None:
            http = self._session_factory()
            http.headers.update(
                {
                    "User-Agent": self.moodle.user_agent,
                    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
                    "Accept-Language": "en-US,en;q=0.5",
                }
            )
            http.cookies.set_policy(DefaultCookiePolicy(allowed_domains=[]))
            self._local.session = http
        return http

    def _url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return self.moodle.url(path)

    def _send(
        self,
        credential: SessionCredential,
        url: str,
        method: str,
        params: Optional[dict[str, Any]],
        json: Any,
    ) -> requests.Response:
        """Issue one request, retrying transport failures."""

        @retry(
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            stop=stop_after_attempt(max(1, self.moodle.max_retries)),
            wait=wait_exponential(min=self.moodle.retry_min_wait, max=self.moodle.retry_max_wait),
            reraise=True,
            before_sleep=lambda retry_state: logger.warning(
                f"Retry {retry_state.attempt_number}/{self.moodle.max_retries} for {url}"
            ),
        )
        def _request_with_retry() -> requests.Response:
            return self.session.request(
                method,
                url,
                params=params,
                json=json,
                headers={"Cookie": f"{self.moodle.session_cookie}={credential.moodle_session}"},
                timeout=self.moodle.timeout,
                allow_redirects=False,
            )

        try:
            return _request_with_retry()
        except requests.Timeout as e:
            raise FetchError(f"Request timed out: {url}") from e
        except requests.RequestException as e:
            raise FetchError(f"Request failed: {e}") from e

    def fetch(
        self,
        credential: SessionCredential,
        path: str,
        method: str = "GET",
        params: Optional[dict[str, Any]] = None,
        json: Any = None,
    ) -> str:
        """
        Fetch a page with the caller's session and return the raw body.

        Args:
            credential: Session to authenticate with
            path: Site-relative path or absolute URL
            method: HTTP method
            params: Query string parameters
            json: JSON request body

        Returns:
            Response body text

        Raises:
            SessionExpiredError: Moodle answered with a redirect
            FetchError: Transport failure after retries
        """
        url = self._url(path)
        logger.debug(f"{method} {url} [session {short_hash(credential.moodle_session)}]")

        response = self._send(credential, url, method, params, json)

        if is_redirect(response):
            location = response.headers.get("Location")
            logger.info(f"Session expired: {method} {path} redirected ({response.status_code})")
            raise SessionExpiredError(location=location)

        if response.status_code >= 400:
            logger.warning(f"{method} {path} returned {response.status_code}")

        return response.text

    def fetch_json(
        self,
        credential: SessionCredential,
        path: str,
        method: str = "GET",
        params: Optional[dict[str, Any]] = None,
        json: Any = None,
    ) -> Any:
        """Like ``fetch`` but decodes the body as JSON."""
        body = self.fetch(credential, path, method=method, params=params, json=json)
        try:
            return jsonlib.loads(body)
        except ValueError as e:
            raise FetchError(f"Undecodable response from {path}") from e

    def call_service(self, credential: SessionCredential, methodname: str, args: dict) -> Any:
        """
        Call one web-service function through the AJAX bulk endpoint.

        Args:
            credential: Session with a ``sesskey``
            methodname: Moodle external function name
            args: Function arguments

        Returns:
            The ``data`` member of the first result

        Raises:
            FetchError: No sesskey, malformed response or a service error
        """
        if not credential.sesskey:
            raise FetchError("No sesskey found")

        payload = [{"index": 0, "methodname": methodname, "args": args}]
        data = self.fetch_json(
            credential,
            self.moodle.service_path,
            method="POST",
            params={"sesskey": credential.sesskey},
            json=payload,
        )

        if not isinstance(data, list) or not data or not isinstance(data[0], dict):
            raise FetchError(f"Malformed response from {methodname}")

        result = data[0]
        if result.get("error"):
            exception = result.get("exception") or {}
            message = exception.get("message") if isinstance(exception, dict) else None
            if not message and isinstance(result["error"], str):
                message = result["error"]
            raise FetchError(message or f"{methodname} failed")

        return result.get("data")

    def fetch_many(
        self,
        credential: SessionCredential,
        paths: Sequence[str],
        max_workers: Optional[int] = None,
    ) -> list[FetchOutcome]:
        """
        Fetch several pages concurrently.

        Failures are isolated: each element of the result is either the body
        or the exception raised for that path, in input order.
        """
        if not paths:
            return []

        workers = max(1, min(max_workers or self.moodle.max_workers, len(paths)))

        def _one(path: str) -> FetchOutcome:
            try:
                return self.fetch(credential, path)
            except Exception as e:
                logger.warning(f"Detail fetch failed for {path}: {e}")
                return e

        with ThreadPoolExecutor(max_workers=workers) as executor:
            return list(executor.map(_one, paths))

    def close(self) -> None:
        """Close the session of the current thread."""
        http = getattr(self._local, "session", None)
        if http is not None:
            http.close()
            self._local.session = None
