"""
Session Emulator - SAML login against the university identity provider.
=======================================================================

Credential login is a linear sequence of steps, each one depending on the
previous response:

    init → idp_form → submit → saml_relay → finalize

A fresh ``requests.Session`` (and therefore a fresh cookie jar) is created
for every attempt and threaded through the steps explicitly. Nothing is
retried: a failed step raises ``LoginError`` with the step's reason, a
transport failure raises ``FetchError``.
"""

from typing import Callable, Optional
from urllib.parse import urljoin, urlparse

import requests
from bs4 import Tag

from better_mycourses.extraction.common import make_soup
from better_mycourses.extraction.session import extract_sesskey
from better_mycourses.moodle.client import is_redirect
from better_mycourses.shared.config import Settings, get_settings
from better_mycourses.shared.errors import FetchError, LoginError, LoginFailure
from better_mycourses.shared.logging import get_logger, mask_secret
from better_mycourses.shared.schemas import SessionCredential

logger = get_logger(__name__)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


class SessionEmulator:
    """
    Turns a username/password or a raw session cookie into a credential.

    Example:
        >>> emulator = SessionEmulator()
        >>> credential = emulator.login_with_credentials("u6512345", "secret")
        >>> credential.sesskey
        'AbCdEf1234'
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        session_factory: Callable[[], requests.Session] = requests.Session,
    ):
        settings = settings or get_settings()
        self.moodle = settings.get_effective_moodle()
        self._session_factory = session_factory

    @property
    def browser_headers(self) -> dict[str, str]:
        return {
            "User-Agent": self.moodle.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.5",
            "Upgrade-Insecure-Requests": "1",
            "Cache-Control": "no-cache",
        }

    def _request(self, http: requests.Session, method: str, url: str, **kwargs) -> requests.Response:
        kwargs.setdefault("timeout", self.moodle.timeout)
        try:
            return http.request(method, url, **kwargs)
        except requests.Timeout as e:
            raise FetchError(f"Login request timed out: {url}") from e
        except requests.RequestException as e:
            raise FetchError(f"Login request failed: {e}") from e

    # ─────────────────────────────────────────────────────────────────────────
    # Credential Login Steps
    # ─────────────────────────────────────────────────────────────────────────

    def init(self, http: requests.Session) -> str:
        """Start the SAML flow; the answer must redirect to the identity provider."""
        response = self._request(http, "GET", self.moodle.login_url, allow_redirects=False)
        location = response.headers.get("Location")
        if not is_redirect(response) or not location:
            raise LoginError(LoginFailure.INIT_FAILED)
        return urljoin(self.moodle.login_url, location)

    def idp_form(self, http: requests.Session, idp_url: str) -> str:
        """Load the identity provider page and resolve its login form action."""
        response = self._request(http, "GET", idp_url)
        form = make_soup(response.text).find("form")
        if form is None:
            raise LoginError(LoginFailure.FORM_NOT_FOUND)

        action = form.get("action") or idp_url
        return urljoin(idp_url, action)

    def submit(
        self, http: requests.Session, action_url: str, idp_url: str, username: str, password: str
    ) -> Tag:
        """Post the credentials; a valid login answers with the SAML relay form."""
        form_data = {
            "_UserName": username,
            "Password": password,
            "AuthMethod": "FormsAuthentication",
            "UserName": f"{self.moodle.username_prefix}{username}",
        }
        response = self._request(
            http,
            "POST",
            action_url,
            data=form_data,
            headers={"Content-Type": FORM_CONTENT_TYPE, "Referer": idp_url},
        )

        saml_input = make_soup(response.text).find("input", attrs={"name": "SAMLResponse"})
        saml_form = saml_input.find_parent("form") if saml_input is not None else None
        if saml_form is None:
            raise LoginError(LoginFailure.INVALID_CREDENTIALS)
        return saml_form

    def saml_relay(self, http: requests.Session, saml_form: Tag) -> None:
        """Relay the SAML assertion back to Moodle's assertion consumer."""

        def _value(name: str) -> Optional[str]:
            field = saml_form.find("input", attrs={"name": name})
            return field.get("value") if field is not None else None

        saml_response = _value("SAMLResponse")
        relay_state = _value("RelayState")
        action = saml_form.get("action")
        if not saml_response or not relay_state or not action:
            raise LoginError(LoginFailure.MISSING_SAML_DATA)

        origin = self.moodle.idp_origin.rstrip("/")
        self._request(
            http,
            "POST",
            urljoin(origin + "/", action),
            data={"SAMLResponse": saml_response, "RelayState": relay_state},
            headers={
                "Content-Type": FORM_CONTENT_TYPE,
                "Origin": origin,
                "Referer": origin + "/",
            },
        )

    def finalize(self, http: requests.Session) -> SessionCredential:
        """Load the dashboard and read the session cookie from the jar."""
        response = self._request(http, "GET", self.moodle.url(self.moodle.home_path))

        moodle_session = http.cookies.get(self.moodle.session_cookie)
        if not moodle_session:
            raise LoginError(LoginFailure.SESSION_COOKIE_MISSING)

        return SessionCredential(
            moodle_session=moodle_session,
            sesskey=extract_sesskey(response.text),
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────────────────────────────────

    def login_with_credentials(self, username: str, password: str) -> SessionCredential:
        """
        Run the full SAML login.

        Args:
            username: Student id without the domain prefix
            password: Account password

        Returns:
            SessionCredential; ``sesskey`` may be None at this stage

        Raises:
            LoginError: A login step failed (see ``LoginFailure``)
            FetchError: Network failure or timeout
        """
        logger.info(f"Starting credential login for {username}")
        http = self._session_factory()
        http.headers.update(self.browser_headers)
        try:
            idp_url = self.init(http)
            logger.debug(f"Redirected to identity provider {urlparse(idp_url).netloc}")
            action_url = self.idp_form(http, idp_url)
            saml_form = self.submit(http, action_url, idp_url, username, password)
            self.saml_relay(http, saml_form)
            credential = self.finalize(http)
        except LoginError as e:
            logger.warning(f"Login failed for {username}: {e.reason.value}")
            raise
        finally:
            http.close()

        logger.info(
            f"Login successful for {username} "
            f"(session {mask_secret(credential.moodle_session)}, "
            f"sesskey {'present' if credential.sesskey else 'absent'})"
        )
        return credential

    def login_with_session(self, moodle_session: str) -> SessionCredential:
        """
        Validate a raw ``MoodleSession`` cookie value.

        Raises:
            LoginError: SESSION_EXPIRED on a redirect, SESSKEY_MISSING when the
                profile page carries no action key
            FetchError: Network failure or timeout
        """
        http = self._session_factory()
        http.headers.update(self.browser_headers)
        try:
            response = self._request(
                http,
                "GET",
                self.moodle.url(self.moodle.profile_path),
                headers={"Cookie": f"{self.moodle.session_cookie}={moodle_session}"},
                allow_redirects=False,
            )
        finally:
            http.close()

        if is_redirect(response):
            raise LoginError(LoginFailure.SESSION_EXPIRED)

        sesskey = extract_sesskey(response.text)
        if not sesskey:
            raise LoginError(LoginFailure.SESSKEY_MISSING)

        logger.info(f"Session {mask_secret(moodle_session)} validated")
        return SessionCredential(moodle_session=moodle_session, sesskey=sesskey)
