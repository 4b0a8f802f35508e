"""
Error Types - Failure kinds raised by the network and login layers.
===================================================================

Extractors never raise; they return ``None`` or an empty list. Everything
that talks to Moodle raises one of the exceptions below so callers can branch
on the kind of failure.
"""

from enum import Enum
from typing import Optional


class MyCoursesError(Exception):
    """Base class for all errors raised by the core."""

    default_message = "MyCourses request failed"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class LoginFailure(str, Enum):
    """The login step that failed."""

    INIT_FAILED = "init_failed"
    FORM_NOT_FOUND = "form_not_found"
    INVALID_CREDENTIALS = "invalid_credentials"
    MISSING_SAML_DATA = "missing_saml_data"
    SESSION_COOKIE_MISSING = "session_cookie_missing"
    SESSION_EXPIRED = "session_expired"
    SESSKEY_MISSING = "sesskey_missing"


_LOGIN_MESSAGES = {
    LoginFailure.INIT_FAILED: "Login initiation did not redirect to the identity provider",
    LoginFailure.FORM_NOT_FOUND: "Identity provider login form not found",
    LoginFailure.INVALID_CREDENTIALS: "Invalid credentials",
    LoginFailure.MISSING_SAML_DATA: "Missing SAML data",
    LoginFailure.SESSION_COOKIE_MISSING: "Login failed: no session cookie issued",
    LoginFailure.SESSION_EXPIRED: "Session expired",
    LoginFailure.SESSKEY_MISSING: "Session key not found",
}


class LoginError(MyCoursesError):
    """A login attempt failed at a known step. Never retried internally."""

    def __init__(self, reason: LoginFailure, message: Optional[str] = None):
        self.reason = reason
        super().__init__(message or _LOGIN_MESSAGES[reason])


class SessionExpiredError(MyCoursesError):
    """Moodle answered an authenticated request with a redirect."""

    default_message = "Session expired"

    def __init__(self, message: Optional[str] = None, location: Optional[str] = None):
        self.location = location
        super().__init__(message)


class FetchError(MyCoursesError):
    """Network failure, timeout or an undecodable upstream response."""

    default_message = "Request to Moodle failed"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class ExtractionIncomplete(MyCoursesError):
    """The primary anchor of a page was missing; the record counts as not found."""

    default_message = "Expected content not found on page"


class AuthenticationError(MyCoursesError):
    """A bearer token was missing, malformed or failed verification."""

    default_message = "Invalid or expired token"
