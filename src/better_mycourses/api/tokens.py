"""
Bearer tokens carrying the Moodle session credential.

The token is a signed JWT whose claims are the session cookie value and the
sesskey known at issue time. The server keeps no token state.
"""

import time
from typing import Optional

import jwt

from better_mycourses.shared.config import Settings, get_settings
from better_mycourses.shared.errors import AuthenticationError
from better_mycourses.shared.schemas import SessionCredential

BEARER_PREFIX = "Bearer "


class TokenService:
    """Issue and verify HS256 tokens for session credentials."""

    def __init__(self, secret: str, algorithm: str = "HS256", expires_in: Optional[int] = None):
        if not secret:
            raise ValueError("Token secret must not be empty")
        self.secret = secret
        self.algorithm = algorithm
        self.expires_in = expires_in

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "TokenService":
        settings = settings or get_settings()
        return cls(
            secret=settings.get_effective_jwt_secret(),
            algorithm=settings.auth.algorithm,
            expires_in=settings.auth.token_expiry_seconds or None,
        )

    def issue(self, credential: SessionCredential) -> str:
        now = int(time.time())
        claims = {"moodleSession": credential.moodle_session, "iat": now}
        if credential.sesskey:
            claims["sesskey"] = credential.sesskey
        if self.expires_in:
            claims["exp"] = now + self.expires_in
        return jwt.encode(claims, self.secret, algorithm=self.algorithm)

    def verify(self, token: str) -> SessionCredential:
        """
        Decode a token back into the credential it carries.

        Raises:
            AuthenticationError: Bad signature, expired, or no session claim
        """
        try:
            claims = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except jwt.InvalidTokenError as e:
            raise AuthenticationError("Invalid or expired token") from e

        moodle_session = claims.get("moodleSession")
        if not isinstance(moodle_session, str) or not moodle_session:
            raise AuthenticationError("Invalid token payload")

        sesskey = claims.get("sesskey")
        return SessionCredential(
            moodle_session=moodle_session,
            sesskey=sesskey if isinstance(sesskey, str) else None,
        )

    def verify_header(self, authorization: Optional[str]) -> SessionCredential:
        """Verify an ``Authorization: Bearer <token>`` header value."""
        if not authorization or not authorization.startswith(BEARER_PREFIX):
            raise AuthenticationError("No authorization token provided")
        return self.verify(authorization[len(BEARER_PREFIX):].strip())
