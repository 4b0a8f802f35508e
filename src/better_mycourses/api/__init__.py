"""
API Module - HTTP facade over the dashboard service.
====================================================

- app: FastAPI application factory
- tokens: JWT bearer tokens carrying the session credential
- responses: Envelope, cache and security header helpers
"""

from better_mycourses.api.app import create_app
from better_mycourses.api.tokens import TokenService

__all__ = ["create_app", "TokenService"]
