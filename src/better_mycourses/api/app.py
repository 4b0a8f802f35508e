"""
API Facade - FastAPI application exposing the dashboard service.
=================================================================

Routes (under the configured prefix, ``/api`` by default):

    GET    /                              health check
    POST   /auth/credentials              username/password login
    POST   /auth/session                  raw MoodleSession login
    GET    /auth/check                    session validity and sesskey drift
    POST   /auth/logout                   drop session cache entries
    DELETE /cache/clear                   same, bearer token required
    GET    /user/profile
    GET    /courses
    GET    /attendance/{course_id}
    GET    /course/{course_id}/content
    GET    /course/{course_id}/syllabus
    GET    /quiz/{quiz_id}
    GET    /assignment/{assignment_id}

Run with: better-mycourses serve
"""

from contextlib import asynccontextmanager
from typing import Any, Callable, Optional

from fastapi import APIRouter, Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from better_mycourses.api.responses import (
    SECURITY_HEADERS,
    cached_response,
    failure,
    success,
    unauthorized,
)
from better_mycourses.api.tokens import TokenService
from better_mycourses.cache.memory import CachedResult, fingerprint
from better_mycourses.service.dashboard import DashboardService
from better_mycourses.shared.config import Settings, get_settings
from better_mycourses.shared.errors import AuthenticationError, MyCoursesError
from better_mycourses.shared.logging import get_logger
from better_mycourses.shared.schemas import SessionCredential

logger = get_logger(__name__)


class CredentialsLogin(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class SessionLogin(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    moodle_session: str = Field(..., min_length=1)


def _guarded(message: str, handler: Callable[[], Any]) -> Any:
    """Run ``handler``; expected failures become a 200 failure envelope."""
    try:
        return handler()
    except MyCoursesError as e:
        logger.info(f"{message}: {e.message}")
        return failure(e.message, message)


def create_app(
    settings: Optional[Settings] = None,
    service: Optional[DashboardService] = None,
    tokens: Optional[TokenService] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Application settings (defaults to ``get_settings()``)
        service: Dashboard service; built from settings when omitted
        tokens: Token service; built from settings when omitted

    Returns:
        Configured FastAPI app
    """
    settings = settings or get_settings()
    if service is None:
        service = DashboardService(settings=settings)
    if tokens is None:
        tokens = TokenService.from_settings(settings)
    ttl = settings.cache.ttl

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        service.cache.start_sweeper()
        yield
        service.cache.stop()

    app = FastAPI(title=settings.api.title, lifespan=lifespan)
    app.state.service = service
    app.state.tokens = tokens

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "If-None-Match"],
        expose_headers=["ETag", "X-Cache"],
    )

    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers[name] = value
        return response

    @app.exception_handler(AuthenticationError)
    async def authentication_error_handler(request: Request, exc: AuthenticationError):
        return unauthorized(exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(content=failure("Invalid request", "Request validation failed"))

    def require_credential(authorization: Optional[str] = Header(None)) -> SessionCredential:
        return tokens.verify_header(authorization)

    router = APIRouter(prefix=settings.api.prefix)

    # ─────────────────────────────────────────────────────────────────────────
    # Auth
    # ─────────────────────────────────────────────────────────────────────────

    @router.get("/")
    def health() -> dict:
        return {"message": settings.api.title, "status": "online"}

    @router.post("/auth/credentials")
    def login_with_credentials(body: CredentialsLogin) -> Any:
        def handler():
            credential = service.login_with_credentials(body.username, body.password)
            return success(
                "Login successful",
                token=tokens.issue(credential),
                moodleSession=credential.moodle_session,
                sesskey=credential.sesskey,
            )

        return _guarded("Authentication failed", handler)

    @router.post("/auth/session")
    def login_with_session(body: SessionLogin) -> Any:
        def handler():
            credential = service.login_with_session(body.moodle_session)
            return success(
                "Session authenticated successfully",
                token=tokens.issue(credential),
                sesskey=credential.sesskey,
            )

        return _guarded("Authentication failed", handler)

    @router.get("/auth/check")
    def check_session(authorization: Optional[str] = Header(None)) -> Any:
        try:
            credential = tokens.verify_header(authorization)
            current = service.validate_session(credential)
        except MyCoursesError as e:
            return failure(e.message, "Session verification failed", isAuthenticated=False)

        return success(
            "Session is valid",
            isAuthenticated=True,
            sesskey=current,
            sesskeyChanged=credential.sesskey != current,
        )

    @router.post("/auth/logout")
    def logout(authorization: Optional[str] = Header(None)) -> Any:
        try:
            service.clear_session(tokens.verify_header(authorization))
        except AuthenticationError:
            pass
        return success("Logged out successfully")

    @router.delete("/cache/clear")
    def clear_cache(credential: SessionCredential = Depends(require_credential)) -> Any:
        service.clear_session(credential)
        return success("Cache cleared successfully")

    # ─────────────────────────────────────────────────────────────────────────
    # Cached Resources
    # ─────────────────────────────────────────────────────────────────────────

    @router.get("/user/profile")
    def user_profile(
        credential: SessionCredential = Depends(require_credential),
        if_none_match: Optional[str] = Header(None),
    ) -> Any:
        return _guarded(
            "Could not fetch user profile",
            lambda: cached_response(
                service.get_profile(credential), ttl.profile, if_none_match, "profile"
            ),
        )

    @router.get("/courses")
    def courses(
        refresh: bool = False,
        credential: SessionCredential = Depends(require_credential),
        if_none_match: Optional[str] = Header(None),
    ) -> Any:
        return _guarded(
            "Failed to fetch courses",
            lambda: cached_response(
                service.get_courses(credential, refresh=refresh), ttl.courses, if_none_match
            ),
        )

    @router.get("/attendance/{course_id}")
    def attendance(
        course_id: str,
        credential: SessionCredential = Depends(require_credential),
        if_none_match: Optional[str] = Header(None),
    ) -> Any:
        return _guarded(
            "Failed to fetch attendance",
            lambda: cached_response(
                service.get_attendance(credential, course_id),
                ttl.attendance,
                if_none_match,
                "attendance",
            ),
        )

    @router.get("/course/{course_id}/content")
    def course_content(
        course_id: str,
        details: bool = False,
        credential: SessionCredential = Depends(require_credential),
        if_none_match: Optional[str] = Header(None),
    ) -> Any:
        def handler():
            result = service.get_course_content(credential, course_id)
            if details:
                content = service.load_activity_details(credential, result.value)
                result = CachedResult(content, fingerprint(content), result.was_hit)
            return cached_response(result, ttl.content, if_none_match, "content")

        return _guarded("Failed to fetch course content", handler)

    @router.get("/course/{course_id}/syllabus")
    def course_syllabus(
        course_id: str,
        credential: SessionCredential = Depends(require_credential),
        if_none_match: Optional[str] = Header(None),
    ) -> Any:
        return _guarded(
            "Failed to fetch course syllabus",
            lambda: cached_response(
                service.get_course_syllabus(credential, course_id), ttl.syllabus, if_none_match
            ),
        )

    @router.get("/quiz/{quiz_id}")
    def quiz(
        quiz_id: str,
        credential: SessionCredential = Depends(require_credential),
        if_none_match: Optional[str] = Header(None),
    ) -> Any:
        return _guarded(
            "Failed to fetch quiz",
            lambda: cached_response(
                service.get_quiz_info(credential, quiz_id), ttl.activity, if_none_match, "quiz"
            ),
        )

    @router.get("/assignment/{assignment_id}")
    def assignment(
        assignment_id: str,
        credential: SessionCredential = Depends(require_credential),
        if_none_match: Optional[str] = Header(None),
    ) -> Any:
        return _guarded(
            "Failed to fetch assignment",
            lambda: cached_response(
                service.get_assignment_info(credential, assignment_id),
                ttl.activity,
                if_none_match,
                "assignment",
            ),
        )

    app.include_router(router)
    return app
