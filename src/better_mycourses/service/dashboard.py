"""
Dashboard Service - Cache, fetch and extract, one method per endpoint.
======================================================================

Each read goes through ``ResponseCache.with_cache``: a hit returns the stored
record, a miss fetches the page, runs the matching extractor and stores the
result under the session's namespace.

Extractors return None when a page lacks its primary anchor. This is the
layer that turns that into ``ExtractionIncomplete``; network and session
errors from the client pass through unchanged.
"""

from typing import Optional

from better_mycourses.cache.keys import CacheKeys
from better_mycourses.cache.memory import CachedResult, ResponseCache, fingerprint
from better_mycourses.extraction.activity import extract_assignment_info, extract_quiz_info
from better_mycourses.extraction.attendance import extract_attendance_records
from better_mycourses.extraction.course import extract_course_content
from better_mycourses.extraction.profile import extract_user_profile
from better_mycourses.extraction.session import extract_sesskey
from better_mycourses.extraction.syllabus import build_syllabus_outline
from better_mycourses.moodle.auth import SessionEmulator
from better_mycourses.moodle.client import MoodleClient
from better_mycourses.moodle.courses import fetch_enrolled_courses, merge_courses
from better_mycourses.shared.config import Settings, get_settings
from better_mycourses.shared.errors import ExtractionIncomplete
from better_mycourses.shared.logging import get_logger
from better_mycourses.shared.schemas import (
    ActivityKind,
    AssignmentInfo,
    AttendanceRecord,
    CourseContent,
    EnrolledCourses,
    QuizInfo,
    SessionCredential,
    SyllabusOutline,
    UserProfile,
)

logger = get_logger(__name__)


def _page(path: str, object_id: str) -> str:
    return f"{path}?id={object_id}"


class DashboardService:
    """
    Handler-facing facade over the client, the extractors and the cache.

    Example:
        >>> service = DashboardService()
        >>> result = service.get_profile(credential)
        >>> result.value.first_name, result.was_hit
        ('Somchai', False)
    """

    def __init__(
        self,
        client: Optional[MoodleClient] = None,
        cache: Optional[ResponseCache] = None,
        emulator: Optional[SessionEmulator] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings if settings is not None else get_settings()
        self.moodle = self.settings.get_effective_moodle()
        self.ttl = self.settings.cache.ttl
        self.client = client if client is not None else MoodleClient(self.settings)
        # an empty cache is falsy, so test against None
        if cache is None:
            cache = ResponseCache(
                sweep_interval=self.settings.cache.sweep_interval,
                prefix=self.settings.cache.prefix,
            )
        self.cache = cache
        self.emulator = emulator if emulator is not None else SessionEmulator(self.settings)

    # ─────────────────────────────────────────────────────────────────────────
    # Session
    # ─────────────────────────────────────────────────────────────────────────

    def login_with_credentials(self, username: str, password: str) -> SessionCredential:
        credential = self.emulator.login_with_credentials(username, password)
        self.cache.set(
            CacheKeys.validation(credential.moodle_session), credential.sesskey, self.ttl.validation
        )
        return credential

    def login_with_session(self, moodle_session: str) -> SessionCredential:
        credential = self.emulator.login_with_session(moodle_session)
        self.cache.set(CacheKeys.validation(moodle_session), credential.sesskey, self.ttl.validation)
        return credential

    def validate_session(self, credential: SessionCredential) -> Optional[str]:
        """
        Confirm the session is alive and return its current sesskey.

        Raises:
            SessionExpiredError: The profile page redirected
        """

        def produce() -> Optional[str]:
            html = self.client.fetch(credential, self.moodle.profile_path)
            return extract_sesskey(html)

        key = CacheKeys.validation(credential.moodle_session)
        return self.cache.with_cache(key, self.ttl.validation, produce).value

    def clear_session(self, credential: SessionCredential) -> int:
        return self.cache.clear_session(
            credential.moodle_session, cascade=self.settings.cache.cascade_on_logout
        )

    # ─────────────────────────────────────────────────────────────────────────
    # User and Courses
    # ─────────────────────────────────────────────────────────────────────────

    def get_profile(self, credential: SessionCredential) -> CachedResult[UserProfile]:
        def produce() -> UserProfile:
            html = self.client.fetch(credential, self.moodle.profile_path)
            profile = extract_user_profile(html)
            if profile is None:
                raise ExtractionIncomplete("Could not find user profile")
            return profile

        key = CacheKeys.profile(credential.moodle_session)
        return self.cache.with_cache(key, self.ttl.profile, produce)

    def get_courses(
        self, credential: SessionCredential, refresh: bool = False
    ) -> CachedResult[EnrolledCourses]:
        """
        Enrolled courses, merged over the list already held for this session.

        With ``refresh`` the list is re-fetched; attendance and content
        attached to it earlier survive the refresh. A failed refresh leaves
        the held list in place.
        """
        key = CacheKeys.courses(credential.moodle_session)
        previous: Optional[EnrolledCourses] = self.cache.get(key)

        def produce() -> EnrolledCourses:
            fresh = fetch_enrolled_courses(self.client, credential)
            if previous is None:
                return fresh
            return fresh.model_copy(update={"courses": merge_courses(previous.courses, fresh.courses)})

        if not refresh:
            return self.cache.with_cache(key, self.ttl.courses, produce)

        merged = produce()
        self.cache.set(key, merged, self.ttl.courses)
        return CachedResult(merged, fingerprint(merged), False)

    def _attach_to_course(self, credential: SessionCredential, course_id: str, **fields) -> None:
        """Store per-course data on the cached course list, if one is held."""

        def transform(enrolled: EnrolledCourses) -> EnrolledCourses:
            courses = [
                course.model_copy(update=fields) if str(course.id) == str(course_id) else course
                for course in enrolled.courses
            ]
            return enrolled.model_copy(update={"courses": courses})

        self.cache.update(CacheKeys.courses(credential.moodle_session), transform)

    # ─────────────────────────────────────────────────────────────────────────
    # Course Pages
    # ─────────────────────────────────────────────────────────────────────────

    def get_attendance(
        self, credential: SessionCredential, course_id: str
    ) -> CachedResult[list[AttendanceRecord]]:
        def produce() -> list[AttendanceRecord]:
            html = self.client.fetch(credential, _page(self.moodle.attendance_path, course_id))
            return extract_attendance_records(html)

        key = CacheKeys.course_attendance(credential.moodle_session, course_id)
        result = self.cache.with_cache(key, self.ttl.attendance, produce)
        if not result.was_hit:
            self._attach_to_course(credential, course_id, attendance=result.value)
        return result

    def get_course_content(
        self, credential: SessionCredential, course_id: str
    ) -> CachedResult[CourseContent]:
        def produce() -> CourseContent:
            html = self.client.fetch(credential, _page(self.moodle.course_view_path, course_id))
            content = extract_course_content(html)
            if content is None:
                raise ExtractionIncomplete("Failed to parse course content")
            return content

        key = CacheKeys.course_content(credential.moodle_session, course_id)
        result = self.cache.with_cache(key, self.ttl.content, produce)
        if not result.was_hit:
            self._attach_to_course(credential, course_id, content=result.value)
        return result

    def get_course_syllabus(
        self, credential: SessionCredential, course_id: str
    ) -> CachedResult[SyllabusOutline]:
        def produce() -> SyllabusOutline:
            content = self.get_course_content(credential, course_id).value
            return build_syllabus_outline(content)

        key = CacheKeys.course_syllabus(credential.moodle_session, course_id)
        return self.cache.with_cache(key, self.ttl.syllabus, produce)

    # ─────────────────────────────────────────────────────────────────────────
    # Activity Details
    # ─────────────────────────────────────────────────────────────────────────

    def get_quiz_info(self, credential: SessionCredential, quiz_id: str) -> CachedResult[QuizInfo]:
        def produce() -> QuizInfo:
            html = self.client.fetch(credential, _page(self.moodle.quiz_view_path, quiz_id))
            info = extract_quiz_info(html, quiz_id)
            if info is None:
                raise ExtractionIncomplete("Failed to parse quiz page")
            return info

        key = CacheKeys.quiz(credential.moodle_session, quiz_id)
        return self.cache.with_cache(key, self.ttl.activity, produce)

    def get_assignment_info(
        self, credential: SessionCredential, assignment_id: str
    ) -> CachedResult[AssignmentInfo]:
        def produce() -> AssignmentInfo:
            html = self.client.fetch(
                credential, _page(self.moodle.assign_view_path, assignment_id)
            )
            info = extract_assignment_info(html, assignment_id)
            if info is None:
                raise ExtractionIncomplete("Failed to parse assignment page")
            return info

        key = CacheKeys.assignment(credential.moodle_session, assignment_id)
        return self.cache.with_cache(key, self.ttl.activity, produce)

    def load_activity_details(
        self, credential: SessionCredential, content: CourseContent
    ) -> CourseContent:
        """
        Attach quiz and assignment details to every matching activity.

        Detail pages not already cached are fetched concurrently. A failed
        fetch or an unparseable page leaves that activity without details and
        does not affect the others.

        Returns:
            A new CourseContent; the input is not modified
        """
        session = credential.moodle_session
        details: dict[str, object] = {}
        pending: list[tuple[str, ActivityKind, str]] = []

        for _, activity in content.iter_activities():
            kind = activity.kind
            if kind == ActivityKind.QUIZ:
                key = CacheKeys.quiz(session, activity.module_id)
                path = _page(self.moodle.quiz_view_path, activity.module_id)
            elif kind == ActivityKind.ASSIGNMENT:
                key = CacheKeys.assignment(session, activity.module_id)
                path = _page(self.moodle.assign_view_path, activity.module_id)
            else:
                continue

            if key in details:
                continue
            cached = self.cache.get(key)
            if cached is not None:
                details[key] = cached
            else:
                details[key] = None
                pending.append((key, kind, path))

        if pending:
            logger.info(f"Loading {len(pending)} activity detail pages for course {content.course_id}")
            bodies = self.client.fetch_many(credential, [path for _, _, path in pending])
            for (key, kind, path), body in zip(pending, bodies):
                if isinstance(body, Exception):
                    continue
                module_id = path.rsplit("=", 1)[-1]
                if kind == ActivityKind.QUIZ:
                    info = extract_quiz_info(body, module_id)
                else:
                    info = extract_assignment_info(body, module_id)
                if info is None:
                    logger.warning(f"No details found on {path}")
                    continue
                self.cache.set(key, info, self.ttl.activity)
                details[key] = info

        sections = []
        for section in content.sections:
            activities = []
            for activity in section.activities:
                if activity.kind == ActivityKind.QUIZ:
                    info = details.get(CacheKeys.quiz(session, activity.module_id))
                    if info is not None:
                        activity = activity.model_copy(update={"quiz_info": info})
                elif activity.kind == ActivityKind.ASSIGNMENT:
                    info = details.get(CacheKeys.assignment(session, activity.module_id))
                    if info is not None:
                        activity = activity.model_copy(update={"assignment_info": info})
                activities.append(activity)
            sections.append(section.model_copy(update={"activities": activities}))

        return content.model_copy(update={"sections": sections})
