"""
Enrolled course listing through the Moodle web-service endpoint.

The course list is the only record that comes from JSON rather than scraped
HTML. Text fields arrive HTML-entity encoded and are decoded on ingestion.
"""

from typing import Iterable, Optional

from better_mycourses.extraction.common import decode_text
from better_mycourses.moodle.client import MoodleClient
from better_mycourses.shared.errors import FetchError
from better_mycourses.shared.logging import get_logger
from better_mycourses.shared.schemas import Course, EnrolledCourses, SessionCredential

logger = get_logger(__name__)

ENROLLED_COURSES_METHOD = "core_course_get_enrolled_courses_by_timeline_classification"
ENROLLED_COURSES_ARGS = {
    "offset": 0,
    "limit": 0,
    "classification": "all",
    "sort": "fullname",
    "customfieldname": "",
    "customfieldvalue": "",
}
DECODED_FIELDS = ("fullname", "shortname", "summary", "coursecategory", "fullnamedisplay")


def _decode_course(raw: dict) -> Course:
    data = dict(raw)
    for field in DECODED_FIELDS:
        data[field] = decode_text(data.get(field) or "")
    return Course.model_validate(data)


def fetch_enrolled_courses(client: MoodleClient, credential: SessionCredential) -> EnrolledCourses:
    """
    Fetch every course the user is enrolled in.

    Raises:
        FetchError: No sesskey, or the service call failed
        SessionExpiredError: The session is no longer valid
    """
    data = client.call_service(credential, ENROLLED_COURSES_METHOD, dict(ENROLLED_COURSES_ARGS))
    if not isinstance(data, dict) or not isinstance(data.get("courses"), list):
        raise FetchError("Failed to fetch courses")

    courses = [_decode_course(raw) for raw in data["courses"] if isinstance(raw, dict)]
    logger.debug(f"Fetched {len(courses)} enrolled courses")
    return EnrolledCourses(courses=courses, nextoffset=data.get("nextoffset"))


def merge_courses(previous: Optional[Iterable[Course]], fresh: Iterable[Course]) -> list[Course]:
    """
    Merge a freshly fetched course list over a previously held one.

    The fresh list decides which courses exist and in what order. For a
    course present in both, ``attendance`` and ``content`` loaded earlier are
    kept whenever the fresh record has none.
    """
    held = {course.id: course for course in (previous or [])}
    merged = []
    for course in fresh:
        old = held.get(course.id)
        if old is None:
            merged.append(course)
            continue

        update = {}
        if course.attendance is None and old.attendance is not None:
            update["attendance"] = old.attendance
        if course.content is None and old.content is not None:
            update["content"] = old.content
        merged.append(course.model_copy(update=update) if update else course)
    return merged
