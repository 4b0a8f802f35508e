"""
Cache key derivation.

Keys are ``<scope>:<namespace>:<entity>`` where the namespace is a truncated
SHA256 of the session token. Two sessions never share a namespace prefix in
practice, and the raw token never appears in a key.
"""

from better_mycourses.shared.utils import short_hash

NAMESPACE_LENGTH = 12


def session_namespace(moodle_session: str) -> str:
    return short_hash(moodle_session, NAMESPACE_LENGTH)


class CacheKeys:
    """Key builders, one per cached entity."""

    @staticmethod
    def profile(moodle_session: str) -> str:
        return f"user:{session_namespace(moodle_session)}:profile"

    @staticmethod
    def courses(moodle_session: str) -> str:
        return f"user:{session_namespace(moodle_session)}:courses"

    @staticmethod
    def validation(moodle_session: str) -> str:
        return f"session:{session_namespace(moodle_session)}:validation"

    @staticmethod
    def course_content(moodle_session: str, course_id: str) -> str:
        return f"course:{session_namespace(moodle_session)}:{course_id}:content"

    @staticmethod
    def course_attendance(moodle_session: str, course_id: str) -> str:
        return f"course:{session_namespace(moodle_session)}:{course_id}:attendance"

    @staticmethod
    def course_syllabus(moodle_session: str, course_id: str) -> str:
        return f"course:{session_namespace(moodle_session)}:{course_id}:syllabus"

    @staticmethod
    def quiz(moodle_session: str, quiz_id: str) -> str:
        return f"activity:{session_namespace(moodle_session)}:quiz:{quiz_id}"

    @staticmethod
    def assignment(moodle_session: str, assignment_id: str) -> str:
        return f"activity:{session_namespace(moodle_session)}:assign:{assignment_id}"

    @staticmethod
    def session_keys(moodle_session: str) -> tuple[str, ...]:
        """The entries removed by a non-cascading logout."""
        return (
            CacheKeys.profile(moodle_session),
            CacheKeys.courses(moodle_session),
            CacheKeys.validation(moodle_session),
        )

    @staticmethod
    def namespace_prefixes(moodle_session: str) -> tuple[str, ...]:
        """Prefixes covering every entry of one session."""
        ns = session_namespace(moodle_session)
        return tuple(f"{scope}:{ns}:" for scope in ("user", "session", "course", "activity"))
