"""
Better MyCourses - Structured JSON over a university Moodle instance
====================================================================

Logs into Moodle through its SAML identity provider (or with a raw session
cookie), scrapes rendered pages and re-exposes them as typed records:

- User profile and enrolled courses
- Course content trees, syllabus tables and attendance
- Quiz attempts and assignment submission state

Responses are cached per session with ETag-style fingerprints.
"""

__version__ = "0.1.0"
__license__ = "MIT"

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Main modules (imported on demand)
    "shared",
    "extraction",
    "moodle",
    "cache",
    "service",
    "api",
    "cli",
]
