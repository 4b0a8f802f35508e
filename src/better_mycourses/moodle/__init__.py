"""
Moodle Module - Talk to the Moodle instance.
============================================

- auth: SAML credential login and raw session validation
- client: Authenticated fetches with redirect-as-expiry detection
- courses: Enrolled course listing and the merge-not-replace policy
"""

from better_mycourses.moodle.auth import SessionEmulator
from better_mycourses.moodle.client import MoodleClient, is_redirect
from better_mycourses.moodle.courses import fetch_enrolled_courses, merge_courses

__all__ = [
    "SessionEmulator",
    "MoodleClient",
    "is_redirect",
    "fetch_enrolled_courses",
    "merge_courses",
]
