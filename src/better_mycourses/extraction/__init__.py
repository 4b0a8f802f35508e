"""
Extraction Module - Turn rendered Moodle pages into records.
============================================================

Every extractor is a pure function over an HTML string (or an already parsed
document). None of them perform I/O or raise for malformed markup:

- session: Action key (``sesskey``) from the inline ``M.cfg`` script
- profile: User name and email from the profile page
- attendance: Attendance rows and their per-status counts
- course: Section/activity tree of a course page
- syllabus: Syllabus table or PDF link, plus the per-lecture outline
- activity: Quiz and assignment detail pages

A missing primary anchor (the page heading) yields ``None``; deciding whether
that is an error is left to the caller.
"""

from better_mycourses.extraction.activity import extract_assignment_info, extract_quiz_info
from better_mycourses.extraction.attendance import (
    extract_attendance_records,
    summarize_attendance,
)
from better_mycourses.extraction.common import decode_text, first_match, make_soup
from better_mycourses.extraction.course import extract_ai_level, extract_course_content
from better_mycourses.extraction.profile import extract_user_profile
from better_mycourses.extraction.session import extract_sesskey
from better_mycourses.extraction.syllabus import build_syllabus_outline, extract_syllabus

__all__ = [
    # Common
    "make_soup",
    "decode_text",
    "first_match",
    # Page extractors
    "extract_sesskey",
    "extract_user_profile",
    "extract_attendance_records",
    "summarize_attendance",
    "extract_course_content",
    "extract_ai_level",
    "extract_syllabus",
    "build_syllabus_outline",
    "extract_quiz_info",
    "extract_assignment_info",
]
