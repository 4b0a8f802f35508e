"""
Shared Module - Common utilities, configuration, schemas, errors, and logging.
=============================================================================

This module provides foundational components used across all other modules:

- config: Configuration loading and management
- logging: Rich logging setup
- errors: Failure kinds raised by the network and login layers
- schemas: Pydantic records produced by extraction
- utils: Hashing and JSON helpers
"""

from better_mycourses.shared.config import Settings, get_settings
from better_mycourses.shared.errors import (
    AuthenticationError,
    ExtractionIncomplete,
    FetchError,
    LoginError,
    LoginFailure,
    MyCoursesError,
    SessionExpiredError,
)
from better_mycourses.shared.logging import get_logger, setup_logging
from better_mycourses.shared.schemas import (
    AssignmentInfo,
    AttendanceRecord,
    Course,
    CourseContent,
    QuizInfo,
    SessionCredential,
    UserProfile,
)
from better_mycourses.shared.utils import canonical_json, compute_hash, to_jsonable

__all__ = [
    # Config
    "get_settings",
    "Settings",
    # Logging
    "get_logger",
    "setup_logging",
    # Errors
    "MyCoursesError",
    "LoginError",
    "LoginFailure",
    "SessionExpiredError",
    "FetchError",
    "ExtractionIncomplete",
    "AuthenticationError",
    # Schemas
    "SessionCredential",
    "UserProfile",
    "AttendanceRecord",
    "Course",
    "CourseContent",
    "QuizInfo",
    "AssignmentInfo",
    # Utils
    "compute_hash",
    "canonical_json",
    "to_jsonable",
]
