"""
Tests Package - Unit and API tests for Better MyCourses.
========================================================

Test modules:
- test_extraction: Decoding, sesskey, profile, attendance, course page
- test_syllabus: Syllabus rows, strategies, outline
- test_activity: Quiz and assignment pages
- test_moodle: Login emulator, fetch client, enrolled courses
- test_cache: TTL cache, fingerprints, session keys
- test_service: Dashboard service over a mocked client
- test_api: Tokens, routes, envelope, headers
- test_config: Settings, logging helpers, utilities

Run tests with:
    pytest tests/
    pytest tests/ -v -m "not slow"
"""
