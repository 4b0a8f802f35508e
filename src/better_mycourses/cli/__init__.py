"""
CLI Module - Command-line interface for Better MyCourses.
=========================================================

Usage:
    better-mycourses --help
    better-mycourses serve --port 3000
    better-mycourses login --username u6512345
    better-mycourses parse course page.html
    better-mycourses info
"""

from better_mycourses.cli.main import app, cli

__all__ = ["app", "cli"]
