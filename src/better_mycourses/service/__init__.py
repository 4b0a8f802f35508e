"""
Service Module - Orchestrates cache, fetch and extraction per endpoint.
"""

from better_mycourses.service.dashboard import DashboardService

__all__ = ["DashboardService"]
