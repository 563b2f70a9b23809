"""
Domain services for projects, tasks, users and analytics.
"""

from .analytics import AnalyticsService
from .projects import ProjectService
from .tasks import TaskService
from .users import UserService

__all__ = ["AnalyticsService", "ProjectService", "TaskService", "UserService"]
