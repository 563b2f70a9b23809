"""
Task analytics.

The aggregation functions are pure: they take a task collection and return a
stats model without touching storage. ``AnalyticsService`` loads the
collection and applies access checks.
"""

from datetime import datetime
from typing import Iterable, List, Optional

from pydantic import Field

from shared.logging import get_logger
from ..authorization import can_access_project, can_view_user, require
from ..models import CamelModel, Identity, Task, TaskPriority, TaskStatus, ensure_utc, utcnow
from ..persistence.base import DocumentStore, TASKS
from .common import load_project


class PriorityBreakdown(CamelModel):
    high: int = Field(default=0, alias="High")
    medium: int = Field(default=0, alias="Medium")
    low: int = Field(default=0, alias="Low")


class ProjectStats(CamelModel):
    total_tasks: int = 0
    completed_tasks: int = 0
    in_progress_tasks: int = 0
    todo_tasks: int = 0
    completion_rate: float = 0
    total_time_spent: int = 0
    total_estimated_time: int = 0
    tasks_by_priority: PriorityBreakdown = Field(default_factory=PriorityBreakdown)
    overdue_tasks: int = 0


class UserStats(CamelModel):
    total_tasks: int = 0
    completed_tasks: int = 0
    in_progress_tasks: int = 0
    completion_rate: float = 0
    total_time_spent: int = 0
    total_estimated_time: int = 0
    average_completion_time: float = 0


def completion_rate(completed: int, total: int) -> float:
    """Percentage of completed tasks; 0 for an empty collection."""
    if total <= 0:
        return 0.0
    return completed / total * 100


def is_overdue(task: Task, now: datetime) -> bool:
    """Past due and not done."""
    if task.due_date is None or task.status == TaskStatus.DONE:
        return False
    return ensure_utc(task.due_date) < ensure_utc(now)


def summarize_project(tasks: Iterable[Task], now: Optional[datetime] = None) -> ProjectStats:
    """Aggregate a project's tasks."""
    now = now or utcnow()
    tasks = list(tasks)

    completed = sum(1 for task in tasks if task.status == TaskStatus.DONE)
    total = len(tasks)

    return ProjectStats(
        total_tasks=total,
        completed_tasks=completed,
        in_progress_tasks=sum(1 for task in tasks if task.status == TaskStatus.IN_PROGRESS),
        todo_tasks=sum(1 for task in tasks if task.status == TaskStatus.TODO),
        completion_rate=completion_rate(completed, total),
        total_time_spent=sum(task.time_spent or 0 for task in tasks),
        total_estimated_time=sum(task.estimated_time or 0 for task in tasks),
        tasks_by_priority=PriorityBreakdown(
            high=sum(1 for task in tasks if task.priority == TaskPriority.HIGH),
            medium=sum(1 for task in tasks if task.priority == TaskPriority.MEDIUM),
            low=sum(1 for task in tasks if task.priority == TaskPriority.LOW)
        ),
        overdue_tasks=sum(1 for task in tasks if is_overdue(task, now))
    )


def summarize_user(tasks: Iterable[Task]) -> UserStats:
    """Aggregate the tasks assigned to one user."""
    tasks = list(tasks)

    completed = sum(1 for task in tasks if task.status == TaskStatus.DONE)
    total_time_spent = sum(task.time_spent or 0 for task in tasks)

    return UserStats(
        total_tasks=len(tasks),
        completed_tasks=completed,
        in_progress_tasks=sum(1 for task in tasks if task.status == TaskStatus.IN_PROGRESS),
        completion_rate=completion_rate(completed, len(tasks)),
        total_time_spent=total_time_spent,
        total_estimated_time=sum(task.estimated_time or 0 for task in tasks),
        average_completion_time=total_time_spent / completed if completed else 0.0
    )


class AnalyticsService:
    """Loads task collections and summarizes them."""

    def __init__(self, store: DocumentStore):
        self.store = store
        self.logger = get_logger("task-manager.analytics")

    async def _tasks(self, filter_) -> List[Task]:
        documents = await self.store.find(TASKS, filter_)
        return [Task.model_validate(document) for document in documents]

    async def project_stats(
        self,
        identity: Identity,
        project_id: str,
        now: Optional[datetime] = None
    ) -> ProjectStats:
        project = await load_project(self.store, project_id)
        require(can_access_project(identity, project), identity, "analytics:project", project_id=project_id)

        stats = summarize_project(await self._tasks({"project": project_id}), now)
        self.logger.debug("Project analytics computed", project_id=project_id, total_tasks=stats.total_tasks)
        return stats

    async def user_stats(self, identity: Identity, user_id: str) -> UserStats:
        """Stats over tasks assigned to ``user_id``. Unknown users yield zeros."""
        require(can_view_user(identity, user_id), identity, "analytics:user", target_user_id=user_id)
        return summarize_user(await self._tasks({"assigned_to": user_id}))
