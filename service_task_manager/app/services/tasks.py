"""
Task service.

Tasks have no ACL of their own; every check goes through the parent project.
"""

from typing import Any, Dict, List, Optional

from shared.errors import ValidationError
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from ..authorization import can_access_project, can_access_task, require
from ..models import (
    Identity, Project, ProjectSummary, Task, TaskCreate, TaskOut, TaskUpdate,
    to_document, utcnow
)
from ..notifications.handlers import TASK_UPDATED_EVENT
from ..notifications.relay import ProjectRoomRelay
from ..persistence.base import DocumentStore, PROJECTS, TASKS
from .common import load_project, load_task, user_summaries


class TaskService:
    """Task CRUD scoped to accessible projects."""

    NON_NULLABLE = ("title", "status", "priority", "time_spent")

    def __init__(
        self,
        store: DocumentStore,
        relay: Optional[ProjectRoomRelay] = None,
        metrics: Optional[MetricsCollector] = None
    ):
        self.store = store
        self.relay = relay
        self.metrics = metrics
        self.logger = get_logger("task-manager.tasks")

    async def _expand(self, tasks: List[Task], projects: Dict[str, Project]) -> List[TaskOut]:
        user_ids = []
        for task in tasks:
            user_ids.extend([task.assigned_to, task.created_by])
        users = await user_summaries(self.store, user_ids)

        expanded = []
        for task in tasks:
            project = projects.get(task.project)
            expanded.append(TaskOut(
                id=task.id,
                title=task.title,
                description=task.description,
                status=task.status,
                priority=task.priority,
                assigned_to=users.get(task.assigned_to) if task.assigned_to else None,
                project=ProjectSummary(id=task.project, name=project.name if project else None),
                created_by=users.get(task.created_by),
                time_spent=task.time_spent,
                estimated_time=task.estimated_time,
                due_date=task.due_date,
                created_at=task.created_at,
                updated_at=task.updated_at
            ))
        return expanded

    async def _list_in(self, projects: List[Project]) -> List[TaskOut]:
        if not projects:
            return []

        by_id = {project.id: project for project in projects}
        documents = await self.store.find(TASKS, {"project": {"$in": list(by_id)}})
        tasks = [Task.model_validate(document) for document in documents]
        tasks.sort(key=lambda task: task.created_at, reverse=True)
        return await self._expand(tasks, by_id)

    def _publish(self, action: str, task: TaskOut):
        """Queue a room notification. Delivery happens after the request returns."""
        if self.relay is None:
            return
        payload: Dict[str, Any] = task.model_dump(mode="json", by_alias=True)
        payload["projectId"] = task.project.id
        payload["action"] = action
        self.relay.publish_nowait(task.project.id, TASK_UPDATED_EVENT, payload)

    def _record(self, event_type: str):
        if self.metrics:
            self.metrics.record_business_event(event_type)

    async def list_for_user(self, identity: Identity) -> List[TaskOut]:
        """All tasks in every project the identity can access, newest first."""
        documents = await self.store.find(PROJECTS, {
            "$or": [{"owner": identity.user_id}, {"members": identity.user_id}]
        })
        return await self._list_in([Project.model_validate(document) for document in documents])

    async def list_for_project(self, identity: Identity, project_id: str) -> List[TaskOut]:
        project = await load_project(self.store, project_id)
        require(can_access_project(identity, project), identity, "task:list", project_id=project_id)
        return await self._list_in([project])

    async def get(self, identity: Identity, task_id: str) -> TaskOut:
        task, project = await load_task(self.store, task_id)
        require(can_access_task(identity, task, project), identity, "task:read", task_id=task_id)
        return (await self._expand([task], {project.id: project}))[0]

    async def create(self, identity: Identity, payload: TaskCreate) -> TaskOut:
        """Create a task in a project the requester can access."""
        project = await load_project(self.store, payload.project)
        require(can_access_project(identity, project), identity, "task:create", project_id=project.id)

        if not payload.title or not payload.title.strip():
            raise ValidationError("Task title is required", details={"field": "title"})

        fields = payload.model_dump(exclude_none=True, exclude={"project"})
        task = Task(**fields, project=project.id, created_by=identity.user_id)
        await self.store.insert(TASKS, to_document(task))

        self.logger.info("Task created", task_id=task.id, project_id=project.id, created_by=identity.user_id)
        self._record("task_created")

        result = (await self._expand([task], {project.id: project}))[0]
        self._publish("created", result)
        return result

    async def update(self, identity: Identity, task_id: str, payload: TaskUpdate) -> TaskOut:
        """
        Apply the fields present in ``payload``.

        An explicit ``0`` is stored as ``0`` and an explicit ``null`` clears an
        optional field. ``project`` and ``createdBy`` are not updatable.
        """
        task, project = await load_task(self.store, task_id)
        require(can_access_task(identity, task, project), identity, "task:update", task_id=task_id)

        changes = payload.model_dump(exclude_unset=True)
        for field in self.NON_NULLABLE:
            if field in changes and changes[field] is None:
                raise ValidationError(f"Task {field} cannot be null", details={"field": field})
        if "title" in changes and not changes["title"].strip():
            raise ValidationError("Task title is required", details={"field": "title"})

        updated = Task.model_validate({**task.model_dump(), **changes, "updated_at": utcnow()})
        await self.store.update(TASKS, task_id, to_document(updated))

        self.logger.info("Task updated", task_id=task_id, fields=sorted(changes))
        self._record("task_updated")

        result = (await self._expand([updated], {project.id: project}))[0]
        self._publish("updated", result)
        return result

    async def remove(self, identity: Identity, task_id: str) -> None:
        """Any project member may delete a task."""
        task, project = await load_task(self.store, task_id)
        require(can_access_task(identity, task, project), identity, "task:delete", task_id=task_id)

        await self.store.delete(TASKS, task_id)
        self.logger.info("Task deleted", task_id=task_id, deleted_by=identity.user_id)
        self._record("task_deleted")

        result = (await self._expand([task], {project.id: project}))[0]
        self._publish("deleted", result)
