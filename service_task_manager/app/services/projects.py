"""
Project service.
"""

from typing import List, Optional

from shared.errors import ValidationError
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from ..authorization import (
    can_access_project, can_delete_project, can_manage_project, require
)
from ..models import (
    Identity, Project, ProjectCreate, ProjectOut, ProjectUpdate, to_document
)
from ..persistence.base import DocumentStore, PROJECTS
from .common import load_project, user_summaries


class ProjectService:
    """Project CRUD for owners and members."""

    NON_NULLABLE = ("name", "members", "status")

    def __init__(self, store: DocumentStore, metrics: Optional[MetricsCollector] = None):
        self.store = store
        self.metrics = metrics
        self.logger = get_logger("task-manager.projects")

    async def _expand(self, projects: List[Project]) -> List[ProjectOut]:
        user_ids = []
        for project in projects:
            user_ids.append(project.owner)
            user_ids.extend(project.members)
        users = await user_summaries(self.store, user_ids)

        return [
            ProjectOut(
                id=project.id,
                name=project.name,
                description=project.description,
                owner=users.get(project.owner),
                members=[users[member] for member in project.members if member in users],
                status=project.status,
                created_at=project.created_at
            )
            for project in projects
        ]

    def _record(self, event_type: str):
        if self.metrics:
            self.metrics.record_business_event(event_type)

    async def list(self, identity: Identity) -> List[ProjectOut]:
        """Projects the identity owns or is a member of."""
        documents = await self.store.find(PROJECTS, {
            "$or": [{"owner": identity.user_id}, {"members": identity.user_id}]
        })
        projects = [Project.model_validate(document) for document in documents]
        return await self._expand(projects)

    async def get(self, identity: Identity, project_id: str) -> ProjectOut:
        project = await load_project(self.store, project_id)
        require(can_access_project(identity, project), identity, "project:read", project_id=project_id)
        return (await self._expand([project]))[0]

    async def create(self, identity: Identity, payload: ProjectCreate) -> ProjectOut:
        """Create a project owned by the requester."""
        if not payload.name or not payload.name.strip():
            raise ValidationError("Project name is required", details={"field": "name"})

        project = Project(
            name=payload.name,
            description=payload.description,
            owner=identity.user_id,
            members=payload.members or []
        )
        await self.store.insert(PROJECTS, to_document(project))

        self.logger.info("Project created", project_id=project.id, owner=project.owner)
        self._record("project_created")
        return (await self._expand([project]))[0]

    async def update(self, identity: Identity, project_id: str, payload: ProjectUpdate) -> ProjectOut:
        """
        Apply the fields present in ``payload``.

        Present fields overwrite, including empty strings and empty lists;
        absent fields are left untouched. The owner cannot be changed.
        """
        project = await load_project(self.store, project_id)
        require(can_manage_project(identity, project), identity, "project:update", project_id=project_id)

        changes = payload.model_dump(exclude_unset=True)
        for field in self.NON_NULLABLE:
            if field in changes and changes[field] is None:
                raise ValidationError(f"Project {field} cannot be null", details={"field": field})
        if "name" in changes and not changes["name"].strip():
            raise ValidationError("Project name is required", details={"field": "name"})

        updated = Project.model_validate({**project.model_dump(), **changes})
        await self.store.update(PROJECTS, project_id, to_document(updated))

        self.logger.info("Project updated", project_id=project_id, fields=sorted(changes))
        self._record("project_updated")
        return (await self._expand([updated]))[0]

    async def remove(self, identity: Identity, project_id: str) -> None:
        """Delete a project. Its tasks are left in place."""
        project = await load_project(self.store, project_id)
        require(can_delete_project(identity, project), identity, "project:delete", project_id=project_id)

        await self.store.delete(PROJECTS, project_id)
        self.logger.info("Project deleted", project_id=project_id, deleted_by=identity.user_id)
        self._record("project_deleted")
