"""
Loaders shared by the domain services.
"""

from typing import Dict, Iterable, Optional, Tuple

from shared.errors import NotFoundError
from ..models import Project, Task, User, UserSummary
from ..persistence.base import DocumentStore, PROJECTS, TASKS, USERS


async def load_project(store: DocumentStore, project_id: str) -> Project:
    """Load a project or raise ``NotFoundError``."""
    document = await store.find_by_id(PROJECTS, project_id)
    if document is None:
        raise NotFoundError("Project not found", details={"project_id": project_id})
    return Project.model_validate(document)


async def load_task(store: DocumentStore, task_id: str) -> Tuple[Task, Project]:
    """
    Load a task together with its parent project.

    A task whose project has been deleted is reported as not found.
    """
    document = await store.find_by_id(TASKS, task_id)
    if document is None:
        raise NotFoundError("Task not found", details={"task_id": task_id})
    task = Task.model_validate(document)

    project_document = await store.find_by_id(PROJECTS, task.project)
    if project_document is None:
        raise NotFoundError("Task not found", details={"task_id": task_id})
    return task, Project.model_validate(project_document)


async def load_user(store: DocumentStore, user_id: str) -> User:
    document = await store.find_by_id(USERS, user_id)
    if document is None:
        raise NotFoundError("User not found", details={"user_id": user_id})
    return User.model_validate(document)


async def user_summaries(store: DocumentStore, user_ids: Iterable[Optional[str]]) -> Dict[str, UserSummary]:
    """Expand user ids to ``{id, name, email}``. Unknown ids are left out."""
    wanted = list(dict.fromkeys(user_id for user_id in user_ids if user_id))
    if not wanted:
        return {}

    documents = await store.find(USERS, {"id": {"$in": wanted}})
    return {
        document["id"]: UserSummary(
            id=document["id"],
            name=document.get("name"),
            email=document.get("email")
        )
        for document in documents
    }
