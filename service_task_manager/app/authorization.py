"""
Ownership/membership authorization for projects, tasks and users.

Single source of truth for access decisions. Every service consults these
predicates; none re-derives them. Callers check existence first (NotFound)
and only then evaluate a predicate (AccessDenied).

Pure Python logic - no FastAPI imports, no database access.
"""

from shared.errors import AccessDeniedError
from shared.logging import get_logger

from .models import Identity, Project, Task

logger = get_logger("task-manager.authorization")


def can_access_project(identity: Identity, project: Project) -> bool:
    """Owner or member."""
    return identity.user_id == project.owner or identity.user_id in project.members


def can_manage_project(identity: Identity, project: Project) -> bool:
    """Only the owner may change a project."""
    return identity.user_id == project.owner


def can_delete_project(identity: Identity, project: Project) -> bool:
    """Owner, or any Admin."""
    return can_manage_project(identity, project) or identity.is_admin


def can_access_task(identity: Identity, task: Task, project: Project) -> bool:
    """
    Tasks carry no ACL of their own: access is that of the parent project.

    ``project`` must be the task's parent; a mismatched pair is denied.
    """
    if task.project != project.id:
        return False
    return can_access_project(identity, project)


def can_view_user(identity: Identity, target_user_id: str) -> bool:
    """Self, or any Admin. Also governs profile updates and user analytics."""
    return identity.user_id == target_user_id or identity.is_admin


def is_admin(identity: Identity) -> bool:
    return identity.is_admin


def require(allowed: bool, identity: Identity, action: str, **context) -> None:
    """
    Raise ``AccessDeniedError`` unless ``allowed``.

    Args:
        allowed: Result of one of the predicates above
        identity: Requester, for the audit log
        action: Short action name (e.g. "project:update")
        **context: Extra fields for the audit log (entity ids)
    """
    if allowed:
        return
    logger.warning(
        "Access denied",
        user_id=identity.user_id,
        role=identity.role.value,
        action=action,
        **context
    )
    raise AccessDeniedError("Access denied", details={"action": action})
