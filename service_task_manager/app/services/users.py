"""
User directory administration.
"""

from typing import List, Optional

from shared.errors import ValidationError
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from ..authorization import can_view_user, is_admin, require
from ..models import Identity, User, UserOut, UserProfileOut, UserUpdate, to_document
from ..persistence.base import DocumentStore, USERS
from .common import load_user


def _public(user: User) -> UserOut:
    return UserOut(
        id=user.id,
        name=user.name,
        email=user.email,
        role=user.role,
        created_at=user.created_at
    )


class UserService:
    """Self-or-Admin access to user records. Credentials are never returned."""

    def __init__(self, store: DocumentStore, metrics: Optional[MetricsCollector] = None):
        self.store = store
        self.metrics = metrics
        self.logger = get_logger("task-manager.users")

    async def list(self, identity: Identity) -> List[UserOut]:
        require(is_admin(identity), identity, "user:list")
        documents = await self.store.find(USERS)
        return [_public(User.model_validate(document)) for document in documents]

    async def get(self, identity: Identity, user_id: str) -> UserOut:
        user = await load_user(self.store, user_id)
        require(can_view_user(identity, user_id), identity, "user:read", target_user_id=user_id)
        return _public(user)

    async def update(self, identity: Identity, user_id: str, payload: UserUpdate) -> UserProfileOut:
        """
        Update name, email and (Admin only) role.

        A role change requested by a non-Admin is ignored rather than rejected.
        """
        user = await load_user(self.store, user_id)
        require(can_view_user(identity, user_id), identity, "user:update", target_user_id=user_id)

        changes = payload.model_dump(exclude_unset=True)
        for field in ("name", "email"):
            if field in changes and (changes[field] is None or not changes[field].strip()):
                raise ValidationError(f"User {field} cannot be empty", details={"field": field})

        if "role" in changes and (changes["role"] is None or not identity.is_admin):
            if changes["role"] is not None:
                self.logger.info("Role change ignored", user_id=user_id, requested_by=identity.user_id)
            changes.pop("role")

        if "email" in changes and changes["email"] != user.email:
            clashes = await self.store.find(USERS, {"email": changes["email"]})
            if any(document["id"] != user_id for document in clashes):
                raise ValidationError("Email already in use", details={"field": "email"})

        updated = User.model_validate({**user.model_dump(), **changes})
        await self.store.update(USERS, user_id, to_document(updated))

        self.logger.info("User updated", user_id=user_id, fields=sorted(changes))
        if self.metrics:
            self.metrics.record_business_event("user_updated")

        return UserProfileOut(id=updated.id, name=updated.name, email=updated.email, role=updated.role)

    async def remove(self, identity: Identity, user_id: str) -> None:
        """Admin only; the role check comes before the existence check."""
        require(is_admin(identity), identity, "user:delete", target_user_id=user_id)
        await load_user(self.store, user_id)

        await self.store.delete(USERS, user_id)
        self.logger.info("User deleted", user_id=user_id, deleted_by=identity.user_id)
        if self.metrics:
            self.metrics.record_business_event("user_deleted")
