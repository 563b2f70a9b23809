"""
Document store contract for the Task Manager service.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

USERS = "users"
PROJECTS = "projects"
TASKS = "tasks"

COLLECTIONS = (USERS, PROJECTS, TASKS)

Document = Dict[str, Any]


def matches(document: Document, filter_: Optional[Dict[str, Any]]) -> bool:
    """
    Evaluate a filter against a document.

    Supported forms:
        {"field": value}              equality; a list field matches if it contains value
        {"field": {"$in": [...]}}     membership
        {"$or": [filter, ...]}        any branch matches

    All top-level keys must match.
    """
    if not filter_:
        return True

    for key, expected in filter_.items():
        if key == "$or":
            if not any(matches(document, branch) for branch in expected):
                return False
            continue

        actual = document.get(key)
        if isinstance(expected, dict) and "$in" in expected:
            candidates = expected["$in"]
            if isinstance(actual, list):
                if not any(item in candidates for item in actual):
                    return False
            elif actual not in candidates:
                return False
        elif isinstance(actual, list) and not isinstance(expected, list):
            if expected not in actual:
                return False
        elif actual != expected:
            return False

    return True


class DocumentStore(ABC):
    """Async document store holding users, projects and tasks."""

    async def start(self):
        """Open connections. No-op by default."""

    async def stop(self):
        """Close connections. No-op by default."""

    async def ping(self) -> str:
        return "ok"

    @abstractmethod
    async def find_by_id(self, collection: str, document_id: str) -> Optional[Document]:
        """Return the document or None."""

    @abstractmethod
    async def find(self, collection: str, filter_: Optional[Dict[str, Any]] = None) -> List[Document]:
        """Return every document matching the filter."""

    @abstractmethod
    async def insert(self, collection: str, document: Document) -> Document:
        """Insert a document keyed by its ``id`` field."""

    @abstractmethod
    async def update(self, collection: str, document_id: str, document: Document) -> bool:
        """Replace a document. Returns False if it does not exist."""

    @abstractmethod
    async def delete(self, collection: str, document_id: str) -> bool:
        """Delete a document. Returns False if it does not exist."""
