"""
Document store adapters.
"""

from shared.config import BaseConfig
from shared.errors import TaskboardException
from .base import DocumentStore, USERS, PROJECTS, TASKS
from .memory import InMemoryDocumentStore


def create_store(config: BaseConfig) -> DocumentStore:
    """Build the store selected by ``storage_backend``."""
    backend = config.storage_backend.lower()
    if backend == "memory":
        return InMemoryDocumentStore()
    if backend == "postgres":
        from .postgres import PostgresDocumentStore
        return PostgresDocumentStore(config.postgres_dsn)
    raise TaskboardException("INVALID_CONFIG", f"Unknown storage backend: {config.storage_backend}")


__all__ = [
    "DocumentStore",
    "InMemoryDocumentStore",
    "create_store",
    "USERS",
    "PROJECTS",
    "TASKS",
]
