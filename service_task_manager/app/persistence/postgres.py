"""
PostgreSQL document store.

Documents live as JSONB in a single ``documents`` table keyed by
(collection, id). Filters are evaluated in Python with the same matcher the
in-memory store uses.
"""

import json
from typing import Any, Dict, List, Optional

import asyncpg

from shared.errors import PersistenceError
from shared.logging import get_logger
from .base import Document, DocumentStore, matches


class PostgresDocumentStore(DocumentStore):
    """asyncpg-backed document store."""

    def __init__(self, dsn: str, min_size: int = 2, max_size: int = 10):
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self.logger = get_logger("task-manager.persistence.postgres")
        self.pool: Optional[asyncpg.Pool] = None

    async def start(self):
        """Open the pool and create the table."""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=self.min_size,
                max_size=self.max_size,
                command_timeout=30
            )
            await self._create_tables()
            self.logger.info("PostgreSQL document store started")
        except (asyncpg.PostgresError, OSError) as e:
            self.logger.error("Failed to start PostgreSQL document store", error=str(e))
            raise PersistenceError("Failed to connect to document store", details={"error": str(e)})

    async def stop(self):
        if self.pool:
            await self.pool.close()
            self.pool = None
            self.logger.info("PostgreSQL document store stopped")

    async def _create_tables(self):
        async with self.pool.acquire() as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS documents (
                    collection VARCHAR(64) NOT NULL,
                    id VARCHAR(64) NOT NULL,
                    body JSONB NOT NULL,
                    PRIMARY KEY (collection, id)
                );
            """)

    def _require_pool(self) -> asyncpg.Pool:
        if self.pool is None:
            raise PersistenceError("Document store is not started")
        return self.pool

    async def ping(self) -> str:
        try:
            async with self._require_pool().acquire() as conn:
                await conn.fetchval("SELECT 1")
            return "ok"
        except (asyncpg.PostgresError, OSError) as e:
            raise PersistenceError("Document store unreachable", details={"error": str(e)})

    async def find_by_id(self, collection: str, document_id: str) -> Optional[Document]:
        try:
            async with self._require_pool().acquire() as conn:
                body = await conn.fetchval(
                    "SELECT body FROM documents WHERE collection = $1 AND id = $2",
                    collection, document_id
                )
        except (asyncpg.PostgresError, OSError) as e:
            self.logger.error("Error loading document", collection=collection, document_id=document_id, error=str(e))
            raise PersistenceError("Failed to load document")

        return json.loads(body) if body is not None else None

    async def find(self, collection: str, filter_: Optional[Dict[str, Any]] = None) -> List[Document]:
        try:
            async with self._require_pool().acquire() as conn:
                rows = await conn.fetch(
                    "SELECT body FROM documents WHERE collection = $1",
                    collection
                )
        except (asyncpg.PostgresError, OSError) as e:
            self.logger.error("Error querying documents", collection=collection, error=str(e))
            raise PersistenceError("Failed to query documents")

        documents = [json.loads(row["body"]) for row in rows]
        return [document for document in documents if matches(document, filter_)]

    async def insert(self, collection: str, document: Document) -> Document:
        document_id = document.get("id")
        if not document_id:
            raise PersistenceError("Document must have an id")

        try:
            async with self._require_pool().acquire() as conn:
                await conn.execute(
                    "INSERT INTO documents (collection, id, body) VALUES ($1, $2, $3::jsonb)",
                    collection, document_id, json.dumps(document)
                )
        except asyncpg.UniqueViolationError:
            raise PersistenceError("Duplicate document id", details={"collection": collection})
        except (asyncpg.PostgresError, OSError) as e:
            self.logger.error("Error inserting document", collection=collection, document_id=document_id, error=str(e))
            raise PersistenceError("Failed to insert document")

        return document

    async def update(self, collection: str, document_id: str, document: Document) -> bool:
        try:
            async with self._require_pool().acquire() as conn:
                result = await conn.execute(
                    "UPDATE documents SET body = $3::jsonb WHERE collection = $1 AND id = $2",
                    collection, document_id, json.dumps({**document, "id": document_id})
                )
        except (asyncpg.PostgresError, OSError) as e:
            self.logger.error("Error updating document", collection=collection, document_id=document_id, error=str(e))
            raise PersistenceError("Failed to update document")

        return result.endswith(" 1")

    async def delete(self, collection: str, document_id: str) -> bool:
        try:
            async with self._require_pool().acquire() as conn:
                result = await conn.execute(
                    "DELETE FROM documents WHERE collection = $1 AND id = $2",
                    collection, document_id
                )
        except (asyncpg.PostgresError, OSError) as e:
            self.logger.error("Error deleting document", collection=collection, document_id=document_id, error=str(e))
            raise PersistenceError("Failed to delete document")

        return result.endswith(" 1")
