"""
In-memory document store.

Used for local runs and tests. Documents are copied on the way in and out so
callers never share mutable state with the store.
"""

import copy
from typing import Any, Dict, List, Optional

from shared.errors import PersistenceError
from shared.logging import get_logger
from .base import COLLECTIONS, Document, DocumentStore, matches


class InMemoryDocumentStore(DocumentStore):
    """Dictionary-backed store keyed by collection and id."""

    def __init__(self):
        self.logger = get_logger("task-manager.persistence.memory")
        self._collections: Dict[str, Dict[str, Document]] = {name: {} for name in COLLECTIONS}

    def _collection(self, name: str) -> Dict[str, Document]:
        if name not in self._collections:
            raise PersistenceError(f"Unknown collection: {name}")
        return self._collections[name]

    async def find_by_id(self, collection: str, document_id: str) -> Optional[Document]:
        document = self._collection(collection).get(document_id)
        return copy.deepcopy(document) if document is not None else None

    async def find(self, collection: str, filter_: Optional[Dict[str, Any]] = None) -> List[Document]:
        return [
            copy.deepcopy(document)
            for document in self._collection(collection).values()
            if matches(document, filter_)
        ]

    async def insert(self, collection: str, document: Document) -> Document:
        documents = self._collection(collection)
        document_id = document.get("id")
        if not document_id:
            raise PersistenceError("Document must have an id")
        if document_id in documents:
            raise PersistenceError("Duplicate document id", details={"collection": collection})

        documents[document_id] = copy.deepcopy(document)
        self.logger.debug("Document inserted", collection=collection, document_id=document_id)
        return copy.deepcopy(document)

    async def update(self, collection: str, document_id: str, document: Document) -> bool:
        documents = self._collection(collection)
        if document_id not in documents:
            return False
        documents[document_id] = copy.deepcopy({**document, "id": document_id})
        return True

    async def delete(self, collection: str, document_id: str) -> bool:
        return self._collection(collection).pop(document_id, None) is not None
