"""
Remote document store.

Services talk to ``DocumentStore``; ``MongoDocumentStore`` is the production
adapter (motor). Driver exceptions are translated to ``StoreError`` with a
structured code so callers can tell "index missing" apart from an outage.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import (
    AutoReconnect,
    ConnectionFailure,
    ExecutionTimeout,
    OperationFailure,
    PyMongoError,
    ServerSelectionTimeoutError,
)

from app.core.errors import StoreError, StoreErrorCode

logger = logging.getLogger(__name__)

# Server codes raised when a sort cannot be served by an index:
# 27 IndexNotFound, 96 OperationFailed (legacy in-memory sort limit),
# 292 QueryExceededMemoryLimitNoDiskUseAllowed
_INDEX_MISSING_CODES = {27, 96, 292}


@dataclass
class StoredDocument:
    id: str
    data: Dict[str, Any] = field(default_factory=dict)


class DocumentStore(ABC):
    @abstractmethod
    async def scan(self, collection: str) -> List[StoredDocument]: ...

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[StoredDocument]: ...

    @abstractmethod
    async def insert(self, collection: str, data: Dict[str, Any]) -> str: ...

    @abstractmethod
    async def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> bool:
        """Partial merge. Returns False when no document has ``doc_id``."""

    @abstractmethod
    async def query(
        self,
        collection: str,
        field_name: str,
        value: Any,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[StoredDocument]: ...

    @abstractmethod
    async def recent(
        self,
        collection: str,
        order_by: str,
        limit: int,
    ) -> List[StoredDocument]:
        """Whole-collection scan ordered descending by ``order_by``."""


# ── Mongo adapter ─────────────────────────────────────────────────────────────

def translate_error(exc: PyMongoError) -> StoreError:
    if isinstance(exc, (ServerSelectionTimeoutError, ConnectionFailure, AutoReconnect, ExecutionTimeout)):
        return StoreError(str(exc), StoreErrorCode.UNAVAILABLE, exc)
    if isinstance(exc, OperationFailure) and exc.code in _INDEX_MISSING_CODES:
        return StoreError(str(exc), StoreErrorCode.INDEX_MISSING, exc)
    return StoreError(str(exc), StoreErrorCode.UNKNOWN, exc)


def _id_filter(doc_id: str) -> Dict[str, Any]:
    # Seeded documents get ObjectIds; ids stored as plain strings still match.
    if ObjectId.is_valid(doc_id):
        return {"_id": {"$in": [ObjectId(doc_id), doc_id]}}
    return {"_id": doc_id}


def _to_stored(raw: Dict[str, Any]) -> StoredDocument:
    data = dict(raw)
    doc_id = data.pop("_id")
    return StoredDocument(id=str(doc_id), data=data)


class MongoDocumentStore(DocumentStore):
    def __init__(self, client: AsyncIOMotorClient, database: str):
        self.client = client
        self.db     = client[database]

    @classmethod
    def from_uri(cls, uri: str, database: str) -> "MongoDocumentStore":
        return cls(AsyncIOMotorClient(uri), database)

    async def scan(self, collection: str) -> List[StoredDocument]:
        try:
            docs = await self.db[collection].find({}).to_list(length=None)
        except PyMongoError as exc:
            raise translate_error(exc) from exc
        logger.debug("scan %s → %d docs", collection, len(docs))
        return [_to_stored(d) for d in docs]

    async def get(self, collection: str, doc_id: str) -> Optional[StoredDocument]:
        try:
            raw = await self.db[collection].find_one(_id_filter(doc_id))
        except PyMongoError as exc:
            raise translate_error(exc) from exc
        return _to_stored(raw) if raw else None

    async def insert(self, collection: str, data: Dict[str, Any]) -> str:
        try:
            result = await self.db[collection].insert_one(dict(data))
        except PyMongoError as exc:
            raise translate_error(exc) from exc
        return str(result.inserted_id)

    async def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> bool:
        try:
            result = await self.db[collection].update_one(_id_filter(doc_id), {"$set": fields})
        except PyMongoError as exc:
            raise translate_error(exc) from exc
        return result.matched_count > 0

    async def query(
        self,
        collection: str,
        field_name: str,
        value: Any,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[StoredDocument]:
        cursor = self.db[collection].find({field_name: value})
        if order_by:
            cursor = cursor.sort(order_by, DESCENDING if descending else ASCENDING)
        if limit:
            cursor = cursor.limit(limit)
        try:
            docs = await cursor.to_list(length=None)
        except PyMongoError as exc:
            raise translate_error(exc) from exc
        return [_to_stored(d) for d in docs]

    async def recent(self, collection: str, order_by: str, limit: int) -> List[StoredDocument]:
        cursor = self.db[collection].find({}).sort(order_by, DESCENDING).limit(limit)
        try:
            docs = await cursor.to_list(length=None)
        except PyMongoError as exc:
            raise translate_error(exc) from exc
        return [_to_stored(d) for d in docs]

    def close(self) -> None:
        self.client.close()
