"""
Error taxonomy for the data core.

Remote-store adapters translate driver exceptions into ``StoreError`` with a
structured ``code`` so services never inspect message text.
Validation problems are returned as ``ValidationResult`` values, not raised,
and local cache failures are absorbed inside ``LocalCache``.
"""
from __future__ import annotations

import enum
from typing import Optional


class HojaTTopError(Exception):
    pass


class NetworkFailure(HojaTTopError):
    """A remote document-store call raised or was rejected."""


class StoreErrorCode(str, enum.Enum):
    INDEX_MISSING = "index_missing"
    UNAVAILABLE   = "unavailable"
    UNKNOWN       = "unknown"


class StoreError(NetworkFailure):
    def __init__(
        self,
        message: str,
        code: StoreErrorCode = StoreErrorCode.UNKNOWN,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.code  = code
        self.cause = cause

    def __repr__(self) -> str:
        return f"StoreError({str(self)!r}, code={self.code.value})"


class DataUnavailable(NetworkFailure):
    """Network read failed and there is no cached copy to fall back on."""


class NotFound(HojaTTopError):
    def __init__(self, collection: str, doc_id: str):
        super().__init__(f"{collection}/{doc_id} not found")
        self.collection = collection
        self.doc_id     = doc_id
