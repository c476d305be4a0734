"""Data access layer: the shared document store interface and its value objects."""

from shared.dal.document_store import DocumentStore
from shared.dal.exceptions import (
    DocumentNotFoundError,
    InvalidPathError,
    StoreError,
    StoreUnavailableError,
    VersionConflictError,
)
from shared.dal.listeners import Subscription
from shared.dal.memory_store import MemoryDocumentStore
from shared.dal.models import BatchResult, DocumentSnapshot

__all__ = [
    "BatchResult",
    "DocumentNotFoundError",
    "DocumentSnapshot",
    "DocumentStore",
    "InvalidPathError",
    "MemoryDocumentStore",
    "StoreError",
    "StoreUnavailableError",
    "Subscription",
    "VersionConflictError",
]
