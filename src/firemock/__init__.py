"""firemock: in-memory Firestore-style query double for deterministic unit tests."""

from firemock.client import MockFirestore
from firemock.config import MockConfig
from firemock.field_path import FieldPath
from firemock.logging import bind_scope, configure_logging, get_scope
from firemock.models import (
    DocumentChange,
    DocumentNotFoundError,
    DocumentSnapshot,
    FiremockError,
    NothingToFlushError,
    QuerySnapshot,
    SnapshotOptions,
    StreamTimeoutError,
    UnorderedPaginationError,
)
from firemock.query import MockQuery, QueryStream
from firemock.queue import FlushEvent, FlushQueue, Scheduler
from firemock.reference import MockCollectionReference, MockDocumentReference, auto_id

__version__ = "0.1.0"

__all__ = [
    "DocumentChange",
    "DocumentNotFoundError",
    "DocumentSnapshot",
    "FieldPath",
    "FiremockError",
    "FlushEvent",
    "FlushQueue",
    "MockCollectionReference",
    "MockConfig",
    "MockDocumentReference",
    "MockFirestore",
    "MockQuery",
    "NothingToFlushError",
    "QuerySnapshot",
    "QueryStream",
    "Scheduler",
    "SnapshotOptions",
    "StreamTimeoutError",
    "UnorderedPaginationError",
    "__version__",
    "auto_id",
    "bind_scope",
    "configure_logging",
    "get_scope",
]
