"""
In-memory database root.

``MockFirestore`` owns the document store, the scheduler shared by every
reference it hands out, and a cache of references so that injected errors
and listeners registered on ``db.collection("users")`` apply to every later
``db.collection("users")`` call.

Usage::

    db = MockFirestore({"users": {"alice": {"age": 31}}})
    users = db.collection("users")
    future = users.where("age", "==", 31).get()
    db.flush()
    [doc.id for doc in future.result()]   # ["alice"]
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from typing import Any

from firemock.config import MockConfig
from firemock.queue import FlushDelay, FlushEvent, Scheduler
from firemock.reference import MockCollectionReference, MockDocumentReference

logger = logging.getLogger(__name__)


def _split(path: str) -> list[str]:
    segments = [seg for seg in path.strip("/").split("/") if seg]
    if not segments:
        raise ValueError(f"path must be a non-empty string, got {path!r}")
    return segments


def _collection_path(path: str) -> str:
    segments = _split(path)
    if len(segments) % 2 == 0:
        raise ValueError(f"{path!r} is a document path, not a collection path")
    return "/".join(segments)


def _document_path(path: str) -> str:
    segments = _split(path)
    if len(segments) % 2 == 1:
        raise ValueError(f"{path!r} is a collection path, not a document path")
    return "/".join(segments)


class MockFirestore:
    """Root of an in-memory document database.

    Args:
        data: Initial contents as ``{collection_path: {doc_id: document}}``,
            e.g. ``{"users": {...}, "users/alice/posts": {...}}``.
        config: Settings; ``MockConfig()`` defaults when omitted.
    """

    def __init__(
        self,
        data: Mapping[str, Mapping[str, Any]] | None = None,
        config: MockConfig | None = None,
    ) -> None:
        self.config = config or MockConfig()
        self.scheduler = Scheduler(delay=self.config.auto_flush)
        self.path = self.config.root_path
        self._collections: dict[str, dict[str, Any]] = {}
        self._refs: dict[str, Any] = {}

        for collection, docs in (data or {}).items():
            for doc_id, doc in docs.items():
                self.write_document(f"{_collection_path(collection)}/{doc_id}", doc)

        logger.debug(
            "MockFirestore created collections=%d auto_flush=%r",
            len(self._collections),
            self.config.auto_flush,
        )

    # ---- references -----------------------------------------------------

    def collection(self, path: str) -> MockCollectionReference:
        path = _collection_path(path)
        ref = self._refs.get(path)
        if ref is None:
            parent: Any = self if "/" not in path else self.doc(path.rsplit("/", 1)[0])
            ref = self._refs[path] = MockCollectionReference(self, path, parent)
        return ref

    def doc(self, path: str) -> MockDocumentReference:
        path = _document_path(path)
        ref = self._refs.get(path)
        if ref is None:
            ref = self._refs[path] = MockDocumentReference(self, path)
        return ref

    document = doc

    # ---- store ----------------------------------------------------------

    def documents(self, collection_path: str) -> Mapping[str, Any]:
        """Live, read-only view of one collection's documents."""
        return self._collections.get(collection_path, {})

    def read_document(self, path: str) -> dict[str, Any] | None:
        collection, doc_id = path.rsplit("/", 1)
        doc = self._collections.get(collection, {}).get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    def write_document(self, path: str, data: Mapping[str, Any]) -> None:
        """Store *data* at *path* immediately, bypassing the queue."""
        collection, doc_id = _document_path(path).rsplit("/", 1)
        self._collections.setdefault(collection, {})[doc_id] = copy.deepcopy(dict(data))

    def delete_document(self, path: str) -> None:
        collection, doc_id = path.rsplit("/", 1)
        docs = self._collections.get(collection)
        if docs is not None:
            docs.pop(doc_id, None)

    # ---- queue control --------------------------------------------------

    def flush(self, delay: FlushDelay = None) -> MockFirestore:
        self.scheduler.flush(delay)
        return self

    def auto_flush(self, delay: bool | float = True) -> MockFirestore:
        self.scheduler.set_auto_flush(delay)
        return self

    def get_flush_queue(self) -> list[FlushEvent]:
        return self.scheduler.queue.events

    def __repr__(self) -> str:
        return f"MockFirestore(collections={sorted(self._collections)})"
