"""
Collection and document references over a :class:`~firemock.client.MockFirestore`.

A collection reference is a :class:`~firemock.query.MockQuery` that always
reads the current store, so listeners attached to it see writes. Queries
built from it (``where``, ``order_by``, ...) capture a point-in-time copy.

Writes are deferred like reads: ``set``/``update``/``delete``/``add`` return
futures that complete on the next flush.
"""

from __future__ import annotations

import copy
import logging
import secrets
import string
from collections.abc import Callable, Mapping
from concurrent.futures import Future
from typing import TYPE_CHECKING, Any

from firemock.field_path import to_field_path
from firemock.models import DocumentNotFoundError, DocumentSnapshot
from firemock.query import MockQuery
from firemock.queue import FlushDelay

if TYPE_CHECKING:
    from firemock.client import MockFirestore

logger = logging.getLogger(__name__)

_AUTO_ID_CHARS = string.ascii_letters + string.digits


def auto_id(length: int = 20) -> str:
    """Random document id in the style of generated Firestore ids."""
    return "".join(secrets.choice(_AUTO_ID_CHARS) for _ in range(length))


def _merge(target: dict[str, Any], changes: Mapping[str, Any]) -> None:
    for key, value in changes.items():
        if isinstance(value, Mapping) and isinstance(target.get(key), dict):
            _merge(target[key], value)
        else:
            target[key] = copy.deepcopy(value)


def _apply_update(target: dict[str, Any], changes: Mapping[str, Any]) -> None:
    """Apply ``update()`` changes; dotted keys address nested fields."""
    for key, value in changes.items():
        segments = to_field_path(key).segments
        node = target
        for seg in segments[:-1]:
            child = node.get(seg)
            if not isinstance(child, dict):
                child = node[seg] = {}
            node = child
        node[segments[-1]] = copy.deepcopy(value)


class MockCollectionReference(MockQuery):
    """A live query over every document in one collection."""

    def __init__(self, firestore: MockFirestore, path: str, parent: Any) -> None:
        self._firestore = firestore
        super().__init__(
            path,
            None,
            parent,
            path.rsplit("/", 1)[-1],
            scheduler=firestore.scheduler,
            config=firestore.config,
        )

    def _source(self) -> Mapping[str, Any]:
        return self._firestore.documents(self.path)

    def document_ref(self, doc_id: str) -> MockDocumentReference:
        return self.doc(doc_id)

    def doc(self, doc_id: str | None = None) -> MockDocumentReference:
        """Reference to *doc_id*, or to a new auto-id document."""
        if doc_id is None:
            doc_id = auto_id(self.config.auto_id_length)
        return self._firestore.doc(f"{self.path}/{doc_id}")

    document = doc

    def add(self, data: Mapping[str, Any]) -> Future[MockDocumentReference]:
        """Create a document with a generated id on the next flush."""
        err = self._next_error("add")
        ref = self.doc()
        payload = copy.deepcopy(dict(data))
        future: Future[MockDocumentReference] = Future()

        def deliver() -> None:
            if not future.set_running_or_notify_cancel():
                return
            if err is not None:
                future.set_exception(err)
                return
            self._firestore.write_document(ref.path, payload)
            future.set_result(ref)

        self._defer("add", (payload,), deliver)
        return future


class MockDocumentReference:
    """Reference to one document path. Obtain through the client or a collection."""

    def __init__(self, firestore: MockFirestore, path: str) -> None:
        self._firestore = firestore
        self.path = path
        self.id = path.rsplit("/", 1)[-1]
        self._errors: dict[str, BaseException] = {}

    @property
    def scheduler(self) -> Any:
        return self._firestore.scheduler

    @property
    def config(self) -> Any:
        return self._firestore.config

    @property
    def parent(self) -> MockCollectionReference:
        return self._firestore.collection(self.path.rsplit("/", 1)[0])

    def collection(self, name: str) -> MockCollectionReference:
        return self._firestore.collection(f"{self.path}/{name}")

    # ---- reads / writes -------------------------------------------------

    def get(self) -> Future[DocumentSnapshot]:
        err = self._next_error("get")
        future: Future[DocumentSnapshot] = Future()

        def deliver() -> None:
            if not future.set_running_or_notify_cancel():
                return
            if err is not None:
                future.set_exception(err)
                return
            data = self._firestore.read_document(self.path)
            future.set_result(DocumentSnapshot(self.id, data, self))

        self._defer("get", (), deliver)
        return future

    def set(self, data: Mapping[str, Any], merge: bool = False) -> Future[None]:
        """Replace the document, or deep-merge into it with ``merge=True``."""
        payload = copy.deepcopy(dict(data))

        def write() -> None:
            current = self._firestore.read_document(self.path)
            if merge and current is not None:
                _merge(current, payload)
                self._firestore.write_document(self.path, current)
            else:
                self._firestore.write_document(self.path, payload)

        return self._write("set", (payload, merge), write)

    def update(self, data: Mapping[str, Any]) -> Future[None]:
        """Change fields of an existing document.

        The future fails with :class:`DocumentNotFoundError` when the
        document does not exist at flush time.
        """
        payload = copy.deepcopy(dict(data))

        def write() -> None:
            current = self._firestore.read_document(self.path)
            if current is None:
                raise DocumentNotFoundError(self.path)
            _apply_update(current, payload)
            self._firestore.write_document(self.path, current)

        return self._write("update", (payload,), write)

    def delete(self) -> Future[None]:
        """Remove the document. Its sub-collections are left in place."""
        return self._write("delete", (), lambda: self._firestore.delete_document(self.path))

    def _write(self, method: str, args: tuple[Any, ...], apply: Callable[[], None]) -> Future[None]:
        err = self._next_error(method)
        future: Future[None] = Future()

        def deliver() -> None:
            if not future.set_running_or_notify_cancel():
                return
            if err is not None:
                future.set_exception(err)
                return
            try:
                apply()
            except Exception as exc:
                logger.debug(
                    "%s %s failed: %s",
                    method,
                    self.path,
                    exc,
                    extra={"method": method, "path": self.path},
                )
                future.set_exception(exc)
                return
            future.set_result(None)

        self._defer(method, args, deliver)
        return future

    # ---- queue control --------------------------------------------------

    def flush(self, delay: FlushDelay = None) -> MockDocumentReference:
        self.scheduler.flush(delay)
        return self

    def auto_flush(self, delay: bool | float = True) -> MockDocumentReference:
        self.scheduler.set_auto_flush(delay)
        return self

    def _defer(self, method: str, args: tuple[Any, ...], fn: Callable[[], None]) -> None:
        self.scheduler.defer(fn, self, method, args)

    def fail_next(self, method: str, error: BaseException) -> None:
        """Make the next *method* call (``get``, ``set``, ``update``, ``delete``) fail."""
        self._errors[method] = error

    def _next_error(self, method: str) -> BaseException | None:
        return self._errors.pop(method, None)

    def __eq__(self, other: object) -> bool:
        return (
            isinstance(other, MockDocumentReference)
            and other._firestore is self._firestore
            and other.path == self.path
        )

    def __hash__(self) -> int:
        return hash(self.path)

    def __repr__(self) -> str:
        return f"MockDocumentReference(path={self.path!r})"
