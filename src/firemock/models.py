"""
Result wrappers and exception hierarchy for firemock.

Snapshots hand data to callers and always return deep copies, so nothing a
test receives can alias the in-memory store.
"""

from __future__ import annotations

import copy
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from firemock.field_path import MISSING, FieldPath, resolve_field, values_equal

if TYPE_CHECKING:
    from firemock.query import MockQuery


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class FiremockError(Exception):
    """Base exception for all firemock errors."""


class UnorderedPaginationError(FiremockError, ValueError):
    """A cursor was requested on a query with no ``order_by``."""

    def __init__(self, message: str = "Query must be ordered to paginate") -> None:
        super().__init__(message)


class NothingToFlushError(FiremockError):
    """``flush()`` was called while no deferred work was queued."""

    def __init__(self, message: str = "No deferred tasks to be flushed") -> None:
        super().__init__(message)


class DocumentNotFoundError(FiremockError):
    """An update targeted a document that does not exist."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"No document to update: {path}")


class StreamTimeoutError(FiremockError, TimeoutError):
    """A query stream was consumed before its query was flushed."""


# ---------------------------------------------------------------------------
# Options and changes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SnapshotOptions:
    """Listener options for :meth:`MockQuery.on_snapshot`.

    Args:
        include_metadata_changes: Deliver a snapshot after every flush even
            when the results did not change.
    """

    include_metadata_changes: bool = False


ADDED = "added"
MODIFIED = "modified"
REMOVED = "removed"


@dataclass(frozen=True)
class DocumentChange:
    """One entry of :meth:`QuerySnapshot.doc_changes`.

    ``old_index`` is ``-1`` for added documents and ``new_index`` is ``-1``
    for removed ones.
    """

    type: str
    doc: DocumentSnapshot
    old_index: int
    new_index: int


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------


class DocumentSnapshot:
    """A point-in-time view of a single document."""

    def __init__(self, doc_id: str, data: dict[str, Any] | None, ref: Any = None) -> None:
        self._id = doc_id
        self._data = copy.deepcopy(data) if data is not None else None
        self._ref = ref

    @property
    def id(self) -> str:
        return self._id

    @property
    def ref(self) -> Any:
        return self._ref

    reference = ref

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self) -> dict[str, Any] | None:
        if self._data is None:
            return None
        return copy.deepcopy(self._data)

    data = to_dict

    def get(self, field: str | FieldPath) -> Any:
        """Return the value at *field*, or ``None`` if it is absent."""
        if self._data is None:
            return None
        value = resolve_field(self._id, self._data, field)
        return None if value is MISSING else copy.deepcopy(value)

    def __repr__(self) -> str:
        return f"DocumentSnapshot(id={self._id!r}, exists={self.exists})"


class QuerySnapshot:
    """The ordered result of evaluating a query.

    Args:
        query: The reference the results belong to. Used to build a
            document reference for each result.
        data: Ordered ``{doc_id: value}`` mapping. ``None`` builds the empty
            snapshot.
        previous: The mapping delivered before this one, used by
            :meth:`doc_changes`. ``None`` means every document is new.
    """

    def __init__(
        self,
        query: MockQuery | None = None,
        data: dict[str, Any] | None = None,
        previous: dict[str, Any] | None = None,
    ) -> None:
        self._query = query
        self._data: dict[str, Any] = dict(data or {})
        self._previous = previous
        self._docs = [self._make_doc(key, value) for key, value in self._data.items()]

    def _make_doc(self, doc_id: str, value: Any) -> DocumentSnapshot:
        ref = self._query.document_ref(doc_id) if self._query is not None else None
        return DocumentSnapshot(doc_id, value, ref)

    @property
    def query(self) -> MockQuery | None:
        return self._query

    @property
    def docs(self) -> list[DocumentSnapshot]:
        return list(self._docs)

    @property
    def size(self) -> int:
        return len(self._docs)

    @property
    def empty(self) -> bool:
        return not self._docs

    def __iter__(self) -> Iterator[DocumentSnapshot]:
        return iter(list(self._docs))

    def __len__(self) -> int:
        return len(self._docs)

    def for_each(self, callback: Callable[[DocumentSnapshot], Any]) -> None:
        for doc in self._docs:
            callback(doc)

    def to_dict(self) -> dict[str, Any]:
        """Return the ``{doc_id: value}`` mapping (deep copy)."""
        return copy.deepcopy(self._data)

    def doc_changes(self) -> list[DocumentChange]:
        """Diff this snapshot against the previously delivered state."""
        previous = self._previous or {}
        prev_keys = list(previous)
        changes: list[DocumentChange] = []

        for old_index, key in enumerate(prev_keys):
            if key not in self._data:
                doc = self._make_doc(key, previous[key])
                changes.append(DocumentChange(REMOVED, doc, old_index, -1))

        for new_index, (key, doc) in enumerate(zip(self._data, self._docs)):
            if key not in previous:
                changes.append(DocumentChange(ADDED, doc, -1, new_index))
            elif not values_equal(previous[key], self._data[key]):
                changes.append(DocumentChange(MODIFIED, doc, prev_keys.index(key), new_index))

        return changes

    def __repr__(self) -> str:
        return f"QuerySnapshot(size={self.size})"
