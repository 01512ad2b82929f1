"""
Chainable in-memory query with deferred delivery.

A :class:`MockQuery` is immutable once built: ``where``, ``order_by``,
``limit`` and ``start_after`` each return a new query holding its own deep
copy of the data. Results are recomputed on every evaluation and handed out
through the shared :class:`~firemock.queue.Scheduler`, so nothing resolves
until the queue is flushed.

Usage::

    query = MockQuery("Mock://users", {"a": {"x": 1}, "b": {"x": 2}})
    future = query.where("x", "==", 1).get()
    query.flush()
    future.result().to_dict()   # {"a": {"x": 1}}
"""

from __future__ import annotations

import asyncio
import copy
import logging
import re
import threading
from collections.abc import AsyncIterator, Callable, Iterator, Mapping
from concurrent.futures import CancelledError, Future
from datetime import date, datetime, time, timezone
from typing import Any

from firemock.config import MockConfig
from firemock.field_path import MISSING, FieldPath, resolve_field, to_field_path, values_equal
from firemock.models import (
    DocumentSnapshot,
    QuerySnapshot,
    SnapshotOptions,
    StreamTimeoutError,
    UnorderedPaginationError,
)
from firemock.queue import FlushDelay, FlushEvent, Scheduler

logger = logging.getLogger(__name__)

_NAME_RE = re.compile(r"/([^.$\[\]#/]+)$")

ASCENDING = "asc"
DESCENDING = "desc"

_DIRECTIONS = {
    "asc": ASCENDING,
    "ascending": ASCENDING,
    "desc": DESCENDING,
    "descending": DESCENDING,
}


def _extract_name(path: str | None) -> str | None:
    match = _NAME_RE.search(path or "")
    return match.group(1) if match else None


def _normalize_direction(direction: str | None) -> str:
    if direction is None:
        return ASCENDING
    try:
        return _DIRECTIONS[direction.lower()]
    except (AttributeError, KeyError):
        raise ValueError(f"direction must be 'asc' or 'desc', got {direction!r}") from None


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------


def _op_equal(actual: Any, expected: Any) -> bool:
    return values_equal(actual, expected)


def _op_array_contains(actual: Any, expected: Any) -> bool:
    return isinstance(actual, (list, tuple)) and any(values_equal(v, expected) for v in actual)


def _op_in(actual: Any, expected: Any) -> bool:
    if actual is MISSING:
        return False
    if isinstance(expected, str):
        return isinstance(actual, str) and actual in expected
    if isinstance(expected, Mapping):
        expected = expected.values()
    elif not isinstance(expected, (list, tuple, set, frozenset)):
        return False
    return any(values_equal(actual, v) for v in expected)


_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "==": _op_equal,
    "array-contains": _op_array_contains,
    "in": _op_in,
}


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------


def _sort_key(value: Any) -> tuple[Any, ...]:
    """Total order across value types: null, bool, number, time, str, bytes,
    list, map; missing fields sort after everything.

    Dates count as midnight. Naive times sort before timezone-aware ones, and
    aware ones compare by instant."""
    if value is MISSING:
        return (9,)
    if value is None:
        return (0,)
    if isinstance(value, bool):
        return (1, value)
    if isinstance(value, (int, float)):
        return (2, value)
    if isinstance(value, datetime):
        if value.tzinfo is not None and value.utcoffset() is not None:
            return (3, 1, value.astimezone(timezone.utc))
        return (3, 0, value)
    if isinstance(value, date):
        return (3, 0, datetime.combine(value, time.min))
    if isinstance(value, str):
        return (4, value)
    if isinstance(value, bytes):
        return (5, value)
    if isinstance(value, (list, tuple)):
        return (6, tuple(_sort_key(v) for v in value))
    if isinstance(value, dict):
        return (7, tuple((k, _sort_key(v)) for k, v in sorted(value.items())))
    return (8, repr(value))


# ---------------------------------------------------------------------------
# Cursor
# ---------------------------------------------------------------------------


class _Cursor:
    """Decides, record by record, whether a walk is inside the page.

    ``not-started -> seeking -> emitting``; ``stopped`` is terminal and
    reserved for an end bound. A new cursor is built for every evaluation.
    """

    NOT_STARTED = "not-started"
    SEEKING = "seeking"
    EMITTING = "emitting"
    STOPPED = "stopped"

    def __init__(self, after: str | None) -> None:
        self._after = after
        self._state = self.NOT_STARTED

    @property
    def state(self) -> str:
        return self._state

    def admits(self, key: str) -> bool:
        if self._state == self.NOT_STARTED:
            self._state = self.EMITTING if self._after is None else self.SEEKING
        if self._state == self.STOPPED:
            return False
        if self._state == self.EMITTING:
            return True
        if key == self._after:
            self._state = self.EMITTING
        return False


# ---------------------------------------------------------------------------
# Stream
# ---------------------------------------------------------------------------


class QueryStream:
    """Object stream fed by one ``get()``.

    Each resulting :class:`DocumentSnapshot` is pushed when the query is
    flushed, then the stream closes. Iterating synchronously waits for the
    close; ``async for`` awaits it.
    """

    def __init__(self, future: Future[QuerySnapshot], timeout: float) -> None:
        self._future = future
        self._timeout = timeout
        self._items: list[DocumentSnapshot] = []
        self._error: BaseException | None = None
        self._closed = threading.Event()
        future.add_done_callback(self._on_done)

    def _on_done(self, future: Future[QuerySnapshot]) -> None:
        if future.cancelled():
            self._error = CancelledError()
        elif future.exception() is not None:
            self._error = future.exception()
        else:
            for doc in future.result():
                self._items.append(doc)
        self._closed.set()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def __iter__(self) -> Iterator[DocumentSnapshot]:
        if not self._closed.wait(self._timeout):
            raise StreamTimeoutError(
                f"Stream was not flushed within {self._timeout:.1f}s; call flush() first"
            )
        if self._error is not None:
            raise self._error
        return iter(list(self._items))

    async def __aiter__(self) -> AsyncIterator[DocumentSnapshot]:
        await asyncio.wrap_future(self._future)
        for doc in list(self._items):
            yield doc


# ---------------------------------------------------------------------------
# MockQuery
# ---------------------------------------------------------------------------


def _noop() -> None:
    return None


class MockQuery:
    """An immutable query over an in-memory ``{doc_id: document}`` snapshot.

    Args:
        path: Location string, used for display and, without a parent, to
            derive :attr:`id`.
        data: Records to evaluate. Deep-copied; the caller's mapping is
            never referenced again.
        parent: The owner of the collection this query reads, anything with
            a ``collection(name)`` method. Shares its scheduler and config.
        name: The collection id when *parent* is given.
        scheduler: Explicit scheduler for a detached query.
        config: Explicit config for a detached query.
    """

    def __init__(
        self,
        path: str | None = None,
        data: Mapping[str, Any] | None = None,
        parent: Any = None,
        name: str | None = None,
        *,
        scheduler: Scheduler | None = None,
        config: MockConfig | None = None,
    ) -> None:
        self.config: MockConfig = config or getattr(parent, "config", None) or MockConfig()
        self.scheduler: Scheduler = (
            scheduler
            or getattr(parent, "scheduler", None)
            or Scheduler(delay=self.config.auto_flush)
        )
        self.path: str = path or self.config.root_path
        self.parent = parent
        self.id: str | None = name if parent is not None else _extract_name(path)
        self.ordered_properties: tuple[FieldPath, ...] = ()
        self.ordered_directions: tuple[str, ...] = ()
        self.limited = 0
        self._start_after: str | None = None
        self._errors: dict[str, BaseException] = {}
        self._data: dict[str, Any] = {str(k): copy.deepcopy(v) for k, v in (data or {}).items()}

    # ---- data access ----------------------------------------------------

    def _source(self) -> Mapping[str, Any]:
        """The records this query evaluates. Never handed out uncopied."""
        return self._data

    def _context(self) -> Any:
        return self if self.parent is None else self.parent.collection(self.id)

    def document_ref(self, doc_id: str) -> Any:
        """Reference for a result document; detached queries have none."""
        return None

    # ---- builders -------------------------------------------------------

    def clone(self) -> MockQuery:
        query = MockQuery(
            self.path,
            self._source(),
            self.parent,
            self.id,
            scheduler=self.scheduler,
            config=self.config,
        )
        query.ordered_properties = self.ordered_properties
        query.ordered_directions = self.ordered_directions
        query.limited = self.limited
        query._start_after = self._start_after
        return query

    def where(self, field: str | FieldPath, op: str, value: Any) -> MockQuery:
        """Filter on ``==``, ``array-contains`` or ``in``.

        Any other operator logs a warning and keeps every record.
        """
        query = self.clone()
        predicate = _OPERATORS.get(op)
        if predicate is None:
            logger.warning(
                "Unsupported where() operator %r on %s, returning entire dataset",
                op,
                self.path,
                extra={"method": "where", "path": self.path},
            )
            return query
        if op == "in" and not isinstance(value, (list, tuple, set, frozenset)):
            logger.warning(
                "where() 'in' on %s expects a list, got %s",
                self.path,
                type(value).__name__,
                extra={"method": "where", "path": self.path},
            )

        path = to_field_path(field)
        query._data = {
            key: doc
            for key, doc in query._data.items()
            if predicate(resolve_field(key, doc, path), value)
        }
        return query

    def order_by(self, field: str | FieldPath, direction: str | None = ASCENDING) -> MockQuery:
        query = self.clone()
        query.ordered_properties = (*self.ordered_properties, to_field_path(field))
        query.ordered_directions = (*self.ordered_directions, _normalize_direction(direction))
        return query

    def limit(self, count: int | None) -> MockQuery:
        """Cap the number of results. ``None`` or ``count <= 0`` means unbounded."""
        query = self.clone()
        query.limited = int(count) if count is not None else 0
        return query

    def start_after(self, snapshot: DocumentSnapshot) -> MockQuery:
        """Resume after the document *snapshot* refers to.

        Raises:
            UnorderedPaginationError: If the query has no ``order_by``.
        """
        if not self.ordered_properties:
            raise UnorderedPaginationError()
        if not isinstance(snapshot, DocumentSnapshot):
            logger.warning(
                "Unsupported start_after() argument %s on %s, returning query unchanged",
                type(snapshot).__name__,
                self.path,
                extra={"method": "start_after", "path": self.path},
            )
            return self
        query = self.clone()
        query._start_after = snapshot.id
        return query

    # ---- evaluation -----------------------------------------------------

    def _ordered(self, source: Mapping[str, Any]) -> list[tuple[str, Any]]:
        records = list(source.items())
        keys = list(zip(self.ordered_properties, self.ordered_directions))
        # least significant key first; list.sort is stable in both directions
        for path, direction in reversed(keys):
            records.sort(
                key=lambda rec, p=path: _sort_key(resolve_field(rec[0], rec[1], p)),
                reverse=direction == DESCENDING,
            )
        return records

    def _results(self) -> dict[str, Any]:
        source = self._source()
        results: dict[str, Any] = {}
        if not source:
            return results

        cursor = _Cursor(self._start_after)
        for key, doc in self._ordered(source):
            if 0 < self.limited <= len(results):
                break
            if cursor.admits(key):
                results[key] = copy.deepcopy(doc)
        return results

    def _snapshot(
        self, results: dict[str, Any], previous: dict[str, Any] | None = None
    ) -> QuerySnapshot:
        context = self._context()
        if not self._source():
            return QuerySnapshot(context)
        return QuerySnapshot(context, results, previous)

    # ---- delivery -------------------------------------------------------

    def get(self) -> Future[QuerySnapshot]:
        """Evaluate on the next flush. Returns a future of the snapshot."""
        err = self._next_error("get")
        future: Future[QuerySnapshot] = Future()

        def deliver() -> None:
            if not future.set_running_or_notify_cancel():
                return
            if err is not None:
                logger.debug(
                    "get %s failing with injected %s",
                    self.path,
                    type(err).__name__,
                    extra={"method": "get", "path": self.path},
                )
                future.set_exception(err)
                return
            try:
                snapshot = self._snapshot(self._results())
            except Exception as exc:
                future.set_exception(exc)
                return
            logger.debug(
                "get %s returned %d docs",
                self.path,
                snapshot.size,
                extra={"method": "get", "path": self.path, "docs": snapshot.size},
            )
            future.set_result(snapshot)

        self._defer("get", (), deliver)
        return future

    async def aget(self) -> QuerySnapshot:
        """Async variant of :meth:`get`; still needs a flush to complete."""
        return await asyncio.wrap_future(self.get())

    def stream(self) -> QueryStream:
        return QueryStream(self.get(), timeout=self.config.stream_timeout)

    def on_snapshot(
        self,
        on_next: Callable[[QuerySnapshot], Any],
        on_error: Callable[[BaseException], Any] | None = None,
        options: SnapshotOptions | None = None,
    ) -> Callable[[], None]:
        """Listen for result changes.

        *on_next* is called once right away with the current results, then
        after each flush whose results differ from the last delivery (or
        after every flush with ``include_metadata_changes``). An injected
        ``on_snapshot`` error is delivered to *on_error* and ends the
        subscription.

        Returns:
            A function that stops further notifications.
        """
        options = options or SnapshotOptions()
        err = self._next_error("on_snapshot")
        if err is not None:
            self._deliver_error(on_error, err)
            return _noop

        last = self._results()
        on_next(self._snapshot(last, {}))

        def on_flush() -> None:
            nonlocal last
            pending = self._next_error("on_snapshot")
            if pending is not None:
                unsubscribe()
                self._deliver_error(on_error, pending)
                return
            results = self._results()
            if options.include_metadata_changes or not values_equal(results, last):
                previous, last = last, results
                on_next(QuerySnapshot(self._context(), results, previous))

        unsubscribe = self.scheduler.on_post_flush(on_flush)
        return unsubscribe

    def _deliver_error(
        self, on_error: Callable[[BaseException], Any] | None, err: BaseException
    ) -> None:
        if on_error is None:
            logger.error(
                "Unhandled on_snapshot error on %s: %s",
                self.path,
                err,
                extra={"method": "on_snapshot", "path": self.path},
            )
            return
        on_error(err)

    # ---- queue control --------------------------------------------------

    def flush(self, delay: FlushDelay = None) -> MockQuery:
        self.scheduler.flush(delay)
        return self

    def auto_flush(self, delay: bool | float = True) -> MockQuery:
        """Flush on every deferred operation, for this query and everything
        sharing its scheduler. ``False`` turns it off."""
        self.scheduler.set_auto_flush(delay)
        return self

    def get_flush_queue(self) -> list[FlushEvent]:
        return self.scheduler.queue.events

    def _defer(self, method: str, args: tuple[Any, ...], fn: Callable[[], None]) -> None:
        self.scheduler.defer(fn, self, method, args)

    # ---- error injection ------------------------------------------------

    def fail_next(self, method: str, error: BaseException) -> None:
        """Make the next *method* call (``get``, ``on_snapshot``, ...) fail."""
        self._errors[method] = error

    def _next_error(self, method: str) -> BaseException | None:
        return self._errors.pop(method, None)

    def __str__(self) -> str:
        return self.path

    def __repr__(self) -> str:
        return f"{type(self).__name__}(path={self.path!r})"
