"""
Deferred work queue shared by every reference of one mock database.

Nothing that would be asynchronous against a real backend runs inline:
operations push a :class:`FlushEvent` and only run when the queue is
flushed, either explicitly or through the auto-flush setting held by the
:class:`Scheduler`.

A flush drains events in push order, including events pushed while it is
running, then notifies post-flush listeners in registration order. An event
or listener that raises is logged and the flush carries on with the rest.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Union

from firemock.models import NothingToFlushError

logger = logging.getLogger(__name__)

FlushDelay = Union[bool, float, None]


def _is_timed(delay: FlushDelay) -> bool:
    return isinstance(delay, (int, float)) and not isinstance(delay, bool) and delay > 0


@dataclass
class FlushEvent:
    """One unit of deferred work plus where it came from."""

    fn: Callable[[], None]
    ref: Any = None
    method: str = ""
    args: tuple[Any, ...] = field(default_factory=tuple)

    def run(self) -> None:
        self.fn()


class FlushQueue:
    def __init__(self) -> None:
        self._events: list[FlushEvent] = []
        self._listeners: list[Callable[[], None]] = []
        self._lock = threading.RLock()
        self._flushing = False

    @property
    def events(self) -> list[FlushEvent]:
        """Snapshot of the events currently waiting to run."""
        with self._lock:
            return list(self._events)

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def push(self, event: FlushEvent) -> None:
        with self._lock:
            self._events.append(event)

    def flush(self, delay: FlushDelay = None) -> None:
        """Run every queued event.

        Args:
            delay: ``None``, ``True`` or ``0`` run now. A positive number runs
                the flush on a timer thread after that many seconds.

        Raises:
            NothingToFlushError: If the queue is empty.
        """
        with self._lock:
            if not self._events:
                raise NothingToFlushError()
        if _is_timed(delay):
            timer = threading.Timer(float(delay), self._process)  # type: ignore[arg-type]
            timer.daemon = True
            timer.start()
            return
        self._process()

    def _process(self) -> None:
        with self._lock:
            if self._flushing:
                return
            self._flushing = True
            ran = failed = 0
            try:
                while self._events:
                    event = self._events.pop(0)
                    try:
                        event.run()
                    except Exception:
                        failed += 1
                        path = getattr(event.ref, "path", None)
                        logger.exception(
                            "Deferred %s on %s failed",
                            event.method or "event",
                            path,
                            extra={"method": event.method, "path": path},
                        )
                    ran += 1
            finally:
                self._flushing = False
            logger.debug(
                "Flushed %d deferred events", ran, extra={"events": ran, "failed": failed}
            )
            for listener in list(self._listeners):
                try:
                    listener()
                except Exception:
                    logger.exception("Post-flush listener %r failed", listener)

    def on_post_flush(self, listener: Callable[[], None]) -> Callable[[], None]:
        """Run *listener* after every flush. Returns an unsubscribe function."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe


class Scheduler:
    """The queue plus the auto-flush setting, shared across a reference graph.

    ``delay`` is ``False`` when auto-flush is off, ``True`` to flush on every
    push, or a number of seconds to wait before flushing.
    """

    def __init__(self, delay: bool | float = False, queue: FlushQueue | None = None) -> None:
        self._queue = queue or FlushQueue()
        self._delay: bool | float = delay

    @property
    def queue(self) -> FlushQueue:
        return self._queue

    @property
    def delay(self) -> bool | float:
        return self._delay

    def set_auto_flush(self, delay: bool | float = True) -> None:
        if delay != self._delay:
            logger.debug("Auto-flush %r -> %r", self._delay, delay)
        self._delay = delay

    def defer(
        self,
        fn: Callable[[], None],
        ref: Any = None,
        method: str = "",
        args: tuple[Any, ...] = (),
    ) -> None:
        self._queue.push(FlushEvent(fn, ref, method, args))
        if self._delay is not False:
            self._queue.flush(self._delay)

    def flush(self, delay: FlushDelay = None) -> None:
        self._queue.flush(delay)

    def on_post_flush(self, listener: Callable[[], None]) -> Callable[[], None]:
        return self._queue.on_post_flush(listener)
