import asyncio
import inspect
import logging
from typing import Any, Callable, Generic, Optional, Set, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
U = TypeVar("U")

_CLOSED = object()


class _Failure:

    def __init__(self, error: BaseException) -> None:
        self.error = error


class Subscription(Generic[T]):
    """Cancellable stream of full snapshots produced by a live query.

    Values are either consumed with ``async for`` or pushed to a listener
    (see :meth:`listen`). The stream ends when it is cancelled or fails and
    can not be restarted; open a new subscription instead.
    """

    def __init__(self, on_cancel: Optional[Callable[[], Any]] = None) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()
        self._on_cancel = on_cancel
        self._sink: Optional[Callable[[Any], None]] = None
        self._closed = False
        self._tasks: Set[asyncio.Future] = set()

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, value: T) -> None:
        if self._closed:
            return
        if self._sink is not None:
            self._sink(value)
        else:
            self._queue.put_nowait(value)

    def fail(self, error: BaseException) -> None:
        if self._closed:
            return
        if self._sink is not None:
            self._sink(_Failure(error))
        else:
            self._queue.put_nowait(_Failure(error))
        self._release()

    def cancel(self) -> None:
        if self._closed:
            return
        for task in list(self._tasks):
            task.cancel()
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)
        self._release()

    def _release(self) -> None:
        self._closed = True
        on_cancel, self._on_cancel = self._on_cancel, None
        if on_cancel is not None:
            on_cancel()

    def _attach(self, sink: Callable[[Any], None]) -> None:
        if self._sink is not None:
            raise RuntimeError("subscription already has a consumer")
        self._sink = sink
        while not self._queue.empty():
            item = self._queue.get_nowait()
            if item is not _CLOSED:
                sink(item)

    def map(self, fn: Callable[[T], U]) -> "Subscription[U]":
        """Derive a stream of ``fn(snapshot)``; cancelling it cancels this one."""
        mapped: Subscription[U] = Subscription(on_cancel=self.cancel)

        def forward(item: Any) -> None:
            if isinstance(item, _Failure):
                mapped.fail(item.error)
                return
            try:
                value = fn(item)
            except Exception as exc:
                mapped.fail(exc)
                return
            mapped.push(value)

        self._attach(forward)
        return mapped

    def listen(
        self,
        on_update: Callable[[T], Any],
        on_error: Optional[Callable[[BaseException], Any]] = None,
    ) -> "Subscription[T]":
        """Deliver snapshots to ``on_update`` as soon as they are published.

        Coroutine callbacks run as tasks owned by this subscription and are
        cancelled with it. A listener that raises fails this subscription
        only; the error goes to ``on_error`` and never reaches the publisher.
        Returns this subscription so callers keep a single handle to cancel.
        """

        def report(error: BaseException) -> None:
            if on_error is None:
                logger.error("Subscription failed with no error handler: %r", error)
                return
            try:
                self._track(on_error(error), None)
            except Exception:
                logger.exception("Subscription error handler raised")

        def deliver(item: Any) -> None:
            if isinstance(item, _Failure):
                report(item.error)
                return
            if self._closed:
                return
            try:
                result = on_update(item)
            except Exception as exc:
                logger.exception("Subscription listener raised, closing the subscription")
                self.fail(exc)
                return
            self._track(result, self.fail)

        self._attach(deliver)
        return self

    def _track(self, result: Any, on_exception: Optional[Callable[[BaseException], None]]) -> None:
        if not inspect.isawaitable(result):
            return
        task = asyncio.ensure_future(result)
        self._tasks.add(task)

        def done(finished: asyncio.Future) -> None:
            self._tasks.discard(finished)
            if finished.cancelled():
                return
            error = finished.exception()
            if error is None:
                return
            logger.error("Subscription callback raised", exc_info=error)
            if on_exception is not None:
                on_exception(error)

        task.add_done_callback(done)

    def __aiter__(self) -> "Subscription[T]":
        return self

    async def __anext__(self) -> T:
        if self._sink is not None:
            raise RuntimeError("subscription is delivering to a listener")
        item = await self._queue.get()
        if item is _CLOSED:
            self._queue.put_nowait(_CLOSED)
            raise StopAsyncIteration
        if isinstance(item, _Failure):
            self._queue.put_nowait(_CLOSED)
            raise item.error
        return item
