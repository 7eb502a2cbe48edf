"""Asyncio-backed settle-once promise."""

from __future__ import annotations

import asyncio
import functools
from typing import Any, Awaitable, Callable, Generator, Optional

from .base import BasePromise, Handler, PromiseState
from .utils import hybridmethod, is_class_target

Callback = Callable[[tuple[Any, ...]], None]


class PromiseError(Exception):
    """Base error raised by the promise primitive."""


class PromiseRejected(PromiseError):
    """Raised when awaiting a promise rejected with non-exception reasons."""

    def __init__(self, *reasons: Any) -> None:
        super().__init__(*reasons)
        self.reasons = reasons


class Promise(BasePromise):
    """Settle-once promise whose continuations run on an asyncio event loop.

    Continuations are never invoked synchronously. Settling a promise, or
    registering a continuation on one that is already settled, schedules the
    callback with ``loop.call_soon``, so arbitrarily long continuation chains
    run one event-loop tick at a time and never nest the call stack.

    The event loop is bound lazily: an explicit ``loop`` wins, otherwise the
    running loop at the first point a callback has to be scheduled. Clones and
    derived promises inherit the binding.
    """

    def __init__(self, *, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop
        self._state = PromiseState.PENDING
        self._values: tuple[Any, ...] = ()
        self._following = False
        self._callbacks: list[tuple[Callback, Callback]] = []

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self._state.value} {self._values!r}>"

    @property
    def state(self) -> PromiseState:
        return self._state

    @property
    def values(self) -> tuple[Any, ...]:
        """Resolution values or rejection reasons; empty while pending."""
        return self._values

    @property
    def is_following(self) -> bool:
        """True while this promise is locked to the outcome of another promise."""
        return self._following and self._state is PromiseState.PENDING

    @hybridmethod
    def resolve(target: Any, *values: Any) -> "Promise":
        if is_class_target(target):
            return target().resolve(*values)
        self: Promise = target
        if self._following or self._state is not PromiseState.PENDING:
            return self
        if values and isinstance(values[0], BasePromise):
            self._follow(values[0])
        else:
            self._settle(PromiseState.FULFILLED, values)
        return self

    @hybridmethod
    def reject(target: Any, *reasons: Any) -> "Promise":
        if is_class_target(target):
            return target().reject(*reasons)
        self: Promise = target
        if not self._following:
            self._settle(PromiseState.REJECTED, reasons)
        return self

    def then(
        self,
        on_success: Optional[Handler] = None,
        on_failure: Optional[Handler] = None,
    ) -> "Promise":
        derived = self.clone()
        self._subscribe(
            functools.partial(_propagate, derived, on_success, derived.resolve),
            functools.partial(_propagate, derived, on_failure, derived.reject),
        )
        return derived

    def clone(self) -> "Promise":
        return type(self)(loop=self._loop)

    @classmethod
    def from_awaitable(
        cls,
        awaitable: Awaitable[Any],
        *,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> "Promise":
        """Wrap a coroutine or asyncio future in a promise of this class.

        The awaitable's result becomes the single resolution value; an
        exception (cancellation included) becomes the single rejection reason.
        """
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError as exc:
                raise PromiseError("from_awaitable requires a running event loop") from exc
        future = asyncio.ensure_future(awaitable, loop=loop)
        promise = cls(loop=loop)

        def _done(fut: "asyncio.Future[Any]") -> None:
            if fut.cancelled():
                promise.reject(asyncio.CancelledError())
                return
            exc = fut.exception()
            if exc is not None:
                promise.reject(exc)
            else:
                promise.resolve(fut.result())

        future.add_done_callback(_done)
        return promise

    def __await__(self) -> Generator[Any, None, Any]:
        future: asyncio.Future[tuple[Any, ...]] = self._get_loop().create_future()

        def _fulfilled(values: tuple[Any, ...]) -> None:
            if not future.done():
                future.set_result(values)

        def _rejected(reasons: tuple[Any, ...]) -> None:
            if future.done():
                return
            error = rejection_error(reasons)
            if isinstance(error, asyncio.CancelledError):
                future.cancel()
            else:
                future.set_exception(error)

        self._subscribe(_fulfilled, _rejected)
        values = yield from future.__await__()
        return unpack_values(values)

    def _follow(self, source: BasePromise) -> None:
        if source is self:
            self._settle(
                PromiseState.REJECTED,
                (TypeError("a promise cannot be resolved with itself"),),
            )
            return
        self._following = True
        if isinstance(source, Promise):
            if self._loop is None:
                self._loop = source._loop
            source._subscribe(self._adopt_fulfilled, self._adopt_rejected)
        else:
            source.then(
                lambda *values: self._settle(PromiseState.FULFILLED, values),
                lambda *reasons: self._settle(PromiseState.REJECTED, reasons),
            )

    def _adopt_fulfilled(self, values: tuple[Any, ...]) -> None:
        self._settle(PromiseState.FULFILLED, values)

    def _adopt_rejected(self, reasons: tuple[Any, ...]) -> None:
        self._settle(PromiseState.REJECTED, reasons)

    def _settle(self, state: PromiseState, values: tuple[Any, ...]) -> None:
        if self._state is not PromiseState.PENDING:
            return
        self._state = state
        self._values = values
        callbacks, self._callbacks = self._callbacks, []
        for on_fulfilled, on_rejected in callbacks:
            self._schedule(on_fulfilled if state is PromiseState.FULFILLED else on_rejected)

    def _subscribe(self, on_fulfilled: Callback, on_rejected: Callback) -> None:
        if self._state is PromiseState.PENDING:
            self._callbacks.append((on_fulfilled, on_rejected))
        elif self._state is PromiseState.FULFILLED:
            self._schedule(on_fulfilled)
        else:
            self._schedule(on_rejected)

    def _schedule(self, callback: Callback) -> None:
        self._get_loop().call_soon(callback, self._values)

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            try:
                self._loop = asyncio.get_running_loop()
            except RuntimeError as exc:
                raise PromiseError(
                    "no running event loop to schedule promise continuations"
                ) from exc
        return self._loop


def _propagate(
    derived: Promise,
    handler: Optional[Handler],
    passthrough: Callable[..., Any],
    values: tuple[Any, ...],
) -> None:
    if handler is None:
        passthrough(*values)
        return
    try:
        result = handler(*values)
    except Exception as exc:  # noqa: BLE001 - exceptions become rejections
        derived.reject(exc)
        return
    derived.resolve(result)


def unpack_values(values: tuple[Any, ...]) -> Any:
    """Collapse a value tuple the way ``await`` reports it."""
    if not values:
        return None
    if len(values) == 1:
        return values[0]
    return values


def rejection_error(reasons: tuple[Any, ...]) -> BaseException:
    """Return the exception that represents a rejection outside the promise world."""
    if len(reasons) == 1 and isinstance(reasons[0], BaseException):
        return reasons[0]
    return PromiseRejected(*reasons)
