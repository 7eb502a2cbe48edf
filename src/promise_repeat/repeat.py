"""Promise looping combinators with a non-local break.

``repeat`` keeps calling a body while it succeeds; ``repeat_catch`` keeps
calling it while it fails. Both grow the promise chain one link per
iteration, just in time, and return a terminal promise that is detached from
the chain and settled exactly once.

The body is called as ``body(brk, *values)``. Calling ``brk(*values)`` settles
the terminal promise and raises :class:`LoopAborted`, which unwinds the body
(and any promise chain it is running inside) like an ordinary exception. The
chain's own handlers absorb the signal; whatever they try to do with the
terminal afterwards is a no-op because it is already settled.
"""

from __future__ import annotations

import functools
import logging
from contextvars import ContextVar
from typing import Any, Callable, NoReturn, Optional, TypeVar

from .base import BasePromise
from .config import get_settings
from .logger import configure as configure_logger
from .promise import Promise
from .utils import hybridmethod, is_class_target, split_body

LOGGER = configure_logger("promise_repeat.repeat")

LoopBody = Callable[..., Any]
TPromise = TypeVar("TPromise", bound=BasePromise)

_current_break: ContextVar[Optional["Break"]] = ContextVar("promise_repeat_break", default=None)


class RepeatError(Exception):
    """Raised when a loop helper is used outside of a running loop body."""


class LoopAborted(Exception):
    """Control-flow signal raised by a break to abandon the running iteration.

    ``token`` is a pending promise that nobody ever settles. Handlers that
    catch the signal return it so the chain behind them stays pending forever.
    Bodies must let this exception propagate.
    """

    def __init__(self, token: BasePromise) -> None:
        super().__init__("loop iteration abandoned by break")
        self.token = token


class Break:
    """Per-iteration capability that ends its loop.

    Calling it never returns. The first argument may be a promise, in which
    case the loop's result follows that promise's outcome.
    """

    __slots__ = ("_terminal", "_token", "_rejects")

    def __init__(self, terminal: BasePromise, token: BasePromise, *, rejects: bool = False) -> None:
        self._terminal = terminal
        self._token = token
        self._rejects = rejects

    def __call__(self, *values: Any) -> NoReturn:
        LOGGER.debug("break requested with %d value(s)", len(values))
        settle_terminal(self._terminal, values, rejects=self._rejects)
        raise LoopAborted(self._token)

    @property
    def rejects(self) -> bool:
        """True for ``repeat_catch`` breaks, which reject the loop result."""
        return self._rejects


def settle_terminal(terminal: BasePromise, values: tuple[Any, ...], *, rejects: bool) -> None:
    if values and isinstance(values[0], BasePromise):
        terminal.resolve(values[0])
    elif rejects:
        terminal.reject(*values)
    else:
        terminal.resolve(*values)


def current_break() -> Break:
    """Return the break of the loop body currently executing.

    The binding only lasts for the synchronous part of one body call.
    Callbacks scheduled from the body should close over ``brk`` instead.
    """
    brk = _current_break.get()
    if brk is None:
        raise RepeatError("current_break() called outside of a loop body")
    return brk


def is_abort(reasons: tuple[Any, ...]) -> bool:
    return len(reasons) == 1 and isinstance(reasons[0], LoopAborted)


class _LoopState:
    """Chain tail, terminal promise and body of one running loop."""

    kind = "loop"
    rejects = False

    def __init__(self, seed: BasePromise, body: LoopBody) -> None:
        self._tail = seed
        self._terminal = seed.clone()
        self._body = body
        self._iteration = 0
        self._trace = get_settings().trace_iterations and LOGGER.isEnabledFor(logging.DEBUG)

    @property
    def terminal(self) -> BasePromise:
        return self._terminal

    @property
    def iteration(self) -> int:
        return self._iteration

    def start(self) -> BasePromise:
        LOGGER.debug("starting %s", self.kind)
        self.advance()
        return self._terminal

    def advance(self) -> None:
        raise NotImplementedError

    def _new_break(self) -> Break:
        return Break(self._terminal, self._tail.clone(), rejects=self.rejects)

    def _finished(self) -> bool:
        return self._terminal.is_settled or self._terminal.is_following

    def _halt(self, reasons: tuple[Any, ...]) -> BasePromise:
        if is_abort(reasons):
            return reasons[0].token
        return self._tail.clone()

    def _run_body(self, brk: Break, values: tuple[Any, ...]) -> Any:
        self._iteration += 1
        if self._trace:
            LOGGER.debug("%s iteration %d", self.kind, self._iteration)
        binding = _current_break.set(brk)
        try:
            return self._body(brk, *values)
        finally:
            _current_break.reset(binding)


class _RepeatLoop(_LoopState):
    kind = "repeat"

    def advance(self) -> None:
        self._tail = self._tail.then(self._step).catch(self._safety_net)

    def _step(self, *values: Any) -> Any:
        # A break called from a callback the body did not return settles the
        # terminal without unwinding the chain.
        if self._finished():
            return self._halt(values)
        brk = self._new_break()
        result = self._run_body(brk, values)
        self.advance()
        return result

    def _safety_net(self, *reasons: Any) -> BasePromise:
        # An abort either came from this loop's break, which already settled
        # the terminal, or from an enclosing loop's break, which abandons this
        # loop along with everything else it was running.
        if not is_abort(reasons):
            LOGGER.debug("repeat failed after %d iteration(s)", self._iteration)
            self._terminal.reject(*reasons)
        return self._halt(reasons)


class _RepeatCatchLoop(_LoopState):
    kind = "repeat_catch"
    rejects = True

    def advance(self) -> None:
        self._tail = self._tail.catch(self._step).then(self._finish)

    def _step(self, *reasons: Any) -> Any:
        if is_abort(reasons) or self._finished():
            return self._halt(reasons)
        brk = self._new_break()
        self.advance()
        return self._run_body(brk, reasons)

    def _finish(self, *values: Any) -> NoReturn:
        LOGGER.debug("repeat_catch succeeded after %d iteration(s)", self._iteration)
        self._terminal.resolve(*values)
        raise LoopAborted(self._tail.clone())


def _prepend_values(source: BasePromise, initial: tuple[Any, ...], *values: Any) -> BasePromise:
    return source.clone().resolve(*initial, *values)


def _prepend_reasons(source: BasePromise, initial: tuple[Any, ...], *reasons: Any) -> BasePromise:
    return source.clone().reject(*initial, *reasons)


class RepeatMixin:
    """Adds ``repeat`` and ``repeat_catch`` to a :class:`BasePromise` class.

    Both methods take optional initial values followed by the loop body and
    work on the class (seeding a new promise) and on an instance (chaining
    off its eventual outcome, with initial values prepended to it).
    """

    @hybridmethod
    def repeat(target: Any, *args: Any) -> BasePromise:
        """Call the body while it succeeds, feeding each result into the next call.

        The returned promise resolves with the values passed to the break and
        rejects with the first failure of the chain.

        When a break belonging to an enclosing loop is called from inside this
        loop's body, this loop is abandoned and its returned promise stays
        pending forever. Do not await the inner loop's promise on its own in
        that case; await the enclosing loop's promise.
        """
        initial, body = split_body(args)
        if is_class_target(target):
            seed = target.resolve(*initial)
        elif initial:
            seed = target.then(functools.partial(_prepend_values, target, initial))
        else:
            seed = target
        return _RepeatLoop(seed, body).start()

    @hybridmethod
    def repeat_catch(target: Any, *args: Any) -> BasePromise:
        """Call the body while it fails, feeding each failure into the next call.

        The returned promise resolves with the first successful result and
        rejects with the values passed to the break.
        """
        initial, body = split_body(args)
        if is_class_target(target):
            seed = target.reject(*initial)
        elif initial:
            seed = target.catch(functools.partial(_prepend_reasons, target, initial))
        else:
            seed = target
        return _RepeatCatchLoop(seed, body).start()


@functools.lru_cache(maxsize=None)
def with_repeat(promise_cls: type[TPromise]) -> type[TPromise]:
    """Return ``promise_cls`` with :class:`RepeatMixin` applied."""
    if issubclass(promise_cls, RepeatMixin):
        return promise_cls
    if not issubclass(promise_cls, BasePromise):
        raise TypeError(f"{promise_cls.__name__} does not implement BasePromise")
    return type(
        f"{promise_cls.__name__}WithRepeat",
        (RepeatMixin, promise_cls),
        {"__module__": promise_cls.__module__},
    )


class RepeatPromise(RepeatMixin, Promise):
    """Asyncio promise with ``repeat`` and ``repeat_catch``."""
