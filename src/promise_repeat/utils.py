"""Shared helpers for promise classes."""

from __future__ import annotations

import functools
from types import MethodType
from typing import Any, Callable, Generic, Optional, TypeVar

TReturn = TypeVar("TReturn")


class hybridmethod(Generic[TReturn]):  # noqa: N801 - mirrors classmethod naming
    """Method bound to the instance when there is one, otherwise to the class.

    The wrapped function receives either the owner class or the instance as its
    first argument and distinguishes the two with ``isinstance(target, type)``.
    """

    def __init__(self, func: Callable[..., TReturn]) -> None:
        self.__func__ = func
        functools.update_wrapper(self, func)  # type: ignore[arg-type]

    def __get__(self, instance: Any, owner: Optional[type] = None) -> Callable[..., TReturn]:
        target = owner if instance is None else instance
        return MethodType(self.__func__, target)


def is_class_target(target: Any) -> bool:
    """Return True when a hybrid method was invoked on the class itself."""
    return isinstance(target, type)


def split_body(args: tuple[Any, ...]) -> tuple[tuple[Any, ...], Callable[..., Any]]:
    """Split ``(*initial, body)`` into the initial values and the trailing callable."""
    if not args:
        raise TypeError("missing loop body: pass a callable as the last argument")
    *initial, body = args
    if not callable(body):
        raise TypeError(f"loop body must be callable, got {type(body).__name__}")
    return tuple(initial), body
