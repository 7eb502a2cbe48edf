"""Promise looping construct with break."""

from .base import BasePromise, PromiseState
from .config import RepeatSettings, get_settings, reset_settings
from .promise import Promise, PromiseError, PromiseRejected
from .repeat import (
    Break,
    LoopAborted,
    RepeatError,
    RepeatMixin,
    RepeatPromise,
    current_break,
    with_repeat,
)

__all__ = [
    "BasePromise",
    "Break",
    "LoopAborted",
    "Promise",
    "PromiseError",
    "PromiseRejected",
    "PromiseState",
    "RepeatError",
    "RepeatMixin",
    "RepeatPromise",
    "RepeatSettings",
    "current_break",
    "get_settings",
    "reset_settings",
    "with_repeat",
]
