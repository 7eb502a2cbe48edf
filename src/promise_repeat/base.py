"""Promise interface consumed by the looping combinators."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Optional

Handler = Callable[..., Any]


class PromiseState(Enum):
    PENDING = "pending"
    FULFILLED = "fulfilled"
    REJECTED = "rejected"


class BasePromise(ABC):
    """Abstract settle-once promise with continuation registration.

    Implementations carry a tuple of values: the resolution values when
    fulfilled, the rejection reasons when rejected. ``resolve`` and ``reject``
    must be callable on the class (returning a new settled promise) and on an
    instance (settling it in place, a no-op once settled).
    """

    @abstractmethod
    def resolve(self, *values: Any) -> "BasePromise":
        """Fulfil with ``values``, or follow ``values[0]`` if it is a promise."""

    @abstractmethod
    def reject(self, *reasons: Any) -> "BasePromise":
        """Reject with ``reasons``."""

    @abstractmethod
    def then(
        self,
        on_success: Optional[Handler] = None,
        on_failure: Optional[Handler] = None,
    ) -> "BasePromise":
        """Register continuations and return the promise derived from them."""

    @abstractmethod
    def clone(self) -> "BasePromise":
        """Return a new pending promise that shares no state with this one."""

    @property
    @abstractmethod
    def state(self) -> PromiseState:
        """Current settlement state."""

    def catch(self, on_failure: Handler) -> "BasePromise":
        return self.then(None, on_failure)

    @property
    def is_pending(self) -> bool:
        return self.state is PromiseState.PENDING

    @property
    def is_settled(self) -> bool:
        return self.state is not PromiseState.PENDING

    @property
    def is_following(self) -> bool:
        """True while locked to the outcome of another promise."""
        return False
