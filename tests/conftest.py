from __future__ import annotations

from collections.abc import Iterator

import pytest

from promise_repeat import reset_settings


@pytest.fixture(autouse=True)
def reset_cached_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.delenv("PROMISE_REPEAT_LOG_LEVEL", raising=False)
    monkeypatch.delenv("PROMISE_REPEAT_TRACE_ITERATIONS", raising=False)
    reset_settings()
    yield
    reset_settings()
