"""Tests for the loop-while-failing combinator."""

import asyncio
from typing import Any

import pytest

from promise_repeat import Break, PromiseRejected, RepeatPromise, current_break


async def _drain(ticks: int = 20) -> None:
    for _ in range(ticks):
        await asyncio.sleep(0)


def test_success_ends_the_loop() -> None:
    seen: list[int] = []

    def body(brk: Break, n: int) -> Any:
        seen.append(n)
        if n >= 3:
            return n
        return RepeatPromise.reject(n + 1)

    async def run() -> Any:
        result = await RepeatPromise.repeat_catch(1, body)
        await _drain()
        return result

    assert asyncio.run(run()) == 3
    assert seen == [1, 2, 3]


def test_raised_exceptions_feed_the_next_iteration() -> None:
    reasons: list[Any] = []

    def body(brk: Break, reason: Any) -> str:
        reasons.append(reason)
        if len(reasons) < 3:
            raise RuntimeError(len(reasons))
        return "recovered"

    async def run() -> Any:
        return await RepeatPromise.repeat_catch("boom", body)

    assert asyncio.run(run()) == "recovered"
    assert reasons[0] == "boom"
    assert [type(reason) for reason in reasons[1:]] == [RuntimeError, RuntimeError]
    assert reasons[2].args == (2,)


def test_break_rejects_with_values() -> None:
    def body(brk: Break, n: int) -> Any:
        if n >= 2:
            brk("gave up", n)
        return RepeatPromise.reject(n + 1)

    async def run() -> None:
        await RepeatPromise.repeat_catch(0, body)

    with pytest.raises(PromiseRejected) as info:
        asyncio.run(run())
    assert info.value.reasons == ("gave up", 2)


def test_break_with_exception_raises_it() -> None:
    async def run() -> None:
        await RepeatPromise.repeat_catch(0, lambda brk, n: brk(TimeoutError("too slow")))

    with pytest.raises(TimeoutError, match="too slow"):
        asyncio.run(run())


def test_ambient_break_rejects() -> None:
    def body(brk: Break, n: int) -> None:
        current_break()(f"stopped at {n}")

    async def run() -> Any:
        return await RepeatPromise.repeat_catch(4, body).catch(lambda reason: reason)

    assert asyncio.run(run()) == "stopped at 4"


@pytest.mark.parametrize("settle_first", [True, False])
def test_break_delegates_to_promise(settle_first: bool) -> None:
    async def run() -> Any:
        delegate = RepeatPromise()
        if settle_first:
            delegate.resolve("from delegate")

        done = RepeatPromise.repeat_catch(0, lambda brk, n: brk(delegate))
        await _drain()
        if not settle_first:
            assert done.is_pending
            delegate.resolve("from delegate")
        return await done

    assert asyncio.run(run()) == "from delegate"


@pytest.mark.parametrize("settle_first", [True, False])
def test_break_delegates_to_rejected_promise(settle_first: bool) -> None:
    async def run() -> None:
        delegate = RepeatPromise()
        if settle_first:
            delegate.reject(LookupError("delegated"))

        done = RepeatPromise.repeat_catch(0, lambda brk, n: brk(delegate))
        await _drain()
        if not settle_first:
            assert done.is_pending
            delegate.reject(LookupError("delegated"))
        await done

    with pytest.raises(LookupError, match="delegated"):
        asyncio.run(run())


def test_break_from_detached_callback_stops_the_loop() -> None:
    seen: list[int] = []

    def body(brk: Break, n: int) -> Any:
        seen.append(n)
        if n == 2:
            RepeatPromise.resolve(n).then(lambda value: brk(f"detached {value}"))
        return RepeatPromise.reject(n + 1)

    async def run() -> Any:
        done = RepeatPromise.repeat_catch(0, body)
        reason = await done.catch(lambda reason: reason)
        await _drain(200)
        return reason

    assert asyncio.run(run()) == "detached 2"
    assert seen == [0, 1, 2]


def test_no_iteration_runs_after_success() -> None:
    seen: list[int] = []

    def body(brk: Break, n: int) -> int:
        seen.append(n)
        return n * 2

    async def run() -> RepeatPromise:
        done = RepeatPromise.repeat_catch(5, body)
        assert await done == 10
        done.reject("late")
        await _drain()
        return done

    done = asyncio.run(run())
    assert seen == [5]
    assert done.values == (10,)


def test_fulfilled_receiver_resolves_without_running_body() -> None:
    calls: list[Any] = []

    async def run() -> Any:
        return await RepeatPromise.resolve("fine").repeat_catch(lambda brk, *r: calls.append(r))

    assert asyncio.run(run()) == "fine"
    assert calls == []


def test_instance_call_prepends_initial_reasons() -> None:
    received: list[tuple[Any, ...]] = []

    def body(brk: Break, *reasons: Any) -> str:
        received.append(reasons)
        return "handled"

    async def run() -> Any:
        source = RepeatPromise()
        done = source.repeat_catch("context", body)
        source.reject("error")
        return await done

    assert asyncio.run(run()) == "handled"
    assert received == [("context", "error")]


def test_long_failing_loop_does_not_grow_the_stack() -> None:
    iterations = 20_000

    def body(brk: Break, n: int) -> Any:
        if n >= iterations:
            return n
        return RepeatPromise.reject(n + 1)

    async def run() -> Any:
        return await RepeatPromise.repeat_catch(0, body)

    assert asyncio.run(run()) == iterations
