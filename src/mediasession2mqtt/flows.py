"""Async stream primitives.

Everything here works on plain async iterators. :class:`StateStream` is the
hot source: it holds a current value and lets any number of subscribers
iterate over it. The operator functions wrap one async iterator into another,
so projections read as a pipeline::

    distinct_until_changed(flat_map_latest(tracker.stream(), per_source))
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable
from typing import Final, Generic, TypeVar

from mediasession2mqtt.logging_abstraction import get_logger

__all__ = [
    "StateStream",
    "cancel_and_wait",
    "collect_latest",
    "distinct_until_changed",
    "filter_not_none",
    "flat_map_latest",
    "flow_of",
    "map_values",
]

T = TypeVar("T")
R = TypeVar("R")

logger = get_logger(__name__)

_UNSET: Final = object()
_DONE: Final = object()
# Generation tag for items of the upstream itself in flat_map_latest
_TERMINAL: Final = -1


class _Slot(Generic[T]):
    """Conflating single-value mailbox for one subscriber."""

    __slots__ = ("_event", "_value")

    def __init__(self, value: T) -> None:
        self._value: T = value
        self._event: asyncio.Event = asyncio.Event()
        self._event.set()

    def offer(self, value: T) -> None:
        self._value = value
        self._event.set()

    async def take(self) -> T:
        _ = await self._event.wait()
        self._event.clear()
        return self._value


class StateStream(Generic[T]):
    """Holds a current value and broadcasts changes to subscribers.

    A subscriber first receives the current value, then every later value.
    Slow subscribers are conflated: they skip intermediate values and only
    see the latest one. Setting a value equal to the current one is a no-op.
    """

    def __init__(self, value: T) -> None:
        self._value: T = value
        self._slots: set[_Slot[T]] = set()

    @property
    def value(self) -> T:
        return self._value

    @property
    def subscriber_count(self) -> int:
        return len(self._slots)

    def set(self, value: T) -> bool:
        """Publish ``value``; returns False when it equals the current value."""
        if value == self._value:
            return False
        self._value = value
        for slot in self._slots:
            slot.offer(value)
        return True

    async def stream(self) -> AsyncIterator[T]:
        slot = _Slot(self._value)
        self._slots.add(slot)
        try:
            while True:
                yield await slot.take()
        finally:
            self._slots.discard(slot)

    def __aiter__(self) -> AsyncIterator[T]:
        return self.stream()


async def flow_of(*values: T) -> AsyncIterator[T]:
    """Finite stream of the given values."""
    for value in values:
        yield value


async def map_values(source: AsyncIterable[T], transform: Callable[[T], R]) -> AsyncIterator[R]:
    async for value in source:
        yield transform(value)


async def filter_not_none(source: AsyncIterable[T | None]) -> AsyncIterator[T]:
    async for value in source:
        if value is not None:
            yield value


async def distinct_until_changed(source: AsyncIterable[T]) -> AsyncIterator[T]:
    """Suppress values equal to the immediately preceding one."""
    previous: object = _UNSET
    async for value in source:
        if previous is not _UNSET and value == previous:
            continue
        previous = value
        yield value


async def flat_map_latest(
    source: AsyncIterable[T],
    transform: Callable[[T], AsyncIterable[R]],
) -> AsyncIterator[R]:
    """Follow the inner stream of the latest upstream value only.

    Each upstream value cancels the inner stream of the previous one. Values
    or failures the superseded inner stream already handed over are dropped,
    so nothing from an old inner stream reaches the consumer after the switch.
    At most one value is handed over ahead of the consumer; a hot inner stream
    conflates the rest, so a slow consumer resumes at the latest value instead
    of replaying a backlog. Completes once the upstream and the last inner
    stream are both exhausted; a failure in either is re-raised to the
    consumer.
    """
    # (generation, kind, payload); generation _TERMINAL marks the upstream itself
    handoff: asyncio.Queue[tuple[int, str, object]] = asyncio.Queue(maxsize=1)
    generation = 0
    inner: asyncio.Task[None] | None = None

    async def forward(gen: int, stream: AsyncIterable[R]) -> None:
        try:
            async for value in stream:
                await handoff.put((gen, "value", value))
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            await handoff.put((gen, "error", exc))

    async def follow_upstream() -> None:
        nonlocal generation, inner
        try:
            async for item in source:
                if inner is not None:
                    _ = inner.cancel()
                generation += 1
                inner = asyncio.create_task(forward(generation, transform(item)))
            if inner is not None:
                await inner
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            await handoff.put((_TERMINAL, "error", exc))
        else:
            await handoff.put((_TERMINAL, "done", _DONE))

    upstream = asyncio.create_task(follow_upstream())
    try:
        while True:
            gen, kind, payload = await handoff.get()
            if gen == _TERMINAL:
                if kind == "done":
                    return
                assert isinstance(payload, Exception)
                raise payload
            if gen != generation:
                continue
            if kind == "error":
                assert isinstance(payload, Exception)
                raise payload
            yield payload  # type: ignore[misc]
    finally:
        _ = upstream.cancel()
        if inner is not None:
            _ = inner.cancel()


async def cancel_and_wait(task: asyncio.Task[None]) -> None:
    """Cancel ``task`` and wait until it has finished unwinding.

    Failures of the task itself are logged, not raised. Cancellation of the
    calling task is propagated.
    """
    lp = "flows:cancel_and_wait:"
    _ = task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        current = asyncio.current_task()
        if current is not None and current.cancelling():
            raise
    except Exception:
        logger.exception("%s Task %s failed while being cancelled", lp, task.get_name())


async def collect_latest(
    source: AsyncIterable[T],
    action: Callable[[T], Awaitable[None]],
    name: str | None = None,
) -> None:
    """Run ``action`` for each value, cancelling the run for the previous value first.

    The previous run is fully unwound (its ``finally`` blocks have executed)
    before the next one starts, so two runs never overlap. A run that fails is
    logged and does not stop the collection.
    """
    lp = "flows:collect_latest:"
    running: asyncio.Task[None] | None = None
    count = 0
    try:
        async for value in source:
            if running is not None:
                await cancel_and_wait(running)
            count += 1
            task_name = f"{name}-{count}" if name else f"collect_latest-{count}"
            running = asyncio.create_task(_run_action(action, value, task_name), name=task_name)
        if running is not None:
            await running
    finally:
        if running is not None and not running.done():
            logger.debug("%s Cancelling %s", lp, running.get_name())
            await asyncio.shield(cancel_and_wait(running))


async def _run_action(action: Callable[[T], Awaitable[None]], value: T, task_name: str) -> None:
    try:
        await action(value)
    except asyncio.CancelledError:
        raise
    except Exception:
        logger.exception("flows:collect_latest: %s failed", task_name)
