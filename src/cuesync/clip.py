"""Clip protocol and the labelled timeline used for segments and the master."""

from __future__ import annotations

import asyncio
import bisect
import inspect
from dataclasses import dataclass, field
from typing import Callable, Protocol, Self, TypeVar, runtime_checkable

Ctx = TypeVar("Ctx")
Target = TypeVar("Target")
Delta = TypeVar("Delta")

ComposeFn = Callable[[list[Delta]], Delta]


def compose_last(deltas):
    return deltas[-1]


def compose_sum(deltas):
    return sum(deltas)


async def _resolve_render(clip, t, ctx):
    result = clip.render(t, ctx)
    if inspect.isawaitable(result):
        return await result
    return result


@runtime_checkable
class Clip(Protocol[Ctx, Target, Delta]):

    @property
    def duration(self) -> float | None: ...

    def render(self, t: float, ctx: Ctx) -> dict[Target, Delta]: ...


class _FnClip:
    def __init__(self, duration, render_fn):
        self._duration = duration
        self._render_fn = render_fn

    @property
    def duration(self):
        return self._duration

    def render(self, t, ctx):
        return self._render_fn(t, ctx)


def clip(
    duration: float | None,
    render_fn: Callable[[float, Ctx], dict[Target, Delta]] | None = None,
) -> Clip[Ctx, Target, Delta]:
    """Create a clip from a duration and a render function.

    Without a render function the clip is a silent spacer.

    >>> c = clip(2.0, lambda t, ctx: {"ch": t})
    >>> c.duration
    2.0
    >>> c.render(1.0, None)
    {'ch': 1.0}
    """
    if render_fn is None:
        render_fn = lambda t, ctx: {}
    return _FnClip(duration, render_fn)


@dataclass
class Timeline:
    """Clips scheduled at absolute positions plus named time markers.

    A Timeline is itself a clip, so segment content built as a Timeline
    nests inside the master timeline. ``labels`` maps marker names to
    positions on this timeline.
    """

    compose_fn: ComposeFn = field(default=compose_last)
    events: list[tuple[float, Clip]] = field(default_factory=list)
    labels: dict[str, float] = field(default_factory=dict)

    def add(self, position: float, clip: Clip) -> Self:
        bisect.insort(self.events, (position, clip), key=lambda e: e[0])
        return self

    def append(self, clip: Clip) -> Self:
        """Schedule *clip* at the current end of the timeline."""
        end = self.duration
        if end is None:
            raise ValueError("Cannot append after a clip with unbounded duration")
        return self.add(end, clip)

    def add_label(self, name: str, position: float | None = None) -> Self:
        """Mark *name* at *position*, or at the current end when omitted."""
        if position is None:
            position = self.duration
            if position is None:
                raise ValueError(f"Cannot place label {name!r} after an unbounded clip")
        self.labels[name] = position
        return self

    def label_time(self, name: str, default: float | None = None) -> float | None:
        return self.labels.get(name, default)

    def clear(self) -> Self:
        self.events.clear()
        self.labels.clear()
        return self

    @property
    def start(self) -> float:
        if not self.events:
            return 0.0
        return min(start_time for start_time, _ in self.events)

    @property
    def duration(self) -> float | None:
        if not self.events:
            return 0.0
        max_end = None
        for start_time, c in self.events:
            clip_dur = c.duration
            if clip_dur is None:
                return None
            end = start_time + clip_dur
            if max_end is None or end > max_end:
                max_end = end
        return max_end

    def render(self, t: float, ctx) -> dict:
        """Render every clip active at *t*.

        Returns a dict when all active clips render synchronously and an
        awaitable as soon as one of them returns one.
        """
        right = bisect.bisect_right(self.events, t, key=lambda e: e[0])

        active = []
        for i in range(right - 1, -1, -1):
            start_pos, c = self.events[i]
            local_t = t - start_pos
            if c.duration is not None and local_t > c.duration:
                continue
            active.append((local_t, c))
        if not active:
            return {}
        active.reverse()

        results = []
        for lt, c in active:
            result = c.render(lt, ctx)
            if inspect.isawaitable(result):
                return self._render_async(active, ctx, results, result)
            results.append(result)

        return self._compose_results(results)

    async def _render_async(self, active, ctx, partial_results, pending_awaitable):
        partial_results.append(await pending_awaitable)
        start_idx = len(partial_results)
        if start_idx < len(active):
            remaining = await asyncio.gather(
                *(_resolve_render(c, lt, ctx) for lt, c in active[start_idx:])
            )
            partial_results.extend(remaining)
        return self._compose_results(partial_results)

    def _compose_results(self, results: list[dict]) -> dict:
        target_deltas: dict = {}
        for deltas in results:
            for target, delta in deltas.items():
                target_deltas.setdefault(target, []).append(delta)
        return {
            target: self.compose_fn(deltas)
            for target, deltas in target_deltas.items()
        }
