"""Shared test fixtures."""

import asyncio
import inspect
from dataclasses import dataclass

import pytest

from cuesync import ResolveConfig, SegmentRequest, Timeline, clip


@dataclass
class StubClip:
    """Finite clip that renders {"ch": value * t}."""

    value: float
    clip_duration: float

    @property
    def duration(self) -> float:
        return self.clip_duration

    def render(self, t: float, ctx: object) -> dict[str, float]:
        return {"ch": self.value * t}


@dataclass
class InfiniteClip:
    """Clip with duration=None, renders constant output."""

    value: float

    @property
    def duration(self) -> None:
        return None

    def render(self, t: float, ctx: object) -> dict[str, float]:
        return {"ch": self.value}


@dataclass
class AsyncStubClip:
    """Finite clip with async render."""

    value: float
    clip_duration: float

    @property
    def duration(self) -> float:
        return self.clip_duration

    async def render(self, t: float, ctx: object) -> dict[str, float]:
        return {"ch": self.value * t}


def sum_compose(deltas: list[float]) -> float:
    return sum(deltas)


def resolve(result):
    """Run an awaitable render result to completion, pass plain results through."""
    if inspect.isawaitable(result):
        async def _await():
            return await result
        return asyncio.run(_await())
    return result


def content(duration: float, **markers: float) -> Timeline:
    """Segment content of *duration* seconds carrying the given markers."""
    tl = Timeline()
    tl.add(0.0, clip(duration))
    for name, t in markers.items():
        tl.add_label(name, t)
    return tl


def request(segment_id, duration=1.0, depends_on=(), labels=None, fallback=None, **markers):
    return SegmentRequest(
        id=segment_id,
        build_content=lambda: content(duration, **markers),
        depends_on=depends_on,
        label_specs=labels or {},
        on_dependency_failure=fallback,
    )


# Unresolvable dependencies give up after ~20ms.
FAST = ResolveConfig(poll_interval=0.001, max_attempts=20)
FAST_NOTIFY = ResolveConfig(poll_interval=0.001, max_attempts=20, strategy="notify")


@pytest.fixture
def stub_clip() -> StubClip:
    return StubClip(value=2.0, clip_duration=5.0)


@pytest.fixture
def timeline() -> Timeline:
    return Timeline(compose_fn=sum_compose)


@pytest.fixture(params=[FAST, FAST_NOTIFY], ids=["poll", "notify"])
def config(request) -> ResolveConfig:
    return request.param
