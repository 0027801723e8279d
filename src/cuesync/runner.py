"""Frame loop that plays a clip on the running event loop."""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Callable, Generic, TypeVar

from .clip import Clip, Ctx, Delta, Target

log = logging.getLogger(__name__)

Output = TypeVar("Output")


def _make_set_event() -> asyncio.Event:
    e = asyncio.Event()
    e.set()
    return e


@dataclass
class Runner(Generic[Ctx, Target, Delta, Output]):
    """Renders a clip at ``fps`` from an asyncio task.

    Satisfies the registry's player interface, so passing a Runner as
    ``SyncRegistry(player=...)`` starts the master timeline once every
    registration has settled.
    """

    ctx: Ctx
    apply_fn: Callable[[dict[Target, Delta]], Output] | None = None
    output_fn: Callable[[Output], None] | None = None
    fps: float = 40.0

    _task: asyncio.Task | None = field(default=None, init=False, repr=False)
    _done_event: asyncio.Event = field(
        default_factory=_make_set_event, init=False, repr=False
    )
    _clip: Clip[Ctx, Target, Delta] | None = field(
        default=None, init=False, repr=False
    )
    _elapsed: float = field(default=0.0, init=False, repr=False)
    _paused: bool = field(default=False, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.fps <= 0:
            raise ValueError("fps must be greater than zero")

    @property
    def is_paused(self) -> bool:
        return self._paused

    @property
    def elapsed(self) -> float:
        """Current playback position in seconds."""
        return self._elapsed

    @property
    def state(self) -> str:
        """'stopped', 'playing' or 'paused'."""
        if self._paused:
            return "paused"
        if self._task is not None and not self._task.done():
            return "playing"
        return "stopped"

    @property
    def clip(self) -> Clip[Ctx, Target, Delta] | None:
        return self._clip

    def _apply(self, deltas: dict[Target, Delta]) -> Output:
        if self.apply_fn is None:
            return deltas  # type: ignore[return-value]
        return self.apply_fn(deltas)

    def play(self, clip: Clip[Ctx, Target, Delta], start_at: float = 0.0) -> None:
        """Start playing *clip* from *start_at*. Needs a running event loop."""
        self.stop()
        self._clip = clip
        self._elapsed = start_at
        self._done_event.clear()
        self._start_loop(start_at)

    def pause(self) -> None:
        if self._task is None or self._task.done() or self._paused:
            return
        self._paused = True
        self._task.cancel()
        self._task = None

    def resume(self) -> None:
        if not self._paused or self._clip is None:
            return
        self._paused = False
        self._start_loop(self._elapsed)

    def stop(self) -> None:
        self._paused = False
        if self._task is not None:
            self._task.cancel()
            self._task = None
        self._done_event.set()

    async def wait(self) -> None:
        """Wait until playback finishes or is stopped."""
        await self._done_event.wait()

    async def tick(self, clip: Clip[Ctx, Target, Delta], t: float) -> Output:
        """Render one frame at *t* and send it through the output pipeline."""
        result = clip.render(t, self.ctx)
        if inspect.isawaitable(result):
            result = await result
        output = self._apply(result)
        if self.output_fn is not None:
            self.output_fn(output)
        return output

    def _start_loop(self, start_at: float) -> None:
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._loop(start_at))

    async def _loop(self, start_at: float) -> None:
        loop = asyncio.get_running_loop()
        frame_duration = 1.0 / self.fps
        origin = loop.time() - start_at
        frame_count = 0
        finished = False
        try:
            while True:
                # Re-read each frame; the clip may have been replaced.
                clip = self._clip
                if clip is None:
                    break

                show_time = loop.time() - origin
                if clip.duration is not None and show_time > clip.duration:
                    show_time = clip.duration
                self._elapsed = show_time

                try:
                    await self.tick(clip, show_time)
                except Exception:
                    log.exception("Error rendering frame at %.3fs", show_time)

                if clip.duration is not None and show_time >= clip.duration:
                    break

                frame_count += 1
                delay = max(0.0, origin + frame_count * frame_duration - loop.time())
                await asyncio.sleep(delay)
            finished = True
        finally:
            if finished or not self._paused:
                self._paused = False
                self._done_event.set()
