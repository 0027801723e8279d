"""Synchronized timeline registry.

Segments register independently, in any order, and may start relative to
labels that other segments publish. Each registration resolves in its own
background task:

1. wait, concurrently, for every label in ``depends_on``;
2. on success, start at the latest of those times (0 with no dependencies),
   insert the built content into the master timeline and publish the
   segment's labels offset by its start;
3. on failure, consult ``on_dependency_failure`` for a fallback, or drop
   the segment;
4. settle the ledger, firing readiness when every submitted registration
   has settled.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable, Mapping, Protocol

from .clip import Clip, Timeline
from .config import ResolveConfig
from .errors import (
    DuplicateLabelError,
    DuplicateSegmentError,
    RegistryClosedError,
    SyncError,
    UnresolvedDependencyError,
)
from .labels import LabelTable, qualify
from .ledger import Ledger
from .segment import (
    DROPPED,
    FALLBACK,
    PENDING,
    RESOLVED,
    BareContent,
    LabelSpec,
    SegmentRecord,
    SegmentRequest,
    StructuredFallback,
    interpret_fallback,
    local_time,
)

log = logging.getLogger(__name__)


class MasterTimeline(Protocol):
    """What the registry needs from the shared timeline."""

    def add(self, position: float, clip: Clip) -> Any: ...

    def add_label(self, name: str, position: float) -> Any: ...


class Player(Protocol):

    def play(self, clip: Clip) -> Any: ...


async def _maybe_await(result):
    if inspect.isawaitable(result):
        return await result
    return result


class SyncRegistry:
    """Per-session coordinator of segment registrations.

    Create one per session and register segments from inside the event
    loop. ``player``, when given, is played with the master timeline at the
    readiness transition.
    """

    def __init__(
        self,
        master: MasterTimeline | None = None,
        *,
        config: ResolveConfig | None = None,
        player: Player | None = None,
    ) -> None:
        self.master = master if master is not None else Timeline()
        self.config = config or ResolveConfig()
        self.player = player
        self.labels = LabelTable()
        self.ledger = Ledger()
        self._records: list[SegmentRecord] = []
        self._tasks: set[asyncio.Task] = set()
        self._ready_callbacks: list[Callable[[SyncRegistry], Any]] = []
        self._ready_event = asyncio.Event()
        self._failure: SyncError | None = None
        self._ready_fired = False
        self._closed = False

    async def __aenter__(self) -> SyncRegistry:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # --- Registration ---

    def register_segment(self, request: SegmentRequest) -> None:
        """Submit *request* and return immediately.

        ``expected`` is counted before this returns, so registrations
        submitted in one synchronous burst cannot fire readiness early.
        """
        if self._closed:
            raise RegistryClosedError("Registry is closed")
        loop = asyncio.get_running_loop()
        if self.record(request.id) is not None:
            if self.config.strict:
                raise DuplicateSegmentError(request.id)
            log.warning("Segment %r registered more than once", request.id)

        self.ledger.submit()
        record = SegmentRecord(request.id)
        self._records.append(record)
        task = loop.create_task(
            self._resolve(request, record), name=f"cuesync:{request.id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(lambda _: self._finish(record))

    async def _resolve(self, request: SegmentRequest, record: SegmentRecord) -> None:
        try:
            await self._run(request, record)
        except asyncio.CancelledError:
            record.status = DROPPED
            raise
        except SyncError as exc:
            record.status = DROPPED
            self._fail(exc)
        except Exception:
            log.exception("Segment %r failed while resolving", request.id)
            record.status = DROPPED

    async def _run(self, request: SegmentRequest, record: SegmentRecord) -> None:
        times = await self._await_dependencies(request.depends_on)
        missing = tuple(
            name for name, t in zip(request.depends_on, times) if t is None
        )
        if not missing:
            start_at = max(times) if times else 0.0
            content = await _maybe_await(request.build_content())
            self._place(request.id, content, start_at, request.label_specs, record)
            record.status = RESOLVED
            return

        record.missing = missing
        log.info(
            "Segment %r: dependencies not found: %s", request.id, ", ".join(missing)
        )
        if self.config.strict:
            raise UnresolvedDependencyError(request.id, missing)
        await self._fall_back(request, record)

    async def _await_dependencies(self, names: tuple[str, ...]) -> list[float | None]:
        if not names:
            return []
        cfg = self.config
        if cfg.strategy == "notify":
            waits = (self.labels.wait(name, cfg.timeout) for name in names)
        else:
            waits = (
                self.labels.poll(name, cfg.poll_interval, cfg.max_attempts)
                for name in names
            )
        return list(await asyncio.gather(*waits))

    async def _fall_back(self, request: SegmentRequest, record: SegmentRecord) -> None:
        if request.on_dependency_failure is None:
            log.info("Segment %r has no fallback, dropping it", request.id)
            record.status = DROPPED
            return

        raw = await _maybe_await(
            request.on_dependency_failure(request.id, request.depends_on)
        )
        result = interpret_fallback(raw, request.id)
        if isinstance(result, StructuredFallback):
            self._place(
                request.id, result.content, result.start_at, result.label_specs, record
            )
            record.status = FALLBACK
        elif isinstance(result, BareContent):
            self._place(request.id, result.content, 0.0, {}, record)
            record.status = FALLBACK
        else:
            record.status = DROPPED

    def _place(
        self,
        segment_id: str,
        content: Clip,
        start_at: float,
        label_specs: Mapping[str, LabelSpec],
        record: SegmentRecord,
    ) -> None:
        # Every label is evaluated before anything becomes visible.
        published = {
            qualify(segment_id, name): start_at + local_time(spec, content)
            for name, spec in label_specs.items()
        }
        if self.config.strict:
            for name in published:
                if name in self.labels:
                    raise DuplicateLabelError(name, self.labels[name])

        self.master.add(start_at, content)
        record.start_at = start_at
        record.content = content
        log.debug("Segment %r placed at %s", segment_id, start_at)

        for name, t in published.items():
            if self.labels.publish(name, t):
                self.master.add_label(name, t)
                record.labels[name] = t
                log.debug("Label %r published at %s", name, t)

    # --- Readiness ---

    def _finish(self, record: SegmentRecord) -> None:
        # Runs even for a task cancelled before its first step.
        if record.status == PENDING:
            record.status = DROPPED
        self._settle()

    def _settle(self) -> None:
        if self.ledger.settle() and self._failure is None and not self._closed:
            self._fire_ready()

    def _fire_ready(self) -> None:
        self._ready_fired = True
        self._ready_event.set()
        callbacks, self._ready_callbacks = self._ready_callbacks, []
        for callback in callbacks:
            self._call_ready(callback)
        if self.player is not None:
            try:
                self.player.play(self.master)
            except Exception:
                log.exception("Player %r failed to start the master timeline", self.player)

    def _call_ready(self, callback: Callable[[SyncRegistry], Any]) -> None:
        try:
            callback(self)
        except Exception:
            log.exception("Ready callback %r raised", callback)

    def _fail(self, exc: SyncError) -> None:
        log.error("Session failed: %s", exc)
        if self._failure is None:
            self._failure = exc
        self._ready_event.set()

    @property
    def ready(self) -> bool:
        """True while every submitted registration has settled."""
        return self._failure is None and self.ledger.complete

    @property
    def failure(self) -> SyncError | None:
        return self._failure

    def on_ready(self, callback: Callable[[SyncRegistry], Any]) -> None:
        """Call *callback* with the registry once readiness fires.

        Runs immediately when readiness has already fired.
        """
        if self.ledger.fired and self._failure is None:
            self._call_ready(callback)
        else:
            self._ready_callbacks.append(callback)

    async def wait_ready(self) -> None:
        """Wait for readiness.

        Raises the session failure in strict mode, and RegistryClosedError
        when the registry was closed before readiness fired.
        """
        await self._ready_event.wait()
        if self._failure is not None:
            raise self._failure
        if not self._ready_fired:
            raise RegistryClosedError("Registry closed before every segment settled")

    async def join(self) -> None:
        """Wait until every in-flight registration has settled."""
        while self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    # --- Inspection ---

    @property
    def records(self) -> list[SegmentRecord]:
        return list(self._records)

    def record(self, segment_id: str) -> SegmentRecord | None:
        """Return the latest record for *segment_id*, or None."""
        for record in reversed(self._records):
            if record.segment_id == segment_id:
                return record
        return None

    # --- Teardown ---

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        """Cancel in-flight registrations and refuse new ones."""
        self._closed = True
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        if not self._ready_event.is_set():
            self._ready_event.set()
