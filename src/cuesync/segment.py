"""Segment registration requests, fallback results and outcome records."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping

from .clip import Clip

log = logging.getLogger(__name__)

LabelSpec = float | Callable[[Clip], float]
ContentFactory = Callable[[], "Clip | Awaitable[Clip]"]
FailureHandler = Callable[[str, tuple[str, ...]], Any]

PENDING = "pending"
RESOLVED = "resolved"
FALLBACK = "fallback"
DROPPED = "dropped"


def marker_or_end(name: str) -> Callable[[Clip], float]:
    """Label extractor: the content's *name* marker, else its total duration."""

    def extract(content: Clip) -> float:
        labels = getattr(content, "labels", None) or {}
        if name in labels:
            return labels[name]
        duration = content.duration
        if duration is None:
            raise ValueError(
                f"Marker {name!r} is missing and the content has no finite duration"
            )
        return duration

    return extract


def local_time(spec: LabelSpec, content: Clip) -> float:
    """Evaluate a label spec against built content."""
    if callable(spec):
        return spec(content)
    return spec


@dataclass(frozen=True)
class SegmentRequest:
    """One segment's registration, immutable once submitted.

    *depends_on* accepts any iterable of qualified label names and keeps the
    first occurrence of each, in order.
    """

    id: str
    build_content: ContentFactory
    depends_on: tuple[str, ...] = ()
    label_specs: Mapping[str, LabelSpec] = field(default_factory=dict)
    on_dependency_failure: FailureHandler | None = None

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Segment id must be a non-empty string")
        if not callable(self.build_content):
            raise TypeError(f"build_content for {self.id!r} is not callable")
        deps = self.depends_on
        if isinstance(deps, str):
            deps = (deps,)
        object.__setattr__(self, "depends_on", tuple(dict.fromkeys(deps)))
        object.__setattr__(self, "label_specs", dict(self.label_specs))


# --- Fallback results ---


@dataclass(frozen=True)
class NoFallback:
    """Nothing is inserted for the segment."""


@dataclass(frozen=True)
class BareContent:
    """Content inserted at 0 with no labels."""

    content: Clip


@dataclass(frozen=True)
class StructuredFallback:
    """Content with its own labels and offset, placed like resolved content."""

    content: Clip
    label_specs: Mapping[str, LabelSpec] = field(default_factory=dict)
    start_at: float = 0.0


FallbackResult = NoFallback | BareContent | StructuredFallback


def interpret_fallback(value: Any, segment_id: str = "?") -> FallbackResult:
    """Map a fallback handler's return value onto a fallback result.

    Accepts an explicit result, ``None``, a ``{"content", "label_specs",
    "start_at"}`` dict, or a bare clip. Anything else is logged and treated
    as no fallback.
    """
    if value is None:
        return NoFallback()
    if isinstance(value, (NoFallback, BareContent, StructuredFallback)):
        return value
    if isinstance(value, dict):
        content = value.get("content")
        if content is not None:
            return StructuredFallback(
                content=content,
                label_specs=value.get("label_specs") or {},
                start_at=value.get("start_at") or 0.0,
            )
    elif isinstance(value, Clip):
        return BareContent(value)
    log.warning(
        "Fallback for segment %r returned an unrecognized %s, nothing inserted",
        segment_id, type(value).__name__,
    )
    return NoFallback()


@dataclass
class SegmentRecord:
    """Where a registration ended up."""

    segment_id: str
    status: str = PENDING
    start_at: float | None = None
    content: Clip | None = None
    labels: dict[str, float] = field(default_factory=dict)
    missing: tuple[str, ...] = ()

    @property
    def placed(self) -> bool:
        return self.content is not None

    @property
    def end_at(self) -> float | None:
        if self.content is None or self.content.duration is None:
            return None
        return self.start_at + self.content.duration
