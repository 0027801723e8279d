"""Cross-timeline label synchronization for a shared master timeline."""

from .clip import Clip, ComposeFn, Timeline, clip, compose_last, compose_sum
from .config import ResolveConfig
from .cues import CuePoint, collect_cue_points
from .errors import (
    DuplicateLabelError,
    DuplicateSegmentError,
    RegistryClosedError,
    SyncError,
    UnresolvedDependencyError,
)
from .labels import LabelTable, qualify
from .ledger import Ledger
from .registry import SyncRegistry
from .runner import Runner
from .segment import (
    BareContent,
    NoFallback,
    SegmentRecord,
    SegmentRequest,
    StructuredFallback,
    interpret_fallback,
    marker_or_end,
)

__all__ = [
    "BareContent",
    "Clip",
    "clip",
    "collect_cue_points",
    "ComposeFn",
    "compose_last",
    "compose_sum",
    "CuePoint",
    "DuplicateLabelError",
    "DuplicateSegmentError",
    "interpret_fallback",
    "LabelTable",
    "Ledger",
    "marker_or_end",
    "NoFallback",
    "qualify",
    "RegistryClosedError",
    "ResolveConfig",
    "Runner",
    "SegmentRecord",
    "SegmentRequest",
    "StructuredFallback",
    "SyncError",
    "SyncRegistry",
    "Timeline",
    "UnresolvedDependencyError",
]

__version__ = "0.1.0"
