"""Exceptions raised by the registry."""

from __future__ import annotations


class SyncError(Exception):
    """Base class for registry errors."""


class UnresolvedDependencyError(SyncError):

    def __init__(self, segment_id: str, missing: tuple[str, ...]) -> None:
        self.segment_id = segment_id
        self.missing = missing
        super().__init__(
            f"Segment {segment_id!r} could not resolve: {', '.join(missing)}"
        )


class DuplicateSegmentError(SyncError):

    def __init__(self, segment_id: str) -> None:
        self.segment_id = segment_id
        super().__init__(f"Segment {segment_id!r} is already registered")


class DuplicateLabelError(SyncError):

    def __init__(self, name: str, time: float) -> None:
        self.name = name
        self.time = time
        super().__init__(f"Label {name!r} is already published at {time}")


class RegistryClosedError(SyncError):
    """Raised when registering on a registry that has been closed."""
