"""Cue point collection for previewing a composed master timeline."""

from __future__ import annotations

from dataclasses import dataclass

from .registry import SyncRegistry

_EDGE_ORDER = {"start": 0, "label": 1, "end": 2}


@dataclass
class CuePoint:
    time_seconds: float
    label: str
    segment_id: str | None
    edge: str  # "start", "label" or "end"


def collect_cue_points(registry: SyncRegistry) -> list[CuePoint]:
    """Collect start, label and end points of every placed segment.

    Points are sorted by time; at equal times starts sort before labels and
    labels before ends. End points are nudged 1ms inward so a frame
    rendered there still falls inside the segment. Labels published by a
    segment carry its id; labels nobody owns (published directly on the
    table) carry None.
    """
    points: list[CuePoint] = []
    owned: set[str] = set()

    for record in registry.records:
        if not record.placed:
            continue
        start = record.start_at
        points.append(CuePoint(
            time_seconds=start,
            label=f"{record.segment_id} (start)",
            segment_id=record.segment_id,
            edge="start",
        ))

        for name, t in record.labels.items():
            owned.add(name)
            points.append(CuePoint(
                time_seconds=t,
                label=name,
                segment_id=record.segment_id,
                edge="label",
            ))

        end = record.end_at
        if end is not None and end > start:
            points.append(CuePoint(
                time_seconds=max(start, end - 0.001),
                label=f"{record.segment_id} (end)",
                segment_id=record.segment_id,
                edge="end",
            ))

    for name, t in registry.labels.items():
        if name not in owned:
            points.append(CuePoint(
                time_seconds=t, label=name, segment_id=None, edge="label",
            ))

    points.sort(key=lambda p: (p.time_seconds, _EDGE_ORDER[p.edge]))
    return points
