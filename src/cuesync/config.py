"""Resolution settings for a registry session."""

from __future__ import annotations

from dataclasses import dataclass

STRATEGIES = ("poll", "notify")


@dataclass(frozen=True)
class ResolveConfig:
    """How long and how a registration waits for the labels it depends on.

    Parameters
    ----------
    poll_interval:
        Seconds between label-table checks.
    max_attempts:
        Checks after the first one before a dependency counts as unresolved.
    strategy:
        ``"poll"`` re-reads the label table on every interval. ``"notify"``
        parks a future per label that is woken on publish, bounded by
        :attr:`timeout`.
    strict:
        Treat an unresolved dependency, a reused segment id or a re-published
        label as a session failure instead of degrading.
    """

    poll_interval: float = 0.05
    max_attempts: int = 100
    strategy: str = "poll"
    strict: bool = False

    def __post_init__(self) -> None:
        if self.poll_interval <= 0.0:
            raise ValueError("poll_interval must be greater than zero")
        if self.max_attempts < 0:
            raise ValueError("max_attempts must not be negative")
        if self.strategy not in STRATEGIES:
            raise ValueError(
                f"Unknown strategy {self.strategy!r}, expected one of {STRATEGIES}"
            )

    @property
    def timeout(self) -> float:
        """Total wait budget per dependency, in seconds."""
        return self.poll_interval * self.max_attempts
