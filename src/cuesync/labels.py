"""Append-only table of qualified label names and their global times."""

from __future__ import annotations

import asyncio
import logging
from typing import Iterator

log = logging.getLogger(__name__)


def qualify(segment_id: str, label: str) -> str:
    """Return the global name ``"<segment_id>.<label>"``."""
    return f"{segment_id}.{label}"


class LabelTable:
    """Global label times, written once per name and read by many waiters.

    Names are stored as given; the ``"<owner>.<label>"`` convention is not
    enforced here.
    """

    def __init__(self) -> None:
        self._times: dict[str, float] = {}
        self._waiters: dict[str, list[asyncio.Future]] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._times

    def __getitem__(self, name: str) -> float:
        return self._times[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._times)

    def __len__(self) -> int:
        return len(self._times)

    def get(self, name: str, default: float | None = None) -> float | None:
        return self._times.get(name, default)

    def items(self):
        return self._times.items()

    def as_dict(self) -> dict[str, float]:
        return dict(self._times)

    def publish(self, name: str, time: float) -> bool:
        """Record *name* at *time* and wake anything waiting on it.

        Returns False, leaving the first value in place, when *name* was
        already published.
        """
        if name in self._times:
            log.warning(
                "Label %r already published at %s, ignoring %s",
                name, self._times[name], time,
            )
            return False
        self._times[name] = time
        for fut in self._waiters.pop(name, []):
            if not fut.done():
                fut.set_result(time)
        return True

    async def poll(self, name: str, interval: float, attempts: int) -> float | None:
        """Check for *name* now and after each of *attempts* sleeps.

        Returns the label's time, or None once the attempts are used up.
        """
        if name in self._times:
            return self._times[name]
        for _ in range(attempts):
            await asyncio.sleep(interval)
            if name in self._times:
                return self._times[name]
        return None

    async def wait(self, name: str, timeout: float) -> float | None:
        """Wait for *name* to be published, or return None after *timeout*."""
        if name in self._times:
            return self._times[name]
        fut = asyncio.get_running_loop().create_future()
        self._waiters.setdefault(name, []).append(fut)
        try:
            return await asyncio.wait_for(fut, timeout)
        except TimeoutError:
            return None
        finally:
            waiters = self._waiters.get(name)
            if waiters is not None and fut in waiters:
                waiters.remove(fut)
                if not waiters:
                    del self._waiters[name]

    def waiting(self) -> dict[str, int]:
        """Return ``{name: waiter_count}`` for labels with parked waiters."""
        return {name: len(futs) for name, futs in self._waiters.items() if futs}
