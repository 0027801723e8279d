"""Registration counters behind the readiness signal."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class Ledger:
    """Counts submitted and settled registrations.

    ``settled`` never exceeds ``expected``. The readiness transition is
    reported once per ledger, by the settle that first makes the counts
    equal; a later submission un-completes the ledger without re-arming
    the transition.
    """

    expected: int = 0
    settled: int = 0
    _fired: bool = field(default=False, init=False, repr=False)

    def submit(self) -> None:
        self.expected += 1

    def settle(self) -> bool:
        """Count one finished registration.

        Returns True only for the settle that fires the readiness transition.
        """
        if self.settled >= self.expected:
            raise RuntimeError("settle() called more often than submit()")
        self.settled += 1
        if self.complete and not self._fired:
            self._fired = True
            return True
        return False

    @property
    def pending(self) -> int:
        return self.expected - self.settled

    @property
    def complete(self) -> bool:
        return self.expected > 0 and self.settled == self.expected

    @property
    def fired(self) -> bool:
        return self._fired
