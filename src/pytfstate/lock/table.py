import logging
import threading
from enum import Enum
from dataclasses import dataclass

from ..schemas.lock import LockInfo

logger = logging.getLogger(__name__)

class LockOutcome(str, Enum):
    ACQUIRED = 'acquired'
    RELEASED = 'released'
    CONFLICT = 'conflict'
    NOOP = 'noop'

@dataclass(frozen=True)
class LockResult:
    outcome: LockOutcome
    lock: LockInfo | None = None    # the claim now held, or the competing claim on conflict

    @property
    def ok(self) -> bool:
        return self.outcome is not LockOutcome.CONFLICT

class LockTable:
    """
    In-process table of held state locks, keyed by state name.

    Every check-then-mutate sequence runs inside one critical section of a single mutex,
    so two concurrent claims on the same state can never both observe it unlocked.
    Locks are not persisted: a restart drops them and clients re-acquire.
    """
    def __init__(self):
        self._mutex = threading.Lock()
        self._locks: dict[str, LockInfo] = {}

    def __len__(self) -> int:
        with self._mutex:
            return len(self._locks)

    def peek(self, name: str) -> LockInfo | None:
        """Get the lock currently held on a state, if any."""
        with self._mutex:
            return self._locks.get(name)

    def acquire(self, name: str, claim: LockInfo) -> LockResult:
        """
        Claim the lock of a state.

        Re-sending the claim that already holds the lock succeeds without mutation and
        returns the held claim, so a client retrying after a timeout is not rejected.
        """
        with self._mutex:
            existing = self._locks.get(name)
            if existing is None:
                self._locks[name] = claim
                return LockResult(LockOutcome.ACQUIRED, claim)

            if existing.ID == claim.ID:
                return LockResult(LockOutcome.ACQUIRED, existing)
            return LockResult(LockOutcome.CONFLICT, existing)

    def release(self, name: str, requestor_id: str) -> LockResult:
        """
        Release the lock of a state.

        An empty requestor ID is a force-unlock and removes whatever claim is held.
        Releasing a state that is not locked is a no-op, not an error.
        """
        with self._mutex:
            existing = self._locks.get(name)
            if existing is None:
                return LockResult(LockOutcome.NOOP)

            if requestor_id and requestor_id != existing.ID:
                return LockResult(LockOutcome.CONFLICT, existing)

            del self._locks[name]
            return LockResult(LockOutcome.RELEASED, existing)

    def clear(self) -> None:
        """Remove all locks from the table."""
        with self._mutex:
            count = len(self._locks)
            self._locks.clear()
        if count:
            logger.info(f'Dropped {count} held state lock(s)')
