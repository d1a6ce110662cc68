"""Thread-safe holder of the tracker state and dirty path set."""

import logging
import threading
import time
from pathlib import Path
from typing import FrozenSet, Optional, Set

from .models import Snapshot, State

logger = logging.getLogger(__name__)


class DirtyStateStore:
    """
    Single source of truth for a tracker's state.

    The dispatcher is the only writer; queries read immutable snapshots.
    State only moves forward: CLEAN -> DIRTY, and anything -> UNKNOWN.
    Paths are never removed except when the set is discarded on UNKNOWN.
    """

    def __init__(self):
        """Initialize an empty, clean store."""
        self._state = State.CLEAN
        self._paths: Set[Path] = set()
        self._frozen_paths: Optional[FrozenSet[Path]] = frozenset()
        self._sealed = False
        self._lock = threading.Lock()
        self._changed = threading.Condition(self._lock)

    def mark_dirty(self, path: Path) -> bool:
        """
        Record a changed path.

        No-op once the store is UNKNOWN or sealed.

        Args:
            path: Absolute path that changed

        Returns:
            True if the path was not already in the set
        """
        with self._lock:
            if self._sealed or self._state is State.UNKNOWN:
                return False
            if path in self._paths:
                return False

            self._paths.add(path)
            self._frozen_paths = None
            if self._state is State.CLEAN:
                self._state = State.DIRTY
                self._changed.notify_all()
            return True

    def mark_unknown(self, reason: str) -> bool:
        """
        Give up tracking: discard the dirty set and enter UNKNOWN.

        Args:
            reason: Why tracking can no longer be trusted

        Returns:
            True if this call performed the transition
        """
        with self._lock:
            if self._sealed or self._state is State.UNKNOWN:
                return False

            self._state = State.UNKNOWN
            self._paths = set()
            self._frozen_paths = None
            self._changed.notify_all()

        logger.warning("Dirty state is unknown: %s", reason)
        return True

    def seal(self) -> None:
        """Reject all further mutations without changing the current state."""
        with self._lock:
            self._sealed = True
            self._changed.notify_all()

    def snapshot(self) -> Snapshot:
        """Return the state and dirty paths as read at a single instant."""
        with self._lock:
            if self._state is State.UNKNOWN:
                return Snapshot(State.UNKNOWN, None)
            if self._frozen_paths is None:
                self._frozen_paths = frozenset(self._paths)
            return Snapshot(self._state, self._frozen_paths)

    def wait_for_change(self, timeout: Optional[float] = None) -> State:
        """
        Block until the state leaves CLEAN, the store is sealed, or timeout.

        Args:
            timeout: Maximum seconds to wait, or None to wait indefinitely

        Returns:
            The state when the wait ended
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._lock:
            while self._state is State.CLEAN and not self._sealed:
                if deadline is None:
                    self._changed.wait()
                    continue
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                self._changed.wait(remaining)
            return self._state
