"""
Dirty Tracker Package

Opportunistic tracking of changed files beneath a directory.

A tracker watches a directory recursively and answers "has anything
under this root changed, and if so, what?" without checksums or rescans.

Features:
- Recursive watching through the platform's native mechanism (watchdog)
- Tri-state answer: CLEAN, DIRTY with the changed paths, or UNKNOWN
- Degrades to UNKNOWN, never to a false CLEAN, when events may be lost
- Non-blocking queries backed by atomic snapshots
"""

from .models import (
    State,
    EventKind,
    WatchItem,
    Snapshot,
)

from .config import TrackerConfig

from .exceptions import (
    TrackerError,
    InvalidRootError,
    SetupFailedError,
    WatchCapabilityError,
)

from .normalizer import PathNormalizer
from .store import DirtyStateStore
from .session import WatchSession, SessionEventHandler
from .dispatcher import EventDispatcher
from .tracker import DirtyTracker


__all__ = [
    # Models
    "State",
    "EventKind",
    "WatchItem",
    "Snapshot",
    # Config
    "TrackerConfig",
    # Exceptions
    "TrackerError",
    "InvalidRootError",
    "SetupFailedError",
    "WatchCapabilityError",
    # Components
    "PathNormalizer",
    "DirtyStateStore",
    "WatchSession",
    "SessionEventHandler",
    "EventDispatcher",
    # Tracker
    "DirtyTracker",
]

__version__ = "0.1.0"
