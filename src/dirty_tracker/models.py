"""Data models for the dirty tracker package."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import FrozenSet, Optional, Union


RawPath = Union[str, bytes, Path]


class State(Enum):
    """Lifecycle state of a tracker."""
    CLEAN = "clean"
    DIRTY = "dirty"
    UNKNOWN = "unknown"


class EventKind(Enum):
    """Kinds of items produced by a watch session."""
    CREATED = "created"
    MODIFIED = "modified"
    REMOVED = "removed"
    RENAMED = "renamed"
    OVERFLOW = "overflow"
    ERROR = "error"


CHANGE_KINDS = frozenset({
    EventKind.CREATED,
    EventKind.MODIFIED,
    EventKind.REMOVED,
    EventKind.RENAMED,
})


@dataclass(frozen=True)
class WatchItem:
    """
    A raw item read from a watch session.

    Attributes:
        kind: What the item reports
        src_path: Affected path, or the source of a rename
        dest_path: Destination of a rename
        error: The failure carried by an ERROR item
    """
    kind: EventKind
    src_path: Optional[RawPath] = None
    dest_path: Optional[RawPath] = None
    error: Optional[BaseException] = None

    @property
    def is_change(self) -> bool:
        """True for filesystem change notifications."""
        return self.kind in CHANGE_KINDS

    @classmethod
    def overflow(cls) -> "WatchItem":
        return cls(EventKind.OVERFLOW)

    @classmethod
    def failure(cls, error: BaseException) -> "WatchItem":
        return cls(EventKind.ERROR, error=error)


@dataclass(frozen=True)
class Snapshot:
    """
    A consistent view of a tracker's state and dirty paths.

    Attributes:
        state: The tracker state at the time of the read
        paths: The dirty paths, or None when the state is UNKNOWN
    """
    state: State
    paths: Optional[FrozenSet[Path]]

    def __post_init__(self):
        if self.state is State.UNKNOWN:
            if self.paths is not None:
                raise ValueError("an unknown snapshot cannot carry paths")
        elif self.paths is None:
            raise ValueError(f"a {self.state.value} snapshot must carry paths")
        elif (self.state is State.DIRTY) != bool(self.paths):
            raise ValueError(
                f"state {self.state.value} does not match {len(self.paths)} dirty path(s)"
            )

    @property
    def is_unknown(self) -> bool:
        return self.state is State.UNKNOWN
