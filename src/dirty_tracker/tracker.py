"""Public tracker object."""

import logging
import os
import weakref
from pathlib import Path
from typing import Callable, FrozenSet, Optional, Union

from .config import TrackerConfig
from .dispatcher import EventDispatcher
from .exceptions import InvalidRootError, WatchCapabilityError
from .models import Snapshot, State
from .normalizer import PathNormalizer
from .session import WatchSession
from .store import DirtyStateStore

logger = logging.getLogger(__name__)


SessionFactory = Callable[[Path, TrackerConfig], WatchSession]


def _shutdown(dispatcher: Optional[EventDispatcher], session: WatchSession, store: DirtyStateStore) -> None:
    """Stop background work and seal the store."""
    if dispatcher is not None:
        dispatcher.stop()
    else:
        session.close()
    store.seal()


class DirtyTracker:
    """
    Tracks which paths under a directory have changed since construction.

    The tracker is in one of three states:
    - CLEAN: nothing has changed
    - DIRTY: the paths returned by paths() have changed
    - UNKNOWN: events may have been missed, so the tracker cannot say what
      changed; callers should fall back to a full rescan

    UNKNOWN is terminal. Queries never block; changes show up once the
    background dispatcher has processed their events.

    Example:
        with DirtyTracker(root) as tracker:
            ...
            if tracker.state() is State.UNKNOWN:
                rescan(root)
            else:
                rebuild(tracker.paths())
    """

    def __init__(
        self,
        root: Union[str, os.PathLike],
        config: Optional[TrackerConfig] = None,
        session_factory: Optional[SessionFactory] = None,
    ):
        """
        Start tracking a directory.

        A platform that cannot watch the directory yields a tracker that is
        UNKNOWN from the start rather than an error.

        Args:
            root: Directory to watch recursively
            config: Tracker configuration
            session_factory: Builds the watch session (defaults to WatchSession)

        Raises:
            InvalidRootError: If root does not exist or is not a directory
            SetupFailedError: If the watch fails for a reason other than
                platform limits
        """
        self.config = config or TrackerConfig()

        root = Path(os.path.abspath(os.fspath(root)))
        if not root.exists():
            raise InvalidRootError(f"Root does not exist: {root}")
        if not root.is_dir():
            raise InvalidRootError(f"Root is not a directory: {root}")

        self._normalizer = PathNormalizer(root)
        self._root = self._normalizer.root
        self._store = DirtyStateStore()

        factory = session_factory or WatchSession
        self._session = factory(self._root, self.config)
        self._dispatcher: Optional[EventDispatcher] = None

        try:
            self._session.start()
        except WatchCapabilityError as e:
            logger.info("Cannot watch %s, tracking starts unknown", self._root)
            self._session.close()
            self._store.mark_unknown(str(e))
        else:
            self._dispatcher = EventDispatcher(
                self._session,
                self._store,
                self._normalizer,
                self.config,
            )
            self._dispatcher.start()

        self._finalizer = weakref.finalize(
            self, _shutdown, self._dispatcher, self._session, self._store
        )

    @property
    def root(self) -> Path:
        """The watched directory."""
        return self._root

    def state(self) -> State:
        """Return the current state."""
        return self._store.snapshot().state

    def paths(self) -> Optional[FrozenSet[Path]]:
        """
        Return the absolute paths that have changed.

        Returns:
            The dirty paths (empty when CLEAN), or None when UNKNOWN
        """
        return self._store.snapshot().paths

    def relpaths(self) -> Optional[FrozenSet[Path]]:
        """
        Return the changed paths relative to the root.

        Returns:
            The relative dirty paths, or None when UNKNOWN
        """
        paths = self.paths()
        if paths is None:
            return None
        return frozenset(self._normalizer.relative(path) for path in paths)

    def snapshot(self) -> Snapshot:
        """Return the state and paths read together."""
        return self._store.snapshot()

    def wait_for_change(self, timeout: Optional[float] = None) -> State:
        """
        Block until the tracker leaves CLEAN or timeout seconds pass.

        Args:
            timeout: Maximum seconds to wait, or None to wait indefinitely

        Returns:
            The state when the wait ended
        """
        return self._store.wait_for_change(timeout)

    def close(self) -> None:
        """
        Stop watching.

        The state and paths remain readable and no longer change.
        """
        self._finalizer()

    @property
    def closed(self) -> bool:
        return not self._finalizer.alive

    def __enter__(self) -> "DirtyTracker":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __repr__(self) -> str:
        return f"<DirtyTracker root={str(self._root)!r} state={self.state().value}>"
