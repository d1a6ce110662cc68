"""Background consumer that applies watch items to the dirty state store."""

import logging
import threading
from typing import Optional

from .config import TrackerConfig
from .models import EventKind, WatchItem
from .normalizer import PathNormalizer
from .session import WatchSession
from .store import DirtyStateStore

logger = logging.getLogger(__name__)


class EventDispatcher:
    """
    Drains a watch session on a dedicated thread and updates the store.

    The dispatcher is the only writer of the store. Change items mark their
    paths dirty; an overflow, an error item, or a session that dies without
    being asked to marks the store unknown and ends the thread, releasing
    the watch early since nothing more can be learned from it.
    """

    def __init__(
        self,
        session: WatchSession,
        store: DirtyStateStore,
        normalizer: PathNormalizer,
        config: Optional[TrackerConfig] = None,
    ):
        """
        Initialize the dispatcher.

        Args:
            session: Started watch session to consume
            store: Store to update
            normalizer: Maps item paths onto canonical paths under the root
            config: Tracker configuration
        """
        self.session = session
        self.store = store
        self.normalizer = normalizer
        self.config = config or TrackerConfig()

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    def start(self) -> None:
        """Start the dispatcher thread."""
        with self._lock:
            if self._thread is not None:
                return
            self._stop_event.clear()
            self._thread = threading.Thread(
                target=self._run,
                name="dirty-tracker-dispatcher",
                daemon=True,
            )
            self._thread.start()

    def stop(self) -> None:
        """
        Stop the dispatcher and release the watch.

        Items still queued are discarded. Stopping does not change the state.
        """
        self._stop_event.set()
        self.session.close()

        with self._lock:
            thread = self._thread

        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.config.shutdown_timeout)
            if thread.is_alive():
                logger.warning("Dispatcher thread did not stop within %.1fs",
                               self.config.shutdown_timeout)

    @property
    def is_running(self) -> bool:
        """Check if the dispatcher thread is alive."""
        thread = self._thread
        return thread is not None and thread.is_alive()

    def _run(self) -> None:
        """Worker loop that consumes items until stopped or tracking is lost."""
        logger.debug("Dispatcher started for %s", self.normalizer.root)
        try:
            while not self._stop_event.is_set():
                item = self.session.get(timeout=self.config.poll_interval)

                if self._stop_event.is_set():
                    break

                if item is None:
                    if not self.session.is_alive:
                        self._give_up("watch channel closed unexpectedly")
                        break
                    continue

                if not self.dispatch(item):
                    break
        except Exception as e:
            logger.exception("Dispatcher failed")
            self._give_up(f"dispatcher failed: {e}")
        logger.debug("Dispatcher stopped for %s", self.normalizer.root)

    def dispatch(self, item: WatchItem) -> bool:
        """
        Apply a single item to the store.

        Args:
            item: Item read from the session

        Returns:
            False if tracking has been given up and no more items should be read
        """
        if item.kind is EventKind.OVERFLOW:
            self._give_up("watcher dropped events")
            return False

        if item.kind is EventKind.ERROR:
            self._give_up(f"watcher reported an error: {item.error}")
            return False

        for path in self.normalizer.normalize(item):
            if self.store.mark_dirty(path):
                logger.debug("%s: %s", item.kind.value, path)
        return True

    def _give_up(self, reason: str) -> None:
        """Mark the store unknown and release the watch."""
        if self._stop_event.is_set():
            return
        self.store.mark_unknown(reason)
        self.session.close()
