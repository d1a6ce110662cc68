"""Recursive watch session built on the watchdog library."""

import errno
import logging
import os
import queue
import threading
from pathlib import Path
from typing import Callable, List, Optional, Type

from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver
from watchdog.observers.polling import PollingObserver, PollingObserverVFS
from watchdog.events import (
    FileSystemEventHandler,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileClosedEvent,
    DirCreatedEvent,
    DirDeletedEvent,
    DirModifiedEvent,
    DirMovedEvent,
)
from watchdog.utils import platform

from .config import TrackerConfig
from .exceptions import InvalidRootError, SetupFailedError, WatchCapabilityError
from .models import EventKind, RawPath, WatchItem

logger = logging.getLogger(__name__)


WATCHED_EVENT_TYPES = [
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileClosedEvent,
    DirCreatedEvent,
    DirDeletedEvent,
    DirModifiedEvent,
    DirMovedEvent,
]

CAPABILITY_ERRNOS = frozenset({
    errno.ENOSPC,
    errno.EMFILE,
    errno.ENFILE,
    errno.ENOSYS,
    errno.EOPNOTSUPP,
    getattr(errno, "ENOTSUP", errno.EOPNOTSUPP),
})

INVALID_ROOT_ERRNOS = frozenset({errno.ENOENT, errno.ENOTDIR})

POLLING_OBSERVERS = (PollingObserver, PollingObserverVFS)


class SessionEventHandler(FileSystemEventHandler):
    """
    Handler that converts watchdog events to WatchItems.

    Watchdog follows every create, delete, move and close-after-write with a
    DirModifiedEvent for the parent directory. That echo is dropped; any
    other directory modification (chmod, utime, xattr) is reported.
    """

    def __init__(self, callback: Callable[[WatchItem], None]):
        super().__init__()
        self.callback = callback
        self._parent_echoes: List[RawPath] = []

    def _emit(self, kind: EventKind, src_path: RawPath, dest_path: Optional[RawPath] = None) -> None:
        self.callback(WatchItem(kind=kind, src_path=src_path, dest_path=dest_path))

    def _expect_parents(self, *paths: RawPath) -> None:
        self._parent_echoes = [os.path.dirname(path) for path in paths if path]

    def on_created(self, event):
        self._expect_parents(event.src_path)
        self._emit(EventKind.CREATED, event.src_path)

    def on_deleted(self, event):
        self._expect_parents(event.src_path)
        self._emit(EventKind.REMOVED, event.src_path)

    def on_modified(self, event):
        if event.is_directory and event.src_path in self._parent_echoes:
            self._parent_echoes.remove(event.src_path)
            return
        self._parent_echoes = []
        self._emit(EventKind.MODIFIED, event.src_path)

    def on_closed(self, event):
        # Only FileClosedEvent (close after write) passes the event filter.
        self._expect_parents(event.src_path)
        self._emit(EventKind.MODIFIED, event.src_path)

    def on_moved(self, event):
        self._expect_parents(event.src_path, event.dest_path)
        self._emit(EventKind.RENAMED, event.src_path, event.dest_path or None)


class WatchSession:
    """
    A single recursive watch on a root directory.

    Watchdog delivers events on its own thread; the session buffers them in
    a bounded queue that the dispatcher drains with get(). Events are lost
    when that queue is full or when the kernel's own queue overflows; either
    way the session latches an overflow.
    """

    def __init__(
        self,
        root: Path,
        config: Optional[TrackerConfig] = None,
        observer_cls: Optional[Type[BaseObserver]] = None,
    ):
        """
        Initialize the session. Nothing is watched until start().

        Args:
            root: Directory to watch recursively
            config: Tracker configuration
            observer_cls: Watchdog observer class. Defaults to an inotify
                observer that reports lost events on Linux, and to the
                platform's observer elsewhere.
        """
        self.root = root
        self.config = config or TrackerConfig()
        self.observer_cls = observer_cls
        self._queue: "queue.Queue[WatchItem]" = queue.Queue(maxsize=self.config.max_pending_events)
        self._overflowed = threading.Event()
        self._observer: Optional[BaseObserver] = None
        self._closed = False
        self._lock = threading.Lock()

    def start(self) -> None:
        """
        Register the recursive watch.

        Raises:
            InvalidRootError: If the root vanished or is not a directory
            WatchCapabilityError: If the platform cannot support the watch
            SetupFailedError: For any other OS error
        """
        with self._lock:
            if self._closed:
                raise SetupFailedError("Watch session is closed")
            if self._observer is not None:
                return

            observer = self._make_observer()
            handler = SessionEventHandler(self._put)
            try:
                observer.schedule(
                    handler,
                    str(self.root),
                    recursive=True,
                    event_filter=WATCHED_EVENT_TYPES,
                )
                observer.start()
            except OSError as e:
                raise self._classify(e) from e

            self._observer = observer

        logger.info("Watching %s (%s)", self.root, type(observer).__name__)

    def _make_observer(self) -> BaseObserver:
        if self.observer_cls is None:
            if platform.is_linux():
                from .inotify import LossReportingInotifyObserver

                return LossReportingInotifyObserver(
                    self._kernel_overflowed,
                    self._watch_failed,
                    timeout=self.config.observer_timeout,
                )
            observer_cls = Observer
        else:
            observer_cls = self.observer_cls

        if issubclass(observer_cls, POLLING_OBSERVERS):
            raise WatchCapabilityError(
                f"No native file watching available for {self.root} "
                f"({observer_cls.__name__})"
            )
        return observer_cls(timeout=self.config.observer_timeout)

    def _classify(self, error: OSError) -> Exception:
        """Map a setup OSError onto the tracker's error taxonomy."""
        message = f"Cannot watch {self.root}: {error.strerror or error}"
        if error.errno in INVALID_ROOT_ERRNOS:
            return InvalidRootError(message)
        if error.errno in CAPABILITY_ERRNOS:
            return WatchCapabilityError(message)
        return SetupFailedError(message)

    def _put(self, item: WatchItem) -> None:
        """Receive an item from the watchdog thread."""
        if self._closed or self._overflowed.is_set():
            return
        try:
            self._queue.put_nowait(item)
        except queue.Full:
            self._overflowed.set()
            logger.warning(
                "Event queue for %s overflowed (%d pending); dropping events",
                self.root,
                self.config.max_pending_events,
            )

    def _kernel_overflowed(self) -> None:
        if not self._closed:
            self._overflowed.set()

    def _watch_failed(self, error: OSError) -> None:
        """A directory that appeared under the root could not be watched."""
        if error.errno in CAPABILITY_ERRNOS:
            logger.warning("Cannot watch new directory under %s: %s", self.root, error)
            self._put(WatchItem.failure(error))
        else:
            # The directory vanished before it could be watched.
            logger.debug("Skipping watch under %s: %s", self.root, error)

    def get(self, timeout: Optional[float] = None) -> Optional[WatchItem]:
        """
        Take the next item, waiting up to timeout seconds.

        Returns:
            The next item, an OVERFLOW item once events have been lost,
            or None if nothing arrived in time
        """
        if self._overflowed.is_set():
            return WatchItem.overflow()
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            if self._overflowed.is_set():
                return WatchItem.overflow()
            return None

    @property
    def is_alive(self) -> bool:
        """True while the observer and all of its emitters are running."""
        observer = self._observer
        if observer is None or self._closed:
            return False
        if not observer.is_alive():
            return False
        return all(emitter.is_alive() for emitter in list(observer.emitters))

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Stop watching and discard any undelivered items."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            observer = self._observer
            self._observer = None

        if observer is not None:
            observer.stop()
            if observer.is_alive():
                observer.join(timeout=self.config.shutdown_timeout)
            logger.info("Stopped watching %s", self.root)

        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                break

    def __enter__(self) -> "WatchSession":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

