"""Inotify observer that reports lost events instead of skipping them.

Watchdog's inotify backend discards the kernel's queue-overflow record and
ignores failures to watch subdirectories created after startup. Either one
means changes go unreported, so this backend hands both to callbacks.

Linux only; import it lazily.
"""

import contextlib
import errno
import functools
import logging
import os
from typing import Callable, List, Optional

from watchdog.observers.api import DEFAULT_EMITTER_TIMEOUT, DEFAULT_OBSERVER_TIMEOUT, BaseObserver
from watchdog.observers.inotify import InotifyEmitter
from watchdog.observers.inotify_buffer import InotifyBuffer
from watchdog.observers.inotify_c import (
    DEFAULT_EVENT_BUFFER_SIZE,
    Inotify,
    InotifyConstants,
    InotifyEvent,
)
from watchdog.utils import BaseThread
from watchdog.utils.delayed_queue import DelayedQueue

logger = logging.getLogger(__name__)


OverflowCallback = Callable[[], None]
WatchErrorCallback = Callable[[OSError], None]


class LossReportingInotify(Inotify):
    """
    Inotify wrapper with loss reporting.

    Errors while building the initial watches still propagate from the
    constructor; only later failures go to on_watch_error.
    """

    def __init__(
        self,
        path: bytes,
        *,
        recursive: bool = False,
        event_mask: Optional[int] = None,
        on_overflow: OverflowCallback,
        on_watch_error: WatchErrorCallback,
    ):
        self._on_overflow = on_overflow
        self._on_watch_error = on_watch_error
        self._watching = False
        super().__init__(path, recursive=recursive, event_mask=event_mask)
        self._watching = True

    def _add_watch(self, path: bytes, mask: int) -> int:
        try:
            return super()._add_watch(path, mask)
        except OSError as e:
            if self._watching:
                self._on_watch_error(e)
            raise

    def read_events(self, *, event_buffer_size: int = DEFAULT_EVENT_BUFFER_SIZE) -> List[InotifyEvent]:
        event_buffer = self._read_buffer(event_buffer_size)
        if not event_buffer:
            return []
        return self._events_from_buffer(event_buffer)

    def _read_buffer(self, event_buffer_size: int) -> bytes:
        """Block until the inotify fd has data; empty once closed."""
        event_buffer = b""
        while True:
            try:
                with self._lock:
                    if self._closed:
                        return b""
                    self._is_reading = True

                if self._check_inotify_fd():
                    event_buffer = os.read(self._inotify_fd, event_buffer_size)

                with self._lock:
                    self._is_reading = False
                    if self._closed:
                        self._close_resources()
                        return b""
            except OSError as e:
                if e.errno == errno.EINTR:
                    continue
                if e.errno == errno.EBADF:
                    return b""
                raise
            return event_buffer

    def _events_from_buffer(self, event_buffer: bytes) -> List[InotifyEvent]:
        """Decode a raw buffer, keeping the watch bookkeeping current."""
        overflowed = False
        event_list = []

        with self._lock:
            for wd, mask, cookie, name in Inotify._parse_event_buffer(event_buffer):
                # wd -1 only ever carries IN_Q_OVERFLOW
                if wd == -1:
                    overflowed = True
                    continue

                wd_path = self._path_for_wd[wd]
                src_path = os.path.join(wd_path, name) if name else wd_path
                event = InotifyEvent(wd, mask, cookie, name, src_path)

                if event.is_moved_from:
                    self.remember_move_from_event(event)
                elif event.is_moved_to:
                    self._follow_move(event)
                    event = InotifyEvent(wd, mask, cookie, name, os.path.join(wd_path, name))

                if event.is_ignored:
                    path = self._path_for_wd.pop(wd)
                    if self._wd_for_path[path] == wd:
                        del self._wd_for_path[path]

                event_list.append(event)

                if self.is_recursive and event.is_directory and event.is_create:
                    try:
                        self._add_watch(src_path, self._event_mask)
                    except OSError:
                        continue
                    event_list.extend(self._simulate_subtree(src_path))

        if overflowed:
            logger.warning("Kernel event queue overflowed for %s", os.fsdecode(self.path))
            self._on_overflow()
        return event_list

    def _follow_move(self, event: InotifyEvent) -> None:
        """Re-key the watches of a directory moved inside the tree."""
        move_src_path = self.source_for_move(event)
        if move_src_path not in self._wd_for_path:
            return

        moved_wd = self._wd_for_path.pop(move_src_path)
        self._wd_for_path[event.src_path] = moved_wd
        self._path_for_wd[moved_wd] = event.src_path
        if not self.is_recursive:
            return

        prefix = move_src_path + os.path.sep.encode()
        for path in list(self._wd_for_path):
            if path.startswith(prefix):
                wd = self._wd_for_path.pop(path)
                moved_path = path.replace(move_src_path, event.src_path)
                self._wd_for_path[moved_path] = wd
                self._path_for_wd[wd] = moved_path

    def _simulate_subtree(self, src_path: bytes) -> List[InotifyEvent]:
        """Watch a new directory's subtree and report what is already in it."""
        events = []
        for root, dirnames, filenames in os.walk(src_path):
            for dirname in dirnames:
                full_path = os.path.join(root, dirname)
                with contextlib.suppress(OSError):
                    wd = self._add_watch(full_path, self._event_mask)
                    events.append(InotifyEvent(
                        wd,
                        InotifyConstants.IN_CREATE | InotifyConstants.IN_ISDIR,
                        0,
                        dirname,
                        full_path,
                    ))
            for filename in filenames:
                full_path = os.path.join(root, filename)
                parent_wd = self._wd_for_path.get(os.path.dirname(full_path))
                if parent_wd is None:
                    continue
                events.append(InotifyEvent(parent_wd, InotifyConstants.IN_CREATE, 0, filename, full_path))
        return events


class LossReportingInotifyBuffer(InotifyBuffer):
    """InotifyBuffer that reads through a LossReportingInotify."""

    def __init__(
        self,
        path: bytes,
        *,
        recursive: bool = False,
        event_mask: Optional[int] = None,
        on_overflow: OverflowCallback,
        on_watch_error: WatchErrorCallback,
    ):
        BaseThread.__init__(self)
        self._queue = DelayedQueue(self.delay)
        self._inotify = LossReportingInotify(
            path,
            recursive=recursive,
            event_mask=event_mask,
            on_overflow=on_overflow,
            on_watch_error=on_watch_error,
        )
        self.start()


class LossReportingInotifyEmitter(InotifyEmitter):
    """InotifyEmitter that builds a LossReportingInotifyBuffer."""

    def __init__(
        self,
        event_queue,
        watch,
        *,
        timeout: float = DEFAULT_EMITTER_TIMEOUT,
        event_filter=None,
        on_overflow: OverflowCallback,
        on_watch_error: WatchErrorCallback,
    ):
        super().__init__(event_queue, watch, timeout=timeout, event_filter=event_filter)
        self._on_overflow = on_overflow
        self._on_watch_error = on_watch_error

    def on_thread_start(self) -> None:
        self._inotify = LossReportingInotifyBuffer(
            os.fsencode(self.watch.path),
            recursive=self.watch.is_recursive,
            event_mask=self.get_event_mask_from_filter(),
            on_overflow=self._on_overflow,
            on_watch_error=self._on_watch_error,
        )


class LossReportingInotifyObserver(BaseObserver):
    """
    Inotify observer whose emitters report overflow and watch failures.

    Args:
        on_overflow: Called from the reader thread when the kernel dropped events
        on_watch_error: Called from the reader thread with the OSError raised
            while watching a directory that appeared after startup
        timeout: Observer read timeout in seconds
    """

    def __init__(
        self,
        on_overflow: OverflowCallback,
        on_watch_error: WatchErrorCallback,
        *,
        timeout: float = DEFAULT_OBSERVER_TIMEOUT,
    ):
        emitter_class = functools.partial(
            LossReportingInotifyEmitter,
            on_overflow=on_overflow,
            on_watch_error=on_watch_error,
        )
        super().__init__(emitter_class, timeout=timeout)
