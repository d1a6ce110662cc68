"""Shared fixtures for dirty tracker tests."""

import errno
import queue
import struct
import time
from pathlib import Path
from typing import Callable, Optional

import pytest

from dirty_tracker.config import TrackerConfig
from dirty_tracker.models import EventKind, WatchItem


class FakeSession:
    """Scripted stand-in for WatchSession."""

    def __init__(self, root: Path, config: Optional[TrackerConfig] = None, start_error: Optional[Exception] = None):
        self.root = root
        self.config = config or TrackerConfig()
        self.start_error = start_error
        self.started = False
        self.alive = True
        self.close_calls = 0
        self._queue: "queue.Queue[WatchItem]" = queue.Queue()

    def start(self) -> None:
        if self.start_error is not None:
            raise self.start_error
        self.started = True

    def get(self, timeout: Optional[float] = None) -> Optional[WatchItem]:
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    @property
    def is_alive(self) -> bool:
        return self.started and self.alive and not self.closed

    @property
    def closed(self) -> bool:
        return self.close_calls > 0

    def close(self) -> None:
        self.close_calls += 1

    def push(self, kind: EventKind, src_path=None, dest_path=None, error=None) -> None:
        self._queue.put(WatchItem(kind, src_path=src_path, dest_path=dest_path, error=error))


# struct inotify_event for a kernel queue overflow (wd -1, IN_Q_OVERFLOW)
OVERFLOW_RECORD = struct.pack("iIII", -1, 0x00004000, 0, 0)


def refuse_watch(self, path, mask):
    """Stand-in for Inotify._add_watch when the watch limit is reached."""
    raise OSError(errno.ENOSPC, "inotify watch limit reached")


def wait_until(predicate: Callable[[], bool], timeout: float = 5.0, interval: float = 0.02) -> bool:
    """Poll predicate until it holds or timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def fast_config():
    return TrackerConfig(poll_interval_ms=10, shutdown_timeout_ms=2000)


@pytest.fixture
def fake_sessions():
    """Factory for the tracker's session_factory that records created sessions."""
    created = []

    def factory(root, config):
        session = FakeSession(root, config)
        created.append(session)
        return session

    factory.created = created
    return factory
