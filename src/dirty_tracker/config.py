"""Configuration for the dirty tracker package."""

from dataclasses import dataclass, fields


@dataclass
class TrackerConfig:
    """
    Configuration options for the dirty tracker.

    Attributes:
        max_pending_events: Capacity of the session queue; events arriving
            while it is full are lost and the tracker degrades to unknown
        poll_interval_ms: How often the dispatcher wakes up to check for
            shutdown and watch liveness when no events arrive
        observer_timeout_ms: Read timeout passed to the watchdog observer
        shutdown_timeout_ms: Maximum time to wait for background threads
            when the tracker is closed
    """
    max_pending_events: int = 16384
    poll_interval_ms: int = 100
    observer_timeout_ms: int = 1000
    shutdown_timeout_ms: int = 5000

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if value <= 0:
                raise ValueError(f"{f.name} must be positive, got {value}")

    @property
    def poll_interval(self) -> float:
        """Dispatcher poll interval in seconds."""
        return self.poll_interval_ms / 1000.0

    @property
    def observer_timeout(self) -> float:
        """Observer timeout in seconds."""
        return self.observer_timeout_ms / 1000.0

    @property
    def shutdown_timeout(self) -> float:
        """Shutdown join timeout in seconds."""
        return self.shutdown_timeout_ms / 1000.0
