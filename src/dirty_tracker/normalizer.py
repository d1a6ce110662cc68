"""Conversion of raw watch items into canonical dirty paths."""

import logging
import os
from pathlib import Path
from typing import List, Optional

from .models import RawPath, WatchItem

logger = logging.getLogger(__name__)


class PathNormalizer:
    """
    Maps the path(s) named by a watch item onto absolute paths under the root.

    Paths are normalized lexically, without resolving symlinks, so that
    reported paths are spelled the same way as the root the caller passed.
    Paths the platform reports under the resolved spelling of the root are
    rebased onto the caller's spelling.
    """

    def __init__(self, root: Path):
        """
        Initialize the normalizer.

        Args:
            root: Absolute path of the watched root
        """
        if not root.is_absolute():
            raise ValueError(f"root must be absolute: {root}")
        self.root = Path(os.path.normpath(root))
        resolved = root.resolve()
        self._resolved_root = resolved if resolved != self.root else None

    def normalize(self, item: WatchItem) -> List[Path]:
        """
        Extract the dirty paths from a change item.

        A rename yields its source and destination in that order. Paths that
        are empty, undecodable or outside the root are dropped.

        Args:
            item: A change item from the watch session

        Returns:
            Zero, one or two absolute paths
        """
        if not item.is_change:
            return []

        paths = []
        for raw in (item.src_path, item.dest_path):
            if raw is None:
                continue
            path = self.normalize_path(raw)
            if path is not None and path not in paths:
                paths.append(path)
        return paths

    def normalize_path(self, raw: RawPath) -> Optional[Path]:
        """
        Normalize a single raw path.

        Args:
            raw: Path as reported by the watcher

        Returns:
            The canonical path, or None if it should be ignored
        """
        try:
            text = os.fsdecode(raw)
        except (TypeError, UnicodeDecodeError) as e:
            logger.debug("Dropping undecodable path %r: %s", raw, e)
            return None

        if not text or "\x00" in text:
            logger.debug("Dropping malformed path %r", raw)
            return None

        path = Path(os.path.normpath(os.path.join(self.root, text)))

        if self.contains(path):
            return path

        if self._resolved_root is not None:
            try:
                return self.root / path.relative_to(self._resolved_root)
            except ValueError:
                pass

        logger.debug("Dropping path outside root %s: %s", self.root, path)
        return None

    def contains(self, path: Path) -> bool:
        """Check if a normalized path is the root or lies beneath it."""
        return path == self.root or self.root in path.parents

    def relative(self, path: Path) -> Path:
        """
        Express a dirty path relative to the root.

        Raises:
            ValueError: If the path is not under the root
        """
        return path.relative_to(self.root)
