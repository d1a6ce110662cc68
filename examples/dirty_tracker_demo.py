#!/usr/bin/env python3
"""
Dirty tracker demo.

This example demonstrates:
1. Starting a tracker on a temporary directory
2. Making changes and watching them show up as dirty paths
3. Falling back to a full rescan when the tracker reports UNKNOWN

Usage:
    python examples/dirty_tracker_demo.py
"""

import logging
import sys
import tempfile
import time
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from dirty_tracker import DirtyTracker, State


def report(tracker: DirtyTracker) -> None:
    """Print what a consumer would do with the tracker's answer."""
    snapshot = tracker.snapshot()
    if snapshot.state is State.UNKNOWN:
        print("[DEMO] State unknown - a full rescan is required")
    elif snapshot.state is State.CLEAN:
        print("[DEMO] Nothing changed")
    else:
        print(f"[DEMO] {len(snapshot.paths)} path(s) changed:")
        for path in sorted(tracker.relpaths()):
            print(f"         {path}")


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    with tempfile.TemporaryDirectory() as tmp:
        root = Path(tmp)
        (root / "src").mkdir()
        (root / "src" / "main.c").write_text("int main(void) { return 0; }\n")

        with DirtyTracker(root) as tracker:
            report(tracker)

            print("[DEMO] Editing src/main.c and adding README")
            (root / "src" / "main.c").write_text("int main(void) { return 1; }\n")
            (root / "README").write_text("demo\n")

            tracker.wait_for_change(timeout=5.0)
            time.sleep(0.2)
            report(tracker)

            print("[DEMO] Renaming README to README.md")
            (root / "README").rename(root / "README.md")
            time.sleep(0.2)
            report(tracker)

    print("[DEMO] Done")


if __name__ == "__main__":
    main()
