"""
Output handling classes for ownerwalk.

This module contains progress tracking for batch restores.
"""

import asyncio
import sys
import time
from typing import Optional

from .utils import format_time


class ProgressTracker:
    """Track progress of a batch restore with real-time updates."""

    def __init__(self, verbose: bool = False, total: Optional[int] = None):
        self.total = total
        self.processed = 0
        self.restored = 0
        self.failed = 0
        self.start_time = time.time()
        self.verbose = verbose
        self.last_update = time.time()
        self.lock = asyncio.Lock()

    async def update(self, processed: int, restored: int = 0, failed: int = 0):
        """Update progress counters."""
        async with self.lock:
            self.processed += processed
            self.restored += restored
            self.failed += failed

            # Print progress every 0.5 seconds
            if self.verbose and time.time() - self.last_update > 0.5:
                print(f"\r{self._status_line()}", end="", file=sys.stderr, flush=True)
                self.last_update = time.time()

    def _status_line(self, final: bool = False) -> str:
        elapsed = time.time() - self.start_time
        rate = self.processed / elapsed if elapsed > 0 else 0
        remaining = ""
        if self.total is not None and not final:
            remaining = f"Remaining: {max(0, self.total - self.processed):,} | "

        return (
            f"[PROGRESS] {'FINAL: ' if final else ''}{self.processed:,} records processed | "
            f"Restored: {self.restored:,} | "
            f"Failed: {self.failed:,} | "
            f"{remaining}"
            f"{rate:.1f} rec/sec | "
            f"Run time: {format_time(elapsed)}"
        )

    def final_report(self):
        """Print final progress report."""
        if self.verbose:
            print(f"\r{self._status_line(final=True)}", file=sys.stderr)
