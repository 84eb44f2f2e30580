"""
Statistics tracking classes for ownerwalk.

This module contains classes for tracking restored ownership per owner
and generating reports.
"""

import asyncio
from typing import Dict, List


class OwnerStats:
    """Track restored files per owner for --owner-report."""

    def __init__(self):
        self.owner_data = {}  # owner_id -> {'files': int, 'failed': int}
        self.lock = asyncio.Lock()

    async def add_file(self, owner_id: str, failed: bool = False):
        """Count one record restored (or failed) for owner_id."""
        async with self.lock:
            if owner_id not in self.owner_data:
                self.owner_data[owner_id] = {"files": 0, "failed": 0}

            if failed:
                self.owner_data[owner_id]["failed"] += 1
            else:
                self.owner_data[owner_id]["files"] += 1

    def get_all_owners(self) -> List[str]:
        """Owners sorted by number of restored files, largest first."""
        return sorted(
            self.owner_data,
            key=lambda owner_id: self.owner_data[owner_id]["files"],
            reverse=True,
        )

    def get_stats(self, owner_id: str) -> Dict:
        """Get statistics for a specific owner."""
        return self.owner_data.get(owner_id, {"files": 0, "failed": 0})
