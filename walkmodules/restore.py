"""
Metadata restoration session.

A MetadataRestorer owns the platform and the propagation coordinator for
one run and is shared by every thread restoring records in that run.
"""

import sys
from datetime import datetime
from typing import Dict, Optional

from .coordinator import PropagationCoordinator
from .platform_base import GRANT_MODE_CREATOR_OWNER, Platform, get_platform
from .record import MetadataRecord


class MetadataRestorer:
    """Restore timestamps and ownership recorded for materialized files."""

    def __init__(
        self,
        platform: Optional[Platform] = None,
        coordinator: Optional[PropagationCoordinator] = None,
        restore_times: bool = True,
        restore_ownership: bool = True,
        grant_mode: str = GRANT_MODE_CREATOR_OWNER,
        verbose: bool = False,
    ):
        self.platform = platform or (coordinator.platform if coordinator else get_platform())
        self.coordinator = coordinator or PropagationCoordinator(
            self.platform, grant_mode=grant_mode, verbose=verbose
        )
        self.restore_times = restore_times
        self.restore_ownership = restore_ownership
        self.verbose = verbose

    def restore(self, record: MetadataRecord) -> Dict:
        """
        Apply one record.

        Identities are translated before anything is written, so a bad
        owner/group string leaves the file untouched.

        Returns:
            {'path': str, 'times': bool, 'ownership': int} where times tells
            whether timestamps were written and ownership counts the paths
            re-owned by this call (the file plus newly reached ancestors)

        Raises:
            RestoreError subclasses; see walkmodules.errors
        """
        owner = group = None
        want_ownership = self.restore_ownership and record.has_ownership()
        if want_ownership:
            owner, group = self.coordinator.translate(record.owner_id, record.group_id)

        times_written = False
        if self.restore_times:
            times_written = self.platform.write_times(
                record.path,
                record.access_time,
                record.modification_time,
                record.creation_time,
            )

        ownership_applied = 0
        if want_ownership:
            ownership_applied = self.coordinator.propagate_principals(record.path, owner, group)

        if self.verbose:
            print(
                f"[DEBUG] Restored {record.path}: times={'yes' if times_written else 'no'}, "
                f"ownership paths={ownership_applied}",
                file=sys.stderr,
            )

        return {
            "path": record.path,
            "times": times_written,
            "ownership": ownership_applied,
        }

    def restore_path(
        self,
        path: str,
        access_time: Optional[datetime] = None,
        modification_time: Optional[datetime] = None,
        creation_time: Optional[datetime] = None,
        owner_id: Optional[str] = None,
        group_id: Optional[str] = None,
    ) -> Dict:
        """Convenience wrapper around restore()."""
        return self.restore(MetadataRecord(
            path=path,
            access_time=access_time,
            modification_time=modification_time,
            creation_time=creation_time,
            owner_id=owner_id,
            group_id=group_id,
        ))
