"""
Ownership propagation across a path's ancestor chain.

Restored trees are deep and siblings share ancestors. Re-owning N files
under one directory would otherwise repeat the same privileged owner/ACL
write on every shared ancestor N times. The coordinator remembers every
path it has claimed for the lifetime of the run and touches each one at
most once, no matter how many records or threads reach it.
"""

import os
import sys
import threading
from typing import Any, FrozenSet, Iterator, Optional, Sequence, Tuple

from .platform_base import GRANT_MODE_CREATOR_OWNER, GRANT_MODES, Platform
from .privileges import PrivilegeScope


def ancestors(path: str) -> Iterator[str]:
    """
    Yield the parent directories of path, nearest first.

    Stops before a filesystem root ('/', 'C:\\') and at the current
    directory marker of a relative path. Each ancestor is yielded once.
    """
    current = os.path.dirname(path)
    while current and current != os.curdir:
        parent = os.path.dirname(current)
        if parent == current:
            return
        yield current
        current = parent


class PropagationCoordinator:
    """
    Applies owner/group (and the owner ACL grant) to a path and its ancestors.

    One coordinator is created per restore run and shared by every caller.
    The processed path set only grows; a path is claimed before it is
    written, so a failed write is not retried within the run.
    """

    def __init__(
        self,
        platform: Platform,
        grant_mode: str = GRANT_MODE_CREATOR_OWNER,
        privileges: Optional[Sequence[str]] = None,
        verbose: bool = False,
    ):
        if grant_mode not in GRANT_MODES:
            raise ValueError(f"Unknown grant mode: {grant_mode}. Must be one of {', '.join(GRANT_MODES)}")

        self.platform = platform
        self.grant_mode = grant_mode
        self.verbose = verbose
        self.privilege_scope = PrivilegeScope(platform, privileges, verbose=verbose)

        self._processed = set()
        self._lock = threading.Lock()
        self.applied_count = 0
        self.skipped_count = 0

    def processed_paths(self) -> FrozenSet[str]:
        with self._lock:
            return frozenset(self._processed)

    def is_processed(self, path: str) -> bool:
        with self._lock:
            return os.path.normpath(path) in self._processed

    def translate(self, owner_id: Optional[str], group_id: Optional[str]) -> Tuple[Any, Any]:
        """
        Translate portable owner/group strings to native principals.

        Empty values translate to None (no change on that axis).

        Raises:
            InvalidOwnershipFormat: If either identity is invalid
        """
        owner = self.platform.parse_identity(owner_id, "owner") if owner_id else None
        group = self.platform.parse_identity(group_id, "group") if group_id else None
        return owner, group

    def _claim(self, path: str) -> bool:
        with self._lock:
            if path in self._processed:
                self.skipped_count += 1
                return False
            self._processed.add(path)
            self.applied_count += 1
            return True

    def apply_once(self, path: str, owner: Any, group: Any) -> bool:
        """
        Apply ownership to a single path unless it was already claimed.

        Returns:
            True if this call applied the change, False if skipped

        Raises:
            ApplyFailed: If the owner/group or ACL write failed
        """
        path = os.path.normpath(path)
        if not self._claim(path):
            return False

        if self.verbose:
            print(f"[DEBUG] Applying ownership to {path}", file=sys.stderr)

        self.platform.set_owner_group(path, owner, group)
        if owner is not None and self.platform.has_acls:
            self.platform.grant_owner_access(path, owner, self.grant_mode)
        return True

    def propagate_principals(self, path: str, owner: Any, group: Any) -> int:
        """
        Apply already translated principals to path and all its ancestors.

        The whole walk runs inside one privilege scope. The first failure
        stops the walk; ancestors already written stay written.

        Returns:
            Number of paths this call actually wrote
        """
        if owner is None and group is None:
            return 0

        path = os.path.normpath(path)
        applied = 0
        with self.privilege_scope:
            if self.apply_once(path, owner, group):
                applied += 1
            for ancestor in ancestors(path):
                if self.apply_once(ancestor, owner, group):
                    applied += 1
        return applied

    def propagate(self, path: str, owner_id: Optional[str], group_id: Optional[str]) -> int:
        """
        Translate identities, then apply them to path and its ancestor chain.

        Raises:
            InvalidOwnershipFormat: Before any filesystem change
            PrivilegeAcquisitionFailed: Before any filesystem change
            ApplyFailed: On the first failing path
        """
        if not owner_id and not group_id:
            return 0

        owner, group = self.translate(owner_id, group_id)
        return self.propagate_principals(path, owner, group)
