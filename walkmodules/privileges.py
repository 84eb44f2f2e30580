"""
Privilege elevation scopes.

Process privileges are process-wide on Windows, so overlapping scopes from
concurrent restore threads share one enablement: the first thread in
enables, the last thread out disables.
"""

import sys
import threading
from typing import Callable, Optional, Sequence, TypeVar, TYPE_CHECKING

from .errors import RestoreError

if TYPE_CHECKING:
    from .platform_base import Platform

T = TypeVar("T")


class PrivilegeScope:
    """
    Context manager holding a set of privileges for the duration of a block.

    Enabling can fail with PrivilegeAcquisitionFailed, in which case the
    block never runs and nothing is disabled. Once enabled, the privileges
    are disabled on exit whether or not the block raised. A failure to
    disable raises PrivilegeReleaseFailed, unless the block already raised;
    then the block's exception propagates and the release failure is
    logged.
    """

    def __init__(
        self,
        platform: "Platform",
        privileges: Optional[Sequence[str]] = None,
        verbose: bool = False,
    ):
        self.platform = platform
        self.privileges = tuple(platform.required_privileges if privileges is None else privileges)
        self.verbose = verbose
        self._lock = threading.Lock()
        self._holders = 0

    @property
    def active(self) -> bool:
        return self._holders > 0

    def __enter__(self) -> "PrivilegeScope":
        if not self.privileges:
            return self

        with self._lock:
            if self._holders == 0:
                self.platform.enable_privileges(self.privileges)
                if self.verbose:
                    print(f"[DEBUG] Enabled privileges: {', '.join(self.privileges)}", file=sys.stderr)
            self._holders += 1
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if not self.privileges:
            return False

        with self._lock:
            self._holders -= 1
            if self._holders > 0:
                return False

            try:
                self.platform.disable_privileges(self.privileges)
            except RestoreError as e:
                if exc is None:
                    raise
                # Body exception takes precedence
                print(f"[WARN] {e} (while handling: {exc})", file=sys.stderr)
                return False

            if self.verbose:
                print(f"[DEBUG] Disabled privileges: {', '.join(self.privileges)}", file=sys.stderr)
        return False


def with_elevated_privileges(
    platform: "Platform",
    privileges: Optional[Sequence[str]],
    body: Callable[[], T],
) -> T:
    """Run body() with privileges enabled and return its result."""
    with PrivilegeScope(platform, privileges):
        return body()
