"""
Platform interface for metadata restoration.

Each supported host exposes the same capability set: reading and writing
timestamps, translating portable identities, changing ownership, granting
the owner access, and enabling process privileges. The propagation logic is
written once against this interface; get_platform() picks the concrete
implementation for the running host.
"""

import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional, Sequence, Tuple

from .errors import NotFoundError
from .tuning import detect_platform
from .utils import instant_to_ns, ns_to_instant

Times = Tuple[Optional[datetime], Optional[datetime], Optional[datetime]]
TimesNs = Tuple[Optional[int], Optional[int], Optional[int]]

GRANT_MODE_OWNER = "owner"
GRANT_MODE_CREATOR_OWNER = "creator_owner"
GRANT_MODES = (GRANT_MODE_CREATOR_OWNER, GRANT_MODE_OWNER)


class Platform(ABC):
    """Native filesystem metadata operations for one host model."""

    name = "generic"
    supports_creation_time = False
    # Native writes need every writable field; unspecified ones are read first
    fills_missing_times = True
    has_acls = False
    required_privileges: Tuple[str, ...] = ()

    # ------------------------------------------------------------------
    # Time accessor
    # ------------------------------------------------------------------

    @abstractmethod
    def _read_times_ns(self, path: str) -> TimesNs:
        """
        Raw (access, modification, creation) nanosecond counts from one stat.

        These are the values a write puts back for unspecified fields, so
        they are never rounded.

        Raises:
            NotFoundError: If the path does not exist or cannot be stat'ed
        """

    def read_times(self, path: str) -> Times:
        """
        Read (access, modification, creation) times with a single stat.

        Raises:
            NotFoundError: If the path does not exist or cannot be stat'ed
        """
        return tuple(
            None if ns is None else ns_to_instant(ns)
            for ns in self._read_times_ns(path)
        )

    @abstractmethod
    def _apply_times(
        self,
        path: str,
        access_ns: Optional[int],
        modification_ns: Optional[int],
        creation_ns: Optional[int],
    ) -> None:
        """
        Write times in one native call.

        None is passed only where the platform sets fills_missing_times to
        False and means "leave this field as it is".
        """

    def write_times(
        self,
        path: str,
        access_time: Optional[datetime] = None,
        modification_time: Optional[datetime] = None,
        creation_time: Optional[datetime] = None,
    ) -> bool:
        """
        Apply timestamps to path.

        If every field this platform can write is None, nothing is touched.
        Otherwise the unspecified writable fields keep their current values
        exactly: either the native call leaves them alone, or they are filled
        from one stat at full native precision. Creation time is dropped
        where the platform cannot set it.

        Returns:
            True if a native write was performed, False if skipped

        Raises:
            NotFoundError: If current values were needed and the stat failed
            ApplyFailed: If the native write failed
        """
        if not self.supports_creation_time:
            creation_time = None

        times_ns = [
            None if value is None else instant_to_ns(value)
            for value in (access_time, modification_time, creation_time)
        ]
        writable = times_ns if self.supports_creation_time else times_ns[:2]

        if all(value is None for value in writable):
            return False

        if self.fills_missing_times and any(value is None for value in writable):
            current = self._read_times_ns(path)
            for index in range(len(writable)):
                if times_ns[index] is None:
                    times_ns[index] = current[index]

        self._apply_times(path, *times_ns)
        return True

    # ------------------------------------------------------------------
    # Identity translator
    # ------------------------------------------------------------------

    @abstractmethod
    def parse_identity(self, identity: str, kind: str = "owner") -> Any:
        """
        Translate a portable identity string to a native principal.

        Raises:
            InvalidOwnershipFormat: If the string is not a valid identity here
        """

    @abstractmethod
    def principal_to_string(self, principal: Any) -> str:
        """Inverse of parse_identity for the canonical form."""

    @abstractmethod
    def resolve_display_name(self, identity: str, kind: str = "owner") -> str:
        """
        Look up the account name for an identity.

        Raises:
            InvalidOwnershipFormat: If the identity does not parse
            IdentityNotResolved: If it parses but has no account name
        """

    # ------------------------------------------------------------------
    # Ownership/ACL applier
    # ------------------------------------------------------------------

    @abstractmethod
    def get_owner_group(self, path: str) -> Tuple[str, str]:
        """Current (owner, group) of path as portable identity strings."""

    @abstractmethod
    def set_owner_group(self, path: str, owner: Any = None, group: Any = None) -> None:
        """
        Set owner and/or group (native principals, None = unchanged).

        Raises:
            ApplyFailed: With axis 'owner'
        """

    def grant_owner_access(self, path: str, owner: Any, grant_mode: str = GRANT_MODE_CREATOR_OWNER) -> None:
        """Merge a full-control grant for the owner into the DACL. No-op without ACLs."""
        return None

    # ------------------------------------------------------------------
    # Privileges
    # ------------------------------------------------------------------

    def enable_privileges(self, privileges: Sequence[str]) -> None:
        """Enable process privileges. No-op where the concept does not exist."""
        return None

    def disable_privileges(self, privileges: Sequence[str]) -> None:
        return None


def stat_failure(path: str, error: OSError) -> NotFoundError:
    """Wrap a stat (or ENOENT) OSError as NotFoundError."""
    exc = NotFoundError(f"Cannot access {path}: {error.strerror or error}", path)
    exc.errno = error.errno
    return exc


_platform_lock = threading.Lock()
_platform_instance: Optional[Platform] = None


def create_platform(os_name: Optional[str] = None) -> Platform:
    """Construct the Platform implementation for os_name (default: detected host)."""
    if os_name is None:
        os_name, _ = detect_platform()

    if os_name == "windows":
        from .platform_windows import WindowsPlatform
        return WindowsPlatform()
    elif os_name == "darwin":
        from .platform_posix import DarwinPlatform
        return DarwinPlatform()
    else:
        from .platform_posix import PosixPlatform
        return PosixPlatform()


def get_platform() -> Platform:
    """Process-wide Platform for the running host, created on first use."""
    global _platform_instance
    with _platform_lock:
        if _platform_instance is None:
            _platform_instance = create_platform()
        return _platform_instance
