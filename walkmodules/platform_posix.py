"""
POSIX platform support (Linux and macOS).

Identities are decimal UID/GID strings. Ownership changes use lchown so a
symbolic link itself is re-owned rather than its target. There are no
discretionary ACLs and no privileges to enable: a process either runs as
root (or holds CAP_CHOWN) or its chown calls fail.
"""

import grp
import os
import pwd
from typing import Optional, Tuple

from .errors import ApplyFailed, IdentityNotResolved, InvalidOwnershipFormat
from .platform_base import Platform, Times, TimesNs, stat_failure
from .utils import ns_to_instant

# uid_t/gid_t are 32 bits; (uid_t)-1 is chown's "leave unchanged" value
MAX_POSIX_ID = 2**32 - 2


def parse_posix_id(identity: str) -> int:
    """
    Parse a decimal UID/GID.

    Signs, whitespace, non-ASCII digits and values outside 0..2^32-2 are
    rejected.
    """
    if not isinstance(identity, str) or not identity.isascii() or not identity.isdigit():
        raise InvalidOwnershipFormat(str(identity), "expected a decimal UID/GID")
    numeric_id = int(identity)
    if numeric_id > MAX_POSIX_ID:
        raise InvalidOwnershipFormat(identity, f"UID/GID must be at most {MAX_POSIX_ID}")
    return numeric_id


class PosixPlatform(Platform):
    """Linux: full stat time model plus UID/GID ownership."""

    name = "linux"
    supports_creation_time = False
    has_acls = False
    required_privileges = ()

    def _stat(self, path: str) -> os.stat_result:
        try:
            return os.stat(path)
        except OSError as e:
            raise stat_failure(path, e) from e

    def _read_times_ns(self, path: str) -> TimesNs:
        st = self._stat(path)
        # Linux stat carries no birth time; ctime (inode change) stands in
        return st.st_atime_ns, st.st_mtime_ns, st.st_ctime_ns

    def _apply_times(
        self,
        path: str,
        access_ns: int,
        modification_ns: int,
        creation_ns: Optional[int],
    ) -> None:
        try:
            os.utime(path, ns=(access_ns, modification_ns))
        except FileNotFoundError as e:
            raise stat_failure(path, e) from e
        except OSError as e:
            raise ApplyFailed(path, "times", e.strerror or str(e)) from e

    def parse_identity(self, identity: str, kind: str = "owner") -> int:
        return parse_posix_id(identity)

    def principal_to_string(self, principal: int) -> str:
        return str(principal)

    def resolve_display_name(self, identity: str, kind: str = "owner") -> str:
        numeric_id = parse_posix_id(identity)
        try:
            if kind == "group":
                return grp.getgrgid(numeric_id).gr_name
            return pwd.getpwuid(numeric_id).pw_name
        except KeyError:
            raise IdentityNotResolved(identity, f"no {kind} entry in the account database")

    def get_owner_group(self, path: str) -> Tuple[str, str]:
        st = self._stat(path)
        return str(st.st_uid), str(st.st_gid)

    def set_owner_group(self, path: str, owner: Optional[int] = None, group: Optional[int] = None) -> None:
        if owner is None and group is None:
            return
        uid = -1 if owner is None else owner
        gid = -1 if group is None else group
        try:
            os.lchown(path, uid, gid)
        except FileNotFoundError as e:
            raise stat_failure(path, e) from e
        except OSError as e:
            raise ApplyFailed(path, "owner", e.strerror or str(e)) from e


class DarwinPlatform(PosixPlatform):
    """
    macOS: birth time is native, access time is not tracked reliably
    (noatime mounts are the norm), so reads report it equal to the
    modification time. Writes still carry the real st_atime forward when
    the access time is unspecified. Creation time cannot be set through
    utimes.
    """

    name = "darwin"

    def _read_times_ns(self, path: str) -> TimesNs:
        st = self._stat(path)

        creation_ns = getattr(st, "st_birthtime_ns", None)
        if creation_ns is None:
            birthtime = getattr(st, "st_birthtime", None)
            if birthtime is not None:
                creation_ns = int(round(birthtime * 1_000_000)) * 1000
            else:
                creation_ns = st.st_ctime_ns

        return st.st_atime_ns, st.st_mtime_ns, creation_ns

    def read_times(self, path: str) -> Times:
        _, modification_ns, creation_ns = self._read_times_ns(path)
        modification_time = ns_to_instant(modification_ns)
        return modification_time, modification_time, ns_to_instant(creation_ns)
