"""
Windows platform support via pywin32.

Identities are SID strings or account names. Ownership is set through the
security descriptor APIs, and because a freshly re-owned file does not
automatically grant its new owner access, a full-control entry is merged
into the existing DACL. Changing ownership to an arbitrary principal needs
SeRestorePrivilege and SeTakeOwnershipPrivilege to be enabled on the
process token.
"""

import os
from typing import Optional, Sequence, Tuple

import ntsecuritycon
import pywintypes
import win32api
import win32file
import win32security
import winerror

from .errors import (
    ApplyFailed,
    IdentityNotResolved,
    InvalidOwnershipFormat,
    PrivilegeAcquisitionFailed,
    PrivilegeReleaseFailed,
)
from .platform_base import GRANT_MODE_OWNER, Platform, TimesNs, stat_failure
from .utils import ns_to_instant

CREATOR_OWNER_SID = "S-1-3-0"

RESTORE_PRIVILEGES = ("SeRestorePrivilege", "SeTakeOwnershipPrivilege")

# ConvertStringSidToSid reports a malformed SID string with either code
_MALFORMED_SID_ERRORS = (winerror.ERROR_INVALID_SID, winerror.ERROR_INVALID_PARAMETER)
_MISSING_PATH_ERRORS = (winerror.ERROR_FILE_NOT_FOUND, winerror.ERROR_PATH_NOT_FOUND)


def _win_error_text(error: pywintypes.error) -> str:
    return f"{error.funcname}: {error.strerror} (error {error.winerror})"


def _ns_to_filetime(ns: Optional[int]):
    """SetFileTime argument for a nanosecond count; None leaves the field unchanged."""
    if ns is None:
        return None
    return ns_to_instant(ns)


def string_to_sid(identity: str):
    """
    Translate a SID string or account name to a PySID.

    The string is first parsed as a SID ('S-1-5-21-...'). When it is not a
    well-formed SID it is looked up as an account or group name.

    Raises:
        InvalidOwnershipFormat: If neither works
    """
    if not identity:
        raise InvalidOwnershipFormat(identity, "empty identity")

    try:
        return win32security.ConvertStringSidToSid(identity)
    except pywintypes.error as e:
        if e.winerror not in _MALFORMED_SID_ERRORS:
            raise InvalidOwnershipFormat(identity, _win_error_text(e)) from e

    try:
        sid, _domain, _account_type = win32security.LookupAccountName(None, identity)
    except pywintypes.error as e:
        raise InvalidOwnershipFormat(identity, _win_error_text(e)) from e
    return sid


class WindowsPlatform(Platform):
    """Native security descriptor model."""

    name = "windows"
    supports_creation_time = True
    has_acls = True
    required_privileges = RESTORE_PRIVILEGES
    fills_missing_times = False

    def _read_times_ns(self, path: str) -> TimesNs:
        try:
            st = os.stat(path)
        except OSError as e:
            raise stat_failure(path, e) from e

        # st_ctime was the creation time on Windows until st_birthtime existed
        creation_ns = getattr(st, "st_birthtime_ns", None)
        if creation_ns is None:
            creation_ns = st.st_ctime_ns

        return st.st_atime_ns, st.st_mtime_ns, creation_ns

    def _apply_times(
        self,
        path: str,
        access_ns: Optional[int],
        modification_ns: Optional[int],
        creation_ns: Optional[int],
    ) -> None:
        try:
            # BACKUP_SEMANTICS lets the same call open directories
            handle = win32file.CreateFile(
                path,
                win32file.FILE_WRITE_ATTRIBUTES,
                win32file.FILE_SHARE_READ | win32file.FILE_SHARE_WRITE | win32file.FILE_SHARE_DELETE,
                None,
                win32file.OPEN_EXISTING,
                win32file.FILE_FLAG_BACKUP_SEMANTICS,
                None,
            )
        except pywintypes.error as e:
            if e.winerror in _MISSING_PATH_ERRORS:
                raise stat_failure(path, OSError(e.winerror, e.strerror)) from e
            raise ApplyFailed(path, "times", _win_error_text(e)) from e

        # A None field is passed as NULL and SetFileTime leaves it untouched
        try:
            win32file.SetFileTime(
                handle,
                _ns_to_filetime(creation_ns),
                _ns_to_filetime(access_ns),
                _ns_to_filetime(modification_ns),
                UTCTimes=True,
            )
        except pywintypes.error as e:
            raise ApplyFailed(path, "times", _win_error_text(e)) from e
        finally:
            handle.Close()

    def parse_identity(self, identity: str, kind: str = "owner"):
        return string_to_sid(identity)

    def principal_to_string(self, principal) -> str:
        return win32security.ConvertSidToStringSid(principal)

    def resolve_display_name(self, identity: str, kind: str = "owner") -> str:
        sid = string_to_sid(identity)
        try:
            name, _domain, _account_type = win32security.LookupAccountSid(None, sid)
        except pywintypes.error as e:
            raise IdentityNotResolved(identity, _win_error_text(e)) from e
        return name

    def get_owner_group(self, path: str) -> Tuple[str, str]:
        try:
            sd = win32security.GetNamedSecurityInfo(
                path,
                win32security.SE_FILE_OBJECT,
                win32security.OWNER_SECURITY_INFORMATION | win32security.GROUP_SECURITY_INFORMATION,
            )
        except pywintypes.error as e:
            raise stat_failure(path, OSError(e.winerror, e.strerror)) from e

        owner_sid = sd.GetSecurityDescriptorOwner()
        group_sid = sd.GetSecurityDescriptorGroup()
        return (
            win32security.ConvertSidToStringSid(owner_sid) if owner_sid else "",
            win32security.ConvertSidToStringSid(group_sid) if group_sid else "",
        )

    def set_owner_group(self, path: str, owner=None, group=None) -> None:
        info = 0
        if owner is not None:
            info |= win32security.OWNER_SECURITY_INFORMATION
        if group is not None:
            info |= win32security.GROUP_SECURITY_INFORMATION
        if not info:
            return

        try:
            win32security.SetNamedSecurityInfo(
                path, win32security.SE_FILE_OBJECT, info, owner, group, None, None
            )
        except pywintypes.error as e:
            raise ApplyFailed(path, "owner", _win_error_text(e)) from e

    def grant_owner_access(self, path: str, owner, grant_mode: str = "creator_owner") -> None:
        """
        Merge a GENERIC_ALL grant into the existing DACL.

        The grant goes to the owner's SID in 'owner' mode, or to CREATOR OWNER
        so whoever owns the object later keeps access. The DACL is written
        back unprotected so inherited entries keep flowing from the parent.
        """
        if grant_mode == GRANT_MODE_OWNER:
            if owner is None:
                return
            trustee_sid = owner
        else:
            trustee_sid = win32security.ConvertStringSidToSid(CREATOR_OWNER_SID)

        try:
            sd = win32security.GetNamedSecurityInfo(
                path, win32security.SE_FILE_OBJECT, win32security.DACL_SECURITY_INFORMATION
            )
            dacl = sd.GetSecurityDescriptorDacl()
            if dacl is None:
                dacl = win32security.ACL()

            new_dacl = dacl.SetEntriesInAcl([{
                "AccessPermissions": ntsecuritycon.GENERIC_ALL,
                "AccessMode": win32security.GRANT_ACCESS,
                "Inheritance": win32security.NO_INHERITANCE,
                "Trustee": {
                    "TrusteeForm": win32security.TRUSTEE_IS_SID,
                    "TrusteeType": win32security.TRUSTEE_IS_USER,
                    "Identifier": trustee_sid,
                },
            }])

            win32security.SetNamedSecurityInfo(
                path,
                win32security.SE_FILE_OBJECT,
                win32security.DACL_SECURITY_INFORMATION | win32security.UNPROTECTED_DACL_SECURITY_INFORMATION,
                None,
                None,
                new_dacl,
                None,
            )
        except pywintypes.error as e:
            raise ApplyFailed(path, "acl", _win_error_text(e)) from e

    def _adjust_privileges(self, privileges: Sequence[str], attributes: int) -> None:
        token = win32security.OpenProcessToken(
            win32api.GetCurrentProcess(),
            win32security.TOKEN_ADJUST_PRIVILEGES | win32security.TOKEN_QUERY,
        )
        try:
            new_state = [
                (win32security.LookupPrivilegeValue(None, name), attributes)
                for name in privileges
            ]
            win32security.AdjustTokenPrivileges(token, False, new_state)
            # AdjustTokenPrivileges succeeds even when the token lacks a privilege
            if win32api.GetLastError() == winerror.ERROR_NOT_ALL_ASSIGNED:
                raise pywintypes.error(
                    winerror.ERROR_NOT_ALL_ASSIGNED,
                    "AdjustTokenPrivileges",
                    "Not all privileges or groups referenced are assigned to the caller.",
                )
        finally:
            win32api.CloseHandle(token)

    def enable_privileges(self, privileges: Sequence[str]) -> None:
        try:
            self._adjust_privileges(privileges, win32security.SE_PRIVILEGE_ENABLED)
        except pywintypes.error as e:
            raise PrivilegeAcquisitionFailed(privileges, _win_error_text(e)) from e

    def disable_privileges(self, privileges: Sequence[str]) -> None:
        try:
            self._adjust_privileges(privileges, 0)
        except pywintypes.error as e:
            raise PrivilegeReleaseFailed(privileges, _win_error_text(e)) from e
