"""
Error types for ownerwalk.

Every failure surfaced by the restore core is a RestoreError carrying an
error_code, so batch drivers can record {path, error_code, message} entries
and decide whether to continue.
"""

from typing import Optional


class RestoreError(Exception):
    """Base class for metadata restoration failures."""

    error_code = "RESTORE_ERROR"

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path

    def to_dict(self) -> dict:
        """Format as an entry for the batch error list."""
        return {
            "path": self.path,
            "error_code": self.error_code,
            "message": str(self),
        }


class NotFoundError(RestoreError):
    """Path does not exist or could not be stat'ed."""

    error_code = "NOT_FOUND"


class InvalidOwnershipFormat(RestoreError):
    """Owner/group string is not a native identity and could not be resolved by name."""

    error_code = "INVALID_OWNERSHIP_FORMAT"

    def __init__(self, identity: str, reason: str = "", path: Optional[str] = None):
        message = f"Invalid ownership identity: {identity!r}"
        if reason:
            message += f" ({reason})"
        super().__init__(message, path)
        self.identity = identity


class IdentityNotResolved(RestoreError):
    """A valid identity has no display name on this host. Recoverable."""

    error_code = "IDENTITY_NOT_RESOLVED"

    def __init__(self, identity: str, reason: str = ""):
        message = f"Could not resolve display name for {identity!r}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)
        self.identity = identity


class PrivilegeAcquisitionFailed(RestoreError):
    """Process could not enable the privileges needed to change ownership."""

    error_code = "PRIVILEGE_ACQUISITION_FAILED"

    def __init__(self, privileges, reason: str = ""):
        message = f"Could not enable privileges: {', '.join(privileges)}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)
        self.privileges = list(privileges)


class PrivilegeReleaseFailed(RestoreError):
    """Privileges enabled for a scope could not be disabled again."""

    error_code = "PRIVILEGE_RELEASE_FAILED"

    def __init__(self, privileges, reason: str = ""):
        message = f"Could not disable privileges: {', '.join(privileges)}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)
        self.privileges = list(privileges)


class ApplyFailed(RestoreError):
    """
    A native write failed.

    axis is one of 'times', 'owner' or 'acl' so callers can tell which part
    of the metadata did not land.
    """

    error_code = "APPLY_FAILED"

    def __init__(self, path: str, axis: str, reason: str = ""):
        message = f"Failed to apply {axis} to {path}"
        if reason:
            message += f": {reason}"
        super().__init__(message, path)
        self.axis = axis

    def to_dict(self) -> dict:
        entry = super().to_dict()
        entry["axis"] = self.axis
        return entry
