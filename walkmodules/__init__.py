"""
ownerwalk modules package.

This package contains the components that restore file timestamps,
ownership and owner ACL grants onto materialized files.
"""

# Import error types
from .errors import (
    RestoreError,
    NotFoundError,
    InvalidOwnershipFormat,
    IdentityNotResolved,
    PrivilegeAcquisitionFailed,
    PrivilegeReleaseFailed,
    ApplyFailed,
)

# Import utility functions
from .utils import (
    instant_to_ns,
    ns_to_instant,
    parse_timestamp,
    format_timestamp,
    format_time,
    format_identity,
)

# Import records and metadata mapping
from .record import (
    METADATA_ATIME,
    METADATA_CTIME,
    METADATA_MTIME,
    METADATA_OWNER,
    METADATA_GROUP,
    MetadataRecord,
    record_from_metadata,
    record_from_dict,
    collect_metadata,
)

# Import platform selection
from .platform_base import (
    GRANT_MODE_OWNER,
    GRANT_MODE_CREATOR_OWNER,
    Platform,
    create_platform,
    get_platform,
)

# Import privilege handling
from .privileges import (
    PrivilegeScope,
    with_elevated_privileges,
)

# Import propagation and restore session
from .coordinator import (
    PropagationCoordinator,
    ancestors,
)
from .restore import (
    MetadataRestorer,
)

# Import identity cache handling
from .identity_cache import (
    IDENTITY_CACHE_FILE,
    IDENTITY_CACHE_TTL,
    DisplayNameResolver,
    load_identity_cache,
    save_identity_cache,
)

# Import progress and statistics classes
from .output import (
    ProgressTracker,
)
from .stats import (
    OwnerStats,
)

# Import batch driver
from .runner import (
    read_manifest,
    restore_records,
)

__all__ = [
    # Errors
    "RestoreError",
    "NotFoundError",
    "InvalidOwnershipFormat",
    "IdentityNotResolved",
    "PrivilegeAcquisitionFailed",
    "PrivilegeReleaseFailed",
    "ApplyFailed",
    # Utils
    "instant_to_ns",
    "ns_to_instant",
    "parse_timestamp",
    "format_timestamp",
    "format_time",
    "format_identity",
    # Records
    "METADATA_ATIME",
    "METADATA_CTIME",
    "METADATA_MTIME",
    "METADATA_OWNER",
    "METADATA_GROUP",
    "MetadataRecord",
    "record_from_metadata",
    "record_from_dict",
    "collect_metadata",
    # Platforms
    "GRANT_MODE_OWNER",
    "GRANT_MODE_CREATOR_OWNER",
    "Platform",
    "create_platform",
    "get_platform",
    # Privileges
    "PrivilegeScope",
    "with_elevated_privileges",
    # Propagation
    "PropagationCoordinator",
    "ancestors",
    "MetadataRestorer",
    # Identity cache
    "IDENTITY_CACHE_FILE",
    "IDENTITY_CACHE_TTL",
    "DisplayNameResolver",
    "load_identity_cache",
    "save_identity_cache",
    # Output / stats
    "ProgressTracker",
    "OwnerStats",
    # Runner
    "read_manifest",
    "restore_records",
]
