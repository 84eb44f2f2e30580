"""
Metadata records and object metadata attribute mapping.

The remote store keeps file metadata as flat string attributes. This module
maps them onto MetadataRecord for restoration, and collects them from a
local path for upload.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional, TYPE_CHECKING

from .utils import format_timestamp, parse_timestamp

if TYPE_CHECKING:
    from .platform_base import Platform

# Transfer-level attributes, carried by the sync engine and never interpreted here
METADATA_ACL = "ACL"
METADATA_CACHE_CONTROL = "CacheControl"
METADATA_EXPIRES = "Expires"
METADATA_STORAGE_CLASS = "StorageClass"
METADATA_CONTENT_TYPE = "ContentType"
METADATA_ENCRYPTION_METHOD = "EncryptionMethod"
METADATA_ENCRYPTION_KEY_ID = "EncryptionKeyID"
METADATA_CONTENT_ENCODING = "ContentEncoding"

# File metadata attributes
METADATA_CTIME = "file-ctime"
METADATA_MTIME = "file-mtime"
METADATA_ATIME = "file-atime"
METADATA_OWNER = "file-owner"
METADATA_GROUP = "file-group"

FILE_METADATA_KEYS = (
    METADATA_CTIME,
    METADATA_MTIME,
    METADATA_ATIME,
    METADATA_OWNER,
    METADATA_GROUP,
)


@dataclass
class MetadataRecord:
    """Metadata to restore onto one path. None/empty fields are left unchanged."""

    path: str
    access_time: Optional[datetime] = None
    modification_time: Optional[datetime] = None
    creation_time: Optional[datetime] = None
    owner_id: Optional[str] = None
    group_id: Optional[str] = None

    def has_times(self) -> bool:
        return (
            self.access_time is not None
            or self.modification_time is not None
            or self.creation_time is not None
        )

    def has_ownership(self) -> bool:
        return bool(self.owner_id) or bool(self.group_id)


def record_from_metadata(path: str, metadata: Dict[str, str]) -> MetadataRecord:
    """
    Build a MetadataRecord from remote object metadata.

    Args:
        path: Local path the object was materialized at
        metadata: Object metadata attributes (unknown keys are ignored)

    Returns:
        MetadataRecord

    Raises:
        ValueError: If a timestamp attribute is present but unparsable
    """
    return MetadataRecord(
        path=path,
        access_time=parse_timestamp(metadata.get(METADATA_ATIME)),
        modification_time=parse_timestamp(metadata.get(METADATA_MTIME)),
        creation_time=parse_timestamp(metadata.get(METADATA_CTIME)),
        owner_id=metadata.get(METADATA_OWNER) or None,
        group_id=metadata.get(METADATA_GROUP) or None,
    )


def record_from_dict(entry: Dict) -> MetadataRecord:
    """
    Build a MetadataRecord from a manifest entry.

    Entries either nest remote attributes under 'metadata' or carry flat
    record fields (path, access_time, modification_time, creation_time,
    owner_id, group_id).
    """
    if not isinstance(entry.get("path"), str) or not entry["path"]:
        raise ValueError("Manifest entry has no 'path' string")

    if "metadata" in entry:
        metadata = entry["metadata"] or {}
        if not isinstance(metadata, dict):
            raise ValueError("Manifest entry 'metadata' is not an object")
        return record_from_metadata(entry["path"], metadata)

    return MetadataRecord(
        path=entry["path"],
        access_time=parse_timestamp(entry.get("access_time")),
        modification_time=parse_timestamp(entry.get("modification_time")),
        creation_time=parse_timestamp(entry.get("creation_time")),
        owner_id=entry.get("owner_id") or None,
        group_id=entry.get("group_id") or None,
    )


def collect_metadata(platform: "Platform", path: str) -> Dict[str, str]:
    """
    Read the file-* metadata attributes for a local path.

    This is the upload direction: the result can be stored as object
    metadata and later fed back through record_from_metadata().
    """
    access_time, modification_time, creation_time = platform.read_times(path)
    owner_id, group_id = platform.get_owner_group(path)

    return {
        METADATA_ATIME: format_timestamp(access_time),
        METADATA_MTIME: format_timestamp(modification_time),
        METADATA_CTIME: format_timestamp(creation_time),
        METADATA_OWNER: owner_id,
        METADATA_GROUP: group_id,
    }
