"""
Shared fixtures: a Platform that records every native call instead of
touching the filesystem, so propagation properties can be checked on
arbitrary paths.
"""

import threading
import time
from collections import Counter

import pytest

from walkmodules.errors import (
    ApplyFailed,
    IdentityNotResolved,
    InvalidOwnershipFormat,
    NotFoundError,
    PrivilegeAcquisitionFailed,
    PrivilegeReleaseFailed,
)
from walkmodules.platform_base import Platform
from walkmodules.utils import instant_to_ns, ns_to_instant


class RecordingPlatform(Platform):
    """In-memory platform; identities are decimal strings, like POSIX."""

    name = "recording"
    supports_creation_time = True
    has_acls = True
    required_privileges = ("SeRestorePrivilege", "SeTakeOwnershipPrivilege")

    def __init__(self, apply_delay: float = 0.0):
        self.lock = threading.Lock()
        self.apply_delay = apply_delay
        self.times = {}
        self.owners = {}
        self.owner_calls = []
        self.acl_calls = []
        self.time_writes = []
        self.enable_calls = 0
        self.disable_calls = 0
        self.fail_owner_paths = set()
        self.fail_acl_paths = set()
        self.fail_enable = False
        self.fail_disable = False
        self.names = {"0": "root", "1001": "alice"}

    def _read_times_ns(self, path):
        if path not in self.times:
            raise NotFoundError(f"Cannot access {path}", path)
        return tuple(None if value is None else instant_to_ns(value) for value in self.times[path])

    def _apply_times(self, path, access_ns, modification_ns, creation_ns):
        written = tuple(
            None if ns is None else ns_to_instant(ns)
            for ns in (access_ns, modification_ns, creation_ns)
        )
        with self.lock:
            self.time_writes.append((path,) + written)
            self.times[path] = written

    def parse_identity(self, identity, kind="owner"):
        if not identity.isdigit():
            raise InvalidOwnershipFormat(identity, "not numeric")
        return int(identity)

    def principal_to_string(self, principal):
        return str(principal)

    def resolve_display_name(self, identity, kind="owner"):
        self.parse_identity(identity, kind)
        if identity not in self.names:
            raise IdentityNotResolved(identity)
        return self.names[identity]

    def get_owner_group(self, path):
        owner, group = self.owners.get(path, (0, 0))
        return str(owner), str(group)

    def set_owner_group(self, path, owner=None, group=None):
        if self.apply_delay:
            time.sleep(self.apply_delay)
        with self.lock:
            self.owner_calls.append(path)
        if path in self.fail_owner_paths:
            raise ApplyFailed(path, "owner", "simulated failure")
        self.owners[path] = (owner, group)

    def grant_owner_access(self, path, owner, grant_mode="creator_owner"):
        with self.lock:
            self.acl_calls.append((path, owner, grant_mode))
        if path in self.fail_acl_paths:
            raise ApplyFailed(path, "acl", "simulated failure")

    def enable_privileges(self, privileges):
        if self.fail_enable:
            raise PrivilegeAcquisitionFailed(privileges, "simulated")
        with self.lock:
            self.enable_calls += 1

    def disable_privileges(self, privileges):
        with self.lock:
            self.disable_calls += 1
        if self.fail_disable:
            raise PrivilegeReleaseFailed(privileges, "simulated")

    def owner_call_counts(self):
        return Counter(self.owner_calls)


@pytest.fixture
def recording_platform():
    return RecordingPlatform()
