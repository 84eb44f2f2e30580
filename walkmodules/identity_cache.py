"""
Identity display-name cache for ownerwalk.

Account lookups (getpwuid, LookupAccountSid against a domain controller)
can be slow, and a restore report names the same few owners over and over.
Resolved names are cached in memory and in a small JSON file with a TTL.
"""

import os
import sys
import threading
import time
from typing import Dict, Optional, TYPE_CHECKING

from .errors import IdentityNotResolved

# Try to use ujson for faster parsing
try:
    import ujson as json_parser
except ImportError:
    import json as json_parser

if TYPE_CHECKING:
    from .platform_base import Platform

# Identity cache configuration
IDENTITY_CACHE_FILE = "ownerwalk_resolved_identities"
IDENTITY_CACHE_TTL = 15 * 60  # 15 minutes in seconds


def _cache_key(kind: str, identity: str) -> str:
    return f"{kind}:{identity}"


def load_identity_cache(cache_file: str = IDENTITY_CACHE_FILE, verbose: bool = False) -> Dict[str, str]:
    """Load identity cache from file, dropping expired entries."""
    cache = {}
    cache_timestamp = int(time.time())

    if not os.path.exists(cache_file):
        return cache

    expired_count = 0
    try:
        with open(cache_file, "r") as f:
            cache_data = json_parser.load(f)

        for key, entry in cache_data.items():
            if cache_timestamp - entry.get("timestamp", 0) > IDENTITY_CACHE_TTL:
                expired_count += 1
            else:
                cache[key] = entry.get("name", "")
    except (ValueError, OSError, AttributeError) as e:
        if verbose:
            print(f"[WARN] Failed to load identity cache: {e}", file=sys.stderr)
        return {}

    if verbose and cache:
        print(f"[INFO] Loaded {len(cache)} cached identities from {cache_file}", file=sys.stderr)
    if verbose and expired_count > 0:
        print(f"[INFO] Removed {expired_count} expired cache entries", file=sys.stderr)

    return cache


def save_identity_cache(
    identity_cache: Dict[str, str], cache_file: str = IDENTITY_CACHE_FILE, verbose: bool = False
) -> bool:
    """Save identity cache to file."""
    cache_timestamp = int(time.time())
    cache_data = {
        key: {"name": name, "timestamp": cache_timestamp}
        for key, name in identity_cache.items()
    }

    try:
        with open(cache_file, "w") as f:
            json_parser.dump(cache_data, f, indent=2)
    except OSError as e:
        if verbose:
            print(f"[WARN] Failed to save identity cache: {e}", file=sys.stderr)
        return False

    if verbose:
        print(f"[INFO] Saved {len(identity_cache)} identities to cache file", file=sys.stderr)
    return True


class DisplayNameResolver:
    """Resolve identities to account names through a persistent cache."""

    def __init__(self, platform: "Platform", identity_cache: Optional[Dict[str, str]] = None):
        self.platform = platform
        self.cache = identity_cache if identity_cache is not None else {}
        self.lock = threading.Lock()
        self.cache_hits = 0
        self.cache_misses = 0

    def resolve(self, identity: str, kind: str = "owner") -> Optional[str]:
        """
        Return the display name for identity, or None when it has none.

        Unresolvable identities are not cached so a later run can pick up
        newly created accounts. Invalid identities still raise
        InvalidOwnershipFormat.
        """
        if not identity:
            return None

        key = _cache_key(kind, identity)
        with self.lock:
            if key in self.cache:
                self.cache_hits += 1
                return self.cache[key]
            self.cache_misses += 1

        try:
            name = self.platform.resolve_display_name(identity, kind)
        except IdentityNotResolved:
            return None

        with self.lock:
            self.cache[key] = name
        return name

    def hit_rate(self) -> float:
        total = self.cache_hits + self.cache_misses
        return (self.cache_hits / total * 100) if total else 0.0
