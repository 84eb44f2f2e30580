"""
Auto-tuning module for ownerwalk.

Detects the host platform and system resources and generates worker
concurrency settings for batch restores.
Profile is saved to 'tuning-profile' on first run.
"""

import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional, Tuple

# Try to use ujson for faster parsing
try:
    import ujson as json_parser
except ImportError:
    import json as json_parser

# Profile version for future compatibility
PROFILE_VERSION = 1
PROFILE_FILENAME = "tuning-profile"


def detect_platform() -> Tuple[str, bool]:
    """
    Detect the operating system and whether running under WSL.

    Returns:
        Tuple of (os_name, is_wsl)
        os_name: 'darwin', 'linux', 'windows'
        is_wsl: True if running under Windows Subsystem for Linux
    """
    platform = sys.platform

    if platform == 'darwin':
        return ('darwin', False)

    elif platform == 'win32':
        return ('windows', False)

    elif platform.startswith('linux'):
        # Check for WSL by examining /proc/version
        is_wsl = False
        try:
            with open('/proc/version', 'r') as f:
                version_info = f.read().lower()
                if 'microsoft' in version_info or 'wsl' in version_info:
                    is_wsl = True
        except (FileNotFoundError, PermissionError):
            pass
        return ('linux', is_wsl)

    else:
        # Other POSIX systems share the Linux stat/lchown model
        return ('linux', False)


def detect_cpu_count() -> int:
    """Number of CPUs usable by this process."""
    if hasattr(os, 'sched_getaffinity'):
        try:
            return max(1, len(os.sched_getaffinity(0)))
        except OSError:
            pass
    return os.cpu_count() or 1


def detect_file_descriptor_limit() -> int:
    """
    Detect the file descriptor limit for the current process.

    Returns:
        Soft limit on file descriptors (int)
    """
    # Unix/Linux/macOS
    try:
        import resource
        soft_limit, _ = resource.getrlimit(resource.RLIMIT_NOFILE)
        return soft_limit
    except (ImportError, ValueError):
        pass

    # Windows doesn't have the same fd limit concept
    if sys.platform == 'win32':
        return 8192

    return 256


def get_platform_multiplier(os_name: str, is_wsl: bool) -> float:
    """
    Get the concurrency multiplier for the detected platform.

    Metadata writes are short blocking syscalls; the multiplier reflects
    how well each platform overlaps them.
    """
    if is_wsl:
        return 0.5  # 9P/DrvFs round trips serialize badly

    multipliers = {
        'linux': 1.0,
        'darwin': 0.8,
        'windows': 0.6,  # security descriptor calls are comparatively slow
    }

    return multipliers.get(os_name, 0.8)


# Worker threads per CPU for each profile
PROFILE_THREADS_PER_CPU = {
    'conservative': 2,
    'balanced': 4,
    'aggressive': 8,
}

# Hard caps; beyond these the filesystem, not the CPU, is the bottleneck
PROFILE_CAPS = {
    'conservative': 16,
    'balanced': 32,
    'aggressive': 64,
}


def calculate_recommended_settings(
    cpu_count: int,
    os_name: str,
    is_wsl: bool,
    fd_limit: int,
    profile: str = 'balanced'
) -> Dict[str, int]:
    """
    Calculate recommended settings based on system characteristics.

    Args:
        cpu_count: Usable CPUs
        os_name: Platform name
        is_wsl: Whether running under WSL
        fd_limit: File descriptor limit
        profile: Tuning profile ('conservative', 'balanced', 'aggressive')

    Returns:
        Dict with recommended max_concurrent and batch_size
    """
    per_cpu = PROFILE_THREADS_PER_CPU.get(profile, PROFILE_THREADS_PER_CPU['balanced'])
    platform_mult = get_platform_multiplier(os_name, is_wsl)

    max_concurrent = max(2, int(cpu_count * per_cpu * platform_mult))
    max_concurrent = min(max_concurrent, PROFILE_CAPS.get(profile, PROFILE_CAPS['balanced']))

    # Each worker may hold a file handle open (Windows SetFileTime); keep headroom
    fd_cap = max(2, fd_limit // 4)
    max_concurrent = min(max_concurrent, fd_cap)

    return {
        'max_concurrent': max_concurrent,
        'batch_size': 100,
    }


def get_profile_path() -> Path:
    """Path to the tuning profile, next to ownerwalk.py."""
    script_dir = Path(__file__).parent.parent
    return script_dir / PROFILE_FILENAME


def load_tuning_profile(profile_path: Optional[Path] = None) -> Optional[Dict]:
    """
    Load the tuning profile from disk.

    Returns:
        Profile dict if exists and valid, None otherwise
    """
    profile_path = profile_path or get_profile_path()

    if not profile_path.exists():
        return None

    try:
        with open(profile_path, 'r') as f:
            profile = json_parser.load(f)

        if profile.get('version') != PROFILE_VERSION:
            return None

        required = ['platform', 'recommended', 'profile']
        if not all(key in profile for key in required):
            return None

        return profile

    except (ValueError, IOError, AttributeError):
        return None


def save_tuning_profile(profile: Dict, profile_path: Optional[Path] = None) -> bool:
    """
    Save the tuning profile to disk.

    Returns:
        True if saved successfully, False otherwise
    """
    profile_path = profile_path or get_profile_path()

    try:
        with open(profile_path, 'w') as f:
            json_parser.dump(profile, f, indent=2)
        return True
    except IOError:
        return False


def generate_tuning_profile(profile_name: str = 'balanced') -> Dict:
    """
    Generate a new tuning profile based on current system.

    Args:
        profile_name: Profile type ('conservative', 'balanced', 'aggressive')

    Returns:
        Complete profile dict
    """
    os_name, is_wsl = detect_platform()
    cpu_count = detect_cpu_count()
    fd_limit = detect_file_descriptor_limit()

    recommended = calculate_recommended_settings(
        cpu_count=cpu_count,
        os_name=os_name,
        is_wsl=is_wsl,
        fd_limit=fd_limit,
        profile=profile_name
    )

    return {
        'version': PROFILE_VERSION,
        'created': datetime.now(timezone.utc).isoformat(),
        'platform': {
            'os': os_name,
            'is_wsl': is_wsl,
            'cpu_count': cpu_count,
            'fd_limit': fd_limit,
        },
        'recommended': recommended,
        'profile': profile_name,
    }


def load_or_create_profile(profile_name: str = 'balanced', verbose: bool = False) -> Dict:
    """Load the saved profile, regenerating it when missing or for a different profile name."""
    profile = load_tuning_profile()
    if profile and profile.get('profile') == profile_name:
        return profile

    profile = generate_tuning_profile(profile_name)
    if save_tuning_profile(profile):
        if verbose:
            print(f"[INFO] Saved tuning profile to {get_profile_path()}", file=sys.stderr)
    elif verbose:
        print(f"[WARN] Could not save tuning profile to {get_profile_path()}", file=sys.stderr)
    return profile


def get_platform_display_name(os_name: str, is_wsl: bool) -> str:
    """Human-readable platform name, e.g. "Linux" or "Linux (WSL)"."""
    names = {
        'darwin': 'macOS',
        'linux': 'Linux',
        'windows': 'Windows',
    }

    display = names.get(os_name, os_name.capitalize())

    if is_wsl:
        display += ' (WSL)'

    return display


def format_profile_summary(profile: Dict) -> str:
    """Format profile for display to user."""
    platform = profile['platform']
    recommended = profile['recommended']

    os_display = get_platform_display_name(platform['os'], platform['is_wsl'])

    lines = [
        f"  Platform:        {os_display}",
        f"  CPUs:            {platform['cpu_count']}",
        f"  FD Limit:        {platform['fd_limit']}",
        f"  Profile:         {profile['profile']}",
        "",
        f"  max-concurrent:  {recommended['max_concurrent']}",
        f"  batch-size:      {recommended['batch_size']}",
    ]

    return '\n'.join(lines)
