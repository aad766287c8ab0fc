"""
Platform gate - precondition check on the current execution environment.

check_environment() raises EnvironmentMismatch when the running platform
does not satisfy the required platform. The check is pure and runs before
any implementation is attempted; it is never routed through the fallback
chain.

Platform identifiers are OS families. Common aliases are normalized:

    macos, osx, mac  -> darwin
    win, win32, win64, cygwin -> windows
    linux2           -> linux

The family "posix" is satisfied by linux and darwin; "any" (or an empty
requirement) is satisfied everywhere.
"""

import sys
from typing import Optional

from fallchain.errors import EnvironmentMismatch


_ALIASES = {
    "macos": "darwin",
    "osx": "darwin",
    "mac": "darwin",
    "win": "windows",
    "win32": "windows",
    "win64": "windows",
    "cygwin": "windows",
    "linux2": "linux",
}

# Families that are satisfied by several concrete platforms
_FAMILIES = {
    "posix": frozenset({"linux", "darwin", "freebsd", "openbsd", "netbsd"}),
    "any": None,
}


def normalize_platform(name: str) -> str:
    """Normalize a platform identifier to its canonical OS family name."""
    key = name.strip().lower()
    if key.startswith("freebsd"):
        return "freebsd"
    return _ALIASES.get(key, key)


def detect_platform() -> str:
    """Return the normalized platform family of the running interpreter."""
    return normalize_platform(sys.platform)


def satisfies(current: str, required: Optional[str]) -> bool:
    """
    Check whether a platform satisfies a requirement.

    Args:
        current: Platform identifier of the running host
        required: Required platform or family (None/"" means any)

    Returns:
        True if current satisfies required
    """
    if not required:
        return True
    current_norm = normalize_platform(current)
    required_norm = normalize_platform(required)
    if required_norm in _FAMILIES:
        members = _FAMILIES[required_norm]
        return members is None or current_norm in members
    return current_norm == required_norm


def check_environment(required_platform: Optional[str], current: Optional[str] = None) -> None:
    """
    Abort early when the current platform does not satisfy the requirement.

    Args:
        required_platform: Declared target platform (None means any)
        current: Platform to check; detected from the interpreter when None

    Raises:
        EnvironmentMismatch: If current does not satisfy required_platform
    """
    if current is None:
        current = detect_platform()
    if not satisfies(current, required_platform):
        raise EnvironmentMismatch(
            current=normalize_platform(current),
            required=normalize_platform(required_platform),
        )
