"""Access checks for user storage scopes.

The `volume` query parameter selects which directory is scanned for per-user
usage. Restricted scopes are rejected before any SSH session is opened.
"""

from __future__ import annotations

from typing import Iterable, Optional

from ..exceptions import ScopeForbiddenError

DEFAULT_SCOPE = "scratch"

SCOPE_DIRECTORIES = {
    "home": "/home",
    "windows": "/windows-home",
    "scratch": "/scratch",
}


def resolve_scope(volume: Optional[str]) -> str:
    """Map a volume selector to the directory it scans.

    Unknown or missing selectors fall back to scratch.
    """
    key = (volume or DEFAULT_SCOPE).strip().lower()
    return SCOPE_DIRECTORIES.get(key, SCOPE_DIRECTORIES[DEFAULT_SCOPE])


def check_scope(directory: str, restricted: Iterable[str]) -> str:
    """Reject a directory that is, or lives under, a restricted path.

    Returns:
        The directory, unchanged, when access is allowed.

    Raises:
        ScopeForbiddenError: If the directory is restricted.
    """
    normalized = directory.rstrip("/") or "/"
    for blocked in restricted:
        blocked = blocked.rstrip("/") or "/"
        if blocked == "/" or normalized == blocked or normalized.startswith(blocked + "/"):
            raise ScopeForbiddenError(directory)
    return directory


def authorize(volume: Optional[str], restricted: Iterable[str]) -> str:
    """Resolve the volume selector and check it in one step."""
    return check_scope(resolve_scope(volume), restricted)
