"""Per-user storage collector.

Scans the immediate subdirectories of one or more target directories on the
head node and reports the size and file count of each one. Subdirectory
names are taken to be usernames.
"""

from __future__ import annotations

import logging
import shlex
from typing import List, Optional, Sequence

from .base import BaseCollector
from ..data.models import UserUsageRecord
from ..data.parsers import parse_user_usage_output
from ..exceptions import CollectorError

logger = logging.getLogger(__name__)

DEFAULT_SCAN_DIRECTORIES = ("/scratch", "/home", "/windows-home")

# Emits a JSON array of {"username", "used", "files"} for every subdirectory
# of $1, with backslashes and quotes in names escaped. The directory arrives as a positional argument so it is never
# interpolated into the script body.
_SCAN_SCRIPT = (
    'echo "["; first=1; '
    'for d in "$1"/*; do '
    '[ -d "$d" ] || continue; '
    'user=$(basename "$d"); '
    'user=${user//\\\\/\\\\\\\\}; user=${user//\\"/\\\\\\"}; '
    'used=$(du -sh "$d" 2>/dev/null | cut -f1); '
    'files=$(find "$d" -type f 2>/dev/null | wc -l); '
    '[ $first -eq 0 ] && echo ","; first=0; '
    'printf \'{"username": "%s", "used": "%s", "files": %d}\\n\' "$user" "${used:-0}" "${files:-0}"; '
    'done; echo "]"'
)


def build_scan_script(directory: str) -> str:
    """Build the remote command that scans one directory.

    Args:
        directory: Absolute path on the head node.

    Raises:
        ValueError: If the path is relative or contains control characters.
    """
    if not directory.startswith("/"):
        raise ValueError(f"scan directory must be absolute: {directory!r}")
    if any(ch in directory for ch in ("\x00", "\n", "\r")):
        raise ValueError(f"scan directory contains control characters: {directory!r}")
    directory = directory.rstrip("/") or "/"
    return f"/bin/bash -c {shlex.quote(_SCAN_SCRIPT)} scan {shlex.quote(directory)}"


class UserStorageCollector(BaseCollector):
    """Collector for per-user usage inside scanned directories.

    All directories are scanned sequentially over a single session. A
    directory whose scan fails or returns unparseable output is skipped.
    """

    def __init__(self, *args, directories: Optional[Sequence[str]] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.directories: List[str] = list(directories or DEFAULT_SCAN_DIRECTORIES)

    @property
    def name(self) -> str:
        return "user_storage"

    @property
    def display_name(self) -> str:
        return "User Storage"

    def collect(self) -> List[UserUsageRecord]:
        records: List[UserUsageRecord] = []
        with self.open_session() as session:
            for directory in self.directories:
                try:
                    records.extend(self._scan_directory(session, directory))
                except (CollectorError, ValueError) as e:
                    if not session.is_open:
                        # a timeout tore the session down; the whole scan is void
                        raise
                    logger.warning("[%s] Skipping %s: %s", self.name, directory, e)
        return records

    def _scan_directory(self, session, directory: str) -> List[UserUsageRecord]:
        result = self.run_checked(session, build_scan_script(directory), self.command_timeout)
        rows = parse_user_usage_output(result.stdout, directory)
        logger.debug("[%s] %s: %d users", self.name, directory, len(rows))
        return rows
