"""Storage monitoring collector.

Collects shared filesystem capacity from the head node via `df -hT`.
"""

from __future__ import annotations

from typing import List

from .base import BaseCollector
from ..data.models import VolumeRecord
from ..data.parsers import parse_volume_output

# Only network and scratch filesystems are interesting for the dashboard
DF_COMMAND = "df -hT | grep -E 'ceph|nfs|/scratch'"


class StorageCollector(BaseCollector):
    """Collector for shared filesystem capacity.

    Sizes are reported by df with a single letter suffix and converted to
    tebibytes by the volume parser.
    """

    command = DF_COMMAND

    @property
    def name(self) -> str:
        return "storage"

    @property
    def display_name(self) -> str:
        return "Storage"

    def collect(self) -> List[VolumeRecord]:
        with self.open_session() as session:
            result = self.run_checked(session, self.command, self.command_timeout)
        return parse_volume_output(result.stdout)
