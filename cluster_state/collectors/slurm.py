"""Slurm partition collector.

Collects per-partition CPU, memory and GPU state from the head node via sinfo.
"""

from __future__ import annotations

from typing import List

from .base import BaseCollector
from ..data.models import QueueRecord
from ..data.parsers import parse_queue_output

# partition, total cpus, allocated cpus, idle cpus, memory (MB), gres
SINFO_COMMAND = 'sinfo -o "%.12P %.5C %.5a %.5I %.10m %.6G" --noheader'


class SlurmQueueCollector(BaseCollector):
    """Collector for scheduler partition state.

    Uses `sinfo` over a dedicated SSH session. GPU free counts are never
    reported because sinfo's gres column only carries the configured count.
    """

    command = SINFO_COMMAND

    @property
    def name(self) -> str:
        return "slurm"

    @property
    def display_name(self) -> str:
        return "SLURM"

    def collect(self) -> List[QueueRecord]:
        with self.open_session() as session:
            result = self.run_checked(session, self.command, self.command_timeout)
        return parse_queue_output(result.stdout)
