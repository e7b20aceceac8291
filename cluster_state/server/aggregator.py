"""Snapshot assembly.

Fans out to the three head node collectors concurrently, waits for all of
them, and substitutes fallback rows for sources that came back empty.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence

import paramiko

from .config import Config
from ..collectors.base import BaseCollector, SessionFactory, connect_session
from ..collectors.slurm import SlurmQueueCollector
from ..collectors.storage import StorageCollector
from ..collectors.user_storage import UserStorageCollector
from ..data.models import ClusterSnapshot, QueueRecord, VolumeRecord, utc_timestamp

logger = logging.getLogger(__name__)


class ClusterStateAggregator:
    """Builds one ClusterSnapshot per call from the configured head node.

    Every collector opens its own session; nothing is shared between them or
    kept between calls.
    """

    def __init__(
        self,
        config: Config,
        credential: paramiko.PKey,
        session_factory: SessionFactory = connect_session,
    ):
        self.config = config
        self.credential = credential
        self.session_factory = session_factory

    def build_collectors(self, scan_directories: Sequence[str]) -> List[BaseCollector]:
        """Create the queue, volume and user storage collectors, in that order."""
        head = self.config.head_node
        ssh = self.config.ssh
        common = {
            "connect_timeout": ssh.connect_timeout,
            "session_factory": self.session_factory,
        }
        return [
            SlurmQueueCollector(head, self.credential, command_timeout=ssh.command_timeout, **common),
            StorageCollector(head, self.credential, command_timeout=ssh.command_timeout, **common),
            UserStorageCollector(
                head,
                self.credential,
                command_timeout=ssh.scan_timeout,
                directories=scan_directories,
                **common,
            ),
        ]

    def snapshot(self, scan_directories: Optional[Sequence[str]] = None) -> ClusterSnapshot:
        """Poll all sources and assemble the result.

        Args:
            scan_directories: Directories for the per-user scan; defaults to
                /scratch when not given.
        """
        collectors = self.build_collectors(scan_directories or ["/scratch"])
        logger.info(
            "[aggregator] Polling %s for %s",
            self.config.head_node.name,
            ", ".join(c.name for c in collectors),
        )

        with ThreadPoolExecutor(max_workers=len(collectors), thread_name_prefix="poller") as pool:
            futures = [pool.submit(c.poll) for c in collectors]
            queues, volumes, users = [f.result() for f in futures]

        return assemble_snapshot(queues, volumes, users)


def assemble_snapshot(
    queues: List[QueueRecord],
    volumes: List[VolumeRecord],
    users: list,
) -> ClusterSnapshot:
    """Apply the fallback policy and stamp the snapshot.

    Queue and volume sources always carry at least one row; the user storage
    list is passed through as is since an empty scan is a valid result.
    """
    if not volumes:
        logger.warning("[aggregator] No storage rows; using fallback")
        volumes = [VolumeRecord.fallback()]
    if not queues:
        logger.warning("[aggregator] No partition rows; using fallback")
        queues = [QueueRecord.fallback()]
    return ClusterSnapshot(
        last_updated_timestamp=utc_timestamp(),
        storage=list(volumes),
        slurm_queue_info=list(queues),
        user_storage=list(users),
    )
