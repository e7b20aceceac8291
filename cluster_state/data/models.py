"""Data models for cluster state snapshots.

This module defines the records produced by one poll cycle against a head node,
following these semantic principles:

1. UNKNOWN vs ZERO
   - None means the remote tool did not report a value
   - 0 means the value was reported (or derived) as zero

2. EXPLICIT UNITS
   - Memory: whole gigabytes (integers)
   - Filesystem capacity: tebibytes (floats)
   - Per-user usage: gigabytes (floats)
   - Counts: cpus, gpus, files, jobs (integers)

3. EXPLICIT FALLBACKS
   - A source that produced no rows is represented by a single record with
     is_fallback=True, never by an empty list
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


FALLBACK_PARTITION = "cpu (Fallback)"
FALLBACK_MOUNT_POINT = "CEPH:/home (Fallback)"


@dataclass(frozen=True)
class NodeTarget:
    """A reachable cluster host, as listed in the nodes configuration."""

    name: str
    host: str
    port: int = 22
    user: str = "root"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NodeTarget":
        host = data.get("host")
        if not host:
            raise ValueError(f"node entry {data!r} has no host")
        return cls(
            name=str(data.get("name") or host),
            host=str(host),
            port=int(data.get("port", 22)),
            user=str(data.get("user", "root")),
        )


# =============================================================================
# Source Records
# =============================================================================


@dataclass
class QueueRecord:
    """Resource state of one scheduler partition.

    Units:
    - cpu_*, gpu_*: counts (None when not reported)
    - mem_*_gb: whole gigabytes, derived from the cpu allocation ratio
    - *_jobs_*: job counts, not collected by this version (always 0)
    """

    partition: str
    cpu_free: Optional[int] = None
    cpu_allocated: Optional[int] = None
    gpu_free: Optional[int] = None  # sinfo cannot express free gres
    gpu_allocated: Optional[int] = None
    mem_free_gb: int = 0
    mem_allocated_gb: int = 0
    interactive_jobs_running: int = 0
    interactive_jobs_pending: int = 0
    batch_jobs_running: int = 0
    batch_jobs_pending: int = 0
    is_fallback: bool = False

    @classmethod
    def fallback(cls) -> "QueueRecord":
        """Placeholder row for an unavailable scheduler source."""
        return cls(
            partition=FALLBACK_PARTITION,
            cpu_free=0,
            cpu_allocated=0,
            is_fallback=True,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class VolumeRecord:
    """Capacity of one mounted filesystem.

    Units:
    - used_tib, total_tib: tebibytes (float)
    - usage_percent: percent 0-100, one decimal
    """

    mount_point: str
    used_tib: float = 0.0
    total_tib: float = 0.0
    usage_percent: float = 0.0
    is_fallback: bool = False

    def __post_init__(self):
        self.usage_percent = round(float(self.usage_percent), 1)

    @classmethod
    def fallback(cls) -> "VolumeRecord":
        """Placeholder row for an unavailable filesystem source."""
        return cls(mount_point=FALLBACK_MOUNT_POINT, is_fallback=True)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class UserUsageRecord:
    """One user's consumption inside one scanned directory."""

    username: str
    used_storage_space_gb: float  # Unit: gigabytes
    total_files: int
    mount_point: str  # The scanned directory this row came from

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# =============================================================================
# Snapshot
# =============================================================================


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a Z suffix."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class ClusterSnapshot:
    """One complete, timestamped assembly of all polled sources."""

    last_updated_timestamp: str
    storage: List[VolumeRecord] = field(default_factory=list)
    slurm_queue_info: List[QueueRecord] = field(default_factory=list)
    user_storage: List[UserUsageRecord] = field(default_factory=list)

    @property
    def degraded_sources(self) -> List[str]:
        """Names of sources that are represented by a fallback row."""
        degraded = []
        if any(v.is_fallback for v in self.storage):
            degraded.append("storage")
        if any(q.is_fallback for q in self.slurm_queue_info):
            degraded.append("slurm_queue_info")
        return degraded

    def to_dict(self) -> Dict[str, Any]:
        return {
            "last_updated_timestamp": self.last_updated_timestamp,
            "storage": [v.to_dict() for v in self.storage],
            "slurm_queue_info": [q.to_dict() for q in self.slurm_queue_info],
            "user_storage": [u.to_dict() for u in self.user_storage],
        }
