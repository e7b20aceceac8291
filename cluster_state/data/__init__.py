"""Data layer - record models and command output parsers."""

from .models import (
    NodeTarget,
    QueueRecord,
    VolumeRecord,
    UserUsageRecord,
    ClusterSnapshot,
)

__all__ = [
    "NodeTarget",
    "QueueRecord",
    "VolumeRecord",
    "UserUsageRecord",
    "ClusterSnapshot",
]
