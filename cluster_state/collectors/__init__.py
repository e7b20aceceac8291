"""Data collectors - SLURM partitions, filesystem capacity, per-user storage."""

from .base import BaseCollector, connect_session
from .ssh import CommandResult, RemoteSession
from .slurm import SlurmQueueCollector
from .storage import StorageCollector
from .user_storage import UserStorageCollector, build_scan_script

__all__ = [
    "BaseCollector",
    "connect_session",
    "CommandResult",
    "RemoteSession",
    "SlurmQueueCollector",
    "StorageCollector",
    "UserStorageCollector",
    "build_scan_script",
]
