"""Parsers for head node command output.

Each parser turns the raw stdout of one remote command into typed records.
The inputs come from external tools with no schema guarantee, so parsers skip
malformed rows instead of failing the whole parse:

1. sinfo partition listing  -> QueueRecord
2. df -hT filesystem listing -> VolumeRecord
3. directory scan JSON       -> UserUsageRecord

Size suffixes are matched case-insensitively by both size converters.
"""

from __future__ import annotations

import json
import math
import re
from typing import Any, List, Optional

from .models import QueueRecord, UserUsageRecord, VolumeRecord
from ..exceptions import ParseError


_SIZE_RE = re.compile(r"^\s*([-+]?\d+(?:\.\d+)?)\s*([A-Za-z]?)")

# Multipliers from a df/du size suffix to the target unit
TIB_FACTORS = {
    "T": 1.0,
    "G": 1.0 / 1024,
    "M": 1.0 / (1024 * 1024),
}

GB_FACTORS = {
    "T": 1024.0,
    "G": 1.0,
    "M": 1.0 / 1024,
}

MIN_QUEUE_FIELDS = 5
MIN_VOLUME_FIELDS = 7


# =============================================================================
# Helpers
# =============================================================================


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


def parse_int(value: Optional[str]) -> Optional[int]:
    """Parse an integer field, returning None when it is not a number."""
    if value is None:
        return None
    try:
        return int(value.strip().rstrip("+"))
    except ValueError:
        return None


def _convert_size(size_str: Optional[str], factors: dict) -> float:
    if not size_str:
        return 0.0
    match = _SIZE_RE.match(size_str)
    if not match:
        return 0.0
    factor = factors.get(match.group(2).upper())
    if factor is None:
        return 0.0
    return float(match.group(1)) * factor


def size_to_tib(size_str: Optional[str]) -> float:
    """Convert a df size string (e.g. '1.5T', '800G') to tebibytes.

    An unrecognized or missing suffix yields 0.0.
    """
    return _convert_size(size_str, TIB_FACTORS)


def size_to_gb(size_str: Optional[str]) -> float:
    """Convert a du size string (e.g. '2.1T', '512M') to gigabytes.

    An unrecognized or missing suffix yields 0.0.
    """
    return _convert_size(size_str, GB_FACTORS)


def parse_percent(value: str) -> float:
    """Parse a usage percentage such as '87%'."""
    try:
        return float(value.strip().rstrip("%"))
    except ValueError:
        return 0.0


def parse_gpu_count(gres: str) -> Optional[int]:
    """Extract the GPU count from a generic resource field like 'gpu:a100:4(S:0)'."""
    if "gpu:" not in gres:
        return None
    # drop the socket binding suffix before taking the last component
    bare = gres.split("(", 1)[0]
    return parse_int(bare.rsplit(":", 1)[-1])


# =============================================================================
# Queue Parser
# =============================================================================


def parse_queue_line(line: str) -> Optional[QueueRecord]:
    """Parse one sinfo line: partition total alloc idle mem_mb [gres]."""
    parts = line.split()
    if len(parts) < MIN_QUEUE_FIELDS:
        return None

    total_cpus = parse_int(parts[1])
    alloc_cpus = parse_int(parts[2])
    idle_cpus = parse_int(parts[3])
    total_mem_mb = parse_int(parts[4])

    if total_cpus and alloc_cpus is not None:
        alloc_ratio = alloc_cpus / total_cpus
    else:
        alloc_ratio = 0.0

    total_mem_gb = (total_mem_mb or 0) / 1024
    mem_allocated = round_half_up(total_mem_gb * alloc_ratio)
    mem_free = round_half_up(total_mem_gb - mem_allocated)

    gpu_allocated = None
    if len(parts) >= 6:
        gpu_allocated = parse_gpu_count(parts[5])

    return QueueRecord(
        partition=parts[0],
        cpu_free=idle_cpus,
        cpu_allocated=alloc_cpus,
        gpu_free=None,
        gpu_allocated=gpu_allocated,
        mem_free_gb=mem_free,
        mem_allocated_gb=mem_allocated,
    )


def parse_queue_output(output: str) -> List[QueueRecord]:
    """Parse the full sinfo listing, skipping malformed lines."""
    records = []
    for line in output.strip().split("\n"):
        if not line.strip():
            continue
        record = parse_queue_line(line)
        if record is not None:
            records.append(record)
    return records


# =============================================================================
# Volume Parser
# =============================================================================


def parse_volume_line(line: str) -> Optional[VolumeRecord]:
    """Parse one df -hT line: device type size used avail use% mount."""
    parts = line.split()
    if len(parts) < MIN_VOLUME_FIELDS:
        return None
    return VolumeRecord(
        mount_point=parts[-1],
        total_tib=size_to_tib(parts[2]),
        used_tib=size_to_tib(parts[3]),
        usage_percent=parse_percent(parts[5]),
    )


def parse_volume_output(output: str) -> List[VolumeRecord]:
    """Parse the filtered df listing, skipping malformed lines."""
    records = []
    for line in output.strip().split("\n"):
        if not line.strip():
            continue
        record = parse_volume_line(line)
        if record is not None:
            records.append(record)
    return records


# =============================================================================
# User-Usage Parser
# =============================================================================


def _file_count(value: Any) -> int:
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return 0


def parse_user_usage_output(output: str, mount_point: str) -> List[UserUsageRecord]:
    """Parse the JSON array emitted by the directory scan script.

    Raises:
        ParseError: If the output is not a JSON array.
    """
    try:
        raw = json.loads(output.strip())
    except json.JSONDecodeError as e:
        raise ParseError("user_storage", f"invalid scan output for {mount_point}: {e}", e)
    if not isinstance(raw, list):
        raise ParseError(
            "user_storage",
            f"scan output for {mount_point} is {type(raw).__name__}, expected a list",
        )

    records = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        username = entry.get("username")
        if not username:
            continue
        records.append(
            UserUsageRecord(
                username=str(username),
                used_storage_space_gb=size_to_gb(str(entry.get("used") or "")),
                total_files=_file_count(entry.get("files")),
                mount_point=mount_point,
            )
        )
    return records
