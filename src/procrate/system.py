"""One-shot system summaries that need no second sample."""

import logging
from dataclasses import dataclass

import psutil

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class MemorySummary:
    """RAM and swap usage in bytes."""

    total: int
    used: int
    free: int
    available: int
    cached: int
    buffers: int
    percent: float
    swap_total: int
    swap_used: int
    swap_free: int
    swap_percent: float


@dataclass(slots=True, frozen=True)
class LoadAverage:
    """1, 5 and 15 minute load averages."""

    min1: float
    min5: float
    min15: float


@dataclass(slots=True, frozen=True)
class DiskUsage:
    """Usage of one mounted filesystem."""

    device: str
    mount_point: str
    fstype: str
    total: int
    used: int
    free: int
    percent: float

    @property
    def remaining(self) -> float:
        """Percentage of the filesystem still free."""
        return 100.0 - self.percent


def memory_summary() -> MemorySummary:
    """Collect RAM and swap usage."""
    mem = psutil.virtual_memory()
    swap = psutil.swap_memory()
    return MemorySummary(
        total=mem.total,
        used=mem.used,
        free=mem.free,
        available=mem.available,
        cached=getattr(mem, "cached", 0),
        buffers=getattr(mem, "buffers", 0),
        percent=mem.percent,
        swap_total=swap.total,
        swap_used=swap.used,
        swap_free=swap.free,
        swap_percent=swap.percent,
    )


def load_average() -> LoadAverage:
    min1, min5, min15 = psutil.getloadavg()
    return LoadAverage(min1=min1, min5=min5, min15=min15)


def disk_usage(all_partitions: bool = False) -> list[DiskUsage]:
    """
    Collect usage of every mounted filesystem.

    Partitions whose usage cannot be read (stale network mounts, permission
    denied) are left out.
    """
    disks: list[DiskUsage] = []
    for partition in psutil.disk_partitions(all=all_partitions):
        try:
            usage = psutil.disk_usage(partition.mountpoint)
        except OSError as exc:
            logger.debug("Skipping %s: %s", partition.mountpoint, exc)
            continue
        disks.append(
            DiskUsage(
                device=partition.device,
                mount_point=partition.mountpoint,
                fstype=partition.fstype,
                total=usage.total,
                used=usage.used,
                free=usage.free,
                percent=usage.percent,
            )
        )
    return disks
