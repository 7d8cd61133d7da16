"""Data models for procrate."""

from dataclasses import dataclass
from enum import Enum
from typing import Mapping

from procrate.parser import RawRecord

SPEED_UNIT = "kB/s"


class SampleKind(Enum):
    """Kinds of records a snapshot can hold."""

    PROCESS = "process"
    INTERFACE = "interface"


@dataclass(slots=True, frozen=True)
class MemoryFootprint:
    """Resident memory of a process."""

    pages: int
    page_size: int
    bytes: int
    mb: float


@dataclass(slots=True, frozen=True)
class ProcessRecord:
    """Immutable parse of one /proc/<pid>/stat record."""

    pid: int
    ppid: int
    executable: str
    command: str
    state: str  # 'R', 'S', 'Z', 'D', etc.
    state_label: str
    utime: int  # Clock ticks
    stime: int
    cutime: int
    cstime: int
    nice: int
    num_threads: int
    memory: MemoryFootprint
    raw: RawRecord

    @property
    def user_ticks(self) -> int:
        return self.utime + self.cutime

    @property
    def system_ticks(self) -> int:
        return self.stime + self.cstime


@dataclass(slots=True, frozen=True)
class ReceiveCounters:
    """Receive half of a /proc/net/dev line."""

    bytes: int
    packets: int
    errs: int
    drop: int
    fifo: int
    frame: int
    compressed: int
    multicast: int


@dataclass(slots=True, frozen=True)
class TransmitCounters:
    """Transmit half of a /proc/net/dev line."""

    bytes: int
    packets: int
    errs: int
    drop: int
    fifo: int
    colls: int
    carrier: int
    compressed: int


@dataclass(slots=True, frozen=True)
class InterfaceRecord:
    """Immutable parse of one /proc/net/dev line."""

    name: str
    receive: ReceiveCounters
    transmit: TransmitCounters
    raw: RawRecord


Record = ProcessRecord | InterfaceRecord


@dataclass(slots=True, frozen=True)
class Snapshot:
    """
    Point-in-time mapping of identifiers to records of one kind.

    ``uptime`` is the kernel uptime read when the snapshot was taken, so two
    snapshots can be compared without trusting the wall clock.
    """

    kind: SampleKind
    records: Mapping[int | str, Record]
    uptime: float
    page_size: int | None = None

    def __contains__(self, identifier: object) -> bool:
        return identifier in self.records

    def __len__(self) -> int:
        return len(self.records)


@dataclass(slots=True, frozen=True)
class Uptime:
    """Contents of /proc/uptime."""

    up: float
    idle: float  # Average per CPU
    idle_total: float


@dataclass(slots=True, frozen=True)
class ProcessRate:
    """CPU usage of one process between two snapshots."""

    pid: int
    process: ProcessRecord  # Record from the later snapshot
    user_seconds: float
    system_seconds: float
    total_seconds: float
    user_percent: float  # Not clamped, can exceed 100 on multi-core
    system_percent: float
    total_percent: float


@dataclass(slots=True, frozen=True)
class InterfaceRate:
    """Throughput of one interface between two snapshots."""

    name: str
    type: str
    rx_speed: float  # kB/s
    tx_speed: float
    rx_bytes: int  # Raw deltas
    tx_bytes: int
    baseline: InterfaceRecord
    current: InterfaceRecord


@dataclass(slots=True)
class TrafficTotal:
    """Summed throughput of all interfaces of one type."""

    rx_speed: float = 0.0
    tx_speed: float = 0.0


@dataclass(slots=True, frozen=True)
class CoreUsage:
    """Utilisation of one CPU core between two counter readings."""

    index: int
    percent: float
    times: Mapping[str, float]  # Percent of elapsed ticks per counter
