"""Field position tables for the fixed-order records under /proc."""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping


@dataclass(frozen=True, slots=True)
class RecordSchema:
    """Ordered field names of a whitespace-separated record.

    A field's position is its index in ``fields``.
    """

    name: str
    fields: tuple[str, ...]
    text_fields: frozenset[str] = frozenset()
    _positions: Mapping[str, int] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        positions = {name: index for index, name in enumerate(self.fields)}
        if len(positions) != len(self.fields):
            raise ValueError(f"Duplicate field names in schema {self.name!r}")
        object.__setattr__(self, "_positions", MappingProxyType(positions))

    @property
    def field_count(self) -> int:
        return len(self.fields)

    def field_index(self, name: str) -> int:
        return self._positions[name]


# /proc/<pid>/stat, see proc(5). 52 fields as of Linux 3.5.
STAT_SCHEMA = RecordSchema(
    name="stat",
    fields=(
        "pid",
        "comm",
        "state",
        "ppid",
        "pgrp",
        "session",
        "tty_nr",
        "tpgid",
        "flags",
        "minflt",
        "cminflt",
        "majflt",
        "cmajflt",
        "utime",
        "stime",
        "cutime",
        "cstime",
        "priority",
        "nice",
        "num_threads",
        "itrealvalue",
        "starttime",
        "vsize",
        "rss",
        "rsslim",
        "startcode",
        "endcode",
        "startstack",
        "kstkesp",
        "kstkeip",
        "signal",
        "blocked",
        "sigignore",
        "sigcatch",
        "wchan",
        "nswap",
        "cnswap",
        "exit_signal",
        "processor",
        "rt_priority",
        "policy",
        "delayacct_blkio_ticks",
        "guest_time",
        "cguest_time",
        "start_data",
        "end_data",
        "start_brk",
        "arg_start",
        "arg_end",
        "env_start",
        "env_end",
        "exit_code",
    ),
    text_fields=frozenset({"comm", "state"}),
)

STAT_FIELD_COUNT = STAT_SCHEMA.field_count

# Numeric columns of one /proc/net/dev line, after the "name:" prefix.
NET_DEV_SCHEMA = RecordSchema(
    name="net/dev",
    fields=(
        "rx_bytes",
        "rx_packets",
        "rx_errs",
        "rx_drop",
        "rx_fifo",
        "rx_frame",
        "rx_compressed",
        "rx_multicast",
        "tx_bytes",
        "tx_packets",
        "tx_errs",
        "tx_drop",
        "tx_fifo",
        "tx_colls",
        "tx_carrier",
        "tx_compressed",
    ),
)
