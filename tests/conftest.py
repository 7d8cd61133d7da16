"""Shared fixtures: a fake /proc and /sys/class/net tree under tmp_path."""

import logging
from pathlib import Path

import pytest

from procrate.models import CoreUsage
from procrate.monitor import SystemReport
from procrate.rates import ALL_CORES
from procrate.schema import STAT_SCHEMA
from procrate.system import LoadAverage, MemorySummary

NET_DEV_HEADER = (
    "Inter-|   Receive                                                |  Transmit\n"
    " face |bytes    packets errs drop fifo frame compressed multicast|"
    "bytes    packets errs drop fifo colls carrier compressed\n"
)


def make_stat_line(
    pid: int,
    comm: str = "bash",
    *,
    field_count: int = 52,
    **fields: int | str,
) -> str:
    """Build a /proc/<pid>/stat line with every unspecified field set to 0."""
    tokens = ["0"] * field_count
    tokens[STAT_SCHEMA.field_index("pid")] = str(pid)
    tokens[STAT_SCHEMA.field_index("comm")] = f"({comm})"
    tokens[STAT_SCHEMA.field_index("state")] = "S"
    tokens[STAT_SCHEMA.field_index("ppid")] = "1"
    for name, value in fields.items():
        index = STAT_SCHEMA.field_index(name)
        if index < field_count:
            tokens[index] = str(value)
    return " ".join(tokens) + "\n"


def make_net_dev_line(name: str, rx_bytes: int = 0, tx_bytes: int = 0) -> str:
    receive = [rx_bytes, 10, 0, 0, 0, 0, 0, 0]
    transmit = [tx_bytes, 10, 0, 0, 0, 0, 0, 0]
    return f"{name:>6}: " + " ".join(str(value) for value in receive + transmit) + "\n"


class FakeProc:
    """A writable stand-in for /proc."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.root.mkdir(parents=True, exist_ok=True)
        (self.root / "net").mkdir(exist_ok=True)
        self.set_uptime(100.0)
        self.set_interfaces({})

    def set_uptime(self, up: float, idle: float = 50.0) -> None:
        (self.root / "uptime").write_text(f"{up:.2f} {idle:.2f}\n")

    def add_process(self, pid: int, comm: str = "bash", cmdline: bytes = b"", **fields: int | str) -> Path:
        directory = self.root / str(pid)
        directory.mkdir(exist_ok=True)
        (directory / "cmdline").write_bytes(cmdline)
        (directory / "stat").write_text(make_stat_line(pid, comm, **fields))
        return directory

    def write_stat(self, pid: int, text: str) -> None:
        (self.root / str(pid) / "stat").write_text(text)

    def remove_process(self, pid: int) -> None:
        directory = self.root / str(pid)
        for child in directory.iterdir():
            child.unlink()
        directory.rmdir()

    def set_interfaces(self, counters: dict[str, tuple[int, int]], extra: str = "") -> None:
        lines = "".join(make_net_dev_line(name, rx, tx) for name, (rx, tx) in counters.items())
        (self.root / "net" / "dev").write_text(NET_DEV_HEADER + lines + extra)


@pytest.fixture
def fake_proc(tmp_path: Path) -> FakeProc:
    return FakeProc(tmp_path / "proc")


@pytest.fixture
def sys_net(tmp_path: Path) -> Path:
    root = tmp_path / "sys" / "class" / "net"
    root.mkdir(parents=True)
    return root


def make_report(**overrides) -> SystemReport:
    fields = dict(
        cores=[CoreUsage(index=0, percent=10.0, times={})],
        cpu_total=CoreUsage(index=ALL_CORES, percent=10.0, times={}),
        memory=MemorySummary(
            total=16 * 1024**3,
            used=8 * 1024**3,
            free=8 * 1024**3,
            available=8 * 1024**3,
            cached=0,
            buffers=0,
            percent=50.0,
            swap_total=4 * 1024**3,
            swap_used=0,
            swap_free=4 * 1024**3,
            swap_percent=0.0,
        ),
        load_avg=LoadAverage(1.0, 0.5, 0.25),
        disks=[],
        uptime_seconds=3600.0,
        processes=[],
        spawned=[],
        interfaces=[],
        traffic_totals={},
        elapsed=1.0,
    )
    fields.update(overrides)
    return SystemReport(**fields)


@pytest.fixture
def restore_logger():
    """Undo setup_logging so later tests can capture procrate records."""
    logger = logging.getLogger("procrate")
    handlers = list(logger.handlers)
    level = logger.level
    yield logger
    for handler in list(logger.handlers):
        if handler not in handlers:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(level)
    logger.propagate = True
