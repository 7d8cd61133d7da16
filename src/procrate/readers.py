"""Snapshot readers for the process table and the interface table."""

import asyncio
import logging
import os
from pathlib import Path
from types import MappingProxyType

import psutil

from procrate.errors import MalformedRecordError, SourceUnavailableError
from procrate.models import (
    InterfaceRecord,
    MemoryFootprint,
    ProcessRecord,
    ReceiveCounters,
    SampleKind,
    Snapshot,
    TransmitCounters,
    Uptime,
)
from procrate.parser import (
    RawRecord,
    executable_name,
    join_cmdline,
    parse_net_dev_line,
    parse_stat_line,
    parse_uptime,
    state_label,
)

logger = logging.getLogger(__name__)

DEFAULT_PROC_ROOT = Path("/proc")
NET_DEV_HEADER_LINES = 2


async def _read_required(path: Path) -> str:
    try:
        return await asyncio.to_thread(path.read_text)
    except OSError as exc:
        raise SourceUnavailableError(f"Cannot read {path}: {exc}") from exc


async def read_uptime(proc_root: Path = DEFAULT_PROC_ROOT) -> Uptime:
    """Read the kernel's monotonic uptime and accumulated idle time."""
    up, idle_total = parse_uptime(await _read_required(proc_root / "uptime"))
    cpus = psutil.cpu_count() or 1
    return Uptime(up=up, idle=idle_total / cpus, idle_total=idle_total)


def _int_field(raw: RawRecord, name: str) -> int:
    value = raw.get(name, 0)
    return int(value) if isinstance(value, (int, float)) else 0


def build_process_record(pid: int, raw: RawRecord, command: str, page_size: int) -> ProcessRecord:
    """Build a typed process record from parsed stat fields."""
    pages = _int_field(raw, "rss")
    size = pages * page_size
    state = str(raw.get("state", ""))
    return ProcessRecord(
        pid=pid,
        ppid=_int_field(raw, "ppid"),
        executable=executable_name(str(raw.get("comm", ""))),
        command=command,
        state=state,
        state_label=state_label(state),
        utime=_int_field(raw, "utime"),
        stime=_int_field(raw, "stime"),
        cutime=_int_field(raw, "cutime"),
        cstime=_int_field(raw, "cstime"),
        nice=_int_field(raw, "nice"),
        num_threads=_int_field(raw, "num_threads"),
        memory=MemoryFootprint(
            pages=pages,
            page_size=page_size,
            bytes=size,
            mb=0 if pages == 0 else size / (1024 * 1024),
        ),
        raw=raw,
    )


def build_interface_record(name: str, raw: RawRecord) -> InterfaceRecord:
    """Build a typed interface record from parsed /proc/net/dev counters."""
    return InterfaceRecord(
        name=name,
        receive=ReceiveCounters(**{key[3:]: value for key, value in raw.items() if key.startswith("rx_")}),
        transmit=TransmitCounters(**{key[3:]: value for key, value in raw.items() if key.startswith("tx_")}),
        raw=raw,
    )


class ProcessReader:
    """
    Reads every /proc/<pid>/stat and cmdline into a process snapshot.

    Processes that exit between the directory listing and the read are
    skipped without complaint. Records that cannot be parsed are skipped
    with a warning.
    """

    kind = SampleKind.PROCESS

    def __init__(self, proc_root: Path = DEFAULT_PROC_ROOT) -> None:
        self._root = Path(proc_root)

    @property
    def root(self) -> Path:
        return self._root

    async def read(self, page_size: int) -> Snapshot:
        """
        Take a snapshot of all processes.

        Args:
            page_size: Bytes per page, used for the memory footprint.

        Raises:
            SourceUnavailableError: The process root or its uptime file
                cannot be read.
        """
        uptime = await read_uptime(self._root)
        try:
            entries = await asyncio.to_thread(os.listdir, self._root)
        except OSError as exc:
            raise SourceUnavailableError(f"Cannot list {self._root}: {exc}") from exc

        pids = sorted(int(entry) for entry in entries if entry.isdigit())
        results = await asyncio.gather(*(self._read_process(pid, page_size) for pid in pids))
        records = {record.pid: record for record in results if record is not None}

        return Snapshot(
            kind=self.kind,
            records=MappingProxyType(records),
            uptime=uptime.up,
            page_size=page_size,
        )

    def _read_files(self, pid: int) -> tuple[bytes, str]:
        """Read cmdline and stat for one process (runs in a worker thread)."""
        directory = self._root / str(pid)
        cmdline = (directory / "cmdline").read_bytes()
        stat = (directory / "stat").read_bytes().decode("utf-8", errors="replace")
        return cmdline, stat

    async def _read_process(self, pid: int, page_size: int) -> ProcessRecord | None:
        try:
            cmdline, stat = await asyncio.to_thread(self._read_files, pid)
        except OSError:
            # Exited (or became unreadable) since the listing
            logger.debug("Process %d disappeared before it could be read", pid)
            return None

        try:
            raw = parse_stat_line(stat, pid=pid)
        except MalformedRecordError as exc:
            logger.warning("Skipping process %d: %s", pid, exc)
            return None

        return build_process_record(pid, raw, join_cmdline(cmdline), page_size)


class InterfaceReader:
    """Reads /proc/net/dev into an interface snapshot."""

    kind = SampleKind.INTERFACE

    def __init__(self, proc_root: Path = DEFAULT_PROC_ROOT) -> None:
        self._root = Path(proc_root)

    @property
    def root(self) -> Path:
        return self._root

    async def read(self) -> Snapshot:
        """
        Take a snapshot of all interface counters.

        Raises:
            SourceUnavailableError: The statistics file or uptime file cannot
                be read.
        """
        uptime = await read_uptime(self._root)
        text = await _read_required(self._root / "net" / "dev")

        records: dict[str, InterfaceRecord] = {}
        for line in text.splitlines()[NET_DEV_HEADER_LINES:]:
            if ":" not in line:
                continue
            try:
                name, raw = parse_net_dev_line(line)
            except MalformedRecordError as exc:
                logger.warning("Skipping interface line: %s", exc)
                continue
            records[name] = build_interface_record(name, raw)

        return Snapshot(kind=self.kind, records=MappingProxyType(records), uptime=uptime.up)
