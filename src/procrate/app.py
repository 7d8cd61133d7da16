"""procrate - Textual front end."""

import argparse
import logging
from enum import Enum
from pathlib import Path
from queue import Empty, Queue

from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal
from textual.css.query import NoMatches
from textual.widgets import DataTable, Footer, Static
from textual.widgets.data_table import CellDoesNotExist, DuplicateKey, RowDoesNotExist

from procrate.config import MonitorConfig
from procrate.log import setup_logging
from procrate.models import SPEED_UNIT, InterfaceRate, ProcessRate
from procrate.monitor import SystemMonitor, SystemReport

logger = logging.getLogger(__name__)


class SortKey(Enum):
    """Sort keys for the process table."""

    CPU = "cpu"
    MEM = "mem"
    PID = "pid"
    NAME = "name"


def format_bytes(size: float) -> str:
    """Format bytes as human-readable string."""
    for unit in ["B", "K", "M", "G", "T"]:
        if size < 1024:
            return f"{size:5.1f}{unit}" if unit != "B" else f"{int(size):5d}{unit}"
        size = size / 1024
    return f"{size:.1f}P"


def format_speed(speed: float) -> str:
    """Format a kB/s figure."""
    return f"{speed:8.1f} {SPEED_UNIT}"


def format_uptime(uptime: float) -> str:
    days = int(uptime // 86400)
    hours = int((uptime % 86400) // 3600)
    minutes = int((uptime % 3600) // 60)
    seconds = int(uptime % 60)
    if days > 0:
        return f"{days} days, {hours:02d}:{minutes:02d}:{seconds:02d}"
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def _bar(percent: float, colour: str) -> str:
    length = min(max(int(percent / 5), 0), 20)  # Cap at 20 chars
    return f"[{colour}]█[/{colour}]" * length + "[dim]░[/dim]" * (20 - length)


class HeaderStats(Static):
    """Header widget showing CPU, memory and traffic statistics."""

    DEFAULT_CSS = """
    HeaderStats {
        height: auto;
        min-height: 5;
        padding: 1;
        background: $surface;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._report: SystemReport | None = None

    def compose(self) -> ComposeResult:
        yield Horizontal(
            Static(self._get_cpu_info(), id="cpu-info"),
            Static(self._get_mem_info(), id="mem-info"),
        )

    def update_stats(self, report: SystemReport) -> None:
        """Update the statistics from a system report."""
        self._report = report
        try:
            self.query_one("#cpu-info", Static).update(self._get_cpu_info())
            self.query_one("#mem-info", Static).update(self._get_mem_info())
        except NoMatches:
            pass  # Not mounted yet

    def _get_cpu_info(self) -> str:
        if self._report is None or not self._report.cores:
            return "Loading CPU info..."
        # Escaped brackets for the bar container
        lines = [
            f"CPU{core.index:<2} \\[{_bar(core.percent, 'green')}] {core.percent:5.1f}%"
            for core in self._report.cores
        ]
        total = self._report.cpu_total.percent
        lines.append(f"Avg   \\[{_bar(total, 'bold green')}] {total:5.1f}%")
        return "\n".join(lines)

    def _get_mem_info(self) -> str:
        report = self._report
        if report is None or report.memory.total == 0:
            return "Loading memory info..."

        memory = report.memory
        load = report.load_avg
        lines = [
            f"Mem\\[{_bar(memory.percent, 'cyan')}] "
            f"{memory.used / 1024**3:.1f}G/{memory.total / 1024**3:.1f}G",
            f"Swp\\[{_bar(memory.swap_percent, 'yellow')}] "
            f"{memory.swap_used / 1024**3:.1f}G/{memory.swap_total / 1024**3:.1f}G",
            f"Load average: {load.min1:.2f} {load.min5:.2f} {load.min15:.2f}",
            f"Uptime: {format_uptime(report.uptime_seconds)}",
            f"Tasks: {len(report.processes)}, {len(report.spawned)} new",
        ]
        for disk in report.disks:
            lines.append(
                f"Disk {disk.mount_point}: {format_bytes(disk.used).strip()}/"
                f"{format_bytes(disk.total).strip()} ({disk.remaining:.1f}% free)"
            )
        for interface_type, total in sorted(report.traffic_totals.items()):
            lines.append(
                f"{interface_type}: rx {total.rx_speed:.1f} tx {total.tx_speed:.1f} {SPEED_UNIT}"
            )
        return "\n".join(lines)


class ProcessTable(Container):
    """Container for the process CPU rate table."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 2fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._current_pids: set[int] = set()
        self._sort_key: SortKey = SortKey.CPU
        self._sort_reverse: bool = True  # Default: descending for CPU

    @property
    def sort_key(self) -> SortKey:
        return self._sort_key

    def cycle_sort(self) -> SortKey:
        """Cycle to the next sort key and return it."""
        keys = list(SortKey)
        self._sort_key = keys[(keys.index(self._sort_key) + 1) % len(keys)]
        self._sort_reverse = self._sort_key in (SortKey.CPU, SortKey.MEM)
        return self._sort_key

    def compose(self) -> ComposeResult:
        yield DataTable(id="process-table")

    def on_mount(self) -> None:
        table = self.query_one("#process-table", DataTable)
        table.cursor_type = "row"

        table.add_column("PID", key="pid", width=8)
        table.add_column("PPID", key="ppid", width=8)
        table.add_column("S", key="state", width=3)
        table.add_column("CPU%", key="cpu", width=8)
        table.add_column("USR%", key="user", width=8)
        table.add_column("SYS%", key="system", width=8)
        table.add_column("RES", key="rss", width=8)
        table.add_column("THR", key="threads", width=5)
        table.add_column("NI", key="nice", width=4)
        table.add_column("Command", key="command")

    def update_processes(self, rates: list[ProcessRate]) -> None:
        """
        Update the process table with new rates.

        Uses update_cell for existing rows to avoid re-rendering the whole table.
        """
        table = self.query_one("#process-table", DataTable)
        sorted_rates = self._sort_rates(rates)
        new_pids = {rate.pid for rate in sorted_rates}

        for pid in self._current_pids - new_pids:
            try:
                table.remove_row(str(pid))
            except RowDoesNotExist:
                pass

        for rate in sorted_rates:
            row_key = str(rate.pid)
            if rate.pid in self._current_pids:
                self._update_row(table, row_key, rate)
            else:
                self._add_row(table, row_key, rate)

        self._current_pids = new_pids

    def _sort_rates(self, rates: list[ProcessRate]) -> list[ProcessRate]:
        key_func = {
            SortKey.CPU: lambda r: r.total_percent,
            SortKey.MEM: lambda r: r.process.memory.bytes,
            SortKey.PID: lambda r: r.pid,
            SortKey.NAME: lambda r: r.process.executable.lower(),
        }
        return sorted(rates, key=key_func[self._sort_key], reverse=self._sort_reverse)

    @staticmethod
    def _cells(rate: ProcessRate) -> tuple[str, ...]:
        process = rate.process
        return (
            str(rate.pid),
            str(process.ppid),
            process.state,
            f"{rate.total_percent:5.1f}",
            f"{rate.user_percent:5.1f}",
            f"{rate.system_percent:5.1f}",
            format_bytes(process.memory.bytes),
            str(process.num_threads),
            str(process.nice),
            (process.command or f"[{process.executable}]")[:50],
        )

    def _update_row(self, table: DataTable, row_key: str, rate: ProcessRate) -> None:
        columns = ("pid", "ppid", "state", "cpu", "user", "system", "rss", "threads", "nice", "command")
        try:
            for column, value in zip(columns, self._cells(rate)):
                table.update_cell(row_key, column, value)
        except CellDoesNotExist:
            pass  # Row was removed

    def _add_row(self, table: DataTable, row_key: str, rate: ProcessRate) -> None:
        try:
            table.add_row(*self._cells(rate), key=row_key)
        except DuplicateKey:
            pass


class InterfaceTable(Container):
    """Container for the interface throughput table."""

    DEFAULT_CSS = """
    InterfaceTable {
        height: 1fr;
        border: solid $secondary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._current_names: set[str] = set()

    def compose(self) -> ComposeResult:
        yield DataTable(id="interface-table")

    def on_mount(self) -> None:
        table = self.query_one("#interface-table", DataTable)
        table.cursor_type = "row"
        table.add_column("Interface", key="name", width=16)
        table.add_column("Type", key="type", width=10)
        table.add_column("RX", key="rx", width=14)
        table.add_column("TX", key="tx", width=14)

    def update_interfaces(self, rates: list[InterfaceRate]) -> None:
        """Update the interface table, keeping rows for interfaces still present."""
        table = self.query_one("#interface-table", DataTable)
        new_names = {rate.name for rate in rates}

        for name in self._current_names - new_names:
            try:
                table.remove_row(name)
            except RowDoesNotExist:
                pass

        for rate in sorted(rates, key=lambda r: r.name):
            cells = (rate.name, rate.type, format_speed(rate.rx_speed), format_speed(rate.tx_speed))
            if rate.name in self._current_names:
                try:
                    for column, value in zip(("name", "type", "rx", "tx"), cells):
                        table.update_cell(rate.name, column, value)
                except CellDoesNotExist:
                    pass  # Row was removed
            else:
                try:
                    table.add_row(*cells, key=rate.name)
                except DuplicateKey:
                    pass

        self._current_names = new_names


class ProcrateApp(App):
    """Main procrate application."""

    TITLE = "procrate"
    SUB_TITLE = "Process and network rates"

    CSS = """
    Screen {
        layout: vertical;
    }

    #header-stats {
        dock: top;
        height: auto;
        min-height: 6;
    }

    Horizontal {
        height: auto;
    }

    #cpu-info {
        width: 1fr;
        padding-right: 2;
    }

    #mem-info {
        width: 1fr;
        padding-left: 2;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("f6", "sort", "Sort"),
    ]

    def __init__(self, config: MonitorConfig | None = None) -> None:
        super().__init__()
        self._config = config or MonitorConfig()
        self._update_queue: Queue[SystemReport] = Queue()
        self._monitor = SystemMonitor(
            self._update_queue,
            poll_rate=self._config.poll_rate,
            config=self._config,
        )

    def compose(self) -> ComposeResult:
        yield HeaderStats(id="header-stats")
        yield ProcessTable()
        yield InterfaceTable()
        yield Footer()

    def on_mount(self) -> None:
        """Start the system monitor when the app is mounted."""
        self._monitor.start()
        self.set_interval(0.5, self._check_for_updates)

    def _check_for_updates(self) -> None:
        """Drain the queue and show the most recent report."""
        report = None
        while True:
            try:
                report = self._update_queue.get_nowait()
            except Empty:
                break

        if report is not None:
            self._update_ui(report)

    def _update_ui(self, report: SystemReport) -> None:
        self.query_one("#header-stats", HeaderStats).update_stats(report)
        self.query_one(ProcessTable).update_processes(report.processes)
        self.query_one(InterfaceTable).update_interfaces(report.interfaces)

    def action_sort(self) -> None:
        """Cycle through sort keys."""
        new_sort_key = self.query_one(ProcessTable).cycle_sort()
        self.notify(f"Sort: {new_sort_key.value.upper()}")

    def action_quit(self) -> None:
        """Stop the monitor and exit."""
        self._monitor.stop()
        self.exit()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="procrate",
        description="Live process CPU and network throughput from /proc",
    )
    parser.add_argument("--poll-rate", type=float, help="seconds between refreshes (default 2.0)")
    parser.add_argument(
        "--interval", type=float, dest="sample_interval", help="seconds between the two snapshots (default 1.0)"
    )
    parser.add_argument("--proc-root", type=Path, help="process information root (default /proc)")
    parser.add_argument("--sys-net-root", type=Path, help="interface sysfs root (default /sys/class/net)")
    parser.add_argument("--log-file", type=Path, help="write diagnostics to this file")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="diagnostic verbosity (default WARNING)",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Entry point for the procrate application."""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(getattr(logging, args.log_level), args.log_file)

    try:
        config = MonitorConfig.from_env().with_overrides(
            poll_rate=args.poll_rate,
            sample_interval=args.sample_interval,
            proc_root=args.proc_root,
            sys_net_root=args.sys_net_root,
        )
    except ValueError as e:
        parser.error(str(e))
    logger.info("Starting procrate with %s", config)
    ProcrateApp(config).run()


if __name__ == "__main__":
    main()
