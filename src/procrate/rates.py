"""Rate engine: turns two snapshots and an elapsed time into rates."""

from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

from procrate.errors import DegenerateIntervalError
from procrate.models import (
    CoreUsage,
    InterfaceRate,
    ProcessRate,
    Snapshot,
    TrafficTotal,
)

DEFAULT_SYS_NET_ROOT = Path("/sys/class/net")
DEFAULT_INTERFACE_TYPE = "physical"

# First marker present under /sys/class/net/<name>/ wins.
DEFAULT_RULES: tuple[tuple[str, str], ...] = (
    ("bridge", "bridge"),
    ("tun_flags", "tun/tap"),
    ("upper_docker0", "docker"),
)

# Already counted in user and nice on Linux.
_GUEST_FIELDS = frozenset({"guest", "guest_nice"})
_IDLE_FIELDS = frozenset({"idle", "iowait"})

# CoreUsage.index of the all-core aggregate.
ALL_CORES = -1


def _check_interval(elapsed: float) -> None:
    if elapsed <= 0:
        raise DegenerateIntervalError(elapsed)


def elapsed_between(baseline: Snapshot, current: Snapshot) -> float:
    """Seconds of kernel uptime between two snapshots."""
    return current.uptime - baseline.uptime


def spawned(baseline: Snapshot, current: Snapshot) -> list[Any]:
    """Identifiers that only exist in the later snapshot."""
    return sorted(set(current.records) - set(baseline.records))


def exited(baseline: Snapshot, current: Snapshot) -> list[Any]:
    """Identifiers that only exist in the earlier snapshot."""
    return sorted(set(baseline.records) - set(current.records))


def compute_process_rates(
    baseline: Snapshot,
    current: Snapshot,
    elapsed: float,
    clock_ticks: int,
) -> dict[int, ProcessRate]:
    """
    Compute CPU usage per process between two process snapshots.

    Processes missing from either snapshot have no baseline to compare
    against and get no entry. Percentages are relative to one core and are
    not clamped, so a multi-threaded process can exceed 100.

    Args:
        baseline: The earlier snapshot.
        current: The later snapshot.
        elapsed: Seconds between the two snapshots.
        clock_ticks: Kernel clock ticks per second.

    Raises:
        DegenerateIntervalError: ``elapsed`` is zero or negative.
        ValueError: ``clock_ticks`` is not positive.
    """
    _check_interval(elapsed)
    if clock_ticks <= 0:
        raise ValueError(f"clock_ticks must be positive, got {clock_ticks!r}")

    rates: dict[int, ProcessRate] = {}
    for pid, process in current.records.items():
        previous = baseline.records.get(pid)
        if previous is None:
            continue

        user = (process.user_ticks - previous.user_ticks) / clock_ticks
        system = (process.system_ticks - previous.system_ticks) / clock_ticks
        total = user + system
        rates[pid] = ProcessRate(
            pid=pid,
            process=process,
            user_seconds=user,
            system_seconds=system,
            total_seconds=total,
            user_percent=100 * user / elapsed,
            system_percent=100 * system / elapsed,
            total_percent=100 * total / elapsed,
        )
    return rates


def compute_interface_rates(
    baseline: Snapshot,
    current: Snapshot,
    elapsed: float,
    types: Mapping[str, str] | None = None,
) -> dict[str, InterfaceRate]:
    """
    Compute receive and transmit speed in kB/s per interface.

    Negative deltas from counter resets or wraparound are passed through.

    Args:
        baseline: The earlier snapshot.
        current: The later snapshot.
        elapsed: Seconds between the two snapshots.
        types: Interface name to device type, defaults to physical.

    Raises:
        DegenerateIntervalError: ``elapsed`` is zero or negative.
    """
    _check_interval(elapsed)
    types = types or {}

    rates: dict[str, InterfaceRate] = {}
    for name, interface in current.records.items():
        previous = baseline.records.get(name)
        if previous is None:
            continue

        rx_bytes = interface.receive.bytes - previous.receive.bytes
        tx_bytes = interface.transmit.bytes - previous.transmit.bytes
        rates[name] = InterfaceRate(
            name=name,
            type=types.get(name, DEFAULT_INTERFACE_TYPE),
            rx_speed=rx_bytes / 1024 / elapsed,
            tx_speed=tx_bytes / 1024 / elapsed,
            rx_bytes=rx_bytes,
            tx_bytes=tx_bytes,
            baseline=previous,
            current=interface,
        )
    return rates


def aggregate_by_type(rates: Iterable[InterfaceRate]) -> dict[str, TrafficTotal]:
    """Sum interface speeds per device type."""
    totals: dict[str, TrafficTotal] = {}
    for rate in rates:
        total = totals.setdefault(rate.type, TrafficTotal())
        total.rx_speed += rate.rx_speed
        total.tx_speed += rate.tx_speed
    return totals


class InterfaceClassifier:
    """
    Classifies network interfaces by marker files in sysfs.

    Rules are (marker, type) pairs checked in order; the first marker that
    exists decides the type. Interfaces without any marker are physical.
    """

    def __init__(
        self,
        sys_net_root: Path = DEFAULT_SYS_NET_ROOT,
        rules: Sequence[tuple[str, str]] = DEFAULT_RULES,
    ) -> None:
        self._root = Path(sys_net_root)
        self._rules = tuple(rules)

    def classify(self, name: str) -> str:
        """Return the device type of one interface."""
        directory = self._root / name
        for marker, interface_type in self._rules:
            if (directory / marker).exists():
                return interface_type
        return DEFAULT_INTERFACE_TYPE

    def classify_all(self, names: Iterable[str]) -> dict[str, str]:
        return {name: self.classify(name) for name in names}


def _deltas(before: Any, after: Any) -> dict[str, float]:
    return {
        name: getattr(after, name) - getattr(before, name)
        for name in after._fields
        if name not in _GUEST_FIELDS
    }


def _usage(index: int, deltas: Mapping[str, float]) -> CoreUsage:
    total = sum(deltas.values())
    if total <= 0:
        return CoreUsage(index=index, percent=0.0, times={name: 0.0 for name in deltas})

    idle = sum(delta for name, delta in deltas.items() if name in _IDLE_FIELDS)
    return CoreUsage(
        index=index,
        percent=100 * (total - idle) / total,
        times={name: 100 * delta / total for name, delta in deltas.items()},
    )


def compute_core_usage(
    baseline: Sequence[Any],
    current: Sequence[Any],
) -> list[CoreUsage]:
    """
    Compute per-core utilisation from two psutil.cpu_times(percpu=True) readings.

    A core whose counters did not advance reports 0 percent.
    """
    return [
        _usage(index, _deltas(before, after))
        for index, (before, after) in enumerate(zip(baseline, current))
    ]


def compute_total_usage(baseline: Sequence[Any], current: Sequence[Any]) -> CoreUsage:
    """Sum the ticks of every core into one figure indexed ``ALL_CORES``."""
    totals: dict[str, float] = {}
    for before, after in zip(baseline, current):
        for name, delta in _deltas(before, after).items():
            totals[name] = totals.get(name, 0.0) + delta
    return _usage(ALL_CORES, totals)
