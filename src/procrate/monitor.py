"""Background monitoring loop for procrate."""

import asyncio
import logging
import threading
from collections import deque
from dataclasses import dataclass
from queue import Queue

import psutil

from procrate.config import MonitorConfig
from procrate.models import CoreUsage, InterfaceRate, ProcessRate, TrafficTotal
from procrate.rates import compute_core_usage, compute_total_usage
from procrate.sampler import Sampler
from procrate.system import DiskUsage, LoadAverage, MemorySummary, disk_usage, load_average, memory_summary

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SystemReport:
    """Everything collected in one monitor cycle."""

    cores: list[CoreUsage]
    cpu_total: CoreUsage
    memory: MemorySummary
    load_avg: LoadAverage
    disks: list[DiskUsage]
    uptime_seconds: float
    processes: list[ProcessRate]
    spawned: list[int]
    interfaces: list[InterfaceRate]
    traffic_totals: dict[str, TrafficTotal]
    elapsed: float


class SystemMonitor:
    """
    Samples processes and interfaces in a daemon thread.

    Each cycle runs one sampling round on its own event loop and pushes a
    SystemReport to a thread-safe Queue. A failing cycle is logged and the
    loop carries on.
    """

    def __init__(
        self,
        update_queue: Queue[SystemReport],
        poll_rate: float = 2.0,
        config: MonitorConfig | None = None,
        sampler: Sampler | None = None,
    ) -> None:
        """
        Initialize the SystemMonitor.

        Args:
            update_queue: Thread-safe queue to push reports to.
            poll_rate: Seconds to wait between cycles. Default 2.0s.
            config: Sampling configuration.
            sampler: Sampler to use, built from ``config`` when omitted.
        """
        self._queue = update_queue
        self._poll_rate = max(0.1, poll_rate)
        self._sampler = sampler or Sampler(config)
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._cpu_history: deque[list[float]] = deque(maxlen=60)

    @property
    def poll_rate(self) -> float:
        return self._poll_rate

    @poll_rate.setter
    def poll_rate(self, value: float) -> None:
        self._poll_rate = max(0.1, value)  # Minimum 0.1 seconds

    @property
    def is_running(self) -> bool:
        """Check if the monitor thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the monitoring thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._poll_loop,
            daemon=True,
            name="SystemMonitor",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the monitoring thread.

        A cycle already sampling finishes before the thread exits.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _poll_loop(self) -> None:
        """Main polling loop running in the background thread."""
        while not self._stop_event.is_set():
            try:
                report = asyncio.run(self.collect())
                self._queue.put(report)
            except Exception:
                logger.exception("Monitor cycle failed")

            self._stop_event.wait(timeout=self._poll_rate)

    async def collect(self) -> SystemReport:
        """Run one sampling round: processes and interfaces side by side."""
        cpu_before = psutil.cpu_times(percpu=True)
        processes, network = await asyncio.gather(
            self._sampler.processes(),
            self._sampler.network(),
        )
        cpu_after = psutil.cpu_times(percpu=True)
        cores = compute_core_usage(cpu_before, cpu_after)
        self._cpu_history.append([core.percent for core in cores])

        uptime = await self._sampler.uptime()
        memory, load_avg, disks = await asyncio.gather(
            asyncio.to_thread(memory_summary),
            asyncio.to_thread(load_average),
            asyncio.to_thread(disk_usage),
        )

        return SystemReport(
            cores=cores,
            cpu_total=compute_total_usage(cpu_before, cpu_after),
            memory=memory,
            load_avg=load_avg,
            disks=disks,
            uptime_seconds=uptime.up,
            processes=list(processes.rates.values()),
            spawned=processes.spawned,
            interfaces=list(network.interfaces.values()),
            traffic_totals=network.totals,
            elapsed=processes.elapsed,
        )

    def get_cpu_history(self) -> list[list[float]]:
        """Get the per-core CPU history for sparkline rendering."""
        return list(self._cpu_history)
