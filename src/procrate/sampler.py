"""Sampling orchestrator: two snapshots, a fixed interval apart."""

import asyncio
import logging
from dataclasses import dataclass

import psutil

from procrate.config import MonitorConfig
from procrate.models import CoreUsage, InterfaceRate, ProcessRate, SampleKind, Snapshot, TrafficTotal, Uptime
from procrate.rates import (
    InterfaceClassifier,
    aggregate_by_type,
    compute_core_usage,
    compute_interface_rates,
    compute_process_rates,
    elapsed_between,
    exited,
    spawned,
)
from procrate.readers import InterfaceReader, ProcessReader, read_uptime
from procrate.sysconf import SystemConf

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class Sample:
    """Two snapshots of one kind plus everything needed to derive rates."""

    kind: SampleKind
    baseline: Snapshot
    current: Snapshot
    elapsed: float  # Kernel uptime seconds between the snapshots
    clock_ticks: int
    page_size: int | None = None


@dataclass(slots=True, frozen=True)
class ProcessReport:
    """CPU rates of the processes seen in both snapshots."""

    rates: dict[int, ProcessRate]
    spawned: list[int]  # New since the baseline, no rate yet
    exited: list[int]
    elapsed: float


@dataclass(slots=True, frozen=True)
class NetworkReport:
    """Interface throughput and per-type totals."""

    interfaces: dict[str, InterfaceRate]
    totals: dict[str, TrafficTotal]
    elapsed: float


class Sampler:
    """
    Takes two snapshots of the same kind a fixed interval apart.

    Elapsed time comes from the kernel uptime recorded in each snapshot,
    not from how long the sleep actually took. A failed read aborts the
    whole sample.
    """

    def __init__(
        self,
        config: MonitorConfig | None = None,
        sysconf: SystemConf | None = None,
    ) -> None:
        self._config = config or MonitorConfig()
        self._sysconf = sysconf or SystemConf(
            page_size=self._config.page_size,
            clock_ticks=self._config.clock_ticks,
        )
        self._processes = ProcessReader(self._config.proc_root)
        self._interfaces = InterfaceReader(self._config.proc_root)
        self._classifier = InterfaceClassifier(self._config.sys_net_root)

    @property
    def config(self) -> MonitorConfig:
        return self._config

    async def sample(self, kind: SampleKind, interval: float | None = None) -> Sample:
        """
        Take a baseline snapshot, wait, then take the current snapshot.

        Args:
            kind: Which table to sample.
            interval: Seconds to wait between snapshots, defaults to the
                configured sample interval.
        """
        interval = self._config.sample_interval if interval is None else interval
        clock_ticks = await self._sysconf.clock_ticks()

        if kind is SampleKind.PROCESS:
            page_size = await self._sysconf.page_size()
            baseline = await self._processes.read(page_size)
            await asyncio.sleep(interval)
            current = await self._processes.read(page_size)
        else:
            page_size = None
            baseline = await self._interfaces.read()
            await asyncio.sleep(interval)
            current = await self._interfaces.read()

        elapsed = elapsed_between(baseline, current)
        logger.debug(
            "Sampled %s: %d then %d records over %.3fs",
            kind.value,
            len(baseline),
            len(current),
            elapsed,
        )
        return Sample(
            kind=kind,
            baseline=baseline,
            current=current,
            elapsed=elapsed,
            clock_ticks=clock_ticks,
            page_size=page_size,
        )

    async def processes(self, interval: float | None = None) -> ProcessReport:
        """Sample the process table and compute CPU usage per process."""
        sample = await self.sample(SampleKind.PROCESS, interval)
        rates = compute_process_rates(sample.baseline, sample.current, sample.elapsed, sample.clock_ticks)
        return ProcessReport(
            rates=rates,
            spawned=spawned(sample.baseline, sample.current),
            exited=exited(sample.baseline, sample.current),
            elapsed=sample.elapsed,
        )

    async def network(self, interval: float | None = None) -> NetworkReport:
        """Sample the interface table and compute throughput per interface."""
        sample = await self.sample(SampleKind.INTERFACE, interval)
        types = await asyncio.to_thread(self._classifier.classify_all, list(sample.current.records))
        interfaces = compute_interface_rates(sample.baseline, sample.current, sample.elapsed, types)
        return NetworkReport(
            interfaces=interfaces,
            totals=aggregate_by_type(interfaces.values()),
            elapsed=sample.elapsed,
        )

    async def cpu(self, interval: float | None = None) -> list[CoreUsage]:
        """Per-core utilisation over one interval."""
        interval = self._config.sample_interval if interval is None else interval
        baseline = psutil.cpu_times(percpu=True)
        await asyncio.sleep(interval)
        return compute_core_usage(baseline, psutil.cpu_times(percpu=True))

    async def uptime(self) -> Uptime:
        return await read_uptime(self._config.proc_root)
