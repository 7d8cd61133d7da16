"""Tests for the rate engine."""

from collections import namedtuple
from types import MappingProxyType

import pytest

from procrate.errors import DegenerateIntervalError
from procrate.models import (
    InterfaceRecord,
    MemoryFootprint,
    ProcessRecord,
    ReceiveCounters,
    SampleKind,
    Snapshot,
    TransmitCounters,
)
from procrate.rates import (
    ALL_CORES,
    DEFAULT_INTERFACE_TYPE,
    InterfaceClassifier,
    aggregate_by_type,
    compute_core_usage,
    compute_interface_rates,
    compute_process_rates,
    compute_total_usage,
    elapsed_between,
    exited,
    spawned,
)

CpuTimes = namedtuple("CpuTimes", ["user", "nice", "system", "idle", "iowait", "guest"])


def process(pid: int, utime: int = 0, stime: int = 0, cutime: int = 0, cstime: int = 0) -> ProcessRecord:
    return ProcessRecord(
        pid=pid,
        ppid=1,
        executable=f"proc{pid}",
        command="",
        state="S",
        state_label="Sleeping",
        utime=utime,
        stime=stime,
        cutime=cutime,
        cstime=cstime,
        nice=0,
        num_threads=1,
        memory=MemoryFootprint(pages=0, page_size=4096, bytes=0, mb=0),
        raw=MappingProxyType({}),
    )


def interface(name: str, rx: int, tx: int) -> InterfaceRecord:
    return InterfaceRecord(
        name=name,
        receive=ReceiveCounters(bytes=rx, packets=0, errs=0, drop=0, fifo=0, frame=0, compressed=0, multicast=0),
        transmit=TransmitCounters(bytes=tx, packets=0, errs=0, drop=0, fifo=0, colls=0, carrier=0, compressed=0),
        raw=MappingProxyType({}),
    )


def process_snapshot(*records: ProcessRecord, uptime: float = 0.0) -> Snapshot:
    return Snapshot(
        kind=SampleKind.PROCESS,
        records=MappingProxyType({record.pid: record for record in records}),
        uptime=uptime,
        page_size=4096,
    )


def interface_snapshot(*records: InterfaceRecord, uptime: float = 0.0) -> Snapshot:
    return Snapshot(
        kind=SampleKind.INTERFACE,
        records=MappingProxyType({record.name: record for record in records}),
        uptime=uptime,
    )


class TestComputeProcessRates:
    """Tests for compute_process_rates."""

    def test_user_time_scenario(self):
        """Test 10 extra user ticks over 5s at 100Hz is 2 percent."""
        baseline = process_snapshot(process(100, utime=10, stime=5))
        current = process_snapshot(process(100, utime=20, stime=5))

        rate = compute_process_rates(baseline, current, 5.0, 100)[100]

        assert rate.user_seconds == pytest.approx(0.1)
        assert rate.system_seconds == 0
        assert rate.total_seconds == pytest.approx(0.1)
        assert rate.total_percent == pytest.approx(2.0)
        assert rate.user_percent == pytest.approx(2.0)
        assert rate.system_percent == 0

    def test_children_ticks_are_included(self):
        """Test reaped children's time counts towards the parent."""
        baseline = process_snapshot(process(1, utime=0, cutime=0, stime=0, cstime=0))
        current = process_snapshot(process(1, utime=10, cutime=30, stime=5, cstime=15))

        rate = compute_process_rates(baseline, current, 1.0, 100)[1]

        assert rate.user_seconds == pytest.approx(0.4)
        assert rate.system_seconds == pytest.approx(0.2)
        assert rate.total_percent == pytest.approx(60.0)

    def test_percent_is_not_clamped(self):
        """Test a process using several cores reports more than 100 percent."""
        baseline = process_snapshot(process(1))
        current = process_snapshot(process(1, utime=350))

        rate = compute_process_rates(baseline, current, 1.0, 100)[1]

        assert rate.total_percent == pytest.approx(350.0)

    def test_non_decreasing_ticks_give_non_negative_percent(self):
        """Test growing or unchanged counters never produce a negative rate."""
        for before, after in [(0, 0), (5, 5), (5, 6), (0, 10_000)]:
            baseline = process_snapshot(process(1, utime=before))
            current = process_snapshot(process(1, utime=after))
            rate = compute_process_rates(baseline, current, 0.5, 100)[1]
            assert rate.user_percent >= 0

    def test_unmatched_identifiers_are_excluded(self):
        """Test new and exited processes have no rate entry."""
        baseline = process_snapshot(process(1), process(2))
        current = process_snapshot(process(1, utime=5), process(999, utime=50))

        rates = compute_process_rates(baseline, current, 1.0, 100)

        assert list(rates) == [1]
        assert 999 not in rates
        assert 2 not in rates

    def test_rate_carries_current_record(self):
        """Test each rate refers to the process as seen in the later snapshot."""
        latest = process(1, utime=5)
        rates = compute_process_rates(process_snapshot(process(1)), process_snapshot(latest), 1.0, 100)
        assert rates[1].process is latest

    @pytest.mark.parametrize("elapsed", [0, 0.0, -1, -0.5])
    def test_degenerate_interval(self, elapsed):
        """Test zero or negative elapsed time is rejected."""
        snapshot = process_snapshot(process(1))
        with pytest.raises(DegenerateIntervalError):
            compute_process_rates(snapshot, snapshot, elapsed, 100)

    def test_degenerate_interval_is_zero_division(self):
        """Test callers catching ZeroDivisionError also catch the interval error."""
        snapshot = process_snapshot(process(1))
        with pytest.raises(ZeroDivisionError):
            compute_process_rates(snapshot, snapshot, 0, 100)

    def test_invalid_clock_ticks(self):
        snapshot = process_snapshot(process(1))
        with pytest.raises(ValueError):
            compute_process_rates(snapshot, snapshot, 1.0, 0)


class TestComputeInterfaceRates:
    """Tests for compute_interface_rates."""

    def test_receive_scenario(self):
        """Test 1024 extra bytes over one second is 1 kB/s."""
        baseline = interface_snapshot(interface("eth0", 1000, 0))
        current = interface_snapshot(interface("eth0", 2024, 0))

        rate = compute_interface_rates(baseline, current, 1.0)["eth0"]

        assert rate.rx_speed == pytest.approx(1.0)
        assert rate.tx_speed == 0
        assert rate.rx_bytes == 1024
        assert rate.type == DEFAULT_INTERFACE_TYPE

    def test_rates_are_normalised_by_elapsed(self):
        baseline = interface_snapshot(interface("eth0", 0, 0))
        current = interface_snapshot(interface("eth0", 4096, 8192))

        rate = compute_interface_rates(baseline, current, 2.0)["eth0"]

        assert rate.rx_speed == pytest.approx(2.0)
        assert rate.tx_speed == pytest.approx(4.0)

    def test_counter_reset_passes_through(self):
        """Test a counter that went backwards yields a negative rate."""
        baseline = interface_snapshot(interface("eth0", 10_240, 0))
        current = interface_snapshot(interface("eth0", 0, 0))

        rate = compute_interface_rates(baseline, current, 1.0)["eth0"]

        assert rate.rx_speed == pytest.approx(-10.0)

    def test_types_are_applied(self):
        baseline = interface_snapshot(interface("docker0", 0, 0), interface("eth0", 0, 0))
        current = interface_snapshot(interface("docker0", 0, 0), interface("eth0", 0, 0))

        rates = compute_interface_rates(baseline, current, 1.0, {"docker0": "bridge"})

        assert rates["docker0"].type == "bridge"
        assert rates["eth0"].type == DEFAULT_INTERFACE_TYPE

    def test_unmatched_interfaces_are_excluded(self):
        baseline = interface_snapshot(interface("eth0", 0, 0), interface("gone", 0, 0))
        current = interface_snapshot(interface("eth0", 0, 0), interface("tun0", 0, 0))

        assert list(compute_interface_rates(baseline, current, 1.0)) == ["eth0"]

    def test_degenerate_interval(self):
        snapshot = interface_snapshot(interface("eth0", 0, 0))
        with pytest.raises(DegenerateIntervalError):
            compute_interface_rates(snapshot, snapshot, 0)


class TestSnapshotHelpers:
    """Tests for elapsed_between, spawned and exited."""

    def test_elapsed_between(self):
        baseline = process_snapshot(uptime=100.0)
        current = process_snapshot(uptime=101.25)
        assert elapsed_between(baseline, current) == pytest.approx(1.25)

    def test_spawned_and_exited(self):
        """Test identifiers present in only one snapshot are reported."""
        baseline = process_snapshot(process(1), process(2))
        current = process_snapshot(process(1), process(3), process(999))

        assert spawned(baseline, current) == [3, 999]
        assert exited(baseline, current) == [2]


class TestInterfaceClassifier:
    """Tests for InterfaceClassifier."""

    def test_defaults_to_physical(self, sys_net):
        (sys_net / "eth0").mkdir()
        assert InterfaceClassifier(sys_net).classify("eth0") == "physical"

    def test_missing_interface_directory(self, sys_net):
        """Test an interface without a sysfs entry is physical, not an error."""
        assert InterfaceClassifier(sys_net).classify("ghost0") == "physical"

    @pytest.mark.parametrize(
        ("marker", "expected"),
        [("bridge", "bridge"), ("tun_flags", "tun/tap"), ("upper_docker0", "docker")],
    )
    def test_markers(self, sys_net, marker, expected):
        directory = sys_net / "if0"
        directory.mkdir()
        (directory / marker).touch()

        assert InterfaceClassifier(sys_net).classify("if0") == expected

    def test_bridge_wins_over_other_markers(self, sys_net):
        """Test bridge is checked before the tunnel and docker markers."""
        directory = sys_net / "br0"
        directory.mkdir()
        for marker in ("upper_docker0", "tun_flags", "bridge"):
            (directory / marker).touch()

        assert InterfaceClassifier(sys_net).classify("br0") == "bridge"

    def test_custom_rules(self, sys_net):
        directory = sys_net / "veth1"
        directory.mkdir()
        (directory / "brport").mkdir()

        classifier = InterfaceClassifier(sys_net, rules=[("brport", "bridge member")])

        assert classifier.classify_all(["veth1", "eth0"]) == {"veth1": "bridge member", "eth0": "physical"}


class TestAggregateByType:
    """Tests for aggregate_by_type."""

    def test_sums_per_type(self):
        baseline = interface_snapshot(interface("eth0", 0, 0), interface("eth1", 0, 0), interface("br0", 0, 0))
        current = interface_snapshot(
            interface("eth0", 1024, 2048),
            interface("eth1", 1024, 0),
            interface("br0", 512, 512),
        )
        rates = compute_interface_rates(baseline, current, 1.0, {"br0": "bridge"})

        totals = aggregate_by_type(rates.values())

        assert set(totals) == {"physical", "bridge"}
        assert totals["physical"].rx_speed == pytest.approx(2.0)
        assert totals["physical"].tx_speed == pytest.approx(2.0)
        assert totals["bridge"].rx_speed == pytest.approx(0.5)

    def test_empty(self):
        assert aggregate_by_type([]) == {}


class TestComputeCoreUsage:
    """Tests for compute_core_usage."""

    def test_busy_and_idle_cores(self):
        baseline = [CpuTimes(0, 0, 0, 0, 0, 0), CpuTimes(10, 0, 0, 90, 0, 0)]
        current = [CpuTimes(60, 0, 20, 20, 0, 5), CpuTimes(10, 0, 0, 190, 0, 0)]

        cores = compute_core_usage(baseline, current)

        assert [core.index for core in cores] == [0, 1]
        assert cores[0].percent == pytest.approx(80.0)
        assert cores[0].times["user"] == pytest.approx(60.0)
        assert "guest" not in cores[0].times
        assert cores[1].percent == pytest.approx(0.0)

    def test_iowait_counts_as_idle(self):
        baseline = [CpuTimes(0, 0, 0, 0, 0, 0)]
        current = [CpuTimes(50, 0, 0, 25, 25, 0)]

        assert compute_core_usage(baseline, current)[0].percent == pytest.approx(50.0)

    def test_no_ticks_elapsed(self):
        """Test a core whose counters did not move reports zero."""
        times = [CpuTimes(1, 1, 1, 1, 1, 0)]
        assert compute_core_usage(times, times)[0].percent == 0.0


class TestComputeTotalUsage:
    """Tests for compute_total_usage."""

    def test_sums_ticks_across_cores(self):
        """Test one busy and one idle core average out over their summed ticks."""
        baseline = [CpuTimes(0, 0, 0, 0, 0, 0), CpuTimes(10, 0, 0, 90, 0, 0)]
        current = [CpuTimes(60, 0, 20, 20, 0, 5), CpuTimes(10, 0, 0, 190, 0, 0)]

        total = compute_total_usage(baseline, current)

        assert total.index == ALL_CORES
        assert total.percent == pytest.approx(40.0)
        assert total.times["user"] == pytest.approx(30.0)
        assert total.times["idle"] == pytest.approx(60.0)
        assert "guest" not in total.times

    def test_no_ticks_elapsed(self):
        times = [CpuTimes(1, 1, 1, 1, 1, 0), CpuTimes(2, 2, 2, 2, 2, 0)]
        assert compute_total_usage(times, times).percent == 0.0
