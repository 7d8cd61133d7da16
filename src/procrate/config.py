"""Runtime configuration for procrate."""

import os
from dataclasses import dataclass, replace
from pathlib import Path

ENV_PREFIX = "PROCRATE_"


@dataclass(frozen=True, slots=True)
class MonitorConfig:
    """Where to read counters from and how often."""

    proc_root: Path = Path("/proc")
    sys_net_root: Path = Path("/sys/class/net")
    sample_interval: float = 1.0  # Seconds between the two snapshots of a sample
    poll_rate: float = 2.0  # Seconds between monitor cycles
    page_size: int | None = None  # None: ask getconf
    clock_ticks: int | None = None

    def __post_init__(self) -> None:
        if self.sample_interval <= 0:
            raise ValueError(f"sample_interval must be positive, got {self.sample_interval!r}")

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "MonitorConfig":
        """Build a config from PROCRATE_* environment variables."""
        environ = dict(os.environ) if environ is None else environ
        config = cls()
        overrides: dict[str, object] = {}
        if value := environ.get(f"{ENV_PREFIX}PROC_ROOT"):
            overrides["proc_root"] = Path(value)
        if value := environ.get(f"{ENV_PREFIX}SYS_NET_ROOT"):
            overrides["sys_net_root"] = Path(value)
        if value := environ.get(f"{ENV_PREFIX}SAMPLE_INTERVAL"):
            overrides["sample_interval"] = float(value)
        if value := environ.get(f"{ENV_PREFIX}POLL_RATE"):
            overrides["poll_rate"] = float(value)
        return config.with_overrides(**overrides)

    def with_overrides(self, **overrides: object) -> "MonitorConfig":
        """Return a copy with every non-None override applied."""
        return replace(self, **{key: value for key, value in overrides.items() if value is not None})
