"""Configuration for the metric engine and the refresh loop."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_METRICS: tuple[str, ...] = (
    "CPU.Load",
    "CPU.Temp",
    "CPU.Clock",
    "CPU.Power",
    "GPU.Load",
    "GPU.Temp",
    "GPU.VRAM",
    "MEM.Load",
    "NET.Up",
    "NET.Down",
    "DISK.Read",
    "DISK.Write",
)


@dataclass
class EngineSettings:
    """Settings the engine reads and, for learned values, writes back.

    Loading and saving these values is the caller's job; the engine only
    updates the learned fields in memory.
    """

    # Metric groups ("CPU", "GPU", "MEM", "NET", "DISK", "BAT", ...) to resolve
    enabled_groups: set[str] = field(
        default_factory=lambda: {"CPU", "GPU", "MEM", "NET", "DISK", "BAT", "MOBO", "FAN"}
    )

    # Read CPU.Load from the OS utilization counter instead of sensors
    use_system_cpu_load: bool = False

    # Synthesize battery readings for UI testing without battery hardware
    simulate_battery: bool = False

    # Manual device overrides (empty = auto-select)
    preferred_network: str = ""
    preferred_disk: str = ""

    # Smart names picked from list_all_mobo_temps() / list_all_fans()
    preferred_mobo_temp: str = ""
    preferred_fan: str = ""

    # Devices chosen by the last automatic scan, kept across restarts
    last_auto_network: str = ""
    last_auto_disk: str = ""

    # Totals detected on first successful read (0 = not detected yet)
    detected_ram_total_gb: float = 0.0
    detected_gpu_vram_total_gb: float = 0.0

    # Running maxima per metric key, used for UI range scaling
    max_records: dict[str, float] = field(default_factory=dict)

    def is_enabled(self, group: str) -> bool:
        return group in self.enabled_groups

    def update_max_record(self, key: str, value: float) -> None:
        """Raise the stored maximum for ``key`` if ``value`` exceeds it."""
        if value > self.max_records.get(key, 0.0):
            self.max_records[key] = value


@dataclass
class MonitorConfig:
    """Runtime configuration for the refresh loop."""

    # Refresh interval in seconds
    interval: float = 1.0

    # Maximum run duration in seconds (0 = unlimited)
    duration: int = 0

    # Display smoothing factor per tick (>= 0.9 disables smoothing)
    smoothing: float = 0.35

    # Metrics to resolve and print, in display order
    metrics: list[str] = field(default_factory=lambda: list(DEFAULT_METRICS))

    # Compact one-line output instead of one line per metric
    horizontal: bool = False

    # Filesystem roots, overridable for testing
    sysfs_root: Path = field(default_factory=lambda: Path("/sys"))
    proc_root: Path = field(default_factory=lambda: Path("/proc"))

    # Print selectable device and sensor names instead of running the loop
    list_only: bool = False

    # Debug logging to stderr
    verbose: bool = False

    settings: EngineSettings = field(default_factory=EngineSettings)

    def __post_init__(self) -> None:
        self.sysfs_root = Path(self.sysfs_root)
        self.proc_root = Path(self.proc_root)
