"""Shared mutable state of one engine instance.

Everything the refresh cycle writes and readers consult lives here, behind
a single re-entrant lock.  Critical sections are lookups and publishes
only; no sysfs I/O happens while the lock is held.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field

from .catalog import SensorCatalog
from .metrics import Missing, MetricKey
from .model import Device, Sensor


@dataclass
class DeviceSelection:
    """Auto-selection state for one ambiguous device class.

    ``cached_device`` is a device identifier, resolved against the current
    device list on every access.  A stale selection is simply an identifier
    that is no longer present.
    """

    cached_device: str | None = None
    last_scan: float = float("-inf")  # monotonic seconds

    def invalidate(self) -> None:
        self.cached_device = None


@dataclass
class EngineState:
    lock: threading.RLock = field(default_factory=threading.RLock)

    devices: tuple[Device, ...] = ()
    topology: tuple[tuple[str, str, int], ...] = ()
    catalog: SensorCatalog = field(default_factory=SensorCatalog)

    last_valid: dict[MetricKey, float] = field(default_factory=dict)

    # Per-scan memoizations, dropped by clear()
    cpu_load_sensors: list[Sensor] | None = None
    cpu_temp_sensors: list[Sensor] | None = None
    best_gpu: Device | None = None
    best_gpu_resolved: bool = False
    listings: dict[str, list[str]] = field(default_factory=dict)

    network: DeviceSelection = field(default_factory=DeviceSelection)
    disk: DeviceSelection = field(default_factory=DeviceSelection)

    def publish(
        self,
        devices: tuple[Device, ...],
        topology: tuple[tuple[str, str, int], ...],
        catalog: SensorCatalog,
    ) -> None:
        """Swap in a fully built catalog and its device list together."""
        with self.lock:
            self.devices = devices
            self.topology = topology
            self.catalog = catalog
            self.clear()

    def snapshot(self) -> tuple[tuple[Device, ...], SensorCatalog]:
        with self.lock:
            return self.devices, self.catalog

    def remember(self, key: MetricKey, value: float | Missing) -> float | None:
        """Record a fresh value, or fall back to the last one seen for ``key``."""
        with self.lock:
            if isinstance(value, Missing):
                return self.last_valid.get(key)
            self.last_valid[key] = value
            return value

    def clear(self) -> None:
        """Drop per-scan memoizations and listing caches."""
        with self.lock:
            self.cpu_load_sensors = None
            self.cpu_temp_sensors = None
            self.best_gpu = None
            self.best_gpu_resolved = False
            self.listings.clear()

    def reset(self) -> None:
        """Return to the freshly constructed state, except the lock."""
        with self.lock:
            self.devices = ()
            self.topology = ()
            self.catalog = SensorCatalog()
            self.last_valid.clear()
            self.network = DeviceSelection()
            self.disk = DeviceSelection()
            self.clear()
