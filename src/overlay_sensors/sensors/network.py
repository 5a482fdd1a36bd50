"""Network throughput from sysfs interface statistics.

Reads per-interface cumulative byte counters from
/sys/class/net/{iface}/statistics/ and reports upload and download rates.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from pathlib import Path

from ..model import Device, HardwareType, Sensor, SensorType
from .counters import CounterRate, read_int

_BYTES_PER_GB = 1_073_741_824.0

# Appended to software interfaces so adapter ranking can tell them apart
VIRTUAL_SUFFIX = " (Virtual Adapter)"


class NetworkReader:
    """Expose network interfaces as devices with throughput sensors.

    Each interface gets ``Upload Speed`` and ``Download Speed`` (bytes per
    second) plus ``Data Uploaded`` and ``Data Downloaded`` totals in GB.
    Interfaces whose sysfs entry lives under /sys/devices/virtual/ (bridges,
    veth, tunnels) keep their place in the list but are named with a
    ``(Virtual Adapter)`` suffix.
    """

    def __init__(
        self,
        interfaces: list[str],
        sysfs_root: str = "/sys/class/net",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        root = Path(sysfs_root)
        self._interfaces = interfaces
        self._devices: list[Device] = []
        self._bindings: list[tuple[Path, CounterRate, Sensor, Sensor]] = []

        for iface in interfaces:
            stats = root / iface / "statistics"
            up = Sensor(SensorType.THROUGHPUT, "Upload Speed")
            down = Sensor(SensorType.THROUGHPUT, "Download Speed")
            sent = Sensor(SensorType.DATA, "Data Uploaded")
            received = Sensor(SensorType.DATA, "Data Downloaded")
            self._bindings.append((stats / "tx_bytes", CounterRate(clock=clock), up, sent))
            self._bindings.append((stats / "rx_bytes", CounterRate(clock=clock), down, received))

            name = iface + VIRTUAL_SUFFIX if is_virtual_interface(root / iface) else iface
            self._devices.append(
                Device(
                    hardware_type=HardwareType.NETWORK,
                    name=name,
                    identifier=f"net/{iface}",
                    sensors=[up, down, sent, received],
                )
            )

    @property
    def interfaces(self) -> list[str]:
        return list(self._interfaces)

    @property
    def devices(self) -> list[Device]:
        return list(self._devices)

    @classmethod
    def discover_interfaces(
        cls,
        sysfs_root: str = "/sys/class/net",
        skip_loopback: bool = True,
    ) -> list[str]:
        """Discover network interfaces with statistics available in sysfs.

        Args:
            sysfs_root: Base path to the net class directory.
            skip_loopback: If True, exclude the ``lo`` interface.

        Returns:
            Sorted list of interface names.
        """
        root = Path(sysfs_root)
        interfaces: list[str] = []

        if not root.is_dir():
            return interfaces

        for entry in sorted(root.iterdir()):
            if not entry.is_dir():
                continue
            iface = entry.name

            if skip_loopback and iface == "lo":
                continue

            if not (entry / "statistics").is_dir():
                continue

            interfaces.append(iface)

        return sorted(interfaces)

    def update(self) -> None:
        """Sample byte counters; rates read None until the second sample."""
        for path, rate, speed, total in self._bindings:
            raw = read_int(path)
            speed.value = rate.update(raw)
            total.value = None if raw is None else raw / _BYTES_PER_GB


def is_virtual_interface(entry: Path) -> bool:
    """True if the interface's sysfs entry resolves under /devices/virtual/."""
    try:
        resolved = entry.resolve()
    except (OSError, ValueError):
        return False
    return "/devices/virtual/" in str(resolved)
