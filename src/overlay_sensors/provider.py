"""Telemetry providers: where the device/sensor tree comes from.

:class:`SysfsProvider` builds the tree from Linux sysfs and procfs and uses
psutil for the OS-level counters (system CPU utilization, AC line state and
the boot drive).  :class:`StaticProvider` serves a fixed tree and is handy
for replaying captured layouts.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

import psutil

from .battery import PowerStatus
from .model import Device, HardwareType
from .sensors.cpufreq import CpufreqReader
from .sensors.diskstats import DiskstatsReader
from .sensors.hwmon import HwmonChip, HwmonReader
from .sensors.network import NetworkReader
from .sensors.power_supply import PowerSupply, PowerSupplyReader
from .sensors.procfs import MeminfoReader, ProcfsCpuReader
from .sensors.rapl import RaplDomain, RaplReader

log = logging.getLogger(__name__)


class ProviderError(RuntimeError):
    """The provider could not enumerate or refresh its devices."""


class TelemetryProvider(Protocol):
    """Source of the live device/sensor tree.

    ``update()`` refreshes sensor values in place and may replace the device
    list when hardware appears or disappears.  Providers may also offer
    ``system_cpu_load()``, ``power_status()`` and ``system_drive()``; the
    engine looks these up with ``getattr``.
    """

    def devices(self) -> Sequence[Device]: ...

    def update(self) -> None: ...


class StaticProvider:
    """Serve a fixed device tree; values change only when callers set them."""

    def __init__(
        self,
        devices: Sequence[Device] = (),
        cpu_load: float | None = None,
        status: PowerStatus | None = None,
        drive: str = "",
    ) -> None:
        self._devices = list(devices)
        self.cpu_load = cpu_load
        self.status = status
        self.drive = drive
        self.update_count = 0

    def set_devices(self, devices: Sequence[Device]) -> None:
        self._devices = list(devices)

    def devices(self) -> list[Device]:
        return list(self._devices)

    def update(self) -> None:
        self.update_count += 1

    def system_cpu_load(self) -> float | None:
        return self.cpu_load

    def power_status(self) -> PowerStatus | None:
        return self.status

    def system_drive(self) -> str:
        return self.drive


@dataclass
class Inventory:
    """Everything discovered about this machine's sensors on one scan."""

    hwmon_chips: list[HwmonChip] = field(default_factory=list)
    cpufreq_cpus: list[int] = field(default_factory=list)
    rapl_domains: list[RaplDomain] = field(default_factory=list)
    net_interfaces: list[str] = field(default_factory=list)
    disk_devices: list[str] = field(default_factory=list)
    power_supplies: list[PowerSupply] = field(default_factory=list)


class SysfsProvider:
    """Build the device tree from sysfs/procfs and refresh it each cycle.

    The tree is laid out as::

        CPU (model name)      per-core loads, temperatures, power, clocks
        Generic Memory        load, used, available
        <gpu hwmon chips>     one device per GPU
        <board name>          Super I/O and ACPI chips as sub-devices
        <network interfaces>  upload/download throughput
        <disks>               read/write throughput
        <batteries>           charge level, voltage, power, current

    Hardware is re-discovered every ``rescan_interval`` seconds; readers
    (and so device objects) are only rebuilt when the inventory changed.
    """

    def __init__(
        self,
        sysfs_root: str | Path = "/sys",
        proc_root: str | Path = "/proc",
        rescan_interval: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._sysfs = Path(sysfs_root)
        self._proc = Path(proc_root)
        self._rescan_interval = rescan_interval
        self._clock = clock

        self._inventory: Inventory | None = None
        self._last_scan = float("-inf")
        self._readers: list[object] = []
        self._devices: list[Device] = []
        self._power: PowerSupplyReader | None = None
        self._drive: str | None = None

        # Prime the utilization counter; the first call always returns 0.0
        psutil.cpu_percent(interval=None)

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def discover(self) -> Inventory:
        """Walk sysfs/procfs for every supported sensor source."""
        sysfs = self._sysfs
        try:
            return Inventory(
                hwmon_chips=HwmonReader.discover_hwmon(str(sysfs / "class" / "hwmon")),
                cpufreq_cpus=CpufreqReader.discover_cpufreq(
                    str(sysfs / "devices" / "system" / "cpu")
                ),
                rapl_domains=RaplReader.discover_rapl(str(sysfs / "class" / "powercap")),
                net_interfaces=NetworkReader.discover_interfaces(str(sysfs / "class" / "net")),
                disk_devices=DiskstatsReader.discover_devices(str(self._proc)),
                power_supplies=PowerSupplyReader.discover_supplies(
                    str(sysfs / "class" / "power_supply")
                ),
            )
        except OSError as e:
            raise ProviderError(f"sensor discovery failed under {sysfs}: {e}") from e

    def _board_name(self) -> str:
        dmi = self._sysfs / "class" / "dmi" / "id"
        parts: list[str] = []
        for filename in ("board_vendor", "board_name"):
            try:
                value = (dmi / filename).read_text().strip()
            except (FileNotFoundError, PermissionError):
                continue
            if value and value not in parts:
                parts.append(value)
        return " ".join(parts) or "Motherboard"

    def _build(self, inventory: Inventory) -> None:
        sysfs = self._sysfs
        proc = str(self._proc)

        hwmon = HwmonReader(inventory.hwmon_chips)
        cpu_load = ProcfsCpuReader(proc)
        cpufreq = CpufreqReader(
            inventory.cpufreq_cpus, str(sysfs / "devices" / "system" / "cpu")
        )
        rapl = RaplReader(inventory.rapl_domains, clock=self._clock)
        memory = MeminfoReader(proc)
        network = NetworkReader(
            inventory.net_interfaces, str(sysfs / "class" / "net"), clock=self._clock
        )
        disks = DiskstatsReader(
            inventory.disk_devices, proc, str(sysfs / "block"), clock=self._clock
        )
        power = PowerSupplyReader(inventory.power_supplies)

        cpu_sensors = [*cpu_load.sensors]
        for chip in hwmon.devices_of(HardwareType.CPU):
            cpu_sensors.extend(chip.sensors)
        cpu_sensors.extend(rapl.sensors)
        cpu_sensors.extend(cpufreq.sensors)

        devices = [
            Device(HardwareType.CPU, cpu_load.model_name(), "cpu/0", cpu_sensors),
            Device(HardwareType.MEMORY, "Generic Memory", "memory/0", memory.sensors),
        ]
        for hardware_type in (HardwareType.GPU_NVIDIA, HardwareType.GPU_AMD, HardwareType.GPU_INTEL):
            devices.extend(hwmon.devices_of(hardware_type))

        board_chips = [
            *hwmon.devices_of(HardwareType.SUPERIO),
            *hwmon.devices_of(HardwareType.MOTHERBOARD),
        ]
        devices.append(
            Device(
                HardwareType.MOTHERBOARD,
                self._board_name(),
                "board/0",
                sub_devices=board_chips,
            )
        )
        devices.extend(network.devices)
        devices.extend(disks.devices)
        devices.extend(power.devices)

        self._readers = [hwmon, cpu_load, cpufreq, rapl, memory, network, disks, power]
        self._power = power
        self._devices = devices
        log.debug(
            "Built device tree: %d hwmon chips, %d interfaces, %d disks, %d batteries",
            len(inventory.hwmon_chips),
            len(inventory.net_interfaces),
            len(inventory.disk_devices),
            len(power.devices),
        )

    def _rescan_if_due(self) -> None:
        now = self._clock()
        if now - self._last_scan < self._rescan_interval:
            return
        self._last_scan = now
        inventory = self.discover()
        if inventory != self._inventory:
            if self._inventory is not None:
                log.info("Hardware inventory changed, rebuilding device tree")
            self._inventory = inventory
            self._build(inventory)

    # ------------------------------------------------------------------
    # TelemetryProvider
    # ------------------------------------------------------------------

    def devices(self) -> list[Device]:
        return list(self._devices)

    def update(self) -> None:
        """Rescan if due, then refresh every sensor value in place."""
        self._rescan_if_due()
        for reader in self._readers:
            reader.update()  # type: ignore[attr-defined]

    # ------------------------------------------------------------------
    # OS-level queries (psutil)
    # ------------------------------------------------------------------

    def system_cpu_load(self) -> float | None:
        """System-wide CPU utilization since the previous call, in percent."""
        return psutil.cpu_percent(interval=None)

    def power_status(self) -> PowerStatus | None:
        """Combine sysfs charging state with psutil's AC line report."""
        status = self._power.status() if self._power is not None else None
        battery = psutil.sensors_battery()
        if battery is None:
            return status

        plugged = bool(battery.power_plugged)
        if status is None:
            return PowerStatus(ac_online=plugged, charging=plugged and battery.percent < 100)
        return PowerStatus(ac_online=status.ac_online or plugged, charging=status.charging)

    def system_drive(self) -> str:
        """Kernel name of the disk holding the root filesystem, e.g. ``nvme0n1``."""
        if self._drive is None:
            self._drive = self._find_system_drive()
        return self._drive

    def _find_system_drive(self) -> str:
        for partition in psutil.disk_partitions(all=False):
            if partition.mountpoint != "/":
                continue
            name = Path(partition.device).name
            block = self._sysfs / "class" / "block" / name
            if (block / "partition").exists():
                # /sys/class/block/sda1 -> .../block/sda/sda1
                return block.resolve().parent.name
            return name
        return ""
