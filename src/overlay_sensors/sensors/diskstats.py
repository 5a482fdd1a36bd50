"""Disk throughput from /proc/diskstats.

Parses /proc/diskstats for whole-disk block devices and turns the
cumulative sector and busy-time counters into read/write rates and an
activity percentage.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from pathlib import Path
from typing import ClassVar

from ..model import Device, HardwareType, Sensor, SensorType
from .counters import CounterRate

# Field indices within a /proc/diskstats line (0-indexed after the device name).
# The line format is:
#   major minor name  rd_ios rd_merges rd_sectors rd_ticks
#                      wr_ios wr_merges wr_sectors wr_ticks
#                      ios_in_progress io_ticks weighted_ticks
#
# After splitting, the device name is at index 2.  Fields after the name:
#   [2] sectors read      (rd_sectors)
#   [6] sectors written   (wr_sectors)
#   [9] time spent doing I/O, ms (io_ticks)
_FIELD_READ_SECTORS = 2
_FIELD_WRITE_SECTORS = 6
_FIELD_IO_TICKS = 9

# /proc/diskstats always counts 512-byte sectors
_SECTOR_BYTES = 512


class DiskstatsReader:
    """Expose block devices as storage devices with throughput sensors.

    Each disk gets ``Read Rate`` and ``Write Rate`` (bytes per second) and
    ``Total Activity`` (percent of wall time spent on I/O).  The device name
    is the drive model from /sys/block when available.
    """

    _SENSORS: ClassVar[list[tuple[int, SensorType, str, float]]] = [
        (_FIELD_READ_SECTORS, SensorType.THROUGHPUT, "Read Rate", float(_SECTOR_BYTES)),
        (_FIELD_WRITE_SECTORS, SensorType.THROUGHPUT, "Write Rate", float(_SECTOR_BYTES)),
        (_FIELD_IO_TICKS, SensorType.LOAD, "Total Activity", 0.1),  # ms/s -> %
    ]

    def __init__(
        self,
        devices: list[str],
        proc_root: str = "/proc",
        block_root: str = "/sys/block",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._names = devices
        self._diskstats_path = Path(proc_root) / "diskstats"
        self._devices: list[Device] = []
        self._bindings: dict[str, list[tuple[int, CounterRate, Sensor]]] = {}

        for dev in devices:
            bindings = [
                (field_idx, CounterRate(scale=scale, clock=clock), Sensor(sensor_type, label))
                for field_idx, sensor_type, label, scale in self._SENSORS
            ]
            self._bindings[dev] = bindings
            model = _read_model(Path(block_root) / dev)
            self._devices.append(
                Device(
                    hardware_type=HardwareType.STORAGE,
                    name=f"{model} ({dev})" if model else dev,
                    identifier=f"disk/{dev}",
                    sensors=[sensor for _, _, sensor in bindings],
                )
            )

    @property
    def names(self) -> list[str]:
        return list(self._names)

    @property
    def devices(self) -> list[Device]:
        return list(self._devices)

    @classmethod
    def discover_devices(
        cls,
        proc_root: str = "/proc",
        skip_partitions: bool = True,
    ) -> list[str]:
        """Discover block devices listed in /proc/diskstats.

        Args:
            proc_root: Base path to the proc filesystem.
            skip_partitions: If True, skip devices whose name ends with a
                digit following a letter sequence (e.g. ``sda1``), keeping
                only whole-disk devices (e.g. ``sda``, ``nvme0n1``).

        Returns:
            Sorted list of device names.
        """
        diskstats_path = Path(proc_root) / "diskstats"
        devices: list[str] = []

        try:
            text = diskstats_path.read_text()
        except (FileNotFoundError, PermissionError):
            return devices

        for line in text.splitlines():
            parts = line.split()
            if len(parts) < 4:
                continue
            dev_name = parts[2]

            # Skip ram, loop, dm-, zram and optical devices
            if dev_name.startswith(("ram", "loop", "dm-", "zram", "sr")):
                continue

            if skip_partitions:
                # For standard sd*/vd* devices, skip partitions like sda1
                is_sd = dev_name[:2] in ("sd", "vd") and len(dev_name) > 3
                if is_sd and dev_name[-1].isdigit():
                    stripped = dev_name.rstrip("0123456789")
                    if stripped and stripped[-1].isalpha():
                        continue

                # For nvme/mmcblk: keep nvme0n1 but skip nvme0n1p1
                if dev_name.startswith("nvme") and "p" in dev_name.split("n", 1)[-1]:
                    continue
                if dev_name.startswith("mmcblk") and "p" in dev_name[6:]:
                    continue

            devices.append(dev_name)

        return sorted(set(devices))

    def _read_fields(self) -> dict[str, list[int]]:
        try:
            text = self._diskstats_path.read_text()
        except (FileNotFoundError, PermissionError):
            return {}

        dev_fields: dict[str, list[int]] = {}
        for line in text.splitlines():
            parts = line.split()
            if len(parts) < 7:
                continue
            dev_name = parts[2]
            if dev_name in self._bindings:
                try:
                    dev_fields[dev_name] = [int(p) for p in parts[3:]]
                except ValueError:
                    continue
        return dev_fields

    def update(self) -> None:
        """Sample every disk; rates read None until the second sample."""
        dev_fields = self._read_fields()
        for dev, bindings in self._bindings.items():
            fields = dev_fields.get(dev, [])
            for field_idx, rate, sensor in bindings:
                raw = fields[field_idx] if field_idx < len(fields) else None
                sensor.value = rate.update(raw)


def _read_model(block_dir: Path) -> str:
    try:
        return (block_dir / "device" / "model").read_text().strip()
    except (FileNotFoundError, PermissionError, NotADirectoryError):
        return ""
