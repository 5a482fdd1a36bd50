"""CPU and memory metrics from /proc/stat, /proc/meminfo and /proc/cpuinfo.

CPU utilization is delta-based: per-core and total load percentages are
computed from the jiffy counters of two successive ``update()`` calls.
"""

from __future__ import annotations

import contextlib
from pathlib import Path
from typing import ClassVar

from ..model import Sensor, SensorType

_KB_PER_GB = 1_048_576.0

CpuTimes = tuple[int, int, int, int, int, int, int, int, int, int]


def parse_cpu_line(line: str) -> CpuTimes:
    """Parse a ``cpu`` or ``cpuN`` line from /proc/stat.

    Fields (all in jiffies):
        user, nice, system, idle, iowait, irq, softirq, steal, guest,
        guest_nice

    Returns:
        Tuple of 10 ints.
    """
    parts = line.split()
    # parts[0] == "cpu" / "cpuN"; parts[1:] are the counters
    values = [int(p) for p in parts[1:11]]
    # Pad with zeros if the kernel exposes fewer fields
    while len(values) < 10:
        values.append(0)
    return (
        values[0],
        values[1],
        values[2],
        values[3],
        values[4],
        values[5],
        values[6],
        values[7],
        values[8],
        values[9],
    )


def busy_percent(prev: CpuTimes, cur: CpuTimes) -> float | None:
    """Return the non-idle share of the interval between two samples."""
    # guest and guest_nice are already included in user and nice
    d_total = sum(cur[:8]) - sum(prev[:8])
    if d_total <= 0:
        return None
    d_idle = (cur[3] + cur[4]) - (prev[3] + prev[4])  # idle + iowait
    return max(0.0, min(100.0, (d_total - d_idle) / d_total * 100.0))


class ProcfsCpuReader:
    """Per-core and total CPU load from /proc/stat.

    Cores appear as ``CPU Core #{N}`` (1-based) and the aggregate line as
    ``CPU Total``.  Until two samples have been taken every load reads None.
    """

    def __init__(self, proc_root: str = "/proc") -> None:
        self._stat_path = Path(proc_root) / "stat"
        self._cpuinfo_path = Path(proc_root) / "cpuinfo"
        self._prev: dict[str, CpuTimes] = {}

        self.total = Sensor(SensorType.LOAD, "CPU Total")
        self._cores: dict[str, Sensor] = {}
        for label in self._read_stat():
            if label != "cpu":
                self._cores[label] = Sensor(SensorType.LOAD, f"CPU Core #{int(label[3:]) + 1}")

    @property
    def sensors(self) -> list[Sensor]:
        """Return the per-core sensors followed by the total."""
        return [*self._cores.values(), self.total]

    def model_name(self) -> str:
        """Return the CPU model from /proc/cpuinfo, or a generic name."""
        try:
            text = self._cpuinfo_path.read_text()
        except (FileNotFoundError, PermissionError):
            return "CPU"
        for line in text.splitlines():
            key, _, value = line.partition(":")
            if key.strip() in ("model name", "Model", "Hardware") and value.strip():
                return value.strip()
        return "CPU"

    def _read_stat(self) -> dict[str, CpuTimes]:
        try:
            text = self._stat_path.read_text()
        except (FileNotFoundError, PermissionError):
            return {}

        samples: dict[str, CpuTimes] = {}
        for line in text.splitlines():
            if not line.startswith("cpu"):
                continue
            label = line.split(maxsplit=1)[0]
            if label != "cpu" and not label[3:].isdigit():
                continue
            with contextlib.suppress(ValueError):
                samples[label] = parse_cpu_line(line)
        return samples

    def update(self) -> None:
        """Take one sample and refresh every load sensor."""
        samples = self._read_stat()
        for label, sensor in [("cpu", self.total), *self._cores.items()]:
            cur = samples.get(label)
            prev = self._prev.get(label)
            sensor.value = None if cur is None or prev is None else busy_percent(prev, cur)
        self._prev = samples


class MeminfoReader:
    """Memory load and usage from /proc/meminfo.

    ``Memory`` is the used percentage; ``Memory Used`` and
    ``Memory Available`` are in gigabytes.
    """

    _FIELDS: ClassVar[tuple[str, ...]] = ("MemTotal:", "MemAvailable:", "MemFree:")

    def __init__(self, proc_root: str = "/proc") -> None:
        self._meminfo_path = Path(proc_root) / "meminfo"
        self.load = Sensor(SensorType.LOAD, "Memory")
        self.used = Sensor(SensorType.DATA, "Memory Used")
        self.available = Sensor(SensorType.DATA, "Memory Available")

    @property
    def sensors(self) -> list[Sensor]:
        return [self.load, self.used, self.available]

    def _read_meminfo(self) -> dict[str, int]:
        """Parse /proc/meminfo for the selected fields (kB)."""
        try:
            text = self._meminfo_path.read_text()
        except (FileNotFoundError, PermissionError):
            return {}

        result: dict[str, int] = {}
        for line in text.splitlines():
            parts = line.split()
            if parts and parts[0] in self._FIELDS:
                with contextlib.suppress(IndexError, ValueError):
                    result[parts[0]] = int(parts[1])
        return result

    def update(self) -> None:
        fields = self._read_meminfo()
        total = fields.get("MemTotal:")
        # Kernels before 3.14 have no MemAvailable
        available = fields.get("MemAvailable:", fields.get("MemFree:"))
        if not total or available is None:
            for sensor in self.sensors:
                sensor.value = None
            return

        used = max(0, total - available)
        self.load.value = used / total * 100.0
        self.used.value = used / _KB_PER_GB
        self.available.value = available / _KB_PER_GB
