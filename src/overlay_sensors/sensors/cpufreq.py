"""CPU frequency readings from sysfs cpufreq interface.

Reads per-CPU scaling_cur_freq (KHz) and reports MHz.
"""

from __future__ import annotations

from pathlib import Path

from ..model import Sensor, SensorType
from .counters import read_int


class CpufreqReader:
    """Read current CPU frequencies from sysfs.

    Each monitored CPU gets a clock sensor named ``Core #{N}`` (1-based) with
    the current frequency in megahertz.
    """

    def __init__(
        self,
        cpu_indices: list[int],
        sysfs_root: str = "/sys/devices/system/cpu",
    ) -> None:
        self._cpu_indices = sorted(cpu_indices)
        root = Path(sysfs_root)
        self._paths = {
            idx: root / f"cpu{idx}" / "cpufreq" / "scaling_cur_freq"
            for idx in self._cpu_indices
        }
        self._sensors = [Sensor(SensorType.CLOCK, f"Core #{idx + 1}") for idx in self._cpu_indices]

    @property
    def sensors(self) -> list[Sensor]:
        """Return the clock sensors, ordered by CPU index."""
        return list(self._sensors)

    @classmethod
    def discover_cpufreq(cls, sysfs_root: str = "/sys/devices/system/cpu") -> list[int]:
        """Discover CPU indices that have a cpufreq/scaling_cur_freq file.

        Args:
            sysfs_root: Base path to the CPU sysfs directory.

        Returns:
            Sorted list of CPU indices with cpufreq support.
        """
        root = Path(sysfs_root)
        indices: list[int] = []

        if not root.is_dir():
            return indices

        for entry in sorted(root.iterdir()):
            if not entry.is_dir() or not entry.name.startswith("cpu"):
                continue
            suffix = entry.name[3:]
            if not suffix.isdigit():
                continue
            freq_file = entry / "cpufreq" / "scaling_cur_freq"
            if freq_file.exists():
                indices.append(int(suffix))

        return sorted(indices)

    def update(self) -> None:
        """Refresh every core clock; unreadable cores become None."""
        for idx, sensor in zip(self._cpu_indices, self._sensors, strict=True):
            raw = read_int(self._paths[idx])
            sensor.value = None if raw is None else raw / 1000.0
