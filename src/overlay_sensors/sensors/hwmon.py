"""Hardware monitor sensors from the sysfs hwmon interface.

Walks /sys/class/hwmon/hwmon*/ to discover temperature, fan, voltage,
current, power and clock inputs, groups them by chip, and converts the raw
integer values to Celsius, RPM, volts, amps, watts and MHz.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar

from ..model import Device, HardwareType, Sensor, SensorType
from .counters import read_int

# input prefix -> (sensor type, divisor)
_INPUT_KINDS: dict[str, tuple[SensorType, float]] = {
    "temp": (SensorType.TEMPERATURE, 1000.0),  # millidegrees
    "fan": (SensorType.FAN, 1.0),  # RPM
    "in": (SensorType.VOLTAGE, 1000.0),  # millivolts
    "curr": (SensorType.CURRENT, 1000.0),  # milliamps
    "power": (SensorType.POWER, 1_000_000.0),  # microwatts
    "freq": (SensorType.CLOCK, 1_000_000.0),  # Hz
}

_INPUT_RE = re.compile(r"^(temp|fan|in|curr|power|freq)(\d+)_(input|average)$")

_CHIP_TYPES: dict[str, HardwareType] = {
    "coretemp": HardwareType.CPU,
    "k10temp": HardwareType.CPU,
    "zenpower": HardwareType.CPU,
    "cpu_thermal": HardwareType.CPU,
    "amdgpu": HardwareType.GPU_AMD,
    "radeon": HardwareType.GPU_AMD,
    "nouveau": HardwareType.GPU_NVIDIA,
    "i915": HardwareType.GPU_INTEL,
    "xe": HardwareType.GPU_INTEL,
    "acpitz": HardwareType.MOTHERBOARD,
}

# Super I/O monitoring chips, reported under the motherboard's name
_SUPERIO_PREFIXES: tuple[str, ...] = ("nct", "it8", "f71", "w83", "asus", "dell_smm")

# Chips covered by other readers or not useful on an overlay
_SKIPPED_PREFIXES: tuple[str, ...] = (
    "nvme", "drivetemp", "bat", "adp", "ucsi", "iwlwifi", "r8169", "mt79",
)
_SKIPPED_NAMES: frozenset[str] = frozenset({"ac", "acad"})

# Raw labels that the metric rules would not recognise
_LABEL_ALIASES: dict[tuple[str, str], str] = {
    ("amdgpu", "edge"): "GPU Core",
    ("amdgpu", "junction"): "GPU Hot Spot",
    ("amdgpu", "mem"): "GPU Memory",
    ("amdgpu", "sclk"): "GPU Core",
    ("amdgpu", "mclk"): "GPU Memory",
    ("amdgpu", "ppt"): "GPU Package",
    ("nouveau", "temp1"): "GPU Core",
    ("nouveau", "power1"): "GPU Board",
}

_BYTES_PER_MB = 1_048_576.0


def classify_chip(name: str) -> HardwareType | None:
    """Map an hwmon chip name to the kind of device it monitors."""
    lowered = name.lower()
    if lowered in _SKIPPED_NAMES or lowered.startswith(_SKIPPED_PREFIXES):
        return None
    if lowered in _CHIP_TYPES:
        return _CHIP_TYPES[lowered]
    if lowered.startswith(_SUPERIO_PREFIXES):
        return HardwareType.SUPERIO
    return HardwareType.MOTHERBOARD


@dataclass(frozen=True)
class HwmonInput:
    """Description of a single hwmon input file."""

    path: Path  # Full path to the *_input / *_average file
    chip: str  # Contents of the hwmon device's "name" file
    kind: str  # "temp", "fan", "in", "curr", "power" or "freq"
    label: str  # Contents of *_label, or fallback index like "temp1"

    @property
    def sensor_type(self) -> SensorType:
        return _INPUT_KINDS[self.kind][0]

    def read(self) -> float | None:
        raw = read_int(self.path)
        if raw is None:
            return None
        return raw / _INPUT_KINDS[self.kind][1]


@dataclass(frozen=True)
class HwmonChip:
    """One hwmon directory and its inputs."""

    hwmon_dir: Path
    name: str
    hardware_type: HardwareType
    inputs: tuple[HwmonInput, ...]


def _read_label(path: Path, fallback: str) -> str:
    try:
        label = path.read_text().strip()
    except (FileNotFoundError, PermissionError):
        return fallback
    return label or fallback


class HwmonReader:
    """Expose hwmon chips as devices whose sensors refresh in place.

    amdgpu chips additionally get load and VRAM sensors from the PCI device
    directory (``gpu_busy_percent``, ``mem_info_vram_*``).
    """

    GPU_EXTRAS: ClassVar[list[tuple[str, SensorType, str, float]]] = [
        ("gpu_busy_percent", SensorType.LOAD, "GPU Core", 1.0),
        ("mem_busy_percent", SensorType.LOAD, "GPU Memory", 1.0),
        ("mem_info_vram_used", SensorType.SMALL_DATA, "GPU Memory Used", _BYTES_PER_MB),
        ("mem_info_vram_total", SensorType.SMALL_DATA, "GPU Memory Total", _BYTES_PER_MB),
    ]

    def __init__(self, chips: list[HwmonChip]) -> None:
        self._chips = chips
        self._bindings: list[tuple[Sensor, HwmonInput | tuple[Path, float]]] = []
        self._devices: list[Device] = []

        for chip in chips:
            sensors: list[Sensor] = []
            for inp in chip.inputs:
                alias = _LABEL_ALIASES.get((chip.name, inp.label.lower()), inp.label)
                sensor = Sensor(inp.sensor_type, alias)
                sensors.append(sensor)
                self._bindings.append((sensor, inp))

            if chip.name == "amdgpu":
                for filename, sensor_type, label, divisor in self.GPU_EXTRAS:
                    path = chip.hwmon_dir / "device" / filename
                    if path.exists():
                        sensor = Sensor(sensor_type, label)
                        sensors.append(sensor)
                        self._bindings.append((sensor, (path, divisor)))

            self._devices.append(
                Device(
                    hardware_type=chip.hardware_type,
                    name=chip.name,
                    identifier=f"hwmon/{chip.hwmon_dir.name}",
                    sensors=sensors,
                )
            )

    @property
    def devices(self) -> list[Device]:
        """Return one device per chip, in discovery order."""
        return list(self._devices)

    def devices_of(self, hardware_type: HardwareType) -> list[Device]:
        return [d for d in self._devices if d.hardware_type is hardware_type]

    @classmethod
    def discover_hwmon(cls, sysfs_root: str = "/sys/class/hwmon") -> list[HwmonChip]:
        """Walk sysfs to discover hwmon chips and their inputs.

        Args:
            sysfs_root: Base path to the hwmon class directory.

        Returns:
            Chips with at least one readable input, in directory order.
        """
        root = Path(sysfs_root)
        chips: list[HwmonChip] = []

        if not root.is_dir():
            return chips

        for hwmon_dir in sorted(root.iterdir()):
            if not hwmon_dir.is_dir():
                continue

            try:
                name = (hwmon_dir / "name").read_text().strip()
            except (FileNotFoundError, PermissionError):
                name = hwmon_dir.name

            hardware_type = classify_chip(name)
            if hardware_type is None:
                continue

            inputs: list[HwmonInput] = []
            seen: set[str] = set()
            for input_file in sorted(hwmon_dir.iterdir()):
                match = _INPUT_RE.match(input_file.name)
                if match is None:
                    continue
                kind, index, _ = match.groups()
                stem = f"{kind}{index}"
                # power*_input and power*_average can both exist
                if stem in seen:
                    continue
                seen.add(stem)
                label = _read_label(hwmon_dir / f"{stem}_label", stem)
                inputs.append(HwmonInput(path=input_file, chip=name, kind=kind, label=label))

            if inputs:
                chips.append(
                    HwmonChip(
                        hwmon_dir=hwmon_dir,
                        name=name,
                        hardware_type=hardware_type,
                        inputs=tuple(inputs),
                    )
                )

        return chips

    def update(self) -> None:
        """Re-read every input; unreadable inputs become None."""
        for sensor, source in self._bindings:
            if isinstance(source, HwmonInput):
                sensor.value = source.read()
            else:
                path, divisor = source
                raw = read_int(path)
                sensor.value = None if raw is None else raw / divisor
