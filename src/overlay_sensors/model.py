"""Device/sensor tree consumed by the metric engine.

A telemetry provider exposes a list of :class:`Device` objects, each holding
its :class:`Sensor` readings.  The provider refreshes ``Sensor.value`` in
place between topology scans and creates new objects when the set of devices
changes.  The engine only reads these objects.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field


class SensorType(enum.Enum):
    """Kind of quantity a raw sensor reports."""

    LOAD = "load"  # percent
    TEMPERATURE = "temperature"  # degrees Celsius
    CLOCK = "clock"  # MHz
    POWER = "power"  # watts
    DATA = "data"  # GB
    SMALL_DATA = "small_data"  # MB
    THROUGHPUT = "throughput"  # bytes per second
    FAN = "fan"  # RPM
    VOLTAGE = "voltage"  # volts
    CURRENT = "current"  # amps
    LEVEL = "level"  # percent (battery charge)


class HardwareType(enum.Enum):
    """Kind of device a group of sensors belongs to."""

    CPU = "cpu"
    GPU_NVIDIA = "gpu_nvidia"
    GPU_AMD = "gpu_amd"
    GPU_INTEL = "gpu_intel"
    MEMORY = "memory"
    MOTHERBOARD = "motherboard"
    SUPERIO = "superio"
    STORAGE = "storage"
    NETWORK = "network"
    BATTERY = "battery"


GPU_TYPES: frozenset[HardwareType] = frozenset(
    {HardwareType.GPU_NVIDIA, HardwareType.GPU_AMD, HardwareType.GPU_INTEL}
)


@dataclass(eq=False)
class Sensor:
    """A single raw reading as supplied by the telemetry provider."""

    sensor_type: SensorType
    name: str
    value: float | None = None


@dataclass(eq=False)
class Device:
    """A hardware device with its sensors and nested sub-devices."""

    hardware_type: HardwareType
    name: str
    identifier: str = ""  # stable across value updates, e.g. "net/eth0"
    sensors: list[Sensor] = field(default_factory=list)
    sub_devices: list[Device] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.identifier:
            self.identifier = f"{self.hardware_type.value}/{self.name}"

    @property
    def is_gpu(self) -> bool:
        return self.hardware_type in GPU_TYPES

    def sensors_of(self, sensor_type: SensorType) -> Iterator[Sensor]:
        """Yield this device's sensors of the given type, in order."""
        return (s for s in self.sensors if s.sensor_type is sensor_type)


def walk(devices: Iterable[Device]) -> Iterator[Device]:
    """Depth-first iteration over devices and all of their sub-devices."""
    for device in devices:
        yield device
        yield from walk(device.sub_devices)


def topology_signature(devices: Iterable[Device]) -> tuple[tuple[str, str, int], ...]:
    """Return a hashable description of which devices and sensors exist.

    Two snapshots with the same signature have the same device set and the
    same number of sensors per device, so per-scan caches remain valid.
    """
    return tuple(
        (d.identifier, d.name, len(d.sensors)) for d in walk(devices)
    )
