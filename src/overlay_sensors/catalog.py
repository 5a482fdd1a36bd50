"""Sensor catalog indexer.

Classifies raw sensors into canonical metric keys using ordered
name/type rules.  Vendor sensor names are free text and unversioned, so
classification is case-insensitive substring matching with explicit
exclusion lists.  New naming patterns are additions to ``RULES``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from .metrics import MetricKey
from .model import GPU_TYPES, Device, HardwareType, Sensor, SensorType, walk

log = logging.getLogger(__name__)


def has(source: str, sub: str) -> bool:
    """Case-insensitive substring test; False when either side is empty."""
    if not source or not sub:
        return False
    return sub.lower() in source.lower()


def has_any(source: str, subs: Iterable[str]) -> bool:
    return any(has(source, s) for s in subs)


@dataclass(frozen=True)
class Rule:
    """Map sensors of some device and sensor types to a canonical key.

    A sensor matches when its name contains at least one ``any_of`` keyword
    (or ``any_of`` is empty), every ``all_of`` keyword, and none of the
    ``none_of`` keywords.  ``device_none_of`` is checked against the owning
    device's name.
    """

    key: MetricKey
    hardware_types: frozenset[HardwareType]
    sensor_types: frozenset[SensorType]
    any_of: tuple[str, ...] = ()
    all_of: tuple[str, ...] = ()
    none_of: tuple[str, ...] = ()
    device_none_of: tuple[str, ...] = ()

    def matches(self, device: Device, sensor: Sensor) -> bool:
        if device.hardware_type not in self.hardware_types:
            return False
        if sensor.sensor_type not in self.sensor_types:
            return False
        if has_any(device.name, self.device_none_of):
            return False
        name = sensor.name
        if self.any_of and not has_any(name, self.any_of):
            return False
        if not all(has(name, k) for k in self.all_of):
            return False
        return not has_any(name, self.none_of)


_CPU = frozenset({HardwareType.CPU})
_GPU = GPU_TYPES
_MEM = frozenset({HardwareType.MEMORY})
_BAT = frozenset({HardwareType.BATTERY})


def _types(*types: SensorType) -> frozenset[SensorType]:
    return frozenset(types)


CPU_TEMP_PRIMARY: tuple[str, ...] = ("package", "average", "tctl", "tdie", "ccd", "cores")
CPU_TEMP_EXCLUDED: tuple[str, ...] = (
    "soc", "vrm", "fan", "pump", "liquid", "coolant", "distance",
)

RULES: tuple[Rule, ...] = (
    # CPU
    Rule(MetricKey.CPU_LOAD, _CPU, _types(SensorType.LOAD), any_of=("total", "package")),
    Rule(MetricKey.CPU_TEMP, _CPU, _types(SensorType.TEMPERATURE), any_of=CPU_TEMP_PRIMARY),
    # Fallback for mobile parts that only expose a generic name.  This can
    # pick a single numbered core when no package sensor exists.
    Rule(
        MetricKey.CPU_TEMP,
        _CPU,
        _types(SensorType.TEMPERATURE),
        any_of=("cpu", "core"),
        none_of=CPU_TEMP_EXCLUDED,
    ),
    Rule(MetricKey.CPU_POWER, _CPU, _types(SensorType.POWER), any_of=("package", "cores")),
    # GPU
    Rule(MetricKey.GPU_LOAD, _GPU, _types(SensorType.LOAD), any_of=("core", "d3d 3d")),
    Rule(
        MetricKey.GPU_TEMP,
        _GPU,
        _types(SensorType.TEMPERATURE),
        any_of=("core", "hot spot", "soc", "vr"),
    ),
    Rule(
        MetricKey.GPU_VRAM_USED,
        _GPU,
        _types(SensorType.SMALL_DATA),
        any_of=("memory", "dedicated"),
        all_of=("used",),
    ),
    Rule(
        MetricKey.GPU_VRAM_TOTAL,
        _GPU,
        _types(SensorType.SMALL_DATA),
        any_of=("memory", "dedicated"),
        all_of=("total",),
    ),
    Rule(MetricKey.GPU_VRAM_LOAD, _GPU, _types(SensorType.LOAD), any_of=("memory",)),
    # Memory
    Rule(
        MetricKey.MEM_LOAD,
        _MEM,
        _types(SensorType.LOAD),
        any_of=("memory",),
        device_none_of=("virtual",),
    ),
    Rule(
        MetricKey.MEM_USED,
        _MEM,
        _types(SensorType.DATA, SensorType.SMALL_DATA),
        any_of=("used",),
        device_none_of=("virtual",),
    ),
    Rule(
        MetricKey.MEM_AVAILABLE,
        _MEM,
        _types(SensorType.DATA, SensorType.SMALL_DATA),
        any_of=("available",),
        device_none_of=("virtual",),
    ),
    # Battery
    Rule(MetricKey.BAT_PERCENT, _BAT, _types(SensorType.LEVEL)),
    Rule(MetricKey.BAT_VOLTAGE, _BAT, _types(SensorType.VOLTAGE)),
    Rule(MetricKey.BAT_POWER, _BAT, _types(SensorType.POWER)),
    Rule(MetricKey.BAT_CURRENT, _BAT, _types(SensorType.CURRENT)),
)


def classify(device: Device, sensor: Sensor, rules: Iterable[Rule] = RULES) -> MetricKey | None:
    """Return the canonical key of the first rule matching ``sensor``."""
    for rule in rules:
        if rule.matches(device, sensor):
            return rule.key
    return None


@dataclass
class SensorCatalog:
    """Result of one complete indexing pass over a device tree."""

    sensors: dict[MetricKey, Sensor] = field(default_factory=dict)

    # Per-core CPU clock sensors and the reference clock, for CPU.Clock
    core_clocks: list[Sensor] = field(default_factory=list)
    bus_speed: Sensor | None = None

    def get(self, key: MetricKey) -> Sensor | None:
        return self.sensors.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self.sensors

    def __len__(self) -> int:
        return len(self.sensors)


def build_catalog(devices: Iterable[Device], rules: Iterable[Rule] = RULES) -> SensorCatalog:
    """Index every sensor in the tree.

    The first sensor classified under a key wins; later matches for an
    already-resolved key are ignored.
    """
    rules = tuple(rules)
    catalog = SensorCatalog()

    for device in walk(devices):
        for sensor in device.sensors:
            if device.hardware_type is HardwareType.CPU and sensor.sensor_type is SensorType.CLOCK:
                if has(sensor.name, "bus"):
                    if catalog.bus_speed is None:
                        catalog.bus_speed = sensor
                elif has(sensor.name, "core"):
                    catalog.core_clocks.append(sensor)
                continue

            key = classify(device, sensor, rules)
            if key is not None and key not in catalog.sensors:
                catalog.sensors[key] = sensor

    log.debug(
        "Indexed %d metric keys, %d core clocks", len(catalog.sensors), len(catalog.core_clocks)
    )
    return catalog
