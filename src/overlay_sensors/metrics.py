"""Canonical metric keys and resolution outcomes."""

from __future__ import annotations

import enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .model import Sensor


class MetricKey(enum.Enum):
    """Closed set of dot-namespaced metric identifiers."""

    CPU_LOAD = "CPU.Load"
    CPU_TEMP = "CPU.Temp"
    CPU_CLOCK = "CPU.Clock"
    CPU_POWER = "CPU.Power"

    GPU_LOAD = "GPU.Load"
    GPU_TEMP = "GPU.Temp"
    GPU_CLOCK = "GPU.Clock"
    GPU_POWER = "GPU.Power"
    GPU_VRAM = "GPU.VRAM"
    GPU_VRAM_USED = "GPU.VRAM.Used"
    GPU_VRAM_TOTAL = "GPU.VRAM.Total"
    GPU_VRAM_LOAD = "GPU.VRAM.Load"

    MEM_LOAD = "MEM.Load"
    MEM_USED = "MEM.Used"
    MEM_AVAILABLE = "MEM.Available"

    NET_UP = "NET.Up"
    NET_DOWN = "NET.Down"
    DISK_READ = "DISK.Read"
    DISK_WRITE = "DISK.Write"

    BAT_PERCENT = "BAT.Percent"
    BAT_POWER = "BAT.Power"
    BAT_VOLTAGE = "BAT.Voltage"
    BAT_CURRENT = "BAT.Current"

    MOBO_TEMP = "MOBO.Temp"
    FAN_SPEED = "FAN.Speed"

    @classmethod
    def parse(cls, key: str | MetricKey) -> MetricKey | None:
        """Return the key named by ``key``, or None if it is not a known metric."""
        if isinstance(key, MetricKey):
            return key
        try:
            return cls(key)
        except ValueError:
            return None

    @property
    def group(self) -> str:
        """Leading namespace, e.g. ``"CPU"`` for ``CPU.Temp``."""
        return self.value.split(".", 1)[0]


class Missing(enum.Enum):
    """Why a resolver produced no value this cycle."""

    NO_SENSOR = "no_sensor"  # nothing in the tree maps to the key
    NO_READING = "no_reading"  # sensor exists but has no value
    IMPLAUSIBLE = "implausible"  # reading exceeded a sanity bound
    NO_DEVICE = "no_device"  # no candidate device for a selector
    UNKNOWN_KEY = "unknown_key"
    PROVIDER_ERROR = "provider_error"
    DISABLED = "disabled"  # metric group switched off in settings


def read_sensor(sensor: Sensor | None) -> float | Missing:
    """Return a sensor's finite value, or the reason there is none."""
    if sensor is None:
        return Missing.NO_SENSOR
    value = sensor.value
    if value is None or value != value:  # NaN check
        return Missing.NO_READING
    return float(value)
