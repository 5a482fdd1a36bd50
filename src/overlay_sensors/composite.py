"""Composite metric resolver.

Computes metrics that a single catalog lookup cannot supply: averaged CPU
load, hottest CPU temperature, corrected CPU clock, sanity-filtered power
readings and the VRAM percentage.  Every method returns either a float or a
:class:`~overlay_sensors.metrics.Missing` reason and never raises, so the
engine can fall back to the last valid reading.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from .catalog import has, has_any
from .metrics import Missing, MetricKey, read_sensor
from .model import Device, HardwareType, Sensor, SensorType

if TYPE_CHECKING:
    from .config import EngineSettings
    from .state import EngineState

log = logging.getLogger(__name__)

# Sanity bounds: readings above these are sensor errors, not extremes
CPU_POWER_LIMIT_W = 600.0
GPU_POWER_LIMIT_W = 1200.0
GPU_CLOCK_LIMIT_MHZ = 6000.0

# Per-core clocks at or below this are idle artefacts or bus readings
CORE_CLOCK_FLOOR_MHZ = 400.0

# VRAM totals above this are in bytes rather than MB
VRAM_BYTES_THRESHOLD = 10_485_760
BYTES_PER_MB = 1_048_576.0

# used + available above this is in MB rather than GB
RAM_MB_THRESHOLD = 512.0

CORE_LOAD_EXCLUDED: tuple[str, ...] = ("total", "soc", "max", "average")
CORE_TEMP_EXCLUDED: tuple[str, ...] = ("distance", "average", "max")
GPU_CLOCK_KEYWORDS: tuple[str, ...] = ("graphics", "core", "shader")
GPU_POWER_KEYWORDS: tuple[str, ...] = ("package", "ppt", "board", "core", "gpu")

# Preference order when several GPUs are present
_GPU_RANK: dict[HardwareType, int] = {
    HardwareType.GPU_NVIDIA: 0,
    HardwareType.GPU_AMD: 0,
    HardwareType.GPU_INTEL: 1,
}


def bus_correction(bus_mhz: float | None) -> float:
    """Return the clock multiplier implied by a misreported reference clock.

    Some parts report a bus clock that makes per-core clocks come out too
    low by a constant factor.  The factor ``100 / bus`` is only trusted when
    the bus reading is in (1, 20) and the factor itself is in (2, 10).
    """
    if bus_mhz is None or not 1.0 < bus_mhz < 20.0:
        return 1.0
    factor = 100.0 / bus_mhz
    if 2.0 < factor < 10.0:
        return factor
    return 1.0


def average_clock(values: list[float], factor: float = 1.0) -> tuple[float, float] | None:
    """Average corrected core clocks above the floor.

    Returns ``(result, max_corrected)``, where ``result`` falls back to the
    maximum when no core clears the floor, or None if ``values`` is empty.
    """
    if not values:
        return None
    corrected = [v * factor for v in values]
    max_raw = max(corrected)
    above = [v for v in corrected if v > CORE_CLOCK_FLOOR_MHZ]
    if above:
        return sum(above) / len(above), max_raw
    return max_raw, max_raw


def pick_gpu(devices: tuple[Device, ...]) -> Device | None:
    """Choose the GPU to report: discrete before integrated, then enumeration order."""
    gpus = [d for d in devices if d.is_gpu]
    if not gpus:
        return None
    return min(gpus, key=lambda d: _GPU_RANK.get(d.hardware_type, 2))


def _first_device(devices: tuple[Device, ...], hardware_type: HardwareType) -> Device | None:
    return next((d for d in devices if d.hardware_type is hardware_type), None)


class CompositeResolver:
    """Cross-sensor aggregation and correction over the current catalog."""

    def __init__(
        self,
        state: EngineState,
        settings: EngineSettings,
        system_cpu_load: Callable[[], float | None] | None = None,
    ) -> None:
        self._state = state
        self._settings = settings
        self._system_cpu_load = system_cpu_load

    # ------------------------------------------------------------------
    # Memoized sensor lists (valid until the next clear())
    # ------------------------------------------------------------------

    def _core_load_sensors(self) -> list[Sensor]:
        with self._state.lock:
            if self._state.cpu_load_sensors is None:
                cpu = _first_device(self._state.devices, HardwareType.CPU)
                self._state.cpu_load_sensors = [
                    s
                    for s in (cpu.sensors_of(SensorType.LOAD) if cpu else ())
                    if has(s.name, "core")
                    and has(s.name, "#")
                    and not has_any(s.name, CORE_LOAD_EXCLUDED)
                ]
            return self._state.cpu_load_sensors

    def _core_temp_sensors(self) -> list[Sensor]:
        with self._state.lock:
            if self._state.cpu_temp_sensors is None:
                cpu = _first_device(self._state.devices, HardwareType.CPU)
                self._state.cpu_temp_sensors = [
                    s
                    for s in (cpu.sensors_of(SensorType.TEMPERATURE) if cpu else ())
                    if not has_any(s.name, CORE_TEMP_EXCLUDED)
                ]
            return self._state.cpu_temp_sensors

    def best_gpu(self) -> Device | None:
        with self._state.lock:
            if not self._state.best_gpu_resolved:
                self._state.best_gpu = pick_gpu(self._state.devices)
                self._state.best_gpu_resolved = True
            return self._state.best_gpu

    def _record_max(self, key: MetricKey, value: float) -> None:
        with self._state.lock:
            self._settings.update_max_record(key.value, value)

    def catalog_value(self, key: MetricKey) -> float | Missing:
        with self._state.lock:
            sensor = self._state.catalog.get(key)
        return read_sensor(sensor)

    # ------------------------------------------------------------------
    # CPU
    # ------------------------------------------------------------------

    def cpu_load(self) -> float | Missing:
        if self._settings.use_system_cpu_load:
            if self._system_cpu_load is None:
                return Missing.NO_SENSOR
            try:
                value = self._system_cpu_load()
            except Exception:
                log.debug("System CPU load query failed", exc_info=True)
                return Missing.PROVIDER_ERROR
            return Missing.NO_READING if value is None else float(value)

        readings = [read_sensor(s) for s in self._core_load_sensors()]
        values = [v for v in readings if not isinstance(v, Missing)]
        if values:
            return sum(values) / len(values)

        return self.catalog_value(MetricKey.CPU_LOAD)

    def cpu_temp(self) -> float | Missing:
        readings = [read_sensor(s) for s in self._core_temp_sensors()]
        values = [v for v in readings if not isinstance(v, Missing) and v > 0]
        if values:
            return max(values)
        return self.catalog_value(MetricKey.CPU_TEMP)

    def cpu_clock(self) -> float | Missing:
        with self._state.lock:
            cores = list(self._state.catalog.core_clocks)
            bus = self._state.catalog.bus_speed
        if not cores:
            return Missing.NO_SENSOR

        bus_value = read_sensor(bus)
        factor = bus_correction(None if isinstance(bus_value, Missing) else bus_value)

        readings = [read_sensor(s) for s in cores]
        result = average_clock([v for v in readings if not isinstance(v, Missing)], factor)
        if result is None:
            return Missing.NO_READING

        value, max_raw = result
        if max_raw > 0:
            self._record_max(MetricKey.CPU_CLOCK, max_raw)
        return value

    def cpu_power(self) -> float | Missing:
        value = self.catalog_value(MetricKey.CPU_POWER)
        if isinstance(value, Missing):
            return value
        if value > CPU_POWER_LIMIT_W:
            return Missing.IMPLAUSIBLE
        self._record_max(MetricKey.CPU_POWER, value)
        return value

    # ------------------------------------------------------------------
    # GPU
    # ------------------------------------------------------------------

    def _gpu_reading(
        self,
        key: MetricKey,
        sensor_type: SensorType,
        keywords: tuple[str, ...],
        limit: float,
    ) -> float | Missing:
        gpu = self.best_gpu()
        if gpu is None:
            return Missing.NO_DEVICE
        sensor = next(
            (s for s in gpu.sensors_of(sensor_type) if has_any(s.name, keywords)), None
        )
        value = read_sensor(sensor)
        if isinstance(value, Missing):
            return value
        if value > limit:
            return Missing.IMPLAUSIBLE
        self._record_max(key, value)
        return value

    def gpu_clock(self) -> float | Missing:
        return self._gpu_reading(
            MetricKey.GPU_CLOCK, SensorType.CLOCK, GPU_CLOCK_KEYWORDS, GPU_CLOCK_LIMIT_MHZ
        )

    def gpu_power(self) -> float | Missing:
        return self._gpu_reading(
            MetricKey.GPU_POWER, SensorType.POWER, GPU_POWER_KEYWORDS, GPU_POWER_LIMIT_W
        )

    def gpu_vram(self) -> float | Missing:
        used = self.catalog_value(MetricKey.GPU_VRAM_USED)
        total = self.catalog_value(MetricKey.GPU_VRAM_TOTAL)
        if not isinstance(used, Missing) and not isinstance(total, Missing) and total > 0:
            if total > VRAM_BYTES_THRESHOLD:
                used /= BYTES_PER_MB
                total /= BYTES_PER_MB
            with self._state.lock:
                if self._settings.detected_gpu_vram_total_gb <= 0:
                    self._settings.detected_gpu_vram_total_gb = total / 1024.0
            return used / total * 100.0

        return self.catalog_value(MetricKey.GPU_VRAM_LOAD)

    # ------------------------------------------------------------------
    # Memory
    # ------------------------------------------------------------------

    def detect_ram_total(self) -> None:
        """Store total RAM in GB the first time used + available is readable."""
        if self._settings.detected_ram_total_gb > 0:
            return
        used = self.catalog_value(MetricKey.MEM_USED)
        available = self.catalog_value(MetricKey.MEM_AVAILABLE)
        if isinstance(used, Missing) or isinstance(available, Missing):
            return
        raw_total = used + available
        with self._state.lock:
            self._settings.detected_ram_total_gb = (
                raw_total / 1024.0 if raw_total > RAM_MB_THRESHOLD else raw_total
            )

    def mem_load(self) -> float | Missing:
        self.detect_ram_total()
        return self.catalog_value(MetricKey.MEM_LOAD)
