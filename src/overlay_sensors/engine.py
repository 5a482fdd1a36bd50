"""Metric resolution engine.

:class:`HardwareMonitor` is the single entry point used by the rendering and
configuration layers.  A background refresh loop calls :meth:`refresh`; any
number of reader threads call :meth:`get` and the ``list_all_*`` queries.
Nothing here raises to the caller: a metric that cannot be resolved reads
as the last valid value, or None.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from functools import partial
from typing import TYPE_CHECKING

from .battery import BatteryService
from .catalog import build_catalog
from .composite import CompositeResolver
from .config import EngineSettings
from .listing import find_board_sensor, list_board_sensors, list_device_names
from .metrics import Missing, MetricKey, read_sensor
from .model import Device, HardwareType, SensorType, topology_signature
from .selector import DISK, NETWORK, DeviceSelector
from .state import EngineState

if TYPE_CHECKING:
    from .provider import TelemetryProvider

log = logging.getLogger(__name__)

Resolver = Callable[[], "float | Missing"]


class HardwareMonitor:
    """Turn a live device/sensor tree into stable canonical metrics."""

    def __init__(
        self,
        provider: TelemetryProvider,
        settings: EngineSettings | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._provider = provider
        self.settings = settings if settings is not None else EngineSettings()
        self._state = EngineState()
        self._provider_failed = False

        self.composite = CompositeResolver(
            self._state, self.settings, getattr(provider, "system_cpu_load", None)
        )
        self.network = DeviceSelector(NETWORK, self._state, self.settings, clock=clock)
        self.disk = DeviceSelector(
            DISK,
            self._state,
            self.settings,
            system_drive=getattr(provider, "system_drive", None),
            clock=clock,
        )
        self.battery = BatteryService(
            self._state,
            self.settings,
            getattr(provider, "power_status", None),
            clock=clock,
        )

        composite = self.composite
        self._resolvers: dict[MetricKey, Resolver] = {
            MetricKey.CPU_LOAD: composite.cpu_load,
            MetricKey.CPU_TEMP: composite.cpu_temp,
            MetricKey.CPU_CLOCK: composite.cpu_clock,
            MetricKey.CPU_POWER: composite.cpu_power,
            MetricKey.GPU_CLOCK: composite.gpu_clock,
            MetricKey.GPU_POWER: composite.gpu_power,
            MetricKey.GPU_VRAM: composite.gpu_vram,
            MetricKey.MEM_LOAD: composite.mem_load,
            MetricKey.MOBO_TEMP: partial(
                self._board_value, SensorType.TEMPERATURE, "preferred_mobo_temp"
            ),
            MetricKey.FAN_SPEED: partial(self._board_value, SensorType.FAN, "preferred_fan"),
        }
        for key in (
            MetricKey.GPU_LOAD,
            MetricKey.GPU_TEMP,
            MetricKey.GPU_VRAM_USED,
            MetricKey.GPU_VRAM_TOTAL,
            MetricKey.GPU_VRAM_LOAD,
            MetricKey.MEM_USED,
            MetricKey.MEM_AVAILABLE,
        ):
            self._resolvers[key] = partial(composite.catalog_value, key)
        for key in NETWORK.directions:
            self._resolvers[key] = partial(self.network.read, key)
        for key in DISK.directions:
            self._resolvers[key] = partial(self.disk.read, key)
        for key in (
            MetricKey.BAT_PERCENT,
            MetricKey.BAT_POWER,
            MetricKey.BAT_VOLTAGE,
            MetricKey.BAT_CURRENT,
        ):
            self._resolvers[key] = partial(self.battery.read, key)

        self.refresh()

    # ------------------------------------------------------------------
    # Refresh cycle
    # ------------------------------------------------------------------

    def refresh(self) -> bool:
        """Re-read the provider; rebuild the catalog if the topology changed.

        Returns True when a new catalog was published.
        """
        try:
            self._provider.update()
            devices = tuple(self._provider.devices())
        except Exception:
            log.warning("Telemetry provider update failed", exc_info=True)
            self._provider_failed = True
            return False
        self._provider_failed = False

        signature = topology_signature(devices)
        with self._state.lock:
            current = self._state.devices
            if (
                signature == self._state.topology
                and len(devices) == len(current)
                and all(a is b for a, b in zip(devices, current))
            ):
                return False

        # Index outside the lock; readers keep using the previous catalog.
        catalog = build_catalog(devices)
        self._state.publish(devices, signature, catalog)
        log.debug("Topology changed: %d devices, %d metrics indexed", len(devices), len(catalog))
        return True

    def clear_cache(self) -> None:
        """Drop per-scan memoizations and listing caches.

        Last valid values and learned device names are kept.
        """
        self._state.clear()

    def reset(self) -> None:
        """Forget everything, including last valid values, and rescan."""
        self._state.reset()
        self.refresh()

    # ------------------------------------------------------------------
    # Values
    # ------------------------------------------------------------------

    def resolve(self, key: MetricKey) -> float | Missing:
        """Resolve ``key`` for this cycle without any fallback."""
        if self._provider_failed:
            return Missing.PROVIDER_ERROR
        if not self.settings.is_enabled(key.group):
            return Missing.DISABLED
        resolver = self._resolvers.get(key)
        if resolver is None:
            return Missing.UNKNOWN_KEY
        return resolver()

    def get(self, key: str | MetricKey) -> float | None:
        """Return the value of a canonical metric, or None if nothing is known."""
        metric = MetricKey.parse(key)
        if metric is None:
            return None
        value = self.resolve(metric)
        if value is Missing.DISABLED:
            return None
        return self._state.remember(metric, value)

    def last_valid(self, key: MetricKey) -> float | None:
        with self._state.lock:
            return self._state.last_valid.get(key)

    def _board_value(self, sensor_type: SensorType, setting: str) -> float | Missing:
        devices, _ = self._state.snapshot()
        name = getattr(self.settings, setting)
        return read_sensor(find_board_sensor(devices, sensor_type, name))

    # ------------------------------------------------------------------
    # Listings for configuration pickers
    # ------------------------------------------------------------------

    def _listing(self, name: str, build: Callable[[tuple[Device, ...]], list[str]]) -> list[str]:
        with self._state.lock:
            cached = self._state.listings.get(name)
            if cached:
                return list(cached)
            devices = self._state.devices
        names = build(devices)
        if names:
            with self._state.lock:
                self._state.listings[name] = names
        return list(names)

    def list_all_networks(self) -> list[str]:
        return self._listing(
            "network", partial(list_device_names, hardware_type=HardwareType.NETWORK)
        )

    def list_all_disks(self) -> list[str]:
        return self._listing(
            "disk", partial(list_device_names, hardware_type=HardwareType.STORAGE)
        )

    def list_all_fans(self) -> list[str]:
        return self._listing("fan", partial(list_board_sensors, sensor_type=SensorType.FAN))

    def list_all_mobo_temps(self) -> list[str]:
        return self._listing(
            "mobo_temp", partial(list_board_sensors, sensor_type=SensorType.TEMPERATURE)
        )
