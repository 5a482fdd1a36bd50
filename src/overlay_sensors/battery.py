"""Battery readings with charge/discharge polarity.

Battery power and current sensors report unsigned magnitudes.  The sign is
assigned from the AC/charging state: positive while charging, negative while
discharging, and zero when AC is online but the system is not charging
(charge bypass, or the battery is held at a charge limit).
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .metrics import Missing, MetricKey, read_sensor

if TYPE_CHECKING:
    from .config import EngineSettings
    from .state import EngineState

log = logging.getLogger(__name__)

SIGNED_KEYS: frozenset[MetricKey] = frozenset({MetricKey.BAT_POWER, MetricKey.BAT_CURRENT})

# Minimum seconds between power-status polls
POWER_STATUS_INTERVAL = 3.0


@dataclass(frozen=True)
class PowerStatus:
    """AC line and charging state as reported by the operating system."""

    ac_online: bool = False
    charging: bool = False


def correct(key: MetricKey, value: float, status: PowerStatus) -> float:
    """Apply the polarity policy to a raw battery reading."""
    if key not in SIGNED_KEYS:
        return value
    magnitude = abs(value)
    if status.ac_online:
        return magnitude if status.charging else 0.0
    return -magnitude


def simulated_status(second: int) -> PowerStatus:
    charging = second >= 30
    return PowerStatus(ac_online=charging, charging=charging)


def simulated_value(key: MetricKey, second: int) -> float | Missing:
    """Synthesize a 60-second cycle: 30 s heavy discharge, then 30 s fast charge.

    Pure function of the wall-clock second; the returned power and current
    are already signed.
    """
    charging = second >= 30
    if charging:
        voltage = 15.5 + (second - 30) * 0.05
        power = 65.0 + (second % 5) * 4.0
        percent = (second - 30) * (100.0 / 30.0)
    else:
        voltage = 16.8 - second * 0.06
        power = -(25.0 + (second % 3) * 5.0)
        percent = 100.0 - second * (100.0 / 30.0)

    if key is MetricKey.BAT_PERCENT:
        return min(max(percent, 0.0), 100.0)
    if key is MetricKey.BAT_POWER:
        return power
    if key is MetricKey.BAT_VOLTAGE:
        return voltage
    if key is MetricKey.BAT_CURRENT:
        return power / voltage
    return Missing.UNKNOWN_KEY


def _wall_second() -> int:
    return time.localtime().tm_sec


class BatteryService:
    """Resolve ``BAT.*`` keys from the catalog with polarity correction."""

    def __init__(
        self,
        state: EngineState,
        settings: EngineSettings,
        power_status: Callable[[], PowerStatus | None] | None = None,
        clock: Callable[[], float] = time.monotonic,
        wall_second: Callable[[], int] = _wall_second,
    ) -> None:
        self._state = state
        self._settings = settings
        self._power_status = power_status
        self._clock = clock
        self._wall_second = wall_second
        self._status = PowerStatus()
        self._last_poll = float("-inf")

    @property
    def status(self) -> PowerStatus:
        return self._status

    def update_power_status(self) -> PowerStatus:
        """Poll the OS power status, at most once per ``POWER_STATUS_INTERVAL``.

        A failed poll keeps the previous status.
        """
        now = self._clock()
        with self._state.lock:
            if self._power_status is None or now - self._last_poll <= POWER_STATUS_INTERVAL:
                return self._status
            self._last_poll = now
        try:
            status = self._power_status()
        except Exception:
            log.debug("Power status poll failed", exc_info=True)
            status = None
        with self._state.lock:
            if status is not None:
                if status != self._status:
                    log.debug("Power status changed: %s", status)
                self._status = status
            return self._status

    def read(self, key: MetricKey) -> float | Missing:
        if self._settings.simulate_battery:
            second = self._wall_second()
            with self._state.lock:
                self._status = simulated_status(second)
            return simulated_value(key, second)

        with self._state.lock:
            sensor = self._state.catalog.get(key)
        value = read_sensor(sensor)
        if isinstance(value, Missing):
            return value
        return correct(key, value, self.update_power_status())
