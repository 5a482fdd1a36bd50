"""Automatic selection of the network adapter and disk to report.

Several adapters and disks usually expose throughput sensors, and the set
changes at runtime (VPN adapters appear, disks sleep).  A selector keeps
the last winning device, rescans only after the device has been quiet for a
cooldown period, and remembers its choice in the settings so the next
process start can skip the scan.

States per device class::

    uncached --scan/sticky--> cached --quiet past cooldown--> rescan
                                 +--device gone--> invalidated --> sticky/rescan
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .catalog import has, has_any
from .metrics import Missing, MetricKey, read_sensor
from .model import Device, HardwareType, Sensor, SensorType

if TYPE_CHECKING:
    from .config import EngineSettings
    from .state import DeviceSelection, EngineState

log = logging.getLogger(__name__)

# A cached device reading above this counts as active traffic
ACTIVITY_THRESHOLD = 0.1

VIRTUAL_PENALTY = -1e9
SYSTEM_DRIVE_BONUS = 1e9

UPLOAD_KEYWORDS: tuple[str, ...] = ("upload", "up", "sent", "send", "tx", "transmit")
DOWNLOAD_KEYWORDS: tuple[str, ...] = ("download", "down", "received", "receive", "rx")
VIRTUAL_ADAPTER_KEYWORDS: tuple[str, ...] = (
    "virtual",
    "vmware",
    "hyper-v",
    "hyper v",
    "vbox",
    "loopback",
    "tunnel",
    "tap",
    "tun",
    "bluetooth",
    "zerotier",
    "tailscale",
    "wan miniport",
)


@dataclass(frozen=True)
class SelectorProfile:
    """What distinguishes network selection from disk selection."""

    name: str  # "network" or "disk"; also the EngineState attribute
    hardware_type: HardwareType
    cooldown: float  # seconds
    directions: dict[MetricKey, tuple[str, ...]]
    preferred_attr: str
    sticky_attr: str


NETWORK = SelectorProfile(
    name="network",
    hardware_type=HardwareType.NETWORK,
    cooldown=3.0,
    directions={MetricKey.NET_UP: UPLOAD_KEYWORDS, MetricKey.NET_DOWN: DOWNLOAD_KEYWORDS},
    preferred_attr="preferred_network",
    sticky_attr="last_auto_network",
)

DISK = SelectorProfile(
    name="disk",
    hardware_type=HardwareType.STORAGE,
    cooldown=10.0,
    directions={MetricKey.DISK_READ: ("read",), MetricKey.DISK_WRITE: ("write",)},
    preferred_attr="preferred_disk",
    sticky_attr="last_auto_disk",
)


def find_sensor(device: Device, keywords: tuple[str, ...]) -> Sensor | None:
    """Return the first throughput sensor whose name contains a keyword."""
    return next(
        (s for s in device.sensors_of(SensorType.THROUGHPUT) if has_any(s.name, keywords)),
        None,
    )


def is_virtual_adapter(name: str) -> bool:
    return has_any(name, VIRTUAL_ADAPTER_KEYWORDS)


def hosts_drive(device: Device, drive: str) -> bool:
    """True if ``device`` or one of its sensors names the system drive."""
    if not drive:
        return False
    if has(device.name, drive) or has(device.identifier, drive):
        return True
    return any(has(s.name, drive) for s in device.sensors)


class DeviceSelector:
    """Resolve ``NET.*`` or ``DISK.*`` against the best device of its class."""

    def __init__(
        self,
        profile: SelectorProfile,
        state: EngineState,
        settings: EngineSettings,
        system_drive: Callable[[], str] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.profile = profile
        self._state = state
        self._settings = settings
        self._system_drive = system_drive
        self._clock = clock
        self.scan_count = 0

    @property
    def selection(self) -> DeviceSelection:
        return getattr(self._state, self.profile.name)

    @property
    def cached_device(self) -> str | None:
        with self._state.lock:
            return self.selection.cached_device

    def _candidates(self, devices: tuple[Device, ...]) -> list[Device]:
        return [d for d in devices if d.hardware_type is self.profile.hardware_type]

    def read_device(self, device: Device, key: MetricKey) -> float | Missing:
        return read_sensor(find_sensor(device, self.profile.directions[key]))

    def read(self, key: MetricKey) -> float | Missing:
        """Return the current reading for ``key`` from the selected device."""
        if key not in self.profile.directions:
            return Missing.UNKNOWN_KEY

        with self._state.lock:
            candidates = self._candidates(self._state.devices)

        preferred = getattr(self._settings, self.profile.preferred_attr).strip()
        if preferred:
            wanted = preferred.casefold()
            device = next((d for d in candidates if d.name.casefold() == wanted), None)
            if device is not None:
                return self.read_device(device, key)

        now = self._clock()
        cached: Device | None = None
        adopted: Device | None = None
        with self._state.lock:
            selection = self.selection
            if selection.cached_device is not None:
                cached = next(
                    (d for d in candidates if d.identifier == selection.cached_device), None
                )
                if cached is None:
                    log.debug(
                        "Cached %s device %s disappeared",
                        self.profile.name,
                        selection.cached_device,
                    )
                    selection.invalidate()

            if cached is None:
                sticky = getattr(self._settings, self.profile.sticky_attr)
                if sticky:
                    adopted = next((d for d in candidates if d.name == sticky), None)
                    if adopted is not None:
                        selection.cached_device = adopted.identifier
                        selection.last_scan = now
            last_scan = selection.last_scan

        if adopted is not None:
            return self.read_device(adopted, key)

        if cached is not None:
            value = self.read_device(cached, key)
            active = not isinstance(value, Missing) and value > ACTIVITY_THRESHOLD
            if active or now - last_scan < self.profile.cooldown:
                return value

        winner, target = self.scan(candidates, key)
        if winner is None:
            return Missing.NO_DEVICE

        with self._state.lock:
            selection = self.selection
            selection.cached_device = winner.identifier
            selection.last_scan = self._clock()
            if getattr(self._settings, self.profile.sticky_attr) != winner.name:
                log.debug("Selected %s device %r", self.profile.name, winner.name)
                setattr(self._settings, self.profile.sticky_attr, winner.name)

        return read_sensor(target)

    def score(
        self, device: Device, drive: str
    ) -> tuple[float, dict[MetricKey, Sensor | None]] | None:
        """Score one candidate, or None if it has no matching sensor."""
        matched = {
            key: find_sensor(device, keywords) for key, keywords in self.profile.directions.items()
        }
        if all(s is None for s in matched.values()):
            return None

        total = sum(
            s.value for s in matched.values() if s is not None and s.value is not None
        )
        if self.profile.hardware_type is HardwareType.NETWORK and is_virtual_adapter(device.name):
            total += VIRTUAL_PENALTY
        if self.profile.hardware_type is HardwareType.STORAGE and hosts_drive(device, drive):
            total += SYSTEM_DRIVE_BONUS
        return total, matched

    def scan(
        self, candidates: list[Device], key: MetricKey
    ) -> tuple[Device | None, Sensor | None]:
        """Full scan: pick the highest-scoring device; ties keep the earliest."""
        with self._state.lock:
            self.scan_count += 1
        drive = ""
        if self.profile.hardware_type is HardwareType.STORAGE and self._system_drive is not None:
            try:
                drive = self._system_drive()
            except Exception:
                log.debug("System drive lookup failed", exc_info=True)

        best: Device | None = None
        best_score = float("-inf")
        best_target: Sensor | None = None
        for device in candidates:
            scored = self.score(device, drive)
            if scored is None:
                continue
            total, matched = scored
            if total > best_score:
                best, best_score, best_target = device, total, matched[key]
        return best, best_target
