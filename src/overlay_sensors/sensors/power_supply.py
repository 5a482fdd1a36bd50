"""Battery and AC adapter state from the sysfs power_supply class.

Batteries become devices with charge level, voltage, power and current
sensors.  Power and current are reported as unsigned magnitudes; the
charge/discharge sign is applied later from :meth:`PowerSupplyReader.status`.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar

from ..battery import PowerStatus
from ..model import Device, HardwareType, Sensor, SensorType
from .counters import read_int


@dataclass(frozen=True)
class PowerSupply:
    """One /sys/class/power_supply entry."""

    path: Path
    kind: str  # Contents of the "type" file: "Battery", "Mains", "USB", ...

    @property
    def name(self) -> str:
        return self.path.name

    def read_text(self, filename: str) -> str:
        try:
            return (self.path / filename).read_text().strip()
        except (FileNotFoundError, PermissionError, OSError):
            return ""


class PowerSupplyReader:
    """Expose batteries as devices and report the AC/charging state."""

    # sysfs file -> (sensor type, label, divisor)
    BATTERY_FILES: ClassVar[list[tuple[str, SensorType, str, float]]] = [
        ("capacity", SensorType.LEVEL, "Charge Level", 1.0),  # percent
        ("voltage_now", SensorType.VOLTAGE, "Voltage", 1_000_000.0),  # uV
        ("power_now", SensorType.POWER, "Charge/Discharge Rate", 1_000_000.0),  # uW
        ("current_now", SensorType.CURRENT, "Charge/Discharge Current", 1_000_000.0),  # uA
    ]

    def __init__(self, supplies: list[PowerSupply]) -> None:
        self._batteries = [s for s in supplies if s.kind == "Battery"]
        self._mains = [s for s in supplies if s.kind in ("Mains", "USB")]
        self._devices: list[Device] = []
        self._bindings: list[tuple[PowerSupply, dict[str, Sensor]]] = []

        for battery in self._batteries:
            sensors = {
                filename: Sensor(sensor_type, label)
                for filename, sensor_type, label, _ in self.BATTERY_FILES
            }
            self._bindings.append((battery, sensors))
            model = battery.read_text("model_name")
            self._devices.append(
                Device(
                    hardware_type=HardwareType.BATTERY,
                    name=model or battery.name,
                    identifier=f"power_supply/{battery.name}",
                    sensors=list(sensors.values()),
                )
            )

    @property
    def devices(self) -> list[Device]:
        return list(self._devices)

    @classmethod
    def discover_supplies(
        cls, sysfs_root: str = "/sys/class/power_supply"
    ) -> list[PowerSupply]:
        """Discover power supplies and their types.

        Args:
            sysfs_root: Base path to the power_supply class directory.

        Returns:
            Supplies in directory order.  Entries without a readable
            ``type`` file are skipped.
        """
        root = Path(sysfs_root)
        supplies: list[PowerSupply] = []

        if not root.is_dir():
            return supplies

        for entry in sorted(root.iterdir()):
            if not entry.is_dir():
                continue
            supply = PowerSupply(path=entry, kind="")
            kind = supply.read_text("type")
            if kind:
                supplies.append(PowerSupply(path=entry, kind=kind))

        return supplies

    def update(self) -> None:
        """Re-read every battery file; missing files read None."""
        for battery, sensors in self._bindings:
            for filename, _, _, divisor in self.BATTERY_FILES:
                raw = read_int(battery.path / filename)
                sensors[filename].value = None if raw is None else abs(raw) / divisor

            # Many batteries only report current; derive power from V * I
            power = sensors["power_now"]
            voltage = sensors["voltage_now"].value
            current = sensors["current_now"].value
            if power.value is None and voltage is not None and current is not None:
                power.value = voltage * current

    def status(self) -> PowerStatus | None:
        """Return the AC/charging state, or None if there is no battery."""
        if not self._batteries:
            return None
        charging = any(b.read_text("status") == "Charging" for b in self._batteries)
        ac_online = any(m.read_text("online") == "1" for m in self._mains)
        # Some laptops expose no Mains entry; a charging battery implies AC
        return PowerStatus(ac_online=ac_online or charging, charging=charging)
