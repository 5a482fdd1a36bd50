"""Device and sensor listings for configuration pickers."""

from __future__ import annotations

from collections.abc import Iterator

from .model import GPU_TYPES, Device, HardwareType, Sensor, SensorType

# Devices whose fans/temperatures are reported by dedicated metrics
_EXCLUDED_FROM_BOARD: frozenset[HardwareType] = GPU_TYPES | {
    HardwareType.CPU,
    HardwareType.STORAGE,
    HardwareType.MEMORY,
    HardwareType.NETWORK,
}


def smart_name(sensor: Sensor, device: Device, devices: tuple[Device, ...]) -> str:
    """Name a sensor with its device, e.g. ``"Fan #1 [ASUS PRIME B550]"``.

    Super I/O chips are named after the motherboard that hosts them.
    """
    device_name = device.name
    if device.hardware_type is HardwareType.SUPERIO:
        board = next((d for d in devices if d.hardware_type is HardwareType.MOTHERBOARD), None)
        if board is not None:
            device_name = board.name
    return f"{sensor.name} [{device_name}]"


def _distinct(names: Iterator[str]) -> list[str]:
    return list(dict.fromkeys(names))


def list_device_names(devices: tuple[Device, ...], hardware_type: HardwareType) -> list[str]:
    """Top-level device names of one type, de-duplicated in enumeration order."""
    return _distinct(d.name for d in devices if d.hardware_type is hardware_type)


def _board_sensors(
    devices: tuple[Device, ...], sensor_type: SensorType
) -> Iterator[tuple[Device, Sensor]]:
    def scan(device: Device) -> Iterator[tuple[Device, Sensor]]:
        if device.hardware_type not in _EXCLUDED_FROM_BOARD:
            for sensor in device.sensors_of(sensor_type):
                yield device, sensor
        for sub in device.sub_devices:
            yield from scan(sub)

    for device in devices:
        yield from scan(device)


def list_board_sensors(devices: tuple[Device, ...], sensor_type: SensorType) -> list[str]:
    """Sorted, de-duplicated smart names of motherboard/chassis sensors."""
    names = {smart_name(s, d, devices) for d, s in _board_sensors(devices, sensor_type)}
    return sorted(names)


def find_board_sensor(
    devices: tuple[Device, ...], sensor_type: SensorType, name: str
) -> Sensor | None:
    """Return the board sensor whose smart name is ``name``."""
    if not name:
        return None
    for device, sensor in _board_sensors(devices, sensor_type):
        if smart_name(sensor, device, devices) == name:
            return sensor
    return None
