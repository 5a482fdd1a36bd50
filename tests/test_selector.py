"""Tests for automatic network adapter and disk selection."""

from __future__ import annotations

import pytest

from overlay_sensors.catalog import build_catalog
from overlay_sensors.config import EngineSettings
from overlay_sensors.metrics import Missing, MetricKey
from overlay_sensors.model import Device, HardwareType, Sensor, SensorType, topology_signature
from overlay_sensors.selector import DISK, NETWORK, DeviceSelector, hosts_drive, is_virtual_adapter
from overlay_sensors.state import EngineState


class FakeClock:
    def __init__(self) -> None:
        self.now = 500.0

    def __call__(self) -> float:
        return self.now


def _adapter(name: str, up: float | None, down: float | None, identifier: str = "") -> Device:
    return Device(
        HardwareType.NETWORK,
        name,
        identifier,
        sensors=[
            Sensor(SensorType.THROUGHPUT, "Upload Speed", up),
            Sensor(SensorType.THROUGHPUT, "Download Speed", down),
            Sensor(SensorType.DATA, "Data Uploaded", 100.0),
        ],
    )


def _disk(name: str, read: float | None, write: float | None, identifier: str = "") -> Device:
    return Device(
        HardwareType.STORAGE,
        name,
        identifier,
        sensors=[
            Sensor(SensorType.LOAD, "Total Activity", 1.0),
            Sensor(SensorType.THROUGHPUT, "Read Rate", read),
            Sensor(SensorType.THROUGHPUT, "Write Rate", write),
        ],
    )


def _publish(state: EngineState, *devices: Device) -> None:
    state.publish(devices, topology_signature(devices), build_catalog(devices))


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


class TestHelpers:
    """Tests for is_virtual_adapter() and hosts_drive()."""

    def test_virtual_adapter_names(self) -> None:
        assert is_virtual_adapter("VMware Virtual Ethernet Adapter")
        assert is_virtual_adapter("Tailscale Tunnel")
        assert is_virtual_adapter("docker0 (Virtual Adapter)")
        assert not is_virtual_adapter("Realtek PCIe GbE Family Controller")

    def test_hosts_drive(self) -> None:
        disk = _disk("Samsung SSD 980 (nvme0n1)", 0, 0, "disk/nvme0n1")
        assert hosts_drive(disk, "nvme0n1")
        assert not hosts_drive(disk, "sda")
        assert not hosts_drive(disk, "")


class TestNetworkSelection:
    """Tests for DeviceSelector with the network profile."""

    def test_virtual_penalty_outweighs_throughput(self, clock: FakeClock) -> None:
        state, settings = EngineState(), EngineSettings()
        _publish(
            state,
            _adapter("VMware Virtual Ethernet", 250.0, 250.0),
            _adapter("Realtek PCIe GbE", 4.0, 6.0),
        )
        selector = DeviceSelector(NETWORK, state, settings, clock=clock)
        assert selector.read(MetricKey.NET_DOWN) == pytest.approx(6.0)
        assert selector.cached_device == "network/Realtek PCIe GbE"
        assert settings.last_auto_network == "Realtek PCIe GbE"

    def test_highest_total_wins(self, clock: FakeClock) -> None:
        state, settings = EngineState(), EngineSettings()
        _publish(state, _adapter("eth0", 10.0, 10.0), _adapter("wlan0", 100.0, 900.0))
        selector = DeviceSelector(NETWORK, state, settings, clock=clock)
        assert selector.read(MetricKey.NET_UP) == pytest.approx(100.0)

    def test_ties_keep_earliest(self, clock: FakeClock) -> None:
        state, settings = EngineState(), EngineSettings()
        _publish(state, _adapter("eth0", 0.0, 0.0), _adapter("eth1", 0.0, 0.0))
        selector = DeviceSelector(NETWORK, state, settings, clock=clock)
        selector.read(MetricKey.NET_UP)
        assert settings.last_auto_network == "eth0"

    def test_no_rescan_while_active(self, clock: FakeClock) -> None:
        state, settings = EngineState(), EngineSettings()
        _publish(state, _adapter("eth0", 5000.0, 5000.0), _adapter("eth1", 0.0, 0.0))
        selector = DeviceSelector(NETWORK, state, settings, clock=clock)
        selector.read(MetricKey.NET_UP)
        assert selector.scan_count == 1

        for _ in range(20):
            clock.now += 0.5
            selector.read(MetricKey.NET_UP)
            selector.read(MetricKey.NET_DOWN)
        assert selector.scan_count == 1

    def test_quiet_device_kept_within_cooldown(self, clock: FakeClock) -> None:
        state, settings = EngineState(), EngineSettings()
        eth0 = _adapter("eth0", 10.0, 10.0)
        eth1 = _adapter("eth1", 0.0, 0.0)
        _publish(state, eth0, eth1)
        selector = DeviceSelector(NETWORK, state, settings, clock=clock)
        selector.read(MetricKey.NET_UP)

        eth0.sensors[0].value = 0.0
        eth0.sensors[1].value = 0.0
        eth1.sensors[0].value = 800.0
        clock.now += 2.0
        assert selector.read(MetricKey.NET_UP) == pytest.approx(0.0)
        assert selector.scan_count == 1

        clock.now += 2.0
        assert selector.read(MetricKey.NET_UP) == pytest.approx(800.0)
        assert selector.scan_count == 2
        assert selector.cached_device == "network/eth1"

    def test_vanished_device_invalidates(self, clock: FakeClock) -> None:
        state, settings = EngineState(), EngineSettings()
        _publish(state, _adapter("eth0", 10.0, 10.0), _adapter("eth1", 1.0, 1.0))
        selector = DeviceSelector(NETWORK, state, settings, clock=clock)
        selector.read(MetricKey.NET_UP)
        assert selector.cached_device == "network/eth0"

        _publish(state, _adapter("eth1", 1.0, 1.0))
        settings.last_auto_network = ""
        assert selector.read(MetricKey.NET_UP) == pytest.approx(1.0)
        assert selector.cached_device == "network/eth1"

    def test_sticky_name_skips_scan(self, clock: FakeClock) -> None:
        state = EngineState()
        settings = EngineSettings(last_auto_network="wlan0")
        _publish(state, _adapter("eth0", 900.0, 900.0), _adapter("wlan0", 3.0, 4.0))
        selector = DeviceSelector(NETWORK, state, settings, clock=clock)
        assert selector.read(MetricKey.NET_DOWN) == pytest.approx(4.0)
        assert selector.scan_count == 0
        assert selector.cached_device == "network/wlan0"

    def test_preferred_adapter(self, clock: FakeClock) -> None:
        state = EngineState()
        settings = EngineSettings(preferred_network=" WLAN0 ")
        _publish(state, _adapter("eth0", 900.0, 900.0), _adapter("wlan0", 3.0, 4.0))
        selector = DeviceSelector(NETWORK, state, settings, clock=clock)
        assert selector.read(MetricKey.NET_UP) == pytest.approx(3.0)
        assert selector.scan_count == 0

    def test_missing_preferred_falls_back_to_auto(self, clock: FakeClock) -> None:
        state = EngineState()
        settings = EngineSettings(preferred_network="usb0")
        _publish(state, _adapter("eth0", 9.0, 9.0))
        selector = DeviceSelector(NETWORK, state, settings, clock=clock)
        assert selector.read(MetricKey.NET_UP) == pytest.approx(9.0)

    def test_no_adapters(self, clock: FakeClock) -> None:
        selector = DeviceSelector(NETWORK, EngineState(), EngineSettings(), clock=clock)
        assert selector.read(MetricKey.NET_UP) is Missing.NO_DEVICE

    def test_wrong_key(self, clock: FakeClock) -> None:
        selector = DeviceSelector(NETWORK, EngineState(), EngineSettings(), clock=clock)
        assert selector.read(MetricKey.DISK_READ) is Missing.UNKNOWN_KEY


class TestDiskSelection:
    """Tests for DeviceSelector with the disk profile."""

    def test_system_drive_bonus(self, clock: FakeClock) -> None:
        state, settings = EngineState(), EngineSettings()
        _publish(
            state,
            _disk("sda", 50e6, 50e6, "disk/sda"),
            _disk("nvme0n1", 1000.0, 0.0, "disk/nvme0n1"),
        )
        selector = DeviceSelector(
            DISK, state, settings, system_drive=lambda: "nvme0n1", clock=clock
        )
        assert selector.read(MetricKey.DISK_READ) == pytest.approx(1000.0)
        assert settings.last_auto_disk == "nvme0n1"

    def test_system_drive_lookup_error(self, clock: FakeClock) -> None:
        def broken() -> str:
            raise OSError("no mounts")

        state, settings = EngineState(), EngineSettings()
        _publish(
            state,
            _disk("sda", 50e6, 50e6, "disk/sda"),
            _disk("nvme0n1", 1000.0, 0.0, "disk/nvme0n1"),
        )
        selector = DeviceSelector(DISK, state, settings, system_drive=broken, clock=clock)
        assert selector.read(MetricKey.DISK_READ) == pytest.approx(50e6)
        assert selector.scan_count == 1

    def test_longer_cooldown(self, clock: FakeClock) -> None:
        state, settings = EngineState(), EngineSettings()
        sda = _disk("sda", 5.0, 0.0)
        sdb = _disk("sdb", 0.0, 0.0)
        _publish(state, sda, sdb)
        selector = DeviceSelector(DISK, state, settings, clock=clock)
        selector.read(MetricKey.DISK_WRITE)

        sda.sensors[1].value = 0.0
        sdb.sensors[2].value = 300.0
        clock.now += 9.0
        assert selector.read(MetricKey.DISK_WRITE) == pytest.approx(0.0)
        clock.now += 2.0
        assert selector.read(MetricKey.DISK_WRITE) == pytest.approx(300.0)
        assert selector.scan_count == 2

    def test_device_without_readings_scores_zero(self, clock: FakeClock) -> None:
        state, settings = EngineState(), EngineSettings()
        _publish(state, _disk("sda", None, None))
        selector = DeviceSelector(DISK, state, settings, clock=clock)
        assert selector.read(MetricKey.DISK_READ) is Missing.NO_READING
        assert selector.cached_device == "storage/sda"
