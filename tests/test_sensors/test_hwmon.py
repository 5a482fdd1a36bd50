"""Tests for the hwmon sensor reader."""

from __future__ import annotations

from pathlib import Path

import pytest

from overlay_sensors.model import HardwareType, SensorType
from overlay_sensors.sensors.hwmon import HwmonChip, HwmonInput, HwmonReader, classify_chip


@pytest.fixture()
def fake_hwmon(tmp_path: Path) -> Path:
    """Create a fake /sys/class/hwmon tree."""
    hwmon0 = tmp_path / "hwmon0"
    hwmon0.mkdir()
    (hwmon0 / "name").write_text("coretemp\n")
    (hwmon0 / "temp1_input").write_text("52000\n")
    (hwmon0 / "temp1_label").write_text("Package id 0\n")
    (hwmon0 / "temp2_input").write_text("45000\n")
    (hwmon0 / "temp2_label").write_text("Core 0\n")
    (hwmon0 / "temp3_input").write_text("47500\n")
    (hwmon0 / "temp3_label").write_text("Core 1\n")

    hwmon1 = tmp_path / "hwmon1"
    hwmon1.mkdir()
    (hwmon1 / "name").write_text("acpitz\n")
    (hwmon1 / "temp1_input").write_text("30000\n")
    # No label file for temp1 -> should fall back to "temp1"

    hwmon2 = tmp_path / "hwmon2"
    hwmon2.mkdir()
    (hwmon2 / "name").write_text("nct6798\n")
    (hwmon2 / "fan1_input").write_text("1200\n")
    (hwmon2 / "fan1_label").write_text("Fan #1\n")
    (hwmon2 / "in0_input").write_text("1104\n")

    hwmon3 = tmp_path / "hwmon3"
    hwmon3.mkdir()
    (hwmon3 / "name").write_text("amdgpu\n")
    (hwmon3 / "temp1_input").write_text("61000\n")
    (hwmon3 / "temp1_label").write_text("edge\n")
    (hwmon3 / "power1_average").write_text("150000000\n")
    (hwmon3 / "power1_input").write_text("151000000\n")
    (hwmon3 / "power1_label").write_text("PPT\n")
    device = hwmon3 / "device"
    device.mkdir()
    (device / "gpu_busy_percent").write_text("87\n")
    (device / "mem_info_vram_used").write_text(f"{2048 * 1_048_576}\n")
    (device / "mem_info_vram_total").write_text(f"{8192 * 1_048_576}\n")

    # Storage chips are reported by the disk reader
    hwmon4 = tmp_path / "hwmon4"
    hwmon4.mkdir()
    (hwmon4 / "name").write_text("nvme\n")
    (hwmon4 / "temp1_input").write_text("38000\n")

    return tmp_path


class TestClassifyChip:
    """Tests for classify_chip()."""

    def test_cpu_chips(self) -> None:
        assert classify_chip("coretemp") is HardwareType.CPU
        assert classify_chip("k10temp") is HardwareType.CPU

    def test_gpu_chips(self) -> None:
        assert classify_chip("amdgpu") is HardwareType.GPU_AMD
        assert classify_chip("nouveau") is HardwareType.GPU_NVIDIA
        assert classify_chip("i915") is HardwareType.GPU_INTEL

    def test_superio_chips(self) -> None:
        assert classify_chip("nct6798") is HardwareType.SUPERIO
        assert classify_chip("it8688") is HardwareType.SUPERIO

    def test_acpitz_is_not_skipped_as_ac(self) -> None:
        assert classify_chip("acpitz") is HardwareType.MOTHERBOARD

    def test_skipped_chips(self) -> None:
        assert classify_chip("nvme") is None
        assert classify_chip("BAT0") is None
        assert classify_chip("AC") is None

    def test_unknown_chip_is_board(self) -> None:
        assert classify_chip("some_ec") is HardwareType.MOTHERBOARD


class TestDiscoverHwmon:
    """Tests for HwmonReader.discover_hwmon()."""

    def test_discovers_chips(self, fake_hwmon: Path) -> None:
        chips = HwmonReader.discover_hwmon(str(fake_hwmon))
        assert [c.name for c in chips] == ["coretemp", "acpitz", "nct6798", "amdgpu"]

    def test_label_fallback(self, fake_hwmon: Path) -> None:
        chips = HwmonReader.discover_hwmon(str(fake_hwmon))
        acpi = [c for c in chips if c.name == "acpitz"]
        assert len(acpi) == 1
        assert acpi[0].inputs[0].label == "temp1"

    def test_power_input_listed_once(self, fake_hwmon: Path) -> None:
        chips = HwmonReader.discover_hwmon(str(fake_hwmon))
        amdgpu = next(c for c in chips if c.name == "amdgpu")
        kinds = [i.kind for i in amdgpu.inputs]
        assert kinds.count("power") == 1

    def test_input_kinds(self, fake_hwmon: Path) -> None:
        chips = HwmonReader.discover_hwmon(str(fake_hwmon))
        nct = next(c for c in chips if c.name == "nct6798")
        assert {i.sensor_type for i in nct.inputs} == {SensorType.FAN, SensorType.VOLTAGE}

    def test_nonexistent_root(self, tmp_path: Path) -> None:
        assert HwmonReader.discover_hwmon(str(tmp_path / "nonexistent")) == []


class TestHwmonReader:
    """Tests for HwmonReader devices and update()."""

    def test_values_after_update(self, fake_hwmon: Path) -> None:
        reader = HwmonReader(HwmonReader.discover_hwmon(str(fake_hwmon)))
        reader.update()
        cpu = reader.devices_of(HardwareType.CPU)[0]
        values = {s.name: s.value for s in cpu.sensors}
        assert values["Package id 0"] == pytest.approx(52.0)
        assert values["Core 1"] == pytest.approx(47.5)

    def test_units(self, fake_hwmon: Path) -> None:
        reader = HwmonReader(HwmonReader.discover_hwmon(str(fake_hwmon)))
        reader.update()
        board = reader.devices_of(HardwareType.SUPERIO)[0]
        fan = next(board.sensors_of(SensorType.FAN))
        volts = next(board.sensors_of(SensorType.VOLTAGE))
        assert fan.value == pytest.approx(1200.0)
        assert volts.value == pytest.approx(1.104)

    def test_amdgpu_labels_and_extras(self, fake_hwmon: Path) -> None:
        reader = HwmonReader(HwmonReader.discover_hwmon(str(fake_hwmon)))
        reader.update()
        gpu = reader.devices_of(HardwareType.GPU_AMD)[0]
        temp = next(gpu.sensors_of(SensorType.TEMPERATURE))
        assert temp.name == "GPU Core"
        assert temp.value == pytest.approx(61.0)
        values = {s.name: s.value for s in gpu.sensors if s.sensor_type is not SensorType.LOAD}
        assert values["GPU Package"] == pytest.approx(150.0)
        assert values["GPU Memory Used"] == pytest.approx(2048.0)
        assert values["GPU Memory Total"] == pytest.approx(8192.0)
        load = next(gpu.sensors_of(SensorType.LOAD))
        assert load.value == pytest.approx(87.0)

    def test_sensors_refresh_in_place(self, fake_hwmon: Path) -> None:
        reader = HwmonReader(HwmonReader.discover_hwmon(str(fake_hwmon)))
        reader.update()
        sensor = reader.devices_of(HardwareType.MOTHERBOARD)[0].sensors[0]
        (fake_hwmon / "hwmon1" / "temp1_input").write_text("33000\n")
        reader.update()
        assert sensor.value == pytest.approx(33.0)

    def test_missing_file_reads_none(self, tmp_path: Path) -> None:
        inp = HwmonInput(path=tmp_path / "nonexistent", chip="test", kind="temp", label="x")
        chip = HwmonChip(
            hwmon_dir=tmp_path, name="test", hardware_type=HardwareType.MOTHERBOARD, inputs=(inp,)
        )
        reader = HwmonReader([chip])
        reader.update()
        assert reader.devices[0].sensors[0].value is None

    def test_identifiers_follow_directories(self, fake_hwmon: Path) -> None:
        reader = HwmonReader(HwmonReader.discover_hwmon(str(fake_hwmon)))
        assert [d.identifier for d in reader.devices] == [
            "hwmon/hwmon0",
            "hwmon/hwmon1",
            "hwmon/hwmon2",
            "hwmon/hwmon3",
        ]

    def test_empty_chips(self) -> None:
        reader = HwmonReader([])
        reader.update()
        assert reader.devices == []
