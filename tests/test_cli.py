"""Tests for the CLI and the refresh loop."""

from __future__ import annotations

import contextlib
import io
from pathlib import Path
from unittest.mock import patch

import pytest

from overlay_sensors import collector
from overlay_sensors.cli import main, parse_args, parse_metrics
from overlay_sensors.collector import build_items, print_listings, render, run_monitor
from overlay_sensors.config import DEFAULT_METRICS, MonitorConfig
from overlay_sensors.display import MetricItem
from overlay_sensors.engine import HardwareMonitor
from overlay_sensors.model import Device, HardwareType, Sensor, SensorType
from overlay_sensors.provider import StaticProvider

_MOD = "overlay_sensors.collector"


class StoppingProvider(StaticProvider):
    """Request shutdown after a fixed number of updates."""

    def __init__(self, devices: list[Device], stop_after: int) -> None:
        super().__init__(devices)
        self.stop_after = stop_after

    def update(self) -> None:
        super().update()
        if self.update_count >= self.stop_after:
            collector._shutdown_requested = True


def _cpu() -> Device:
    return Device(
        HardwareType.CPU,
        "Intel Core i5-12400",
        sensors=[
            Sensor(SensorType.LOAD, "CPU Total", 50.0),
            Sensor(SensorType.TEMPERATURE, "CPU Package", 58.0),
        ],
    )


class TestParseMetrics:
    """Tests for parse_metrics()."""

    def test_strips_and_skips_empty(self) -> None:
        assert parse_metrics(" CPU.Load, ,GPU.Temp,") == ["CPU.Load", "GPU.Temp"]

    def test_empty(self) -> None:
        with pytest.raises(ValueError, match="no metrics"):
            parse_metrics(" , ")


class TestParseArgs:
    """Tests for parse_args()."""

    def test_defaults(self) -> None:
        config = parse_args([])
        assert config.interval == 1.0
        assert config.duration == 0
        assert config.smoothing == 0.35
        assert config.metrics == list(DEFAULT_METRICS)
        assert not config.horizontal
        assert not config.list_only
        assert config.sysfs_root == Path("/sys")
        assert config.settings.preferred_network == ""
        assert not config.settings.use_system_cpu_load

    def test_options(self) -> None:
        config = parse_args(
            [
                "-i", "0.5",
                "-d", "30",
                "-m", "CPU.Temp,FAN.Speed",
                "--horizontal",
                "--net", "wlan0",
                "--disk", "Samsung SSD 980 (nvme0n1)",
                "--fan", "Fan #1 [ASUS PRIME B550]",
                "--system-cpu-load",
                "--simulate-battery",
                "--sysfs-root", "/tmp/sys",
                "-v",
            ]
        )
        assert config.interval == 0.5
        assert config.duration == 30
        assert config.metrics == ["CPU.Temp", "FAN.Speed"]
        assert config.horizontal
        assert config.verbose
        assert config.sysfs_root == Path("/tmp/sys")
        assert config.settings.preferred_network == "wlan0"
        assert config.settings.preferred_disk == "Samsung SSD 980 (nvme0n1)"
        assert config.settings.preferred_fan == "Fan #1 [ASUS PRIME B550]"
        assert config.settings.use_system_cpu_load
        assert config.settings.simulate_battery

    def test_empty_metrics_rejected(self) -> None:
        with pytest.raises(SystemExit):
            parse_args(["-m", ","])


class TestRender:
    """Tests for build_items() and render()."""

    def test_unknown_keys_skipped(self, capsys: pytest.CaptureFixture[str]) -> None:
        items = build_items(["CPU.Load", "CPU.Voltage", "GPU.Temp"])
        assert [i.key for i in items] == ["CPU.Load", "GPU.Temp"]
        assert "CPU.Voltage" in capsys.readouterr().err

    def test_vertical(self) -> None:
        load = MetricItem("CPU.Load", value=42.0, display_value=42.0)
        temp = MetricItem("GPU.Temp")
        assert render([load, temp]) == "CPU.Load  42%\nGPU.Temp  --"

    def test_horizontal(self) -> None:
        load = MetricItem("CPU.Load", value=42.0, display_value=42.0)
        temp = MetricItem("GPU.Temp")
        assert render([load, temp], horizontal=True) == "LOAD 42% TEMP --"

    def test_listings(self) -> None:
        out = io.StringIO()
        print_listings(HardwareMonitor(StaticProvider([_cpu()])), out)
        text = out.getvalue()
        assert "Network adapters:\n  (none)" in text
        assert "Fans:\n  (none)" in text

    def test_listings_follow_redirected_stdout(self) -> None:
        buf = io.StringIO()
        with contextlib.redirect_stdout(buf):
            print_listings(HardwareMonitor(StaticProvider([_cpu()])))
        assert buf.getvalue().startswith("Network adapters:\n")


class TestRunMonitor:
    """Tests for run_monitor()."""

    def test_stops_on_shutdown_request(self) -> None:
        config = MonitorConfig(interval=0.01, metrics=["CPU.Load", "CPU.Temp"], horizontal=True)
        provider = StoppingProvider([_cpu()], stop_after=3)
        out = io.StringIO()
        with patch(f"{_MOD}.signal.signal"), patch(f"{_MOD}.time.sleep"):
            frames = run_monitor(config, provider, out)

        assert frames == 2
        assert out.getvalue().splitlines() == ["LOAD 50% TEMP 58°"] * 2

    def test_duration_limit(self, capsys: pytest.CaptureFixture[str]) -> None:
        config = MonitorConfig(interval=1.0, duration=5, metrics=["CPU.Load"])
        ticks = iter(range(100))
        out = io.StringIO()
        with (
            patch(f"{_MOD}.signal.signal"),
            patch(f"{_MOD}.time.sleep"),
            patch(f"{_MOD}.time.monotonic", side_effect=lambda: float(next(ticks))),
        ):
            frames = run_monitor(config, StaticProvider([_cpu()]), out)

        assert frames == 1
        assert "Duration limit reached (5s)" in capsys.readouterr().err
        assert "CPU.Load  50%" in out.getvalue()


class TestMain:
    """Tests for main()."""

    def test_list(self, capsys: pytest.CaptureFixture[str]) -> None:
        board = Device(
            HardwareType.MOTHERBOARD,
            "ASUS PRIME B550",
            sensors=[Sensor(SensorType.FAN, "Fan #1", 800.0)],
        )
        provider = StaticProvider([_cpu(), board])
        with patch("overlay_sensors.provider.SysfsProvider", return_value=provider):
            main(["--list"])
        assert "  Fan #1 [ASUS PRIME B550]" in capsys.readouterr().out

    def test_interrupt_exits_cleanly(self, capsys: pytest.CaptureFixture[str]) -> None:
        with patch(f"{_MOD}.run_monitor", side_effect=KeyboardInterrupt):
            with pytest.raises(SystemExit) as exc:
                main(["-i", "0.1"])
        assert exc.value.code == 0
        assert "Interrupted." in capsys.readouterr().err
