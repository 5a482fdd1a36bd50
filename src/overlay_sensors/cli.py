"""Command-line interface for the overlay sensor monitor."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .config import DEFAULT_METRICS, EngineSettings, MonitorConfig


def parse_metrics(value: str) -> list[str]:
    """Parse a comma-separated metric list such as ``CPU.Load,GPU.Temp``.

    Raises:
        ValueError: If the list is empty.
    """
    metrics = [m.strip() for m in value.split(",") if m.strip()]
    if not metrics:
        raise ValueError(f"no metrics in {value!r}")
    return metrics


def parse_args(argv: list[str] | None = None) -> MonitorConfig:
    """Parse command-line arguments into a MonitorConfig."""
    parser = argparse.ArgumentParser(
        prog="overlay-sensors",
        description="Print normalized hardware metrics for an on-screen overlay",
    )
    parser.add_argument(
        "-i",
        "--interval",
        type=float,
        default=1.0,
        help="Refresh interval in seconds (default: 1.0)",
    )
    parser.add_argument(
        "-d",
        "--duration",
        type=int,
        default=0,
        help="Run duration in seconds, 0 for unlimited (default: 0)",
    )
    parser.add_argument(
        "-m",
        "--metrics",
        type=str,
        default=",".join(DEFAULT_METRICS),
        help="Comma-separated metric keys to show (default: %(default)s)",
    )
    parser.add_argument(
        "--smoothing",
        type=float,
        default=0.35,
        help="Display smoothing per refresh, 0.9 or more disables it (default: 0.35)",
    )
    parser.add_argument(
        "--horizontal",
        action="store_true",
        help="Print each frame on a single compact line",
    )
    parser.add_argument(
        "--net",
        type=str,
        default="",
        help="Network adapter to report (default: auto-select busiest)",
    )
    parser.add_argument(
        "--disk",
        type=str,
        default="",
        help="Disk to report (default: auto-select, preferring the system drive)",
    )
    parser.add_argument(
        "--mobo-temp",
        type=str,
        default="",
        help="Motherboard temperature sensor for MOBO.Temp, as shown by --list",
    )
    parser.add_argument(
        "--fan",
        type=str,
        default="",
        help="Fan sensor for FAN.Speed, as shown by --list",
    )
    parser.add_argument(
        "--system-cpu-load",
        action="store_true",
        help="Take CPU.Load from the OS utilization counter instead of sensors",
    )
    parser.add_argument(
        "--simulate-battery",
        action="store_true",
        help="Synthesize a charge/discharge cycle for BAT.* metrics",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="List selectable adapters, disks and board sensors, then exit",
    )
    parser.add_argument(
        "--sysfs-root",
        type=Path,
        default=Path("/sys"),
        help=argparse.SUPPRESS,
    )
    parser.add_argument(
        "--proc-root",
        type=Path,
        default=Path("/proc"),
        help=argparse.SUPPRESS,
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args(argv)

    try:
        metrics = parse_metrics(args.metrics)
    except ValueError as e:
        parser.error(str(e))

    settings = EngineSettings(
        use_system_cpu_load=args.system_cpu_load,
        simulate_battery=args.simulate_battery,
        preferred_network=args.net,
        preferred_disk=args.disk,
        preferred_mobo_temp=args.mobo_temp,
        preferred_fan=args.fan,
    )
    return MonitorConfig(
        interval=args.interval,
        duration=args.duration,
        smoothing=args.smoothing,
        metrics=metrics,
        horizontal=args.horizontal,
        sysfs_root=args.sysfs_root,
        proc_root=args.proc_root,
        settings=settings,
        list_only=args.list,
        verbose=args.verbose,
    )


def main(argv: list[str] | None = None) -> None:
    """Entry point for the overlay-sensors CLI."""
    config = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if config.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    # Import here so --help works without touching sysfs
    from .collector import print_listings, run_monitor

    if config.list_only:
        from .engine import HardwareMonitor
        from .provider import SysfsProvider

        monitor = HardwareMonitor(
            SysfsProvider(config.sysfs_root, config.proc_root), config.settings
        )
        print_listings(monitor)
        return

    try:
        run_monitor(config)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)
