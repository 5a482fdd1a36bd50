"""Refresh loop with signal handling.

Drives a :class:`~overlay_sensors.engine.HardwareMonitor` at a fixed
interval, resolves the configured metrics into display items and prints
them to stdout.  Handles SIGTERM/SIGINT for graceful shutdown.
"""

from __future__ import annotations

import signal
import sys
import time
from typing import TYPE_CHECKING, TextIO

from .display import MetricItem
from .engine import HardwareMonitor
from .metrics import MetricKey
from .provider import SysfsProvider

if TYPE_CHECKING:
    from .config import MonitorConfig
    from .provider import TelemetryProvider


_shutdown_requested = False


def _signal_handler(signum: int, frame: object) -> None:
    """Handle SIGTERM/SIGINT for graceful shutdown."""
    global _shutdown_requested
    _shutdown_requested = True


def build_items(metrics: list[str]) -> list[MetricItem]:
    """Create display items for the known keys in ``metrics``, in order."""
    items: list[MetricItem] = []
    for key in metrics:
        if MetricKey.parse(key) is None:
            print(f"Warning: unknown metric {key!r}, skipping", file=sys.stderr)
            continue
        items.append(MetricItem(key=key))
    return items


def _item_text(item: MetricItem, horizontal: bool) -> str:
    if item.value is None:
        return "--"
    return item.get_formatted_text(horizontal=horizontal)


def render(items: list[MetricItem], horizontal: bool = False) -> str:
    """Format one frame; metrics without any value show as ``--``."""
    if horizontal:
        return " ".join(f"{item.short_label} {_item_text(item, True)}" for item in items)
    width = max((len(item.label) for item in items), default=0)
    return "\n".join(f"{item.label:<{width}}  {_item_text(item, False)}" for item in items)


def print_listings(monitor: HardwareMonitor, out: TextIO | None = None) -> None:
    """Print the names accepted by the device and sensor preferences."""
    out = out if out is not None else sys.stdout
    sections = [
        ("Network adapters", monitor.list_all_networks()),
        ("Disks", monitor.list_all_disks()),
        ("Motherboard temperatures", monitor.list_all_mobo_temps()),
        ("Fans", monitor.list_all_fans()),
    ]
    for title, names in sections:
        print(f"{title}:", file=out)
        for name in names:
            print(f"  {name}", file=out)
        if not names:
            print("  (none)", file=out)


def run_monitor(
    config: MonitorConfig,
    provider: TelemetryProvider | None = None,
    out: TextIO | None = None,
) -> int:
    """Run the refresh loop until interrupted or the duration elapses.

    Returns the number of frames printed.
    """
    global _shutdown_requested
    _shutdown_requested = False
    out = out if out is not None else sys.stdout

    signal.signal(signal.SIGTERM, _signal_handler)
    signal.signal(signal.SIGINT, _signal_handler)

    if provider is None:
        print("Discovering sensors...", file=sys.stderr)
        provider = SysfsProvider(config.sysfs_root, config.proc_root)
    monitor = HardwareMonitor(provider, config.settings)
    items = build_items(config.metrics)

    print(f"  Metrics: {len(items)}, interval: {config.interval}s", file=sys.stderr)
    if config.duration > 0:
        print(f"  Duration: {config.duration}s", file=sys.stderr)
    print("  Press Ctrl+C to stop.\n", file=sys.stderr)

    frames = 0
    start_mono = time.monotonic()
    next_tick = time.monotonic()

    while not _shutdown_requested:
        if config.duration > 0 and time.monotonic() - start_mono >= config.duration:
            print(f"\nDuration limit reached ({config.duration}s).", file=sys.stderr)
            break

        monitor.refresh()
        for item in items:
            item.value = monitor.get(item.key)
            item.tick_smooth(config.smoothing)

        print(render(items, config.horizontal), file=out)
        if not config.horizontal:
            print(file=out)
        out.flush()
        frames += 1

        # Sleep until next tick (compensate for refresh time)
        next_tick += config.interval
        sleep_time = next_tick - time.monotonic()
        if sleep_time > 0:
            time.sleep(sleep_time)
        else:
            # Behind schedule: skip ahead to avoid drift
            missed = int(-sleep_time / config.interval)
            if missed > 0:
                print(
                    f"Warning: missed {missed} tick(s), resynchronizing",
                    file=sys.stderr,
                )
            next_tick = time.monotonic()

    elapsed = time.monotonic() - start_mono
    print(f"\nDone. {frames} frames in {elapsed:.1f}s", file=sys.stderr)
    return frames
