"""Display-facing metric items: smoothing and cached value formatting."""

from __future__ import annotations

from dataclasses import dataclass, field

# Changes smaller than this are sensor noise: no animation, no reformat
DEAD_BAND = 0.05

# Deltas larger than this jump straight to the target
SNAP_DELTA = 15.0
SNAP_SPEED = 0.9

_BYTE_UNITS: tuple[str, ...] = ("B", "KB", "MB", "GB", "TB")


def format_bytes(value: float) -> str:
    """Format a byte count with a binary unit, e.g. ``1.5MB``."""
    magnitude = abs(value)
    unit = _BYTE_UNITS[0]
    for unit in _BYTE_UNITS:
        if magnitude < 1024.0 or unit == _BYTE_UNITS[-1]:
            break
        magnitude /= 1024.0
    sign = "-" if value < 0 else ""
    if magnitude < 10 and unit != "B":
        return f"{sign}{magnitude:.1f}{unit}"
    return f"{sign}{magnitude:.0f}{unit}"


def format_value(key: str, value: float) -> str:
    """Render a metric value with the unit implied by its key."""
    group, _, kind = key.partition(".")

    if kind.endswith("Load") or key in ("GPU.VRAM", "BAT.Percent"):
        return f"{value:.0f}%"
    if kind.endswith("Temp"):
        return f"{value:.0f}°C"
    if kind == "Clock":
        if value >= 1000.0:
            return f"{value / 1000.0:.1f}GHz"
        return f"{value:.0f}MHz"
    if group == "BAT":
        if kind == "Power":
            return f"{value:.1f}W"
        if kind == "Voltage":
            return f"{value:.2f}V"
        if kind == "Current":
            return f"{value:.2f}A"
    if kind == "Power":
        return f"{value:.0f}W"
    if group in ("NET", "DISK"):
        return f"{format_bytes(value)}/s"
    if group == "MEM":
        return f"{value:.1f}GB"
    if key in ("GPU.VRAM.Used", "GPU.VRAM.Total"):
        return format_bytes(value * 1024.0 * 1024.0)
    if key == "FAN.Speed":
        return f"{value:.0f}RPM"
    return f"{value:.1f}"


def format_horizontal(text: str) -> str:
    """Compact form for single-row layouts: ``1.5MB/s`` -> ``1.5MB``."""
    return text.removesuffix("/s").replace("°C", "°").replace(" ", "")


@dataclass
class MetricItem:
    """One displayed metric.

    ``value`` is overwritten by the resolver every refresh; ``display_value``
    eases toward it on every animation tick.  Formatted text is cached and
    only rebuilt once ``display_value`` has moved past the dead band.
    """

    key: str
    label: str = ""
    short_label: str = ""
    value: float | None = None
    display_value: float = 0.0

    format_count: int = field(default=0, compare=False)
    _cached_display_value: float = field(default=-99999.0, repr=False, compare=False)
    _cached_normal_text: str = field(default="", repr=False, compare=False)
    _cached_horizontal_text: str = field(default="", repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.label:
            self.label = self.key
        if not self.short_label:
            self.short_label = self.key.rsplit(".", 1)[-1].upper()[:4]

    def tick(self, target: float, speed: float) -> None:
        """Advance ``display_value`` one smoothing step toward ``target``."""
        diff = abs(target - self.display_value)
        if diff < DEAD_BAND:
            return
        if diff > SNAP_DELTA or speed >= SNAP_SPEED:
            self.display_value = target
        else:
            self.display_value += (target - self.display_value) * speed

    def tick_smooth(self, speed: float) -> None:
        """Tick toward the latest resolved value, if there is one."""
        if self.value is not None:
            self.tick(self.value, speed)

    def get_formatted_text(self, horizontal: bool = False) -> str:
        if abs(self.display_value - self._cached_display_value) > DEAD_BAND:
            self._cached_display_value = self.display_value
            self._cached_normal_text = format_value(self.key, self.display_value)
            self._cached_horizontal_text = format_horizontal(self._cached_normal_text)
            self.format_count += 1
        return self._cached_horizontal_text if horizontal else self._cached_normal_text
