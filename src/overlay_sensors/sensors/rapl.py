"""CPU power from the sysfs powercap (RAPL) interface.

Reads Running Average Power Limit energy counters from
/sys/class/powercap/intel-rapl:*/ and converts successive samples into
watts.  Requires root on most systems; unreadable domains are skipped.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar

from ..model import Sensor, SensorType
from .counters import CounterRate, read_int

log = logging.getLogger(__name__)

_UJ_TO_J = 1e-6


@dataclass(frozen=True)
class RaplDomain:
    """Description of a single RAPL energy domain or subdomain."""

    name: str  # Contents of the "name" file (e.g. "package-0", "core")
    energy_path: Path  # Full path to the energy_uj file
    max_range: int | None = None  # max_energy_range_uj, for counter wrap


class RaplReader:
    """Expose package and core RAPL domains as CPU power sensors.

    ``package-N`` becomes ``CPU Package`` (summed across sockets) and a
    ``core`` subdomain becomes ``CPU Cores``.  Other domains (uncore, dram,
    psys) are not reported.
    """

    DOMAIN_LABELS: ClassVar[dict[str, str]] = {
        "package": "CPU Package",
        "core": "CPU Cores",
    }

    def __init__(
        self,
        domains: list[RaplDomain],
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._groups: dict[str, list[tuple[RaplDomain, CounterRate]]] = {}
        for domain in domains:
            label = self._label(domain.name)
            if label is None:
                continue
            rate = CounterRate(scale=_UJ_TO_J, wrap=domain.max_range, clock=clock)
            self._groups.setdefault(label, []).append((domain, rate))
        self._sensors = {label: Sensor(SensorType.POWER, label) for label in self._groups}

    @classmethod
    def _label(cls, name: str) -> str | None:
        base = name.split("-", 1)[0].lower()
        return cls.DOMAIN_LABELS.get(base)

    @property
    def sensors(self) -> list[Sensor]:
        return list(self._sensors.values())

    @classmethod
    def discover_rapl(cls, sysfs_root: str = "/sys/class/powercap") -> list[RaplDomain]:
        """Discover available RAPL energy domains in sysfs.

        Scans both top-level domains (``intel-rapl:N``) and subdomains
        (``intel-rapl:N:M``).  Returns an empty list if the powercap
        directory does not exist or is not readable.

        Args:
            sysfs_root: Base path to the powercap class directory.

        Returns:
            List of RaplDomain descriptors.  Empty if RAPL is unavailable.
        """
        root = Path(sysfs_root)
        domains: list[RaplDomain] = []

        if not root.is_dir():
            return domains

        rapl_dirs: list[Path] = []
        try:
            for entry in sorted(root.iterdir()):
                if entry.is_dir() and entry.name.startswith("intel-rapl:"):
                    rapl_dirs.append(entry)
                    try:
                        for sub_entry in sorted(entry.iterdir()):
                            if sub_entry.is_dir() and sub_entry.name.startswith(
                                "intel-rapl:"
                            ):
                                rapl_dirs.append(sub_entry)
                    except PermissionError:
                        continue
        except PermissionError:
            return domains

        for rapl_dir in rapl_dirs:
            energy_path = rapl_dir / "energy_uj"

            # Verify we can actually read the energy counter
            if read_int(energy_path) is None:
                log.debug("Skipping unreadable RAPL domain %s", rapl_dir)
                continue

            try:
                name = (rapl_dir / "name").read_text().strip()
            except (FileNotFoundError, PermissionError):
                name = rapl_dir.name

            domains.append(
                RaplDomain(
                    name=name,
                    energy_path=energy_path,
                    max_range=read_int(rapl_dir / "max_energy_range_uj"),
                )
            )

        return domains

    def update(self) -> None:
        """Sample every counter; a label reads None until all its domains have a rate."""
        for label, members in self._groups.items():
            total = 0.0
            complete = True
            for domain, rate in members:
                watts = rate.update(read_int(domain.energy_path))
                if watts is None:
                    complete = False
                else:
                    total += watts
            self._sensors[label].value = total if complete else None
