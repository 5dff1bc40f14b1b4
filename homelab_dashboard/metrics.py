"""Helpers for measuring host CPU, memory and disk usage."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, List, Optional

import psutil

from .errors import MeasurementError
from .models import CoreUsage, CPUMetrics, DiskMetrics, MemoryMetrics


class HostProbe:
    """Thin psutil facade the sampler reads host counters through.

    Tests substitute an object with the same three methods.
    """

    def cpu_percent(self, interval: float, percpu: bool = False) -> Any:
        return psutil.cpu_percent(interval=interval, percpu=percpu)

    def virtual_memory(self) -> Any:
        return psutil.virtual_memory()

    def disk_usage(self, path: str) -> Any:
        return psutil.disk_usage(path)


def platform_root() -> str:
    if os.name == "nt":
        return str(Path(os.getenv("SystemDrive", "C:") + "\\"))
    return "/"


def resolve_mount(configured: Optional[str]) -> str:
    """Expand a configured mount path, defaulting to the platform root."""
    if configured:
        return str(Path(configured).expanduser())
    return platform_root()


def measure_cpu(probe: HostProbe, window: float) -> CPUMetrics:
    """Measure per-core usage across ``window`` seconds.

    The aggregate is the mean of the per-core values taken over the same
    window.
    """
    try:
        per_core: List[float] = list(probe.cpu_percent(window, percpu=True))
    except (OSError, RuntimeError, psutil.Error) as exc:
        raise MeasurementError(f"cpu counters unavailable: {exc}") from exc

    cores = [CoreUsage(core=index, usage=float(usage)) for index, usage in enumerate(per_core)]
    usage = sum(c.usage for c in cores) / len(cores) if cores else 0.0
    return CPUMetrics(usage=usage, cores=cores)


def measure_memory(probe: HostProbe) -> MemoryMetrics:
    try:
        mem = probe.virtual_memory()
    except (OSError, RuntimeError, psutil.Error) as exc:
        raise MeasurementError(f"memory counters unavailable: {exc}") from exc
    return MemoryMetrics(
        total=int(mem.total),
        used=int(mem.used),
        free=int(mem.free),
        used_percent=float(mem.percent),
    )


def _disk_usage(probe: HostProbe, mount: str) -> DiskMetrics:
    usage = probe.disk_usage(mount)
    return DiskMetrics(
        total=int(usage.total),
        used=int(usage.used),
        free=int(usage.free),
        used_percent=float(usage.percent),
        mount=mount,
    )


def measure_disk(probe: HostProbe, configured_mount: Optional[str]) -> DiskMetrics:
    """Measure usage of the configured mount, retrying once at the platform root.

    The returned ``mount`` names the path that was actually measured.
    """
    mount = resolve_mount(configured_mount)
    try:
        return _disk_usage(probe, mount)
    except (OSError, psutil.Error) as exc:
        root = platform_root()
        logging.warning("Disk usage for %s unavailable (%s); falling back to %s", mount, exc, root)
        try:
            return _disk_usage(probe, root)
        except (OSError, psutil.Error) as root_exc:
            raise MeasurementError(f"disk usage unavailable for {mount} and {root}: {root_exc}") from root_exc
