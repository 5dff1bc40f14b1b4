"""Value types shared by the sampler, the registry and the HTTP layer."""
from __future__ import annotations

import dataclasses
import datetime as dt
from dataclasses import dataclass, field
from typing import Any, Dict, List
from urllib.parse import urlsplit

from .errors import ValidationError


@dataclass(frozen=True)
class CoreUsage:
    core: int
    usage: float


@dataclass(frozen=True)
class CPUMetrics:
    usage: float = 0.0
    cores: List[CoreUsage] = field(default_factory=list)


@dataclass(frozen=True)
class MemoryMetrics:
    total: int = 0
    used: int = 0
    free: int = 0
    used_percent: float = 0.0


@dataclass(frozen=True)
class DiskMetrics:
    total: int = 0
    used: int = 0
    free: int = 0
    used_percent: float = 0.0
    mount: str = ""


@dataclass(frozen=True)
class Snapshot:
    """Host resource usage measured during one sampling cycle.

    A snapshot is published as a whole and never mutated afterwards. Every
    section is always present; a section whose source was unavailable holds
    zeros.
    """

    cpu: CPUMetrics = field(default_factory=CPUMetrics)
    memory: MemoryMetrics = field(default_factory=MemoryMetrics)
    disk: DiskMetrics = field(default_factory=DiskMetrics)

    @classmethod
    def empty(cls) -> "Snapshot":
        return cls()

    def copy(self) -> "Snapshot":
        """Return a snapshot that shares no mutable state with this one."""
        cpu = dataclasses.replace(self.cpu, cores=list(self.cpu.cores))
        return dataclasses.replace(self, cpu=cpu)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cpu": {
                "usage": self.cpu.usage,
                "cores": [{"core": c.core, "usage": c.usage} for c in self.cpu.cores],
            },
            "memory": {
                "total": self.memory.total,
                "used": self.memory.used,
                "free": self.memory.free,
                "usedPercent": self.memory.used_percent,
            },
            "disk": {
                "total": self.disk.total,
                "used": self.disk.used,
                "free": self.disk.free,
                "usedPercent": self.disk.used_percent,
                "mount": self.disk.mount,
            },
        }


@dataclass(frozen=True)
class ApplicationInput:
    """Fields a caller supplies when creating or replacing an application."""

    name: str
    url: str
    description: str = ""
    icon: str = ""


@dataclass
class Application:
    id: str
    name: str
    url: str
    description: str
    icon: str
    created_at: dt.datetime
    updated_at: dt.datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "url": self.url,
            "icon": self.icon,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


def _is_absolute_uri(value: str) -> bool:
    if any(ch.isspace() for ch in value):
        return False
    try:
        parts = urlsplit(value)
        # Accessing .port validates it; urlsplit itself is lazy about ports.
        parts.port
    except ValueError:
        return False
    return bool(parts.scheme) and bool(parts.netloc or parts.path)


def validate_application(data: ApplicationInput) -> ApplicationInput:
    """Return a normalized copy of ``data`` or raise ValidationError."""
    name = (data.name or "").strip()
    url = (data.url or "").strip()
    if not name:
        raise ValidationError("Name is required")
    if not url:
        raise ValidationError("URL is required")
    if not _is_absolute_uri(url):
        raise ValidationError("Invalid URL format")
    return ApplicationInput(
        name=name,
        url=url,
        description=data.description or "",
        icon=data.icon or "",
    )
