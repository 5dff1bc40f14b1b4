"""Homelab dashboard: application catalog and live host metrics."""
from importlib.metadata import PackageNotFoundError, version

from .api import create_app
from .registry import ApplicationRegistry
from .sampler import MetricsSampler

__all__ = ["ApplicationRegistry", "MetricsSampler", "create_app", "__version__"]

try:
    __version__ = version("homelab-dashboard")
except PackageNotFoundError:  # pragma: no cover - fallback when package metadata missing
    __version__ = "0.1.0"
