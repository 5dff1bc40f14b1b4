"""Runtime configuration helpers."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Tuple

MAX_PORT = 65535


@dataclass(frozen=True)
class Settings:
    host: str = "0.0.0.0"
    port: int = 8080
    database_path: str = "data/homelab.db"
    metrics_interval: float = 5.0
    cpu_sample_interval: float = 1.0
    mount_point: str = ""
    log_level: str = "info"
    cors_origins: Tuple[str, ...] = ("*",)


def _env_number(name: str, default, cast):
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return cast(raw)
    except ValueError:
        logging.warning("Ignoring invalid %s=%r; using %s", name, raw, default)
        return default


def _env_positive(name: str, default, cast):
    value = _env_number(name, default, cast)
    if value <= 0:
        logging.warning("%s must be positive; using %s", name, default)
        return default
    return value


def _env_origins(name: str) -> Tuple[str, ...]:
    raw = os.getenv(name, "")
    origins = tuple(origin.strip() for origin in raw.split(",") if origin.strip())
    return origins or ("*",)


def load_settings() -> Settings:
    """Build settings from environment variables with sensible defaults."""
    defaults = Settings()
    metrics_interval = _env_positive("METRICS_INTERVAL", defaults.metrics_interval, float)
    cpu_sample_interval = _env_positive("CPU_SAMPLE_INTERVAL", defaults.cpu_sample_interval, float)
    port = _env_positive("PORT", defaults.port, int)
    if port > MAX_PORT:
        logging.warning("PORT must be at most %d; using %s", MAX_PORT, defaults.port)
        port = defaults.port

    return Settings(
        host=os.getenv("HOMELAB_HOST", defaults.host),
        port=port,
        database_path=os.getenv("DATABASE_PATH") or defaults.database_path,
        metrics_interval=metrics_interval,
        # Ensure the CPU sample window does not exceed the sampling cadence.
        cpu_sample_interval=min(cpu_sample_interval, metrics_interval),
        mount_point=os.getenv("MOUNT_POINT", defaults.mount_point),
        log_level=os.getenv("LOG_LEVEL", defaults.log_level).lower(),
        cors_origins=_env_origins("CORS_ORIGINS"),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
