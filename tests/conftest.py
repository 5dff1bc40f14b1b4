"""Shared pytest fixtures for the dashboard tests."""

import datetime as dt
import threading
from types import SimpleNamespace

import pytest

from homelab_dashboard.registry import ApplicationRegistry


class FakeProbe:
    """Deterministic stand-in for the psutil-backed HostProbe."""

    def __init__(self, cores=(10.0, 30.0), memory=None, disk=None):
        self.cores = list(cores)
        self.memory = memory or SimpleNamespace(total=1000, used=400, free=600, percent=40.0)
        self.disk = disk or SimpleNamespace(total=5000, used=1000, free=4000, percent=20.0)
        self.cpu_error = None
        self.memory_error = None
        self.failing_paths = set()
        self.disk_calls = []
        self.cpu_calls = 0

    def cpu_percent(self, interval, percpu=False):
        self.cpu_calls += 1
        if self.cpu_error is not None:
            raise self.cpu_error
        return list(self.cores) if percpu else sum(self.cores) / len(self.cores)

    def virtual_memory(self):
        if self.memory_error is not None:
            raise self.memory_error
        return self.memory

    def disk_usage(self, path):
        self.disk_calls.append(path)
        if path in self.failing_paths:
            raise FileNotFoundError(path)
        return self.disk


class CountingProbe:
    """Probe whose every reading equals the current cycle number.

    Any snapshot mixing two cycles would show differing values.
    """

    def __init__(self, cores=4, delay=0.0):
        self._cycle = 0
        self._cores = cores
        self._delay = delay
        self._lock = threading.Lock()
        self._local = threading.local()

    def cpu_percent(self, interval, percpu=False):
        with self._lock:
            self._cycle += 1
            self._local.cycle = self._cycle
        if self._delay:
            threading.Event().wait(self._delay)
        return [float(self._local.cycle)] * self._cores

    def virtual_memory(self):
        n = self._local.cycle
        return SimpleNamespace(total=n, used=n, free=n, percent=float(n))

    def disk_usage(self, path):
        n = self._local.cycle
        return SimpleNamespace(total=n, used=n, free=n, percent=float(n))


class GatedProbe(CountingProbe):
    """CountingProbe whose CPU reading blocks once ``free_cycles`` have passed.

    ``blocked`` is set while a measurement waits; setting ``release`` lets
    every waiting and later measurement through.
    """

    def __init__(self, free_cycles=1):
        super().__init__(cores=2)
        self.free_cycles = free_cycles
        self.blocked = threading.Event()
        self.release = threading.Event()

    def cpu_percent(self, interval, percpu=False):
        values = super().cpu_percent(interval, percpu)
        if self._local.cycle > self.free_cycles:
            self.blocked.set()
            self.release.wait(5.0)
        return values


class SteppingClock:
    """Clock returning queued datetimes, repeating the last one when exhausted."""

    def __init__(self, *times):
        self._times = list(times)
        self._last = None

    def push(self, *times):
        self._times.extend(times)

    def __call__(self):
        if self._times:
            self._last = self._times.pop(0)
        return self._last


@pytest.fixture
def fake_probe() -> FakeProbe:
    return FakeProbe()


@pytest.fixture
def db_path(tmp_path) -> str:
    return str(tmp_path / "data" / "homelab.db")


@pytest.fixture
def registry(db_path) -> ApplicationRegistry:
    return ApplicationRegistry(db_path)


@pytest.fixture
def base_time() -> dt.datetime:
    return dt.datetime(2026, 10, 19, 12, 0, 0, tzinfo=dt.timezone.utc)


@pytest.fixture
def counting_probe() -> CountingProbe:
    return CountingProbe()


@pytest.fixture
def make_clock():
    return SteppingClock


@pytest.fixture
def make_gated_probe():
    probes = []

    def make(free_cycles=1):
        probe = GatedProbe(free_cycles=free_cycles)
        probes.append(probe)
        return probe

    yield make
    for probe in probes:
        probe.release.set()
