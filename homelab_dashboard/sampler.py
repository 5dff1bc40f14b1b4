"""Background sampler that publishes host resource snapshots."""
from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, TypeVar

from .errors import MeasurementError
from .metrics import HostProbe, measure_cpu, measure_disk, measure_memory
from .models import CPUMetrics, DiskMetrics, MemoryMetrics, Snapshot

DEFAULT_CPU_WINDOW_SECONDS = 1.0

T = TypeVar("T")


class ReadWriteLock:
    """Many concurrent readers or one writer.

    Waiting writers block new readers so a steady stream of reads cannot
    starve the publisher.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writing = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writing or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writing or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writing = True
        try:
            yield
        finally:
            with self._cond:
                self._writing = False
                self._cond.notify_all()


class MetricsSampler:
    """
    Periodically measure the host and publish an immutable Snapshot.

    A sampler goes new -> starting -> running -> stopped exactly once.
    ``start`` takes one measurement synchronously before returning, and
    ``stop`` may arrive during it. After that, a daemon thread refreshes
    the snapshot every ``interval`` seconds until ``stop`` is called. Readers
    call ``get_snapshot`` from any thread; measurement happens outside the
    lock, which is held only to swap or copy the published reference.
    """

    def __init__(
        self,
        probe: Optional[HostProbe] = None,
        cpu_window: float = DEFAULT_CPU_WINDOW_SECONDS,
    ) -> None:
        if cpu_window <= 0:
            raise ValueError("cpu_window must be positive")
        self._probe = probe if probe is not None else HostProbe()
        self._cpu_window = float(cpu_window)
        self._lock = ReadWriteLock()
        self._snapshot: Optional[Snapshot] = None
        self._state_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._state = "new"
        self._interval = 0.0
        self._mount = ""

    @property
    def state(self) -> str:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == "running"

    def start(self, interval: float, disk_mount_path: Optional[str] = "") -> None:
        """
        Take a first measurement and launch the background cycle.

        Args:
            interval: Seconds between the end of one cycle and the next.
            disk_mount_path: Filesystem path to measure; empty means the
                platform root.
        """
        if interval <= 0:
            raise ValueError("interval must be positive")
        with self._state_lock:
            if self._state != "new":
                raise RuntimeError(f"cannot start a sampler that is {self._state}")
            self._state = "starting"

        self._interval = float(interval)
        self._mount = disk_mount_path or ""
        self._publish(self.collect())

        with self._state_lock:
            if self._stop_event.is_set():
                # stop() ran during the first measurement
                return
            self._state = "running"
            self._thread = threading.Thread(
                target=self._run,
                daemon=True,
                name="MetricsSampler",
            )
            self._thread.start()
        logging.info(
            "Metrics sampler started: interval %.1fs, cpu window %.1fs, mount %s",
            self._interval,
            self._cpu_window,
            self._mount or "<root>",
        )

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """
        Ask the background cycle to exit and wait for it.

        A measurement already in progress is allowed to finish.

        Args:
            timeout: How long to wait for the thread to exit (seconds).
        """
        with self._state_lock:
            if self._state == "stopped":
                return
            self._state = "stopped"
            self._stop_event.set()
            thread, self._thread = self._thread, None
        if thread is not None:
            thread.join(timeout=timeout)
            if thread.is_alive():
                logging.warning("Metrics sampler did not exit within %ss", timeout)
        logging.info("Metrics sampler stopped")

    def get_snapshot(self) -> Snapshot:
        """Return the latest completed snapshot, copied so callers cannot alias it."""
        with self._lock.read():
            snapshot = self._snapshot
            if snapshot is None:
                return Snapshot.empty()
            return snapshot.copy()

    def collect(self) -> Snapshot:
        """Measure every section, zeroing any section whose source failed."""
        cpu = self._measure("cpu", lambda: measure_cpu(self._probe, self._cpu_window), CPUMetrics)
        memory = self._measure("memory", lambda: measure_memory(self._probe), MemoryMetrics)
        disk = self._measure("disk", lambda: measure_disk(self._probe, self._mount), DiskMetrics)
        return Snapshot(cpu=cpu, memory=memory, disk=disk)

    @staticmethod
    def _measure(section: str, measure: Callable[[], T], fallback: Callable[[], T]) -> T:
        try:
            return measure()
        except MeasurementError as exc:
            logging.warning("%s measurement failed: %s", section, exc)
        except Exception:  # pylint: disable=broad-except
            logging.exception("Unexpected error while measuring %s", section)
        return fallback()

    def _publish(self, snapshot: Snapshot) -> None:
        with self._lock.write():
            self._snapshot = snapshot

    def _run(self) -> None:
        while not self._stop_event.wait(timeout=self._interval):
            snapshot = self.collect()
            self._publish(snapshot)
            logging.debug(
                "Published snapshot cpu=%.1f%% mem=%.1f%% disk=%.1f%%",
                snapshot.cpu.usage,
                snapshot.memory.used_percent,
                snapshot.disk.used_percent,
            )
