# collector/poller.py
from __future__ import annotations

import logging
import subprocess
import threading
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from ..errors import DataSourceError, SnapshotParseError
from .parsers import parse_nvidia_smi_xml
from .registry import MetricRegistry

POLL_INTERVAL = 5  # seconds, end of one cycle to start of the next
NVIDIA_SMI_PATH = "/usr/bin/nvidia-smi"

Source = Callable[[], bytes]


class FailurePolicy(str, Enum):
    """What the loop does when nvidia-smi cannot be run."""

    FAIL_STOP = "fail-stop"
    RETRY_BACKOFF = "retry-backoff"
    RETRY = "retry"


# ----------------------------------------------------------------------
# Data sources
# ----------------------------------------------------------------------

def nvidia_smi_source(path: str = NVIDIA_SMI_PATH, timeout: float = 10) -> Source:
    """Source that runs `<path> -q -x` and returns its stdout."""
    cmd = [path, "-q", "-x"]

    def _run_nvidia_smi() -> bytes:
        try:
            return subprocess.run(cmd, check=True, capture_output=True, timeout=timeout).stdout
        except subprocess.CalledProcessError as exc:
            stderr = (exc.stderr or b"").decode(errors="replace").strip()
            raise DataSourceError(f"{path} exited with {exc.returncode}: {stderr}") from exc
        except subprocess.TimeoutExpired as exc:
            raise DataSourceError(f"{path} timed out after {timeout}s") from exc
        except OSError as exc:  # missing binary, permissions
            raise DataSourceError(f"cannot run {path}: {exc}") from exc

    return _run_nvidia_smi


def fixture_source(path: str | Path) -> Source:
    """Source that replays a saved `nvidia-smi -q -x` document (test mode)."""
    fixture = Path(path)

    def _read_fixture() -> bytes:
        try:
            return fixture.read_bytes()
        except OSError as exc:
            raise DataSourceError(f"cannot read fixture {fixture}: {exc}") from exc

    return _read_fixture


# ----------------------------------------------------------------------
# Collector loop
# ----------------------------------------------------------------------

class Poller:
    """Background loop: invoke source -> parse -> apply to the registry.

    Bad data (a malformed document) fails only that cycle and keeps the
    previous values. A source that cannot be run is handled by `policy`:
    FAIL_STOP ends the loop for good, RETRY_BACKOFF doubles the wait up to
    `max_backoff`, RETRY keeps the normal interval.
    """

    def __init__(
        self,
        registry: MetricRegistry,
        source: Source,
        interval: float = POLL_INTERVAL,
        policy: FailurePolicy = FailurePolicy.FAIL_STOP,
        max_backoff: float = 300,
    ) -> None:
        self.registry = registry
        self.source = source
        self.interval = interval
        self.policy = FailurePolicy(policy)
        self.max_backoff = max_backoff
        self.failures = 0  # consecutive invocation failures
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def run_once(self) -> bool:
        """One poll cycle. Returns True if the registry was updated.

        DataSourceError propagates so the loop can apply its policy.
        """
        raw = self.source()
        logging.info("Querying SMI...")
        try:
            snapshot = parse_nvidia_smi_xml(raw)
        except SnapshotParseError as exc:
            logging.warning("Skipping cycle, keeping previous values: %s", exc)
            self.registry.record_error("parse")
            return False
        self.registry.apply(snapshot)
        return True

    def next_delay(self) -> float:
        if self.policy is FailurePolicy.RETRY_BACKOFF and self.failures:
            return min(self.interval * 2 ** self.failures, self.max_backoff)
        return self.interval

    def run(self) -> None:
        """Poll until stopped, or until the source fails under FAIL_STOP."""
        self.registry.set_up(True)
        try:
            while not self._stop.is_set():
                try:
                    self.run_once()
                    self.failures = 0
                except DataSourceError as exc:
                    self.registry.record_error("invocation")
                    self.failures += 1
                    if self.policy is FailurePolicy.FAIL_STOP:
                        logging.error("Collector stopped, nvidia-smi unavailable: %s", exc)
                        return
                    logging.error("nvidia-smi failed (%d in a row), retrying: %s", self.failures, exc)
                self._stop.wait(self.next_delay())
        finally:
            self.registry.set_up(False)

    def start(self) -> threading.Thread:
        self._thread = threading.Thread(target=self.run, name="nvidia-smi-poller", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)

    @property
    def alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
