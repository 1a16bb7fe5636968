# nvidia_smi_exporter/config.py
from __future__ import annotations

import os
from pathlib import Path
from typing import Literal, Mapping, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError

from .collector.poller import NVIDIA_SMI_PATH, POLL_INTERVAL, FailurePolicy
from .errors import ConfigError

# *** How to override at runtime:
# export TEST_MODE=1                      # replay ./test.xml instead of nvidia-smi
# export LISTEN_ADDRESS=127.0.0.1:9202
# export NVSMI_EXPORTER_FAILURE_POLICY=retry-backoff
# export NVSMI_EXPORTER_STALE_AFTER=12    # drop a vanished GPU after 12 cycles

LISTEN_ADDRESS = ":9202"
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def default_fixture() -> Path:
    return Path.cwd() / "test.xml"


class Settings(BaseModel):
    test_mode: bool = False
    listen_address: str = LISTEN_ADDRESS
    nvidia_smi_path: str = NVIDIA_SMI_PATH
    fixture_path: Path = Field(default_factory=default_fixture)
    poll_interval: float = POLL_INTERVAL
    timeout: float = 10
    failure_policy: FailurePolicy = FailurePolicy.FAIL_STOP
    max_backoff: float = 300
    stale_after: int = 0
    log_level: LogLevel = "INFO"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env
        raw = {
            "test_mode": env.get("TEST_MODE") == "1",
            "listen_address": env.get("LISTEN_ADDRESS") or LISTEN_ADDRESS,
            "nvidia_smi_path": env.get("NVIDIA_SMI_PATH") or NVIDIA_SMI_PATH,
            "fixture_path": env.get("NVSMI_EXPORTER_FIXTURE") or default_fixture(),
            "poll_interval": env.get("NVSMI_EXPORTER_POLL_SEC", POLL_INTERVAL),
            "timeout": env.get("NVSMI_EXPORTER_TIMEOUT", 10),
            "failure_policy": env.get("NVSMI_EXPORTER_FAILURE_POLICY", FailurePolicy.FAIL_STOP.value),
            "max_backoff": env.get("NVSMI_EXPORTER_MAX_BACKOFF", 300),
            "stale_after": env.get("NVSMI_EXPORTER_STALE_AFTER", 0),
            "log_level": env.get("NVSMI_EXPORTER_LOG_LEVEL", "INFO").upper(),
        }
        try:
            return cls(**raw)
        except ValidationError as exc:
            raise ConfigError(f"invalid exporter configuration: {exc}") from exc

    def host_port(self) -> Tuple[str, int]:
        """Split `host:port`; an empty host (':9202') listens on all interfaces."""
        return parse_listen_address(self.listen_address)


def parse_listen_address(address: str) -> Tuple[str, int]:
    host, sep, port = address.rpartition(":")
    if not sep or not port.isdigit():
        raise ConfigError(f"listen address must look like 'host:port', got {address!r}")
    return host.strip("[]") or "0.0.0.0", int(port)
