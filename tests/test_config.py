from pathlib import Path

import pytest

from nvidia_smi_exporter.collector.poller import FailurePolicy
from nvidia_smi_exporter.config import Settings, parse_listen_address
from nvidia_smi_exporter.errors import ConfigError


def test_defaults():
    settings = Settings.from_env({})
    assert settings.test_mode is False
    assert settings.listen_address == ":9202"
    assert settings.host_port() == ("0.0.0.0", 9202)
    assert settings.nvidia_smi_path == "/usr/bin/nvidia-smi"
    assert settings.fixture_path == Path.cwd() / "test.xml"
    assert settings.poll_interval == 5
    assert settings.failure_policy is FailurePolicy.FAIL_STOP
    assert settings.stale_after == 0
    assert settings.log_level == "INFO"


def test_env_overrides():
    settings = Settings.from_env(
        {
            "TEST_MODE": "1",
            "LISTEN_ADDRESS": "127.0.0.1:9400",
            "NVIDIA_SMI_PATH": "/opt/bin/nvidia-smi",
            "NVSMI_EXPORTER_FIXTURE": "/tmp/smi.xml",
            "NVSMI_EXPORTER_POLL_SEC": "2.5",
            "NVSMI_EXPORTER_FAILURE_POLICY": "retry-backoff",
            "NVSMI_EXPORTER_STALE_AFTER": "12",
            "NVSMI_EXPORTER_LOG_LEVEL": "debug",
        }
    )
    assert settings.test_mode is True
    assert settings.host_port() == ("127.0.0.1", 9400)
    assert settings.nvidia_smi_path == "/opt/bin/nvidia-smi"
    assert settings.fixture_path == Path("/tmp/smi.xml")
    assert settings.poll_interval == 2.5
    assert settings.failure_policy is FailurePolicy.RETRY_BACKOFF
    assert settings.stale_after == 12
    assert settings.log_level == "DEBUG"


def test_test_mode_needs_exact_one():
    assert Settings.from_env({"TEST_MODE": "true"}).test_mode is False


@pytest.mark.parametrize(
    "env",
    [
        {"NVSMI_EXPORTER_FAILURE_POLICY": "sometimes"},
        {"NVSMI_EXPORTER_POLL_SEC": "fast"},
        {"NVSMI_EXPORTER_STALE_AFTER": "many"},
        {"NVSMI_EXPORTER_LOG_LEVEL": "verbose"},
    ],
)
def test_invalid_env(env):
    with pytest.raises(ConfigError):
        Settings.from_env(env)


@pytest.mark.parametrize(
    "address, expected",
    [(":9202", ("0.0.0.0", 9202)), ("localhost:80", ("localhost", 80)), ("[::1]:9202", ("::1", 9202))],
)
def test_parse_listen_address(address, expected):
    assert parse_listen_address(address) == expected


@pytest.mark.parametrize("address", ["9202", "host:", "host:port"])
def test_parse_listen_address_invalid(address):
    with pytest.raises(ConfigError):
        parse_listen_address(address)


def test_fixture_default_matches_env_default():
    assert Settings().fixture_path == Settings.from_env({}).fixture_path == Path.cwd() / "test.xml"


@pytest.mark.parametrize("level", ["debug", "Warning", "CRITICAL"])
def test_log_level_case_insensitive(level):
    assert Settings.from_env({"NVSMI_EXPORTER_LOG_LEVEL": level}).log_level == level.upper()
