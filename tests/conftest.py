from __future__ import annotations

from pathlib import Path

import pytest

from nvidia_smi_exporter.collector.registry import MetricRegistry

DATA = Path(__file__).parent / "data"


@pytest.fixture
def snapshot_xml() -> bytes:
    return (DATA / "gpu_snapshot.xml").read_bytes()


@pytest.fixture
def fixture_path() -> Path:
    return DATA / "gpu_snapshot.xml"


@pytest.fixture
def registry() -> MetricRegistry:
    return MetricRegistry()


def smi_xml(*gpus: str, driver: str = "535.104.05", attached: str | None = None) -> bytes:
    """Minimal nvidia-smi document; each gpu argument is the inner XML of one <gpu>."""
    attached = str(len(gpus)) if attached is None else attached
    body = "".join(f"<gpu>{g}</gpu>" for g in gpus)
    return (
        f"<nvidia_smi_log><driver_version>{driver}</driver_version>"
        f"<attached_gpus>{attached}</attached_gpus>{body}</nvidia_smi_log>"
    ).encode()


@pytest.fixture(name="smi_xml")
def smi_xml_fixture():
    """Builder for minimal nvidia-smi documents."""
    return smi_xml
