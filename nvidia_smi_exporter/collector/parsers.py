from __future__ import annotations

import logging
import re
from typing import Dict, Optional

from lxml import etree  # type: ignore

from ..errors import SnapshotParseError
from ..models import SENTINEL, DeviceReading, SystemSnapshot

# -----------------------------
# Helpers
# -----------------------------

_NON_NUMERIC = re.compile(r"[^0-9.]")

# DeviceReading field -> path below <gpu>
GPU_FIELDS: Dict[str, str] = {
    "fan_speed": "fan_speed",
    "memory_total": "fb_memory_usage/total",
    "memory_used": "fb_memory_usage/used",
    "memory_free": "fb_memory_usage/free",
    "utilization_gpu": "utilization/gpu_util",
    "utilization_memory": "utilization/memory_util",
    "temperature": "temperature/gpu_temp",
    "temperature_max": "temperature/gpu_temp_max_threshold",
    "temperature_slow": "temperature/gpu_temp_slow_threshold",
    "power_draw": "power_readings/power_draw",
    "power_limit": "power_readings/power_limit",
    "clock_graphics": "clocks/graphics_clock",
    "clock_graphics_max": "max_clocks/graphics_clock",
    "clock_sm": "clocks/sm_clock",
    "clock_sm_max": "max_clocks/sm_clock",
    "clock_mem": "clocks/mem_clock",
    "clock_mem_max": "max_clocks/mem_clock",
    "clock_video": "clocks/video_clock",
    "clock_video_max": "max_clocks/video_clock",
}

# nvidia-smi ships a DOCTYPE; never fetch or expand it
_PARSER = etree.XMLParser(resolve_entities=False, no_network=True, load_dtd=False)


def filter_number(value: Optional[str]) -> float:
    """Turn a field like '45 %', '250.00 W' or 'N/A' into a float.

    Everything except digits and '.' is dropped. An empty remainder, or one
    that still isn't a number (e.g. '1.2.3'), yields SENTINEL.
    """
    stripped = _NON_NUMERIC.sub("", value or "")
    if not stripped:
        return SENTINEL
    try:
        return float(stripped)
    except ValueError:
        logging.debug("Unparseable telemetry value %r", value)
        return SENTINEL


def _txt(node: etree._Element, path: str) -> str:
    found = node.find(path)
    return found.text.strip() if found is not None and found.text else ""


# -----------------------------
# Public API
# -----------------------------

def parse_gpu(gpu: etree._Element, minor: int) -> DeviceReading:
    """Build a DeviceReading from one <gpu> block; missing fields become SENTINEL."""
    values = {field: filter_number(_txt(gpu, path)) for field, path in GPU_FIELDS.items()}
    return DeviceReading(
        minor=minor,
        uuid=_txt(gpu, "uuid"),
        product_name=_txt(gpu, "product_name"),
        **values,
    )


def parse_nvidia_smi_xml(xml_bytes: bytes) -> SystemSnapshot:
    """Parse `nvidia-smi -q -x` output into a SystemSnapshot.

    Devices keep document order; the position becomes the `minor` label.
    Raises SnapshotParseError when the document is not well-formed or its
    root is not <nvidia_smi_log>.
    """
    if not xml_bytes or not xml_bytes.strip():
        raise SnapshotParseError("empty nvidia-smi output")
    try:
        root = etree.fromstring(xml_bytes, parser=_PARSER)
    except etree.XMLSyntaxError as exc:
        raise SnapshotParseError(f"invalid nvidia-smi XML: {exc}") from exc
    if root.tag != "nvidia_smi_log":
        raise SnapshotParseError(f"unexpected root element <{root.tag}>, not an nvidia-smi log")

    return SystemSnapshot(
        driver_version=_txt(root, "driver_version"),
        attached_gpus=filter_number(_txt(root, "attached_gpus")),
        gpus=[parse_gpu(gpu, idx) for idx, gpu in enumerate(root.findall("gpu"))],
    )
