# nvidia_smi_exporter/models.py
from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field

SENTINEL = -1.0  # field absent or unparseable


class DeviceReading(BaseModel):
    """One GPU's telemetry as reported in a single nvidia-smi document."""

    minor: int  # ordinal position in the document, not a stable identity
    uuid: str = ""
    product_name: str = ""
    fan_speed: float = SENTINEL
    memory_total: float = SENTINEL
    memory_used: float = SENTINEL
    memory_free: float = SENTINEL
    utilization_gpu: float = SENTINEL
    utilization_memory: float = SENTINEL
    temperature: float = SENTINEL
    temperature_max: float = SENTINEL
    temperature_slow: float = SENTINEL
    power_draw: float = SENTINEL
    power_limit: float = SENTINEL
    clock_graphics: float = SENTINEL
    clock_graphics_max: float = SENTINEL
    clock_sm: float = SENTINEL
    clock_sm_max: float = SENTINEL
    clock_mem: float = SENTINEL
    clock_mem_max: float = SENTINEL
    clock_video: float = SENTINEL
    clock_video_max: float = SENTINEL


class SystemSnapshot(BaseModel):
    driver_version: str = ""
    attached_gpus: float = SENTINEL
    gpus: List[DeviceReading] = Field(default_factory=list)
