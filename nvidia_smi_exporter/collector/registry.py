from __future__ import annotations

import logging
from typing import Dict, Optional, Tuple

from prometheus_client import CollectorRegistry, Counter, Gauge, generate_latest

from ..models import SystemSnapshot

# DeviceReading field -> (metric name, help); all labelled by `minor`
DEVICE_METRICS: Dict[str, Tuple[str, str]] = {
    "fan_speed": ("nvidia_fanspeed", "Fan speed (rpm)."),
    "memory_total": ("nvidia_memory_total", "Total Memory."),
    "memory_used": ("nvidia_memory_used", "Memory in use."),
    "memory_free": ("nvidia_memory_free", "Memory free."),
    "utilization_gpu": ("nvidia_utilization_gpu", "GPU Utilization."),
    "utilization_memory": ("nvidia_utilization_memory", "Memory utilization."),
    "temperature": ("nvidia_temperatures", "Current temperature."),
    "temperature_max": ("nvidia_temperatures_max", "Max temperature."),
    "temperature_slow": ("nvidia_temperatures_slow", "Throttle temperature."),
    "power_draw": ("nvidia_power_usage", "Current power consumption."),
    "power_limit": ("nvidia_power_limit", "Max power consumption."),
    "clock_graphics": ("nvidia_clock_graphics", "Current graphics clock frequency."),
    "clock_graphics_max": ("nvidia_clock_graphics_max", "Max graphics clock frequency."),
    "clock_sm": ("nvidia_clock_sm", "Current SM clock frequency."),
    "clock_sm_max": ("nvidia_clock_sm_max", "Max graphics SM frequency."),
    "clock_mem": ("nvidia_clock_mem", "Current DRAM clock frequency."),
    "clock_mem_max": ("nvidia_clock_mem_max", "Max DRAM clock frequency."),
    "clock_video": ("nvidia_clock_video", "Current video clock frequency."),
    "clock_video_max": ("nvidia_clock_video_max", "Max video clock frequency."),
}

SeriesKey = Tuple[str, Tuple[str, ...]]


class MetricRegistry:
    """Latest nvidia-smi values as Prometheus gauges.

    Built once at startup and handed to both the poller (sole writer) and the
    HTTP app (readers). Each gauge set is atomic; a scrape may still mix
    values from two consecutive cycles across different series.

    Label sets are kept forever by default, so a GPU that vanishes leaves its
    last values behind. With ``stale_after=N`` a label set that is not
    refreshed for N consecutive successful cycles is removed.
    """

    def __init__(self, stale_after: int = 0, registry: Optional[CollectorRegistry] = None) -> None:
        self.registry = registry or CollectorRegistry()
        self.stale_after = stale_after
        self._cycle = 0
        self._last_seen: Dict[SeriesKey, int] = {}

        self.driver_info = Gauge(
            "nvidia_driver_info", "DriverVersion Information.", ["version"], registry=self.registry
        )
        self.device_count = Gauge("nvidia_device_count", "Device Count.", registry=self.registry)
        self.info = Gauge(
            "nvidia_info", "Device Information.", ["minor", "uuid", "productName"], registry=self.registry
        )
        self.device_gauges: Dict[str, Gauge] = {
            field: Gauge(name, doc, ["minor"], registry=self.registry)
            for field, (name, doc) in DEVICE_METRICS.items()
        }
        self._labelled: Dict[str, Gauge] = {
            "nvidia_driver_info": self.driver_info,
            "nvidia_info": self.info,
            **{DEVICE_METRICS[f][0]: g for f, g in self.device_gauges.items()},
        }

        # exporter health
        self.up = Gauge("nvidia_exporter_up", "1 while the collector loop is running.", registry=self.registry)
        self.last_success = Gauge(
            "nvidia_exporter_last_success_timestamp_seconds",
            "Unix time of the last successfully applied nvidia-smi snapshot.",
            registry=self.registry,
        )
        self.collection_errors = Counter(
            "nvidia_exporter_collection_errors",
            "Failed poll cycles by kind (parse, invocation).",
            ["kind"],
            registry=self.registry,
        )

    # ------------------------------------------------------------------
    def _set(self, name: str, labels: Tuple[str, ...], value: float) -> None:
        self._labelled[name].labels(*labels).set(value)
        self._last_seen[(name, labels)] = self._cycle

    def apply(self, snapshot: SystemSnapshot) -> None:
        """Write one snapshot; existing label sets are overwritten, new ones created."""
        self._cycle += 1
        self._set("nvidia_driver_info", (snapshot.driver_version,), 1)
        self.device_count.set(snapshot.attached_gpus)

        for gpu in snapshot.gpus:
            idx = str(gpu.minor)
            self._set("nvidia_info", (idx, gpu.uuid, gpu.product_name), 1)
            for field, (name, _) in DEVICE_METRICS.items():
                self._set(name, (idx,), getattr(gpu, field))

        if self.stale_after > 0:
            self._expire()
        self.last_success.set_to_current_time()

    def _expire(self) -> None:
        for key, seen in list(self._last_seen.items()):
            if self._cycle - seen >= self.stale_after:
                name, labels = key
                self._labelled[name].remove(*labels)
                del self._last_seen[key]
                logging.info("Dropped stale series %s%s", name, labels)

    def record_error(self, kind: str) -> None:
        self.collection_errors.labels(kind).inc()

    def set_up(self, running: bool) -> None:
        self.up.set(1 if running else 0)

    # ------------------------------------------------------------------
    def get(self, name: str, **labels: str) -> Optional[float]:
        """Current value of one series, or None if it does not exist."""
        return self.registry.get_sample_value(name, labels)

    def render(self) -> bytes:
        """Prometheus text exposition of every series."""
        return generate_latest(self.registry)
