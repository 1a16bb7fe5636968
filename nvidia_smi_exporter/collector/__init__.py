"""nvidia_smi_exporter.collector
nvidia-smi polling pipeline.

Modules
-------
poller  : background loop that runs `nvidia-smi -q -x` and applies each snapshot
parsers : helpers to turn `nvidia-smi -q -x` XML into typed snapshots
registry: Prometheus gauges holding the latest value per GPU
"""

__all__ = ["poller", "parsers", "registry"]
