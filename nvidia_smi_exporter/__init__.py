"""nvidia_smi_exporter
Prometheus exporter for `nvidia-smi -q -x` GPU telemetry.
"""

__version__ = "0.1.0"
