"""Hardware metrics of the inference host.

Probes Apple (powermetrics) and NVIDIA (nvidia-smi) hosts, falls back to
a zeroed snapshot elsewhere, and caches results briefly so frequent
dashboard polls do not hammer OS tools.
"""

from chatstream.hardware.cache import MetricsCache, get_metrics_cache
from chatstream.hardware.collector import HardwareMetricsCollector
from chatstream.hardware.config import HardwareConfig, get_hardware_config
from chatstream.hardware.poller import HardwareMetricsPoller
from chatstream.hardware.probes import Platform, ProbeError, detect_platform, select_probe

__all__ = [
    "HardwareConfig",
    "HardwareMetricsCollector",
    "HardwareMetricsPoller",
    "MetricsCache",
    "Platform",
    "ProbeError",
    "detect_platform",
    "get_hardware_config",
    "get_metrics_cache",
    "select_probe",
]
