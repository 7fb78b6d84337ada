# metrics.py
"""
Prometheus metric families exposed by the exporter.

Names keep the ``btle_exporter_`` prefix of earlier releases so existing
dashboards keep working.  prometheus_client appends ``_total`` to counter
samples when they are scraped.
"""

import platform
from typing import Optional

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, start_http_server

from app_logger import logger

NAMESPACE = "btle_exporter"
DEVICE_LABELS = ["mac", "name", "model"]


class ExporterMetrics:
    """
    All metric objects of one exporter instance.

    Parameters
    ----------
    registry : CollectorRegistry, optional
        Where to register the families.  Tests pass a private registry so
        several instances can coexist.
    """

    def __init__(self, registry: CollectorRegistry = REGISTRY):
        self.registry = registry

        # ----- global counters ---------------------------------------------
        self.advertisement_count = Counter(
            "advertisement_count",
            "The total number of btle advertisements counted",
            namespace=NAMESPACE, registry=registry,
        )
        self.advertisement_supported_count = Counter(
            "advertisement_supported_count",
            "The total number of supported btle advertisements counted",
            namespace=NAMESPACE, registry=registry,
        )
        self.device_count = Counter(
            "device_count",
            "The total number of btle devices detected",
            namespace=NAMESPACE, registry=registry,
        )
        self.device_supported_count = Counter(
            "device_supported_count",
            "The total number of supported btle devices detected",
            namespace=NAMESPACE, registry=registry,
        )

        # ----- per device, labelled by mac / name / model --------------------
        self.device_temperature = Gauge(
            "device_temperature_celcius",
            "Current temperature reading in celcius",
            DEVICE_LABELS, namespace=NAMESPACE, registry=registry,
        )
        self.device_humidity = Gauge(
            "device_humidity_percent",
            "Current humidity reading in percent",
            DEVICE_LABELS, namespace=NAMESPACE, registry=registry,
        )
        self.device_battery = Gauge(
            "device_battery_percent",
            "Current battery reading in percent",
            DEVICE_LABELS, namespace=NAMESPACE, registry=registry,
        )
        self.device_signal = Gauge(
            "device_signal_rssi",
            "Current signal strength rSSI",
            DEVICE_LABELS, namespace=NAMESPACE, registry=registry,
        )
        self.device_advertisement_count = Counter(
            "device_advertisement_count",
            "Total number of advertisements detected",
            DEVICE_LABELS, namespace=NAMESPACE, registry=registry,
        )
        self.device_last_seen = Gauge(
            "device_advertisement_lastseen_seconds",
            "Unixtimestamp of when the last time advertisment was seen",
            DEVICE_LABELS, namespace=NAMESPACE, registry=registry,
        )

        self._build_info: Optional[Gauge] = None

    def set_build_info(self, version: str) -> None:
        """Publish the constant ``btle_exporter_build_info`` gauge."""
        if self._build_info is None:
            self._build_info = Gauge(
                "build_info",
                "Shows the build info/version",
                ["version", "python_version"],
                namespace=NAMESPACE, registry=self.registry,
            )
        self._build_info.labels(version=version,
                                python_version=platform.python_version()).set(1)


def start_metrics_server(listen: str, registry: CollectorRegistry = REGISTRY) -> None:
    """
    Serve ``/metrics`` on *listen* (``host:port``) from a daemon thread.

    Raises
    ------
    ValueError
        *listen* is not of the form ``host:port``.
    OSError
        The socket cannot be bound.
    """
    host, sep, port = listen.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"invalid listen address {listen!r}, expected <host>:<port>")
    start_http_server(int(port), addr=host or "0.0.0.0", registry=registry)
    logger.info("%s metrics engine listening on %s", NAMESPACE, listen)
