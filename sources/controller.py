# controller.py
"""
Glue between the scanner and the outside world.  For every advertisement the
scanner hands over, the controller decodes it, updates the device tracker,
publishes metrics and writes the operator log lines.
"""

import time
from typing import Callable

from adv_walker import AdvertisementDecodeError
from app_logger import logger
from device_tracker import DeviceStateTracker
from hex_helper import HexHelper
from metrics import ExporterMetrics
from models import RawAdvertisement, SensorModel, SensorReading
from names_directory import NameDirectory
from sensor_decoders import decode_advertisement


def connectable_flag(connectable) -> str:
    if connectable is None:
        return "Unknown"
    return "Connectable" if connectable else "NotConnectable"


class ObservationController:
    """
    Parameters
    ----------
    metrics : ExporterMetrics
        Metric families to update.
    tracker : DeviceStateTracker
        Per-address first-sighting / last-seen bookkeeping.
    names : NameDirectory
        Friendly names used as the ``name`` label.
    verbose : bool
        Also log the first sighting of devices we cannot decode.
    debug : bool
        Log every advertisement, not only first sightings.  Implies *verbose*.
    """

    def __init__(self, metrics: ExporterMetrics, tracker: DeviceStateTracker,
                 names: NameDirectory, verbose: bool = False, debug: bool = False,
                 clock: Callable[[], float] = time.time):
        self.metrics = metrics
        self.tracker = tracker
        self.names = names
        self.debug = debug
        self.verbose = verbose or debug
        self._clock = clock

    # ------------------------------------------------------------------
    # Entry point – called by the scanner for every advertisement
    # ------------------------------------------------------------------
    def handle_advertisement(self, adv: RawAdvertisement) -> None:
        self.metrics.advertisement_count.inc()
        try:
            reading = decode_advertisement(adv.payload)
        except AdvertisementDecodeError as exc:
            if self.tracker.observe(adv.address, False, self.debug):
                logger.info("[%s] Cannot parse advertisement data : %s", adv.address, exc)
            return

        name = self.names.lookup(adv.address)
        if reading.model is not SensorModel.Unknown:
            self.publish(adv, name, reading)

        first_sighting = not self.tracker.ever_logged(adv.address)
        if not self.tracker.observe(adv.address, reading.is_supported, self.debug):
            return

        if reading.is_supported:
            self.log_reading(adv, name, reading)
            if first_sighting:
                self.metrics.device_supported_count.inc()
        elif self.verbose:
            self.log_raw(adv, reading)
        if first_sighting:
            self.metrics.device_count.inc()

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------
    def publish(self, adv: RawAdvertisement, name: str, reading: SensorReading) -> None:
        """
        Update the per-device series.  Measurements the frame did not carry
        leave their gauge untouched.
        """
        labels = {"mac": adv.address, "name": name, "model": reading.model.value}
        m = self.metrics
        if reading.temperature_celsius is not None:
            m.device_temperature.labels(**labels).set(reading.temperature_celsius)
        if reading.humidity_percent is not None:
            m.device_humidity.labels(**labels).set(reading.humidity_percent)
        if reading.battery_percent is not None:
            m.device_battery.labels(**labels).set(reading.battery_percent)
        m.device_advertisement_count.labels(**labels).inc()
        m.device_signal.labels(**labels).set(adv.rssi)
        m.device_last_seen.labels(**labels).set(int(self._clock()))
        m.advertisement_supported_count.inc()

    # ------------------------------------------------------------------
    # Operator log lines
    # ------------------------------------------------------------------
    def log_reading(self, adv: RawAdvertisement, name: str, reading: SensorReading) -> None:
        logger.info(
            "[%s] Name: %s RSSI:%3d Temp:%0.1f Humidity:%0.1f Batt:%0.1f "
            "ModelID:0x%04x, ID:%d Type:%d [%s %s]",
            adv.address, name, adv.rssi,
            reading.legacy_value("temperature_celsius"),
            reading.legacy_value("humidity_percent"),
            reading.legacy_value("battery_percent"),
            reading.model_id, reading.device_sequence_id, reading.frame_type,
            connectable_flag(adv.connectable), reading.model.value,
        )

    def log_raw(self, adv: RawAdvertisement, reading: SensorReading) -> None:
        logger.info(
            "[%s] Name: %s RSSI:%3d Data: %s [%d] [%s %s]",
            adv.address, adv.local_name, adv.rssi,
            HexHelper.to_hex_string(adv.payload, separator=""), len(adv.payload),
            connectable_flag(adv.connectable), reading.model.value,
        )
