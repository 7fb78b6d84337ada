#!/usr/bin/env python3
"""btle_scanner.py
Sensor scanner using bleak.
Listens for BLE advertisements and hands every one of them, as a
:class:`RawAdvertisement`, to the ``ObservationController``.

bleak only gives us the parsed ``AdvertisementData``, so the scanner rebuilds
the AD structure (length / type / data entries) the radio actually carried
before passing it on.  Decoding happens downstream.
"""
import uuid
from typing import Optional

import asyncio
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData

from app_logger import log_debug, logger
from controller import ObservationController
from hex_helper import HexHelper
from models import RawAdvertisement

# ----------------------------------------------------------------------
# AD type codes (Bluetooth Core Specification Supplement, part A)
# ----------------------------------------------------------------------
AD_COMPLETE_LOCAL_NAME = 0x09
AD_SERVICE_DATA_16BIT = 0x16
AD_SERVICE_DATA_128BIT = 0x21
AD_MANUFACTURER_DATA = 0xFF
MAX_ELEMENT_DATA = 254                 # length byte also counts the type
BLUETOOTH_BASE_UUID_SUFFIX = "-0000-1000-8000-00805f9b34fb"


def _element(type_code: int, data: bytes) -> bytes:
    if len(data) > MAX_ELEMENT_DATA:
        return b""
    return bytes((len(data) + 1, type_code)) + data


def short_uuid(service_uuid: str) -> Optional[int]:
    """16-bit form of a Bluetooth SIG UUID, or ``None`` for vendor UUIDs."""
    service_uuid = service_uuid.lower()
    if (len(service_uuid) == 36 and service_uuid.startswith("0000")
            and service_uuid.endswith(BLUETOOTH_BASE_UUID_SUFFIX)):
        return int(service_uuid[4:8], 16)
    return None


def build_payload(advertisement: AdvertisementData) -> bytes:
    """
    Serialise *advertisement* back into the on-air AD structure.

    Multi-byte identifiers (company id, service UUID) are written
    little-endian, the way they are transmitted.
    """
    out = bytearray()
    if advertisement.local_name:
        out += _element(AD_COMPLETE_LOCAL_NAME, advertisement.local_name.encode("utf-8"))
    for company_id, data in advertisement.manufacturer_data.items():
        out += _element(AD_MANUFACTURER_DATA, company_id.to_bytes(2, "little") + bytes(data))
    for service_uuid, data in advertisement.service_data.items():
        short = short_uuid(service_uuid)
        if short is not None:
            out += _element(AD_SERVICE_DATA_16BIT, short.to_bytes(2, "little") + bytes(data))
        else:
            out += _element(AD_SERVICE_DATA_128BIT,
                            uuid.UUID(service_uuid).bytes[::-1] + bytes(data))
    return bytes(out)


class SensorScanner:
    """
    Adapter between ``BleakScanner`` and the :class:`ObservationController`.

    Parameters
    ----------
    controller : ObservationController
        Receives every advertisement.
    """

    def __init__(self, controller: ObservationController):
        self.controller = controller

    @staticmethod
    def to_raw_advertisement(device: BLEDevice,
                             advertisement_data: AdvertisementData) -> RawAdvertisement:
        return RawAdvertisement(
            address=HexHelper.canonical_address(device.address),
            rssi=advertisement_data.rssi,
            payload=build_payload(advertisement_data),
            local_name=advertisement_data.local_name or "",
        )

    # ------------------------------------------------------------------
    # Callback required by BleakScanner
    # ------------------------------------------------------------------
    def detection_callback(self, device: BLEDevice, advertisement_data: AdvertisementData) -> None:
        """
        This method is passed directly to ``BleakScanner``.  A failure while
        handling one advertisement is logged and does not stop the scan.
        """
        try:
            adv = self.to_raw_advertisement(device, advertisement_data)
            log_debug("advertisement from %s (%d bytes)", adv.address, len(adv.payload))
            self.controller.handle_advertisement(adv)
        except asyncio.CancelledError:
            # Propagate cancellation so the outer event loop can shut down cleanly.
            raise
        except Exception:
            logger.exception("Failed to handle advertisement from %s", device.address)
