# models.py
"""
Dataclasses shared by the scanner, the decoders and the controller.
They are deliberately small – a snapshot of one broadcast, one decoded
reading and the bookkeeping we keep per device address.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

# Legacy "no measurement" value of the exporter.  Only used when a reading is
# rendered for humans; it is never published as a metric value.
ABSENT = -99.9


# ----------------------------------------------------------------------
# Dataclasses
# ----------------------------------------------------------------------
@dataclass(frozen=True)
class RawAdvertisement:
    """One BLE broadcast as delivered by the scanner."""
    address: str                            # canonical, lower case aa:bb:..
    rssi: int                               # dBm
    payload: bytes                          # AD structure bytes
    connectable: Optional[bool] = None      # not every backend reports it
    local_name: str = ""


@dataclass(frozen=True)
class AdvertisingElement:
    """A single (length, type, payload) entry of an AD structure."""
    length: int                             # declared length, type byte included
    type_code: int
    payload: bytes                          # length - 1 bytes


class SensorModel(Enum):
    Unknown = "Unknown"
    Error = "Error"
    LYWSDCGQ = "LYWSDCGQ"
    Unsupported = "Unsupported"
    ATC = "ATC"


@dataclass
class SensorReading:
    """
    Result of decoding one advertisement.

    ``None`` for a measurement means the frame did not carry it.
    """
    model: SensorModel = SensorModel.Unknown
    model_id: int = 0                       # Xiaomi product id
    frame_type: int = 0                     # Xiaomi object type
    device_sequence_id: int = 0             # rolling frame counter
    temperature_celsius: Optional[float] = None
    humidity_percent: Optional[float] = None
    battery_percent: Optional[float] = None

    @property
    def is_supported(self) -> bool:
        """True when the model produces real measurements."""
        return self.model in (SensorModel.LYWSDCGQ, SensorModel.ATC)

    def legacy_value(self, name: str) -> float:
        """Return measurement *name*, or :data:`ABSENT` when missing."""
        value = getattr(self, name)
        return ABSENT if value is None else value


@dataclass
class DeviceObservationState:
    """Per-address bookkeeping, lives for the whole process."""
    ever_logged: bool = False
    last_seen: float = 0.0                  # unix seconds
    supported: bool = False                 # last advertisement decoded?
