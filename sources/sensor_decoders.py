"""sensor_decoders.py
Decoders for the temperature / humidity sensors we understand.

Both families put their readings in a 16-bit Service Data element and are
told apart by the service UUID (first two bytes, little-endian on air):

* ``95 FE`` – Xiaomi MiBeacon, https://github.com/tsymbaliuk/Xiaomi-Thermostat-BLE
* ``1A 18`` – ATC custom firmware, https://github.com/atc1441/ATC_MiThermometer

Only the decoding logic lives here.  What to do with a reading is the
business of the ``ObservationController``.
"""
import struct
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple, Union

from adv_walker import AdvertisingData
from models import AdvertisingElement, SensorModel, SensorReading

# ----------------------------------------------------------------------
# Constants
# ----------------------------------------------------------------------
MIBEACON_UUID = b"\x95\xFE"           # 0xFE95 in little-endian order
ATC_UUID = b"\x1A\x18"                # 0x181A in little-endian order
MIBEACON_MIN_LENGTH = 18              # declared element length
ATC_MIN_LENGTH = 16

XIAOMI_MODELS = {
    0x01AA: SensorModel.LYWSDCGQ,
    0x045B: SensorModel.Unsupported,   # LYWSD02
}

# (frame type, object length, element length) -> offsets of
# (temperature, humidity, battery).  Two encodings share a frame type, the
# longer one carrying a battery byte, hence the element length in the key.
MIBEACON_FRAMES: Dict[Tuple[int, int, int], Tuple[Optional[int], ...]] = {
    (0x0D, 4, 21): (16, 18, None),
    (0x0D, 4, 25): (16, 18, 23),
    (0x0A, 1, 18): (None, None, 16),
    (0x06, 2, 19): (None, 16, None),
    (0x06, 2, 23): (None, 16, 21),
    (0x04, 2, 19): (16, None, None),
    (0x04, 2, 23): (16, None, 21),
}


# ----------------------------------------------------------------------
# 1. Family decoders
# ----------------------------------------------------------------------
def decode_mibeacon(element: AdvertisingElement) -> SensorReading:
    """
    Decode a Xiaomi MiBeacon service data element.

    The envelope is recognised at this point, so the model starts as
    ``Error`` and is refined from the product id.  Frames we do not know
    leave every measurement empty.
    """
    data = element.payload
    reading = SensorReading(
        model=SensorModel.Error,
        frame_type=data[13],
        device_sequence_id=data[6],
        model_id=struct.unpack_from("<H", data, 4)[0],
    )
    reading.model = XIAOMI_MODELS.get(reading.model_id, SensorModel.Error)

    object_length = data[15]
    offsets = MIBEACON_FRAMES.get((reading.frame_type, object_length, element.length))
    if offsets is None:
        return reading

    temperature, humidity, battery = offsets
    if temperature is not None:
        reading.temperature_celsius = struct.unpack_from("<h", data, temperature)[0] / 10
    if humidity is not None:
        reading.humidity_percent = struct.unpack_from("<h", data, humidity)[0] / 10
    if battery is not None:
        reading.battery_percent = float(data[battery])
    return reading


def decode_atc(element: AdvertisingElement) -> SensorReading:
    """Decode the fixed ATC layout; every field is always present."""
    data = element.payload
    (temp_raw,) = struct.unpack_from(">h", data, 8)
    return SensorReading(
        model=SensorModel.ATC,
        device_sequence_id=data[14],
        temperature_celsius=temp_raw / 10,
        humidity_percent=float(data[10]),
        battery_percent=float(data[11]),
    )


# ----------------------------------------------------------------------
# 2. Dispatch table – tried in order, first match wins
# ----------------------------------------------------------------------
@dataclass(frozen=True)
class SensorDecoder:
    signature: bytes
    min_length: int
    func: Callable[[AdvertisingElement], SensorReading]

    def matches(self, element: AdvertisingElement) -> bool:
        return (element.length >= self.min_length
                and element.payload.startswith(self.signature))


DECODERS = (
    SensorDecoder(MIBEACON_UUID, MIBEACON_MIN_LENGTH, decode_mibeacon),
    SensorDecoder(ATC_UUID, ATC_MIN_LENGTH, decode_atc),
)


def decode_service_data(element: AdvertisingElement) -> SensorReading:
    """Run the first matching decoder, or return an ``Unknown`` reading."""
    for decoder in DECODERS:
        if decoder.matches(element):
            return decoder.func(element)
    return SensorReading()


def decode_advertisement(payload: Union[bytes, bytearray]) -> SensorReading:
    """
    Decode one advertisement payload.

    The whole AD structure is walked first, so a truncated element
    anywhere rejects the advertisement.  Returns the reading of the first
    Service Data element a decoder recognises, or an ``Unknown`` reading
    when none does.

    Raises
    ------
    AdvertisementDecodeError
        The AD structure itself is malformed.
    """
    elements = list(AdvertisingData(payload).service_data())
    for element in elements:
        reading = decode_service_data(element)
        if reading.model is not SensorModel.Unknown:
            return reading
    return SensorReading()
