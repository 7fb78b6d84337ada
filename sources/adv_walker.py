"""adv_walker.py
Walks the length-prefixed AD structure carried by a BLE advertisement.

Each entry is ``<length> <type> <length - 1 bytes of data>``.  See
https://docs.silabs.com/bluetooth/latest/general/adv-and-scanning/bluetooth-adv-data-basics
"""

from typing import Iterator, Union

from models import AdvertisingElement

SERVICE_DATA_16BIT = 0x16


class AdvertisementDecodeError(ValueError):
    """The AD structure cannot be walked (truncated or corrupt frame)."""


class AdvertisingData:
    """
    Lazy, restartable view over the elements of one advertisement payload.

    Iterating walks the bytes from the start every time.  The walk stops as
    soon as the cursor reaches the last byte of the buffer, so a lone
    trailing length byte is ignored.  A zero length byte is padding and is
    stepped over.  An element whose declared length runs past the end of the
    buffer raises :class:`AdvertisementDecodeError`.
    """

    def __init__(self, payload: Union[bytes, bytearray]):
        self.payload = bytes(payload)

    def __iter__(self) -> Iterator[AdvertisingElement]:
        data = self.payload
        cursor = 0
        while cursor < len(data) - 1:
            length = data[cursor]
            if length == 0:
                cursor += 1
                continue
            end = cursor + 1 + length
            if end > len(data):
                raise AdvertisementDecodeError(
                    f"element at offset {cursor} declares {length} bytes, "
                    f"only {len(data) - cursor - 1} left"
                )
            yield AdvertisingElement(
                length=length,
                type_code=data[cursor + 1],
                payload=data[cursor + 2:end],
            )
            cursor = end

    def service_data(self) -> Iterator[AdvertisingElement]:
        """Only the 16-bit UUID Service Data elements."""
        return (e for e in self if e.type_code == SERVICE_DATA_16BIT)
