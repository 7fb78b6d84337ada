"""hex_helper.py

Utility class that groups together the small helper functions that deal with
hex formatting and Bluetooth addresses.

Typical usage
-------------
>>> from hex_helper import HexHelper
>>> HexHelper.to_hex_string(b"\x01\xab")
'01:ab'
>>> HexHelper.canonical_address("A4-C1-38-D0-2C-EC")
'a4:c1:38:d0:2c:ec'
"""

from typing import Union


class HexHelper:
    """Stateless helpers used by the scanner, the name directory and the log lines."""

    # ------------------------------------------------------------------
    # Hex conversion helpers
    # ------------------------------------------------------------------
    @staticmethod
    def to_hex_string(byte_array: Union[bytes, bytearray], separator: str = ":") -> str:
        """
        Convert a sequence of bytes to a hex string.

        Example
        -------
        >>> HexHelper.to_hex_string(b"\x01\xab", separator="")
        '01ab'
        """
        return separator.join(f"{c:02x}" for c in byte_array)

    # ------------------------------------------------------------------
    # Addresses
    # ------------------------------------------------------------------
    @staticmethod
    def canonical_address(address: str) -> str:
        """
        Normalise a Bluetooth address to lower case colon-separated hex.

        ``A4-C1-38-D0-2C-EC`` and ``A4:C1:38:D0:2C:EC`` both become
        ``a4:c1:38:d0:2c:ec``.  Anything that is not a 48-bit address
        (macOS hands out UUIDs) is only stripped and lower-cased.
        """
        address = address.strip().lower()
        parts = address.replace("-", ":").split(":")
        if len(parts) == 6 and all(len(p) == 2 for p in parts):
            return ":".join(parts)
        return address
