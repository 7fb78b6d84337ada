# names_directory.py
"""
Friendly names for device addresses, read from a two column CSV file::

    A4:C1:38:D0:2C:EC,Living room
    a4:c1:38:11:22:33,Fridge

Addresses are matched in canonical (lower case) form.  A missing or broken
file leaves the directory empty – the exporter keeps running without names.
"""

import csv
from pathlib import Path
from typing import Dict, Optional, Union

from app_logger import logger
from hex_helper import HexHelper


class NameDirectory:
    """Read-only address → display name mapping."""

    def __init__(self, names: Optional[Dict[str, str]] = None):
        self._names: Dict[str, str] = {
            HexHelper.canonical_address(address): name
            for address, name in (names or {}).items()
        }

    @classmethod
    def from_csv(cls, path: Union[str, Path]) -> "NameDirectory":
        """
        Load the directory from *path*.

        Any problem (unreadable file, bad CSV, row with fewer than two
        columns) is logged and an empty directory is returned.
        """
        names: Dict[str, str] = {}
        try:
            with open(path, newline="", encoding="utf-8") as f:
                for line_no, row in enumerate(csv.reader(f), start=1):
                    if not row:
                        continue
                    if len(row) < 2:
                        raise ValueError(f"line {line_no}: expected address,name")
                    names[row[0]] = row[1]
        except OSError as exc:
            logger.warning("Failed to open %s - %s", path, exc)
            return cls()
        except (csv.Error, ValueError) as exc:
            logger.warning("Failed to parse %s - %s", path, exc)
            return cls()

        logger.info("Loaded %d lines from csv file %s", len(names), path)
        return cls(names)

    def lookup(self, address: str) -> str:
        """Display name for *address*, or ``""`` when unknown."""
        return self._names.get(HexHelper.canonical_address(address), "")

    def __len__(self) -> int:
        return len(self._names)
