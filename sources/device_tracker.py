# device_tracker.py
"""
Keeps one ``DeviceObservationState`` per device address and decides when a
sighting deserves a detailed log line.

Only the scan callback writes here.  If ingestion is ever spread over more
than one radio, calls for the same address must be serialised.
"""

import time
from typing import Callable, Dict, Iterator, Tuple

from models import DeviceObservationState


class DeviceStateTracker:
    """
    Parameters
    ----------
    clock : callable, optional
        Returns the current unix time in seconds.  Defaults to ``time.time``.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._states: Dict[str, DeviceObservationState] = {}

    def observe(self, address: str, supported: bool, force_verbose: bool = False) -> bool:
        """
        Record a sighting of *address* and return ``True`` when a detailed
        log line should be written for it.

        That is the case for the first sighting of the address in this
        process, or always when *force_verbose* is set.
        """
        state = self._states.setdefault(address, DeviceObservationState())
        state.last_seen = self._clock()
        state.supported = supported

        should_log = not state.ever_logged or force_verbose
        if should_log:
            state.ever_logged = True
        return should_log

    def ever_logged(self, address: str) -> bool:
        state = self._states.get(address)
        return state is not None and state.ever_logged

    def items(self) -> Iterator[Tuple[str, DeviceObservationState]]:
        return iter(self._states.items())

    def __len__(self) -> int:
        return len(self._states)
