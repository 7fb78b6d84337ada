#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""main.py
Executable that launches the asynchronous BLE scanner and exports the
temperature / humidity sensors it hears as Prometheus metrics.
"""

import argparse
import asyncio
import os
import platform
import signal
import sys
from pathlib import Path
from typing import List, Optional

from bleak import BleakScanner
from bleak.exc import BleakError

from app_logger import configure_logging, logger
from btle_scanner import SensorScanner
from controller import ObservationController
from device_tracker import DeviceStateTracker
from metrics import ExporterMetrics, start_metrics_server
from names_directory import NameDirectory

# ----------------------------------------------------------------------
# Configuration defaults
# ----------------------------------------------------------------------
APPLICATION_NAME = "btle_exporter"
__version__ = "1.0.0"
DEFAULT_METRICS_LISTEN = "0.0.0.0:9978"
DEFAULT_ADAPTER = "hci0"


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog=APPLICATION_NAME,
        description="Export BLE temperature / humidity sensor advertisements as Prometheus metrics.",
    )
    parser.add_argument(
        "--metrics-listen",
        default=DEFAULT_METRICS_LISTEN,
        help="metrics listener <host>:<port>, empty to disable (default: %(default)s)",
    )
    parser.add_argument(
        "--adapter",
        default=DEFAULT_ADAPTER,
        help="Bluetooth adapter to scan with (default: %(default)s)",
    )
    parser.add_argument("--pidfile", default="", help="Write the process id to this file")
    parser.add_argument("--names-csv", default="", help="CSV file of address,name pairs")
    parser.add_argument("--log-file", default="", help="Also write the log to this file")
    parser.add_argument("--verbose", action="store_true",
                        help="Log first sightings of devices that cannot be decoded")
    parser.add_argument("--debug", action="store_true",
                        help="Log every advertisement (implies --verbose)")
    parser.add_argument("--version", action="store_true", help="Print the version and exit")
    args = parser.parse_args(argv)
    if args.debug:
        args.verbose = True       # debug without verbose would be confusing
    return args


# ----------------------------------------------------------------------
# PID file
# ----------------------------------------------------------------------
def save_pid_file(pid_file: Path) -> None:
    """Raises ``OSError`` when the file cannot be written."""
    pid = os.getpid()
    pid_file.write_text(str(pid), encoding="utf-8")
    logger.debug("Wrote PID %d to %s", pid, pid_file)


def remove_pid_file(pid_file: Path) -> None:
    try:
        pid_file.unlink()
    except FileNotFoundError:
        pass


# ----------------------------------------------------------------------
# Wiring
# ----------------------------------------------------------------------
def build_components(args: argparse.Namespace,
                     metrics: Optional[ExporterMetrics] = None) -> SensorScanner:
    """
    Build the whole stack and return a ready-to-use scanner instance.
    """
    names = NameDirectory.from_csv(args.names_csv) if args.names_csv else NameDirectory()
    controller = ObservationController(
        metrics or ExporterMetrics(),
        DeviceStateTracker(),
        names,
        verbose=args.verbose,
        debug=args.debug,
    )
    return SensorScanner(controller)


def log_summary(tracker: DeviceStateTracker) -> None:
    """Log how many devices this run has heard, and when each was last seen."""
    supported = sum(1 for _, state in tracker.items() if state.supported)
    logger.info("Seen %d devices, %d supported", len(tracker), supported)
    for address, state in tracker.items():
        logger.debug("[%s] last seen %d supported=%s", address, state.last_seen, state.supported)


async def scan(scanner: SensorScanner, adapter: str) -> None:
    """
    Run the Bleak scanner until SIGINT / SIGTERM.

    Raises
    ------
    BleakError
        The adapter cannot be opened.
    """
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    async with BleakScanner(scanner.detection_callback, adapter=adapter):
        logger.info("Scanning... (forever)")
        await stop.wait()


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    try:
        configure_logging(debug=args.debug, log_file=args.log_file or None)
    except OSError as exc:
        logger.critical("Unable to open log file : %s", exc)
        return 1
    logger.info("%s version %s (Python %s)", APPLICATION_NAME, __version__,
                platform.python_version())
    if args.version:
        return 0

    pid_file = Path(args.pidfile) if args.pidfile else None
    if pid_file:
        try:
            save_pid_file(pid_file)
        except OSError as exc:
            logger.critical("Unable to create pid file : %s", exc)
            return 1

    try:
        metrics = ExporterMetrics()
        if args.metrics_listen:
            try:
                start_metrics_server(args.metrics_listen, metrics.registry)
            except (OSError, ValueError) as exc:
                logger.critical("Failed to start metrics http engine - %s", exc)
                return 1
            metrics.set_build_info(__version__)

        scanner = build_components(args, metrics)
        try:
            asyncio.run(scan(scanner, args.adapter))
        except BleakError as exc:
            logger.critical("can't open adapter %s : %s", args.adapter, exc)
            return 1
        finally:
            log_summary(scanner.controller.tracker)
    finally:
        if pid_file:
            remove_pid_file(pid_file)
        logger.info("%s perform clean up on process end", APPLICATION_NAME)

    logger.info("quit")
    return 0


def run() -> None:
    sys.exit(main())


# ----------------------------------------------------------------------
# Main entry point
# ----------------------------------------------------------------------
if __name__ == "__main__":
    run()
