#!/usr/bin/env python3
"""Headless decibel monitor.

Runs the same meter as the desktop application without a window:
readings are logged, sustained-noise notifications go to the log and the
event log can be written to CSV on exit.  Settings given on the command
line are saved like changes made in the GUI.
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import Optional, Sequence

from PySide6 import QtCore
from PySide6.QtCore import QSettings

from . import constants
from .audio_source import DeviceUnavailableError, choose_device, list_input_devices
from .detector import SoundEvent
from .export import export_events
from .log import setup_logging
from .loudness import db_label
from .monitor import Monitor
from .notifier import LogNotifier
from .settings import SettingsStore

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dbmeter-cli",
        description="Monitor an input device and report sustained loud noise.",
    )
    parser.add_argument("--list-devices", action="store_true", help="list input devices and exit")
    parser.add_argument("--device", help="input device id (see --list-devices)")
    parser.add_argument("--threshold", type=int, help="notification threshold in dB")
    parser.add_argument("--duration", type=float, help="seconds the level must stay above the threshold")
    parser.add_argument("--calibration", type=int, help="calibration offset in dB")
    parser.add_argument(
        "--smoothing",
        choices=sorted(constants.SMOOTHING_PRESETS),
        help="display smoothing speed",
    )
    parser.add_argument("--export", type=Path, metavar="PATH", help="write the event log as CSV on exit")
    parser.add_argument("--log-file", type=Path, help="also log to this file")
    parser.add_argument("--debug", action="store_true", help="verbose logging")
    return parser


def settings_changes(args: argparse.Namespace) -> dict:
    """Map command line overrides onto ``Settings`` field names."""
    changes = {
        "threshold_db": args.threshold,
        "duration_threshold_sec": args.duration,
        "calibration_offset_db": args.calibration,
        "smoothing_speed": args.smoothing,
    }
    return {name: value for name, value in changes.items() if value is not None}


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(log_file=args.log_file, debug=args.debug)

    try:
        devices = list_input_devices()
    except DeviceUnavailableError as e:
        logger.error("%s", e)
        return 1

    if args.list_devices:
        for device in devices:
            print(device.label)
        return 0

    app = QtCore.QCoreApplication(sys.argv[:1])
    store = SettingsStore(QSettings(constants.SETTINGS_ORGANISATION, constants.SETTINGS_APPLICATION))
    changes = settings_changes(args)
    if changes:
        store.update(**changes)

    device = choose_device(devices, args.device or store.settings.device_id)
    if device is None:
        logger.error("No input devices found")
        return 1

    monitor = Monitor(store, LogNotifier())
    monitor.levelChanged.connect(
        lambda db: logger.info("%5.1f dB  %s", db, db_label(round(db)))
    )

    def on_event(event: SoundEvent) -> None:
        logger.info("Event %s: %d dB (%s)", event.timestamp, event.db, event.label)

    monitor.eventLogged.connect(on_event)

    settings = store.settings
    logger.info(
        "Threshold %d dB for %ss, calibration %+d dB, smoothing %s",
        settings.threshold_db,
        f"{settings.duration_threshold_sec:g}",
        settings.calibration_offset_db,
        settings.smoothing_speed,
    )
    if not monitor.start(device.id):
        return 1

    signal.signal(signal.SIGINT, lambda *_: app.quit())
    # Wake the event loop regularly so Python can run the signal handler.
    wake = QtCore.QTimer()
    wake.start(200)
    wake.timeout.connect(lambda: None)

    try:
        app.exec()
    finally:
        monitor.stop()
        if args.export:
            export_events(monitor.event_log.events(), args.export)
    return 0


if __name__ == "__main__":
    sys.exit(main())
