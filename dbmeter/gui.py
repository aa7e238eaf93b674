"""
dbmeter — PySide 6
--------------------------------------

Main window of the decibel meter.

The window shows the smoothed level with its loudness band, the running
peak, a trend chart (live readings or the four-hour session trend), the
spectrum bars and the log of sustained-noise events.  The controls edit
the :class:`~dbmeter.settings.SettingsStore`, which persists every change
through ``QSettings``.  Closing the window hides it to the system tray;
the tray menu's Exit action quits.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from q_materialise import inject_style

# ─── Qt ────────────────────────────────────────────────────────────────────────
from PySide6 import QtCore, QtGui, QtWidgets
from PySide6.QtCore import QSettings

from . import constants
from .audio_source import DeviceUnavailableError, choose_device, list_input_devices
from .detector import SoundEvent
from .export import default_export_path, export_events
from .log import default_log_file, setup_logging
from .loudness import db_label
from .monitor import Monitor
from .notifier import TrayNotifier
from .settings import SettingsStore

logger = logging.getLogger(__name__)


class TrendChart(QtWidgets.QWidget):
    """Polyline of dB values on a fixed 0–120 dB scale."""

    def __init__(self, parent: Optional[QtWidgets.QWidget] = None) -> None:
        super().__init__(parent)
        self.values: list[int] = []
        self.threshold: int = constants.DEFAULT_THRESHOLD_DB
        self.setMinimumHeight(120)

    def set_values(self, values: Sequence[int]) -> None:
        self.values = list(values)
        self.update()

    def set_threshold(self, threshold: int) -> None:
        self.threshold = threshold
        self.update()

    def paintEvent(self, _event) -> None:  # noqa: N802 - Qt override
        painter = QtGui.QPainter(self)
        painter.setRenderHint(QtGui.QPainter.RenderHint.Antialiasing)
        w, h = self.width(), self.height()

        def y_for(db: float) -> float:
            return h - (min(max(db, 0), 120) / 120.0) * h

        painter.setPen(QtGui.QPen(QtGui.QColor("#ef4444"), 1, QtCore.Qt.PenStyle.DashLine))
        painter.drawLine(0, int(y_for(self.threshold)), w, int(y_for(self.threshold)))

        if len(self.values) < 2:
            return
        step = w / (len(self.values) - 1)
        path = QtGui.QPainterPath(QtCore.QPointF(0, y_for(self.values[0])))
        for i, value in enumerate(self.values[1:], start=1):
            path.lineTo(i * step, y_for(value))
        painter.setPen(QtGui.QPen(QtGui.QColor("#38bdf8"), 2))
        painter.drawPath(path)


class SpectrumBars(QtWidgets.QWidget):
    """Bar visualisation of :func:`~dbmeter.loudness.spectrum_levels`."""

    def __init__(self, parent: Optional[QtWidgets.QWidget] = None) -> None:
        super().__init__(parent)
        self.levels: Sequence[float] = [0.0] * constants.SPECTRUM_BARS
        self.setMinimumHeight(60)

    def set_levels(self, levels: Sequence[float]) -> None:
        self.levels = levels
        self.update()

    def paintEvent(self, _event) -> None:  # noqa: N802 - Qt override
        painter = QtGui.QPainter(self)
        count = len(self.levels)
        if not count:
            return
        bar_w = self.width() / count
        color = QtGui.QColor("#818cf8")
        for i, level in enumerate(self.levels):
            bar_h = float(level) * self.height()
            painter.fillRect(
                QtCore.QRectF(i * bar_w + 1, self.height() - bar_h, bar_w - 2, bar_h), color
            )


class MainWindow(QtWidgets.QMainWindow):
    def __init__(self):
        super().__init__()

        # 1️⃣ persistent settings (organisation, application)
        self.qsettings = QSettings(constants.SETTINGS_ORGANISATION, constants.SETTINGS_APPLICATION)
        self.store = SettingsStore(self.qsettings)
        self.setWindowTitle("Decibel Meter Pro")
        self.resize(1000, 800)

        icon = self.style().standardIcon(QtWidgets.QStyle.StandardPixmap.SP_MediaVolume)
        self.setWindowIcon(icon)

        # 2️⃣ tray icon doubles as the notification channel
        self.tray: Optional[QtWidgets.QSystemTrayIcon] = None
        if QtWidgets.QSystemTrayIcon.isSystemTrayAvailable():
            self._create_tray(icon)
        self.notifier = TrayNotifier(self.tray)

        self.monitor = Monitor(self.store, self.notifier, parent=self)
        self.trend_view = "live"
        self._live_history: list[int] = []
        self._session_trend: list[int] = []
        self._quitting = False

        self._build_ui()
        self._create_menu()
        self._connect_monitor()
        self._populate_devices()

        self.notifier.notify("dB Meter started", "App is ready to measure sound.")

    # -----------------------------------------------------------------
    def _create_tray(self, icon: QtGui.QIcon) -> None:
        self.tray = QtWidgets.QSystemTrayIcon(icon, self)
        self.tray.setToolTip("dbmeter")
        menu = QtWidgets.QMenu(self)
        menu.addAction("Show App").triggered.connect(self._show_window)
        menu.addAction("Exit").triggered.connect(self._quit)
        self.tray.setContextMenu(menu)
        self.tray.activated.connect(self._on_tray_activated)
        self.tray.messageClicked.connect(self._show_window)
        self.tray.show()

    def _on_tray_activated(self, reason) -> None:
        if reason == QtWidgets.QSystemTrayIcon.ActivationReason.Trigger:
            if self.isVisible():
                self.hide()
            else:
                self._show_window()

    def _show_window(self) -> None:
        self.show()
        self.raise_()
        self.activateWindow()

    def _quit(self) -> None:
        self._quitting = True
        self.close()
        QtWidgets.QApplication.quit()

    def closeEvent(self, event: QtGui.QCloseEvent) -> None:  # noqa: N802 - Qt override
        if self.tray is not None and not self._quitting:
            event.ignore()
            self.hide()
            return
        self.monitor.stop()
        super().closeEvent(event)
        QtWidgets.QApplication.quit()

    # -----------------------------------------------------------------
    def _make_heading(self, text: str) -> QtWidgets.QLabel:
        lbl = QtWidgets.QLabel(text)
        font = lbl.font()
        font.setBold(True)
        lbl.setFont(font)
        return lbl

    def _build_ui(self) -> None:
        settings = self.store.settings
        central = QtWidgets.QWidget()
        layout = QtWidgets.QVBoxLayout(central)

        # Level readout
        self.alert_lbl = QtWidgets.QLabel("Current Level")
        layout.addWidget(self.alert_lbl)
        self.level_lbl = QtWidgets.QLabel("0.0 dB")
        font = self.level_lbl.font()
        font.setPointSize(font.pointSize() * 4)
        self.level_lbl.setFont(font)
        self.level_lbl.setAlignment(QtCore.Qt.AlignmentFlag.AlignCenter)
        layout.addWidget(self.level_lbl)
        self.band_lbl = QtWidgets.QLabel(db_label(0))
        self.band_lbl.setAlignment(QtCore.Qt.AlignmentFlag.AlignCenter)
        layout.addWidget(self.band_lbl)

        self.level_bar = QtWidgets.QProgressBar()
        self.level_bar.setRange(0, 120)
        self.level_bar.setTextVisible(False)
        layout.addWidget(self.level_bar)

        self.peak_lbl = QtWidgets.QLabel("Peak Level: 0 dB")
        layout.addWidget(self.peak_lbl)

        # Trend and spectrum
        trend_row = QtWidgets.QHBoxLayout()
        trend_row.addWidget(self._make_heading("Trend"))
        self.trend_toggle = QtWidgets.QComboBox()
        self.trend_toggle.addItem("Live", "live")
        self.trend_toggle.addItem("Session (4h)", "session")
        self.trend_toggle.currentIndexChanged.connect(self._on_trend_view_changed)
        trend_row.addStretch(1)
        trend_row.addWidget(self.trend_toggle)
        layout.addLayout(trend_row)
        self.trend_chart = TrendChart()
        self.trend_chart.set_threshold(settings.threshold_db)
        layout.addWidget(self.trend_chart)
        self.spectrum = SpectrumBars()
        layout.addWidget(self.spectrum)

        # Controls
        layout.addWidget(self._make_heading("Settings"))
        form = QtWidgets.QFormLayout()
        layout.addLayout(form)

        self.device_combo = QtWidgets.QComboBox()
        self.device_combo.currentIndexChanged.connect(self._on_device_changed)
        form.addRow("Input device", self.device_combo)

        self.threshold_slider = QtWidgets.QSlider(QtCore.Qt.Orientation.Horizontal)
        self.threshold_slider.setRange(*constants.THRESHOLD_RANGE)
        self.threshold_slider.setValue(settings.threshold_db)
        self.threshold_slider.valueChanged.connect(self._on_threshold_changed)
        self.threshold_lbl = QtWidgets.QLabel()
        self._update_threshold_label(settings.threshold_db)
        form.addRow(self.threshold_lbl, self.threshold_slider)

        self.duration_spin = QtWidgets.QDoubleSpinBox()
        self.duration_spin.setRange(*constants.DURATION_RANGE)
        self.duration_spin.setSingleStep(0.1)
        self.duration_spin.setDecimals(1)
        self.duration_spin.setSuffix(" s")
        self.duration_spin.setValue(settings.duration_threshold_sec)
        self.duration_spin.valueChanged.connect(
            lambda v: self.store.update(duration_threshold_sec=float(v))
        )
        form.addRow("Minimum duration", self.duration_spin)

        self.smoothing_combo = QtWidgets.QComboBox()
        for speed in constants.SMOOTHING_PRESETS:
            self.smoothing_combo.addItem(speed.capitalize(), speed)
        self.smoothing_combo.setCurrentIndex(self.smoothing_combo.findData(settings.smoothing_speed))
        self.smoothing_combo.currentIndexChanged.connect(
            lambda _i: self.store.update(smoothing_speed=self.smoothing_combo.currentData())
        )
        form.addRow("Smoothing", self.smoothing_combo)

        self.calibration_spin = QtWidgets.QSpinBox()
        self.calibration_spin.setRange(*constants.CALIBRATION_RANGE)
        self.calibration_spin.setSuffix(" dB")
        self.calibration_spin.setValue(settings.calibration_offset_db)
        self.calibration_spin.valueChanged.connect(
            lambda v: self.store.update(calibration_offset_db=int(v))
        )
        form.addRow("Manual calibration", self.calibration_spin)

        # Event log
        log_row = QtWidgets.QHBoxLayout()
        log_row.addWidget(self._make_heading("Event Log"))
        log_row.addStretch(1)
        self.export_btn = QtWidgets.QPushButton("Export CSV")
        self.export_btn.setEnabled(False)
        self.export_btn.clicked.connect(self._export_logs)
        log_row.addWidget(self.export_btn)
        layout.addLayout(log_row)
        self.log = QtWidgets.QListWidget()
        layout.addWidget(self.log)

        self.setCentralWidget(central)
        self.statusBar()

    def _create_menu(self) -> None:
        menubar = self.menuBar()
        file_menu = menubar.addMenu("File")
        export_action = file_menu.addAction("Export Logs…")
        export_action.triggered.connect(self._export_logs)
        exit_action = file_menu.addAction("Exit")
        exit_action.triggered.connect(self._quit)

        audio_menu = menubar.addMenu("Audio Input")
        refresh_action = audio_menu.addAction("Refresh Devices")
        refresh_action.triggered.connect(self._populate_devices)

    def _connect_monitor(self) -> None:
        self.monitor.levelChanged.connect(self._on_level_changed)
        self.monitor.readingChanged.connect(self._on_reading_changed)
        self.monitor.alertChanged.connect(self._on_alert_changed)
        self.monitor.historyChanged.connect(self._on_history_changed)
        self.monitor.sessionTrendChanged.connect(self._on_session_trend_changed)
        self.monitor.spectrumChanged.connect(self.spectrum.set_levels)
        self.monitor.eventLogged.connect(self._on_event_logged)
        self.monitor.errorOccurred.connect(
            lambda msg: self.statusBar().showMessage(f"Audio error: {msg}")
        )

    # -----------------------------------------------------------------
    def _populate_devices(self) -> None:
        self.device_combo.blockSignals(True)
        self.device_combo.clear()
        try:
            devices = list_input_devices()
        except DeviceUnavailableError as e:
            logger.error("%s", e)
            self.device_combo.addItem(str(e), None)
            self.device_combo.blockSignals(False)
            return

        for device in devices:
            self.device_combo.addItem(device.label, device.id)
        if not devices:
            self.device_combo.addItem("No input devices found", None)
        self.device_combo.blockSignals(False)

        selected = choose_device(devices, self.store.settings.device_id)
        if selected is None:
            return
        row = self.device_combo.findData(selected.id)
        self.device_combo.blockSignals(True)
        self.device_combo.setCurrentIndex(row)
        self.device_combo.blockSignals(False)
        self.monitor.start(selected.id)

    def _on_device_changed(self, _index: int) -> None:
        device_id = self.device_combo.currentData()
        if device_id is None:
            return
        self._live_history = []
        self.monitor.switch_device(device_id)

    def _update_threshold_label(self, threshold: int) -> None:
        self.threshold_lbl.setText(f"Notification threshold ({threshold} dB - {db_label(threshold)})")

    def _on_threshold_changed(self, value: int) -> None:
        self.store.update(threshold_db=int(value))
        self._update_threshold_label(value)
        self.trend_chart.set_threshold(value)

    # -----------------------------------------------------------------
    # Monitor callbacks
    def _on_level_changed(self, db: float) -> None:
        self.level_lbl.setText(f"{db:.1f} dB")
        self.band_lbl.setText(db_label(round(db)))
        self.level_bar.setValue(min(int(db), 120))

    def _on_reading_changed(self, _current_db: int, peak_db: int) -> None:
        self.peak_lbl.setText(f"Peak Level: {peak_db} dB ({db_label(peak_db)})")

    def _on_alert_changed(self, alerting: bool) -> None:
        self.alert_lbl.setText("Threshold Exceeded!" if alerting else "Current Level")
        self.alert_lbl.setStyleSheet("color: #ef4444" if alerting else "")

    def _on_history_changed(self, values: list) -> None:
        self._live_history = values
        if self.trend_view == "live":
            self.trend_chart.set_values(values)

    def _on_session_trend_changed(self, values: list) -> None:
        self._session_trend = values
        if self.trend_view == "session":
            self.trend_chart.set_values(values)

    def _on_trend_view_changed(self, _index: int) -> None:
        self.trend_view = self.trend_toggle.currentData()
        values = self._session_trend if self.trend_view == "session" else self._live_history
        self.trend_chart.set_values(values)

    def _on_event_logged(self, event: SoundEvent) -> None:
        self.log.insertItem(0, f"{event.timestamp}  {event.label}  {event.db} dB")
        while self.log.count() > constants.EVENT_LOG_CAPACITY:
            self.log.takeItem(self.log.count() - 1)
        self.export_btn.setEnabled(True)

    def _export_logs(self) -> None:
        events = self.monitor.event_log.events()
        if not events:
            return
        path, _ = QtWidgets.QFileDialog.getSaveFileName(
            self,
            "Export Noise Logs",
            str(default_export_path()),
            "CSV Files (*.csv)",
        )
        if not path:
            return
        if export_events(events, Path(path)):
            self.statusBar().showMessage(f"Logs exported to {path}", 5000)
        else:
            QtWidgets.QMessageBox.warning(self, "Export failed", f"Could not write {path}.")


# ─── main ─────────────────────────────────────────────────────────────────────
def run_gui():
    setup_logging(log_file=default_log_file())
    app = QtWidgets.QApplication(sys.argv)
    app.setQuitOnLastWindowClosed(False)

    inject_style(app, style="crimson_depth")

    win = MainWindow()
    win.show()
    sys.exit(app.exec())


if __name__ == "__main__":
    run_gui()
