import json

import pytest

from dbmeter.constants import SETTINGS_KEY
from dbmeter.settings import Settings, SettingsStore

from conftest import MemorySettings


def test_defaults_when_nothing_saved(backend) -> None:
    store = SettingsStore(backend)
    assert store.settings == Settings(
        threshold_db=80,
        duration_threshold_sec=2.0,
        calibration_offset_db=0,
        smoothing_speed="medium",
        device_id="",
    )
    assert store.settings.smoothing_alpha == pytest.approx(0.25)
    assert store.settings.refresh_interval_ms == 700


def test_loads_saved_record() -> None:
    record = {
        "threshold": 95,
        "deviceId": "3",
        "durationThreshold": 4.5,
        "calibrationOffset": -12,
        "smoothingSpeed": "fast",
    }
    store = SettingsStore(MemorySettings({SETTINGS_KEY: json.dumps(record)}))
    settings = store.settings
    assert settings.threshold_db == 95
    assert settings.device_id == "3"
    assert settings.duration_threshold_sec == 4.5
    assert settings.calibration_offset_db == -12
    assert settings.smoothing_speed == "fast"
    assert settings.refresh_interval_ms == 400


def test_every_update_persists_full_record(backend) -> None:
    store = SettingsStore(backend)
    store.update(threshold_db=90)
    saved = json.loads(backend.data[SETTINGS_KEY])
    assert saved == {
        "threshold": 90,
        "durationThreshold": 2.0,
        "calibrationOffset": 0,
        "smoothingSpeed": "medium",
        "deviceId": "",
    }
    store.update(smoothing_speed="slow", device_id="7")
    saved = json.loads(backend.data[SETTINGS_KEY])
    assert saved["smoothingSpeed"] == "slow"
    assert saved["deviceId"] == "7"
    assert SettingsStore(backend).settings == store.settings


def test_values_are_clamped(backend) -> None:
    store = SettingsStore(backend)
    settings = store.update(
        threshold_db=200,
        duration_threshold_sec=0.0,
        calibration_offset_db=-99,
        smoothing_speed="turbo",
    )
    assert settings.threshold_db == 120
    assert settings.duration_threshold_sec == pytest.approx(0.1)
    assert settings.calibration_offset_db == -30
    assert settings.smoothing_speed == "medium"


def test_subscribers_see_new_settings(backend) -> None:
    store = SettingsStore(backend)
    seen = []
    store.subscribe(seen.append)
    store.update(calibration_offset_db=5)
    assert seen == [store.settings]
    assert seen[0].calibration_offset_db == 5


def test_unknown_field_rejected(backend) -> None:
    store = SettingsStore(backend)
    with pytest.raises(TypeError):
        store.update(volume=11)


@pytest.mark.parametrize("raw", ["{not json", "[1, 2]", json.dumps({"threshold": "loud"})])
def test_bad_saved_data_falls_back_to_defaults(raw: str) -> None:
    store = SettingsStore(MemorySettings({SETTINGS_KEY: raw}))
    assert store.settings.threshold_db == 80


def test_partial_record_keeps_other_defaults() -> None:
    store = SettingsStore(MemorySettings({SETTINGS_KEY: json.dumps({"threshold": "65"})}))
    assert store.settings.threshold_db == 65
    assert store.settings.duration_threshold_sec == 2.0
    assert store.settings.smoothing_speed == "medium"
