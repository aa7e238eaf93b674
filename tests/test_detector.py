"""Tests for :class:`dbmeter.detector.EventDetector`."""

from __future__ import annotations

import pytest

from dbmeter.detector import (
    DetectorState,
    EventDetector,
    EventLog,
    SoundEvent,
    format_seconds,
    notification_body,
)

from conftest import FakeScheduler, RecordingNotifier

THRESHOLD = 80
DURATION = 2.0
TICK = 16


def run(detector: EventDetector, scheduler: FakeScheduler, start: int, end: int, db: int) -> None:
    """Feed ``db`` every tick in ``[start, end)``, firing due timers first."""
    for now in range(start, end, TICK):
        scheduler.advance_to(now)
        detector.update(db, now, THRESHOLD, DURATION)


@pytest.fixture
def detector(scheduler, notifier) -> EventDetector:
    return EventDetector(scheduler, notifier, timestamp=lambda: "12:00:00")


def test_quiet_input_stays_idle(detector, scheduler, notifier) -> None:
    run(detector, scheduler, 0, 5000, 60)
    assert detector.state is DetectorState.IDLE
    assert detector.loud_start_ms is None
    assert not detector.alerting
    assert notifier.calls == []


def test_threshold_is_strict(detector, scheduler, notifier) -> None:
    run(detector, scheduler, 0, 5000, THRESHOLD)
    assert not detector.alerting
    assert notifier.calls == []


def test_peak_tracked_before_qualification(detector, scheduler) -> None:
    detector.update(85, 0, THRESHOLD, DURATION)
    detector.update(92, 16, THRESHOLD, DURATION)
    detector.update(88, 32, THRESHOLD, DURATION)
    assert detector.alerting
    assert detector.state is DetectorState.SUSTAINING
    assert detector.loud_start_ms == 0
    assert detector.event_peak_db == 92


def test_single_quiet_tick_resets_sustain_timer(detector, scheduler, notifier) -> None:
    run(detector, scheduler, 0, 2000, 90)  # last loud tick at 1984
    assert not detector.event_pending
    scheduler.advance_to(2000)
    detector.update(50, 2000, THRESHOLD, DURATION)
    assert detector.loud_start_ms is None

    # 2016 onwards: cumulative loud time passes 2 s long before 4016
    run(detector, scheduler, 2016, 4016, 90)
    assert detector.loud_start_ms == 2016
    assert not detector.event_pending

    scheduler.advance_to(4016)
    assert detector.update(90, 4016, THRESHOLD, DURATION) is True
    assert detector.event_pending
    assert detector.state is DetectorState.COOLING


def test_emission_waits_for_peak_capture(detector, scheduler, notifier) -> None:
    run(detector, scheduler, 0, 2000, 85)
    scheduler.advance_to(2000)
    assert detector.update(85, 2000, THRESHOLD, DURATION) is True
    assert notifier.calls == []

    # louder during the grace period
    run(detector, scheduler, 2016, 2600, 97)
    assert len(detector.event_log) == 0

    scheduler.advance_to(3000)
    assert len(detector.event_log) == 1
    event = detector.event_log.events()[0]
    assert event.db == 97
    assert event.label == "Sound System"
    assert event.timestamp == "12:00:00"
    assert notifier.calls == [
        ("Sustained Noise Detected!", "Level reached 97 dB for 2+ sec.")
    ]
    assert detector.event_peak_db == 0
    assert detector.last_notify_ms == 3000
    assert not detector.event_pending


def test_only_one_event_per_episode_within_cooldown(detector, scheduler, notifier) -> None:
    run(detector, scheduler, 0, 9000, 90)
    scheduler.advance_to(9000)
    # qualified at 2000, emitted at 3000, cooldown blocks until >10000
    assert len(notifier.calls) == 1
    assert detector.state is DetectorState.COOLING


def test_continuous_noise_notifies_after_cooldown(detector, scheduler, notifier) -> None:
    run(detector, scheduler, 0, 12000, 90)
    scheduler.advance_to(12000)
    # emitted at 3000; next tick with now - 3000 > 7000 is 10016, emitted 11016
    assert len(notifier.calls) == 2
    assert len(detector.event_log) == 2


def test_cooldown_suppresses_second_episode(detector, scheduler, notifier) -> None:
    run(detector, scheduler, 0, 3000, 90)
    run(detector, scheduler, 3000, 7000, 40)
    run(detector, scheduler, 7000, 10000, 90)
    run(detector, scheduler, 10000, 20000, 40)
    assert len(notifier.calls) == 1
    assert len(detector.event_log) == 1


def test_short_episode_never_qualifies(detector, scheduler, notifier) -> None:
    run(detector, scheduler, 0, 1500, 95)
    run(detector, scheduler, 1500, 6000, 40)
    assert notifier.calls == []
    assert len(detector.event_log) == 0


def test_failing_notifier_still_records_event(scheduler) -> None:
    class Broken:
        def notify(self, title: str, body: str) -> None:
            raise RuntimeError("no notification daemon")

    received: list[SoundEvent] = []
    detector = EventDetector(scheduler, Broken(), on_event=received.append)
    run(detector, scheduler, 0, 2500, 90)
    scheduler.advance_to(3500)
    assert len(detector.event_log) == 1
    assert received == detector.event_log.events()
    assert detector.last_notify_ms == 3000


def test_emission_after_reset_is_still_delivered(detector, scheduler, notifier) -> None:
    run(detector, scheduler, 0, 2016, 90)
    assert detector.event_pending
    detector.reset()
    assert detector.loud_start_ms is None
    scheduler.advance_to(5000)
    assert len(notifier.calls) == 1


def test_event_log_bounded_newest_first() -> None:
    log = EventLog(capacity=50)
    for i in range(60):
        log.add(SoundEvent(id=str(i), timestamp="t", db=i, label="x"))
    assert len(log) == 50
    ids = [event.id for event in log]
    assert ids[0] == "59"
    assert ids[-1] == "10"


def test_event_ids_unique(scheduler) -> None:
    notifier = RecordingNotifier()
    detector = EventDetector(scheduler, notifier)
    run(detector, scheduler, 0, 30000, 90)
    scheduler.advance_to(31000)
    ids = [event.id for event in detector.event_log]
    assert len(ids) >= 3
    assert len(set(ids)) == len(ids)


def test_notification_text() -> None:
    assert format_seconds(2.0) == "2"
    assert format_seconds(0.5) == "0.5"
    assert notification_body(88, 2.5) == "Level reached 88 dB for 2.5+ sec."
