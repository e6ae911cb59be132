from __future__ import annotations

import pytest

from konnichiwa.core.audio.pause import PauseDetector
from konnichiwa.core.clock import FakeClock


def _feed(detector: PauseDetector, clock: FakeClock, levels: list[float], step_s: float):
    results = []
    for level in levels:
        results.append(detector.process_level(level))
        clock.advance(step_s)
    return results


def test_pause_fires_once_after_duration():
    clock = FakeClock()
    detector = PauseDetector(clock=clock, threshold_db=-30.0, pause_duration_s=1.5)

    results = _feed(detector, clock, [-10.0] + [-50.0] * 6, step_s=0.5)

    # Quiet from t=0.5; 1.5 s of quiet is reached at t=2.0.
    assert results == [False, False, False, False, True, False, False]


def test_speech_resets_pause_timer():
    clock = FakeClock()
    detector = PauseDetector(clock=clock, threshold_db=-30.0, pause_duration_s=1.0)

    results = _feed(detector, clock, [-50.0, -50.0, -20.0, -50.0, -50.0, -50.0], step_s=0.5)

    assert results == [False, False, False, False, False, True]


def test_threshold_is_exclusive():
    clock = FakeClock()
    detector = PauseDetector(clock=clock, threshold_db=-30.0, pause_duration_s=0.5)
    assert _feed(detector, clock, [-30.0, -30.0, -30.0], step_s=1.0) == [False, False, False]


def test_reset_clears_pending_pause():
    clock = FakeClock()
    detector = PauseDetector(clock=clock, pause_duration_s=1.0)
    detector.process_level(-60.0)
    clock.advance(0.9)
    detector.reset()
    clock.advance(0.2)
    assert not detector.process_level(-60.0)


def test_invalid_configuration():
    with pytest.raises(ValueError):
        PauseDetector(clock=FakeClock(), pause_duration_s=0)
    with pytest.raises(ValueError):
        PauseDetector(clock=FakeClock(), threshold_db=3.0)
