from __future__ import annotations

import pytest

from velosim.workout.manual import ButtonEdgeDetector, ManualController


def _controller(**kwargs) -> ManualController:
    params = {"ftp_watts": 250, "duration_sec": 3600, "base_power_watts": 150, "step_watts": 10}
    params.update(kwargs)
    return ManualController(**params)


def test_n_increments_raise_target_by_n_steps() -> None:
    manual = _controller()
    for _ in range(5):
        assert manual.increment() is True
    assert manual.state.target_power_watts == 200
    assert manual.current_plan().watts_at(0) == 200


def test_target_clamps_at_bounds() -> None:
    manual = _controller(base_power_watts=495)
    assert manual.increment() is True
    assert manual.state.target_power_watts == 500
    assert manual.increment() is False
    assert manual.state.target_power_watts == 500

    low = _controller(base_power_watts=55)
    assert low.decrement() is True
    assert low.decrement() is False
    assert low.state.target_power_watts == 50


def test_base_power_is_clamped_on_construction() -> None:
    assert _controller(base_power_watts=900).state.target_power_watts == 500


def test_plan_is_rebuilt_only_on_change() -> None:
    manual = _controller(base_power_watts=500)
    before = manual.current_plan()
    manual.increment()
    assert manual.current_plan() is before
    manual.handle("decrement")
    after = manual.current_plan()
    assert after is not before
    assert after.segments[0].label == "Manual"
    assert after.segments[0].power_start_ratio == after.segments[0].power_end_ratio == pytest.approx(1.96)
    assert after.total_duration_sec == 3600


def test_manual_plan_bounds_follow_watt_limits() -> None:
    plan = _controller().current_plan()
    assert plan.min_ratio == pytest.approx(50 / 250)
    assert plan.max_ratio == pytest.approx(500 / 250)
    assert _controller().applies_fluctuation is False


def test_invalid_manual_settings_raise() -> None:
    with pytest.raises(ValueError):
        _controller(step_watts=0)
    with pytest.raises(ValueError):
        _controller(min_watts=300, max_watts=200)
    with pytest.raises(ValueError):
        _controller(duration_sec=0)


def test_edge_fires_once_on_release_after_debounce() -> None:
    detector = ButtonEdgeDetector(debounce_sec=0.05)
    assert detector.sample(True, 0.00) is False
    assert detector.sample(True, 0.06) is False
    assert detector.sample(True, 0.50) is False
    assert detector.sample(False, 0.55) is True
    assert detector.sample(False, 0.60) is False


def test_short_blip_is_ignored() -> None:
    detector = ButtonEdgeDetector(debounce_sec=0.05)
    detector.sample(True, 1.00)
    assert detector.sample(False, 1.02) is False


def test_reset_disarms_pending_press() -> None:
    detector = ButtonEdgeDetector(debounce_sec=0.05)
    detector.sample(True, 0.0)
    detector.sample(True, 0.1)
    detector.reset()
    assert detector.sample(False, 0.2) is False
