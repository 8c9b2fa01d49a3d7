"""Tick-driven playback of a workout plan into sensor samples."""

from __future__ import annotations

import random
from typing import Protocol

from velosim.core.state import RESTING_HEART_RATE_BPM, SensorSample, SessionState
from velosim.workout.model import WorkoutPlan

HR_BASE_RATIO = 0.5
HR_MAX_RATIO = 1.27
HR_FLOOR_BPM = 90
HR_CEILING_BPM = 180
RECOVERY_WINDOW_SEC = 300
FLUCTUATION = 0.02

CRANK_TIME_UNITS_PER_SEC = 1024
UINT16_MODULO = 65536

DEFAULT_CADENCE_MIN_RPM = 85
DEFAULT_CADENCE_MAX_RPM = 95


class PlanSource(Protocol):
    applies_fluctuation: bool

    def current_plan(self) -> WorkoutPlan: ...


class AutoPlanSource:
    """Fixed generated plan, played back with power fluctuation."""

    applies_fluctuation = True

    def __init__(self, plan: WorkoutPlan) -> None:
        self._plan = plan

    def current_plan(self) -> WorkoutPlan:
        return self._plan


def heart_rate_for_ratio(ratio: float, hr_base_bpm: int, hr_max_bpm: int) -> float:
    """Affine map through (0.5, HR base) and (1.27, HR max), clamped."""
    slope = (hr_max_bpm - hr_base_bpm) / (HR_MAX_RATIO - HR_BASE_RATIO)
    bpm = hr_base_bpm + (ratio - HR_BASE_RATIO) * slope
    return min(max(bpm, HR_FLOOR_BPM), HR_CEILING_BPM)


def crank_event_increment(cadence_rpm: int) -> int:
    """1/1024 s ticks for one crank revolution at ``cadence_rpm``."""
    return int(round(60 * CRANK_TIME_UNITS_PER_SEC / cadence_rpm))


class PlaybackEngine:
    """Single writer of ``SessionState``; one call to ``tick`` per second."""

    def __init__(
        self,
        source: PlanSource,
        *,
        hr_base_bpm: int,
        hr_max_bpm: int,
        cadence_min_rpm: int = DEFAULT_CADENCE_MIN_RPM,
        cadence_max_rpm: int = DEFAULT_CADENCE_MAX_RPM,
        rng: random.Random | None = None,
        debug: bool = False,
    ) -> None:
        if hr_max_bpm <= hr_base_bpm:
            raise ValueError("HR max must be above HR base")
        if cadence_min_rpm > cadence_max_rpm:
            raise ValueError("cadence_min_rpm must be <= cadence_max_rpm")
        self._source = source
        self._hr_base_bpm = hr_base_bpm
        self._hr_max_bpm = hr_max_bpm
        self._cadence_min_rpm = cadence_min_rpm
        self._cadence_max_rpm = cadence_max_rpm
        self._rng = rng or random.Random()
        self._debug = debug
        self._bounds_plan: WorkoutPlan | None = None
        self._bounds: list[tuple[int, int]] = []
        self.state = SessionState(cadence_rpm=cadence_min_rpm)

    @property
    def plan(self) -> WorkoutPlan:
        return self._source.current_plan()

    @property
    def finished(self) -> bool:
        return self.state.phase == "finished"

    def tick(self) -> SensorSample:
        state = self.state
        plan = self._source.current_plan()
        total = plan.total_duration_sec

        if state.phase == "running" and state.elapsed_sec >= total:
            state.final_heart_rate_bpm = state.heart_rate_bpm
            state.phase = "recovering"
            if self._debug:
                print(
                    f"[PLAY] plan complete at {state.elapsed_sec}s, "
                    f"recovering from {state.heart_rate_bpm} bpm"
                )

        if state.phase == "running":
            self._run_step(plan)
        elif state.phase == "recovering":
            self._recovery_step(total)
        else:
            state.power_watts = 0
            state.cadence_rpm = 0
            state.heart_rate_bpm = RESTING_HEART_RATE_BPM

        sample = state.snapshot()
        state.elapsed_sec += 1
        return sample

    def _segment_bounds(self, plan: WorkoutPlan) -> list[tuple[int, int]]:
        if plan is not self._bounds_plan:
            self._bounds_plan = plan
            self._bounds = plan.segment_bounds()
        return self._bounds

    def _run_step(self, plan: WorkoutPlan) -> None:
        state = self.state
        bounds = self._segment_bounds(plan)
        last_index = len(plan.segments) - 1
        index = min(state.segment_index, last_index)
        while index < last_index and state.elapsed_sec > bounds[index][1]:
            index += 1
        state.segment_index = index

        segment = plan.segments[index]
        ratio = segment.ratio_at(state.elapsed_sec - bounds[index][0])
        if self._source.applies_fluctuation:
            ratio *= 1.0 + self._rng.uniform(-FLUCTUATION, FLUCTUATION)
        ratio = max(ratio, plan.min_ratio)

        state.power_watts = int(round(ratio * plan.ftp_watts))
        state.heart_rate_bpm = int(
            round(heart_rate_for_ratio(ratio, self._hr_base_bpm, self._hr_max_bpm))
        )
        self._advance_cadence()

    def _advance_cadence(self) -> None:
        state = self.state
        if self._cadence_min_rpm == self._cadence_max_rpm:
            state.cadence_rpm = self._cadence_min_rpm
        else:
            state.cadence_rpm = min(
                max(state.cadence_rpm + state.cadence_direction, self._cadence_min_rpm),
                self._cadence_max_rpm,
            )
            if state.cadence_rpm >= self._cadence_max_rpm:
                state.cadence_direction = -1
            elif state.cadence_rpm <= self._cadence_min_rpm:
                state.cadence_direction = 1

        if state.cadence_rpm <= 0:
            return
        state.crank_revolutions = (state.crank_revolutions + 1) % UINT16_MODULO
        state.last_crank_event_ticks = (
            state.last_crank_event_ticks + crank_event_increment(state.cadence_rpm)
        ) % UINT16_MODULO

    def _recovery_step(self, total_duration_sec: int) -> None:
        state = self.state
        state.power_watts = 0
        state.cadence_rpm = 0
        final = (
            state.final_heart_rate_bpm
            if state.final_heart_rate_bpm is not None
            else state.heart_rate_bpm
        )
        into_recovery = state.elapsed_sec - total_duration_sec
        progress = min(into_recovery / RECOVERY_WINDOW_SEC, 1.0)
        state.heart_rate_bpm = int(
            round(final + (RESTING_HEART_RATE_BPM - final) * progress)
        )
        if into_recovery >= RECOVERY_WINDOW_SEC:
            state.phase = "finished"
            state.heart_rate_bpm = RESTING_HEART_RATE_BPM
            if self._debug:
                print(f"[PLAY] recovery window over at {state.elapsed_sec}s, finished")
