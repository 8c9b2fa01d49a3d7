"""Manual power override: step commands mapped onto a one-segment plan."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from velosim.workout.model import Segment, WorkoutPlan


StepDirection = Literal["increment", "decrement"]

MANUAL_MIN_WATTS = 50
MANUAL_MAX_WATTS = 500
DEFAULT_DEBOUNCE_SEC = 0.05


@dataclass
class ManualState:
    target_power_watts: int
    step_watts: int
    min_watts: int = MANUAL_MIN_WATTS
    max_watts: int = MANUAL_MAX_WATTS


def clamp_watts(watts: int, min_watts: int, max_watts: int) -> int:
    return min(max(watts, min_watts), max_watts)


class ManualController:
    """Owns ``ManualState`` and re-synthesizes the manual plan on change."""

    applies_fluctuation = False

    def __init__(
        self,
        *,
        ftp_watts: int,
        duration_sec: int,
        base_power_watts: int,
        step_watts: int,
        min_watts: int = MANUAL_MIN_WATTS,
        max_watts: int = MANUAL_MAX_WATTS,
        debug: bool = False,
    ) -> None:
        if ftp_watts <= 0:
            raise ValueError("FTP must be > 0")
        if duration_sec <= 0:
            raise ValueError("Manual duration must be > 0")
        if step_watts <= 0:
            raise ValueError("Manual step must be > 0")
        if min_watts <= 0 or min_watts >= max_watts:
            raise ValueError("Manual bounds must satisfy 0 < min < max")

        self._ftp_watts = ftp_watts
        self._duration_sec = duration_sec
        self._debug = debug
        self.state = ManualState(
            target_power_watts=clamp_watts(base_power_watts, min_watts, max_watts),
            step_watts=step_watts,
            min_watts=min_watts,
            max_watts=max_watts,
        )
        self._plan = self._build_plan()

    def current_plan(self) -> WorkoutPlan:
        return self._plan

    def increment(self) -> bool:
        return self._apply(self.state.step_watts)

    def decrement(self) -> bool:
        return self._apply(-self.state.step_watts)

    def handle(self, direction: StepDirection) -> bool:
        if direction == "increment":
            return self.increment()
        return self.decrement()

    def _apply(self, delta_watts: int) -> bool:
        requested = self.state.target_power_watts + delta_watts
        applied = clamp_watts(requested, self.state.min_watts, self.state.max_watts)
        if applied == self.state.target_power_watts:
            if self._debug:
                print(f"[MANUAL] target held at {applied}W (requested {requested}W)")
            return False
        self.state.target_power_watts = applied
        self._plan = self._build_plan()
        if self._debug:
            print(f"[MANUAL] target {applied}W")
        return True

    def _build_plan(self) -> WorkoutPlan:
        ratio = self.state.target_power_watts / self._ftp_watts
        return WorkoutPlan(
            name=f"Manual {self.state.target_power_watts}W",
            segments=(Segment(self._duration_sec, ratio, ratio, "Manual"),),
            ftp_watts=self._ftp_watts,
            min_ratio=self.state.min_watts / self._ftp_watts,
            max_ratio=self.state.max_watts / self._ftp_watts,
        )


class ButtonEdgeDetector:
    """Turn a polled raw button level into validated press-then-release edges.

    A press counts once it has been held for at least ``debounce_sec``; the
    edge fires on the following release. Shorter blips are ignored.
    """

    def __init__(self, debounce_sec: float = DEFAULT_DEBOUNCE_SEC) -> None:
        self._debounce_sec = debounce_sec
        self._pressed_since: float | None = None
        self._armed = False

    def reset(self) -> None:
        self._pressed_since = None
        self._armed = False

    def sample(self, pressed: bool, now_sec: float) -> bool:
        if pressed:
            if self._pressed_since is None:
                self._pressed_since = now_sec
            if now_sec - self._pressed_since >= self._debounce_sec:
                self._armed = True
            return False

        fired = self._armed
        self._pressed_since = None
        self._armed = False
        return fired
