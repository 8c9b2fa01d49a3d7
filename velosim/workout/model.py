"""Workout domain models."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_MIN_RATIO = 0.25
DEFAULT_MAX_RATIO = 1.5


@dataclass(frozen=True)
class Segment:
    duration_sec: int
    power_start_ratio: float
    power_end_ratio: float
    label: str | None = None

    def ratio_at(self, elapsed_in_segment: float) -> float:
        progress = min(max(elapsed_in_segment / self.duration_sec, 0.0), 1.0)
        return self.power_start_ratio + (
            self.power_end_ratio - self.power_start_ratio
        ) * progress


@dataclass(frozen=True)
class WorkoutPlan:
    name: str
    segments: tuple[Segment, ...]
    ftp_watts: int
    min_ratio: float = DEFAULT_MIN_RATIO
    max_ratio: float = DEFAULT_MAX_RATIO

    @property
    def total_duration_sec(self) -> int:
        return sum(segment.duration_sec for segment in self.segments)

    def segment_bounds(self) -> list[tuple[int, int]]:
        """Cumulative (start_sec, end_sec) of each segment."""
        bounds: list[tuple[int, int]] = []
        cursor = 0
        for segment in self.segments:
            bounds.append((cursor, cursor + segment.duration_sec))
            cursor += segment.duration_sec
        return bounds

    def ratio_at(self, elapsed_sec: float) -> float:
        """Planned ratio at a session time, without fluctuation."""
        if not self.segments:
            return 0.0
        for segment, (start, end) in zip(self.segments, self.segment_bounds()):
            if elapsed_sec <= end:
                return segment.ratio_at(elapsed_sec - start)
        return self.segments[-1].power_end_ratio

    def watts_at(self, elapsed_sec: float) -> int:
        return int(round(self.ratio_at(elapsed_sec) * self.ftp_watts))

    def is_continuous(self) -> bool:
        return all(
            current.power_end_ratio == following.power_start_ratio
            for current, following in zip(self.segments, self.segments[1:])
        )


def power_profile(plan: WorkoutPlan, step_sec: int = 60) -> list[tuple[int, int]]:
    """Sample the planned watts every ``step_sec`` for charts and dumps."""
    if step_sec <= 0:
        raise ValueError("step_sec must be > 0")
    total = plan.total_duration_sec
    points = [(t, plan.watts_at(t)) for t in range(0, total, step_sec)]
    points.append((total, plan.watts_at(total)))
    return points
