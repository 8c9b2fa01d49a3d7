"""Playback session state owned by the playback engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal


SessionPhase = Literal["running", "recovering", "finished"]

RESTING_HEART_RATE_BPM = 90


@dataclass
class SessionState:
    elapsed_sec: int = 0
    segment_index: int = 0
    phase: SessionPhase = "running"
    power_watts: int = 0
    heart_rate_bpm: int = RESTING_HEART_RATE_BPM
    cadence_rpm: int = 0
    cadence_direction: int = 1
    crank_revolutions: int = 0
    last_crank_event_ticks: int = 0
    final_heart_rate_bpm: int | None = None

    def snapshot(self) -> SensorSample:
        return SensorSample(
            elapsed_sec=self.elapsed_sec,
            phase=self.phase,
            segment_index=self.segment_index,
            power_watts=self.power_watts,
            heart_rate_bpm=self.heart_rate_bpm,
            cadence_rpm=self.cadence_rpm,
            crank_revolutions=self.crank_revolutions,
            last_crank_event_ticks=self.last_crank_event_ticks,
        )


@dataclass(frozen=True)
class SensorSample:
    elapsed_sec: int
    phase: SessionPhase
    segment_index: int
    power_watts: int
    heart_rate_bpm: int
    cadence_rpm: int
    crank_revolutions: int
    last_crank_event_ticks: int
