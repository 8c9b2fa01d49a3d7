"""Training stress and anaerobic capacity estimates for plan segments.

Stress uses the TSS definition ``duration * IF^2 * 100 / 3600`` where the
intensity factor of a linear ramp is approximated by the midpoint of its
start and end ratios.

Capacity follows a two-regime critical power model. Above critical power the
reserve drains linearly with the work done above it. Below critical power it
recovers exponentially toward full with a time constant that shrinks as the
deficit below critical power grows (Skiba-style ``tau = A*e^(-B*D) + C``).
"""

from __future__ import annotations

import math
from typing import Iterable

from velosim.workout.model import Segment

TAU_AMPLITUDE_SEC = 546.0
TAU_DECAY_PER_WATT = 0.01
TAU_OFFSET_SEC = 316.0

CAPACITY_STEP_SEC = 10


def segment_stress(start_ratio: float, end_ratio: float, duration_sec: float) -> float:
    average_ratio = (start_ratio + end_ratio) / 2.0
    return duration_sec * average_ratio**2 * 100.0 / 3600.0


def plan_stress(segments: Iterable[Segment]) -> float:
    return sum(
        segment_stress(
            segment.power_start_ratio, segment.power_end_ratio, segment.duration_sec
        )
        for segment in segments
    )


def recovery_time_constant(deficit_watts: float) -> float:
    return TAU_AMPLITUDE_SEC * math.exp(-TAU_DECAY_PER_WATT * deficit_watts) + TAU_OFFSET_SEC


def capacity_delta(
    ratio: float,
    duration_sec: float,
    critical_power_ratio: float,
    capacity_joules: float,
    *,
    ftp_watts: float,
    balance_joules: float | None = None,
) -> float:
    """Signed change of the anaerobic reserve over a constant-ratio span.

    Args:
        ratio: Power as a fraction of FTP.
        duration_sec: Length of the span.
        critical_power_ratio: Critical power as a fraction of FTP.
        capacity_joules: Full reserve (W').
        ftp_watts: FTP used to convert ratios to watts.
        balance_joules: Reserve at the start of the span. Defaults to full.

    Returns:
        Joules gained (positive) or consumed (negative). Recovery never
        overshoots the full reserve.
    """
    if duration_sec <= 0:
        return 0.0
    balance = capacity_joules if balance_joules is None else balance_joules
    if ratio > critical_power_ratio:
        return -(ratio - critical_power_ratio) * ftp_watts * duration_sec

    deficit_watts = (critical_power_ratio - ratio) * ftp_watts
    tau = recovery_time_constant(deficit_watts)
    missing = max(0.0, capacity_joules - balance)
    return missing * (1.0 - math.exp(-duration_sec / tau))


def simulate_capacity(
    segments: Iterable[Segment],
    *,
    critical_power_ratio: float,
    capacity_joules: float,
    ftp_watts: float,
    balance_joules: float | None = None,
) -> tuple[float, float]:
    """Walk segments forward and return ``(final_balance, lowest_balance)``.

    Ramps are split into ``CAPACITY_STEP_SEC`` chunks evaluated at their
    midpoint ratio so a ramp crossing critical power is handled in both
    regimes.
    """
    balance = capacity_joules if balance_joules is None else balance_joules
    lowest = balance
    for segment in segments:
        cursor = 0
        while cursor < segment.duration_sec:
            chunk = min(CAPACITY_STEP_SEC, segment.duration_sec - cursor)
            ratio = segment.ratio_at(cursor + chunk / 2.0)
            balance += capacity_delta(
                ratio,
                chunk,
                critical_power_ratio,
                capacity_joules,
                ftp_watts=ftp_watts,
                balance_joules=balance,
            )
            lowest = min(lowest, balance)
            cursor += chunk
    return balance, lowest
