"""TSS-targeted workout generation with optional capacity feasibility gating."""

from __future__ import annotations

import math
import random
from dataclasses import dataclass
from typing import Literal

from velosim.workout.model import (
    DEFAULT_MAX_RATIO,
    DEFAULT_MIN_RATIO,
    Segment,
    WorkoutPlan,
)
from velosim.workout.stress import plan_stress, simulate_capacity


GenerationOutcome = Literal["exact", "best_effort", "config_error"]

WARMUP_SEC = 600
WARMUP_START_RATIO = 0.30
WARMUP_END_RATIO = 1.00
COOLDOWN_SEC = 600
COOLDOWN_START_RATIO = 0.60
COOLDOWN_END_RATIO = 0.30

DURATION_JITTER = 0.30
HIGH_RATIO = 1.20
HIGH_FOLLOW_CAP = 1.19
RECOVERY_CEILING = 0.75
RECOVERY_STREAK = 3
TSS_TOLERANCE = 0.05
RATIO_DIGITS = 3

MAX_SEGMENT_ATTEMPTS = 20
MAX_GLOBAL_RESTARTS = 50
CAPACITY_FLOOR_FRACTION = 0.20


@dataclass(frozen=True)
class PowerBand:
    key: str
    weight: float
    low_ratio: float
    high_ratio: float


POWER_BANDS: tuple[PowerBand, ...] = (
    PowerBand("recovery", 0.30, 0.40, 0.75),
    PowerBand("tempo", 0.40, 0.75, 1.05),
    PowerBand("threshold", 0.20, 1.05, 1.20),
    PowerBand("very_high", 0.10, 1.20, 1.40),
)


@dataclass(frozen=True)
class GeneratorConfig:
    ftp_watts: int = 250
    main_duration_min: int = 60
    target_tss: float = 70.0
    segment_count: int = 8
    randomize_durations: bool = True
    feasibility: bool = False
    critical_power_ratio: float = 1.0
    capacity_joules: float = 20000.0
    min_ratio: float = DEFAULT_MIN_RATIO
    max_ratio: float = DEFAULT_MAX_RATIO

    @property
    def main_duration_sec(self) -> int:
        return self.main_duration_min * 60

    @property
    def total_duration_sec(self) -> int:
        return WARMUP_SEC + self.main_duration_sec + COOLDOWN_SEC


@dataclass(frozen=True)
class GenerationResult:
    outcome: GenerationOutcome
    plan: WorkoutPlan | None
    target_tss: float
    raw_tss: float = 0.0
    achieved_tss: float = 0.0
    scale: float = 1.0
    attempts: int = 0
    min_capacity_fraction: float | None = None
    errors: tuple[str, ...] = ()

    @property
    def tss_error_pct(self) -> float:
        if self.target_tss <= 0:
            return 0.0
        return (self.achieved_tss - self.target_tss) / self.target_tss * 100.0

    @property
    def session_tss(self) -> float:
        """Stress of the whole plan, warmup and cooldown included."""
        if self.plan is None:
            return 0.0
        return plan_stress(self.plan.segments)


def validate_config(config: GeneratorConfig) -> list[str]:
    errors: list[str] = []
    if config.ftp_watts <= 0:
        errors.append("ftp_watts must be > 0")
    if config.main_duration_min <= 0:
        errors.append("main_duration_min must be > 0")
    if config.segment_count <= 0:
        errors.append("segment_count must be > 0")
    if config.target_tss <= 0:
        errors.append("target_tss must be > 0")
    if (
        config.main_duration_min > 0
        and config.segment_count > config.main_duration_sec
    ):
        errors.append("segment_count must not exceed the main block length in seconds")
    if config.min_ratio <= 0 or config.min_ratio >= config.max_ratio:
        errors.append("min_ratio must be > 0 and below max_ratio")
    else:
        anchors = (
            WARMUP_START_RATIO,
            WARMUP_END_RATIO,
            COOLDOWN_START_RATIO,
            COOLDOWN_END_RATIO,
        )
        if any(a < config.min_ratio or a > config.max_ratio for a in anchors):
            errors.append("warmup/cooldown ratios must lie within [min_ratio, max_ratio]")
    if config.feasibility:
        if config.capacity_joules <= 0:
            errors.append("capacity_joules must be > 0")
        if config.critical_power_ratio <= 0:
            errors.append("critical_power_ratio must be > 0")
    return errors


def generate(
    config: GeneratorConfig,
    seed: int | None = None,
    *,
    debug: bool = False,
) -> GenerationResult:
    """Build a warmup / main block / cooldown plan aimed at ``target_tss``.

    The target applies to the main block. Structurally invalid input returns
    a ``config_error`` result without a plan.
    """
    errors = validate_config(config)
    if errors:
        if debug:
            print(f"[GEN] rejected config: {'; '.join(errors)}")
        return GenerationResult(
            outcome="config_error",
            plan=None,
            target_tss=config.target_tss,
            errors=tuple(errors),
        )

    rng = random.Random(seed)
    if not config.feasibility:
        draft = _draft_main_block(config, rng, gated=False)
        assert draft is not None
        return _finalize(config, draft, attempts=1, debug=debug)

    best: GenerationResult | None = None
    for attempt in range(1, MAX_GLOBAL_RESTARTS + 1):
        draft = _draft_main_block(config, rng, gated=True)
        if draft is None:
            if debug:
                print(f"[GEN] attempt {attempt}: no feasible segment within {MAX_SEGMENT_ATTEMPTS} draws")
            continue

        result = _finalize(config, draft, attempts=attempt, debug=debug)
        fraction = result.min_capacity_fraction
        assert fraction is not None
        if fraction >= CAPACITY_FLOOR_FRACTION:
            return result
        if debug:
            print(
                f"[GEN] attempt {attempt}: normalized plan dips to "
                f"{fraction * 100:.0f}% capacity"
            )
        if best is None or best.min_capacity_fraction is None:
            best = result
        elif fraction > best.min_capacity_fraction:
            best = result

    if best is None:
        draft = _draft_main_block(config, rng, gated=False)
        assert draft is not None
        best = _finalize(config, draft, attempts=MAX_GLOBAL_RESTARTS, debug=debug)
    if debug:
        print(f"[GEN] giving up after {MAX_GLOBAL_RESTARTS} restarts, keeping best plan")
    return GenerationResult(
        outcome="best_effort",
        plan=best.plan,
        target_tss=best.target_tss,
        raw_tss=best.raw_tss,
        achieved_tss=best.achieved_tss,
        scale=best.scale,
        attempts=MAX_GLOBAL_RESTARTS,
        min_capacity_fraction=best.min_capacity_fraction,
    )


def _draft_main_block(
    config: GeneratorConfig, rng: random.Random, *, gated: bool
) -> list[Segment] | None:
    total = config.main_duration_sec
    count = config.segment_count
    base = total // count
    floor_joules = config.capacity_joules * CAPACITY_FLOOR_FRACTION

    history: list[float] = [WARMUP_END_RATIO]
    segments: list[Segment] = []
    used = 0
    balance = config.capacity_joules
    for index in range(count):
        remaining_after = count - index - 1
        left = total - used
        is_last = remaining_after == 0

        accepted: Segment | None = None
        for _ in range(MAX_SEGMENT_ATTEMPTS):
            if is_last:
                duration = left
                end_ratio = COOLDOWN_START_RATIO
            else:
                duration = _draw_duration(
                    rng, base, left, remaining_after, config.randomize_durations
                )
                end_ratio = _draw_boundary(history, rng)
            candidate = Segment(duration, history[-1], end_ratio, f"Main {index + 1}")
            if not gated:
                accepted = candidate
                break

            next_balance, lowest = simulate_capacity(
                (candidate,),
                critical_power_ratio=config.critical_power_ratio,
                capacity_joules=config.capacity_joules,
                ftp_watts=config.ftp_watts,
                balance_joules=balance,
            )
            if lowest >= floor_joules:
                accepted = candidate
                balance = next_balance
                break
            if is_last:
                # Nothing left to redraw for the anchored final segment.
                break

        if accepted is None:
            return None
        segments.append(accepted)
        history.append(accepted.power_end_ratio)
        used += accepted.duration_sec
    return segments


def _draw_duration(
    rng: random.Random,
    base: int,
    left: int,
    remaining_after: int,
    randomize: bool,
) -> int:
    if not randomize:
        return base
    band_low = max(1, math.ceil(base * (1.0 - DURATION_JITTER)))
    band_high = max(band_low, math.floor(base * (1.0 + DURATION_JITTER)))
    # Leave enough time for every remaining segment to stay inside the band.
    low = max(band_low, left - remaining_after * band_high)
    high = min(band_high, left - remaining_after * band_low)
    if low > high:
        return max(1, left // (remaining_after + 1))
    return rng.randint(low, high)


def _draw_boundary(history: list[float], rng: random.Random) -> float:
    bands = POWER_BANDS
    if history[-1] >= HIGH_RATIO:
        bands = tuple(band for band in POWER_BANDS if band.key == "recovery")
    elif len(history) >= RECOVERY_STREAK and all(
        ratio <= RECOVERY_CEILING for ratio in history[-RECOVERY_STREAK:]
    ):
        bands = tuple(band for band in POWER_BANDS if band.key != "recovery")

    band = _weighted_choice(bands, rng)
    return round(rng.uniform(band.low_ratio, band.high_ratio), RATIO_DIGITS)


def _weighted_choice(bands: tuple[PowerBand, ...], rng: random.Random) -> PowerBand:
    total = sum(band.weight for band in bands)
    roll = rng.random() * total
    cursor = 0.0
    for band in bands:
        cursor += band.weight
        if roll < cursor:
            return band
    return bands[-1]


def _normalize(
    config: GeneratorConfig, main: list[Segment]
) -> tuple[list[Segment], float, float]:
    raw_tss = plan_stress(main)
    scale = math.sqrt(config.target_tss / raw_tss) if raw_tss > 0 else 1.0

    boundaries = [segment.power_start_ratio for segment in main]
    boundaries.append(main[-1].power_end_ratio)
    # First and last boundaries are the warmup/cooldown anchors.
    for i in range(1, len(boundaries) - 1):
        scaled = min(max(boundaries[i] * scale, config.min_ratio), config.max_ratio)
        boundaries[i] = round(scaled, RATIO_DIGITS)
    for i in range(1, len(boundaries) - 1):
        if boundaries[i - 1] >= HIGH_RATIO and boundaries[i] >= HIGH_RATIO:
            boundaries[i] = HIGH_FOLLOW_CAP

    normalized = [
        Segment(segment.duration_sec, boundaries[i], boundaries[i + 1], segment.label)
        for i, segment in enumerate(main)
    ]
    return normalized, scale, raw_tss


def _finalize(
    config: GeneratorConfig,
    draft: list[Segment],
    *,
    attempts: int,
    debug: bool,
) -> GenerationResult:
    main, scale, raw_tss = _normalize(config, draft)
    achieved_tss = plan_stress(main)
    plan = WorkoutPlan(
        name=f"Auto {config.main_duration_min}min TSS {config.target_tss:g}",
        segments=(
            Segment(WARMUP_SEC, WARMUP_START_RATIO, WARMUP_END_RATIO, "Warmup"),
            *main,
            Segment(COOLDOWN_SEC, COOLDOWN_START_RATIO, COOLDOWN_END_RATIO, "Cooldown"),
        ),
        ftp_watts=config.ftp_watts,
        min_ratio=config.min_ratio,
        max_ratio=config.max_ratio,
    )

    min_capacity_fraction: float | None = None
    if config.feasibility:
        _, lowest = simulate_capacity(
            plan.segments,
            critical_power_ratio=config.critical_power_ratio,
            capacity_joules=config.capacity_joules,
            ftp_watts=config.ftp_watts,
        )
        min_capacity_fraction = lowest / config.capacity_joules

    within = abs(achieved_tss - config.target_tss) <= TSS_TOLERANCE * config.target_tss
    outcome: GenerationOutcome = "exact" if within else "best_effort"
    if debug:
        print(
            f"[GEN] raw TSS {raw_tss:.1f} scale {scale:.3f} -> "
            f"{achieved_tss:.1f} (target {config.target_tss:g}, {outcome})"
        )
    return GenerationResult(
        outcome=outcome,
        plan=plan,
        target_tss=config.target_tss,
        raw_tss=raw_tss,
        achieved_tss=achieved_tss,
        scale=scale,
        attempts=attempts,
        min_capacity_fraction=min_capacity_fraction,
    )
