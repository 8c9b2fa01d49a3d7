"""Session assembly: resolve the mode once, build plan source, engine and records."""

from __future__ import annotations

import random

from velosim.core.config import SensorConfig
from velosim.core.playback import AutoPlanSource, PlanSource, PlaybackEngine
from velosim.core.runtime import SensorRuntime
from velosim.workout.generator import GenerationResult, generate
from velosim.workout.manual import ManualController
from velosim.workout.model import WorkoutPlan
from velosim.workout.plan_io import PlanParseError
from velosim.workout.session_store import SessionRecord, now_utc_iso
from velosim.workout.stress import plan_stress


def build_plan_source(
    config: SensorConfig,
    *,
    plan: WorkoutPlan | None = None,
    debug: bool = False,
) -> tuple[PlanSource | None, ManualController | None, GenerationResult | None]:
    """Return ``(source, manual_controller, generation_result)``.

    ``source`` is None only when generation rejected the configuration.
    A preloaded ``plan`` replays as-is in auto mode.
    """
    if config.mode == "manual":
        manual = ManualController(
            ftp_watts=config.ftp_watts,
            duration_sec=config.manual.duration_sec,
            base_power_watts=config.manual.base_power_watts,
            step_watts=config.manual.step_watts,
            min_watts=config.manual.min_watts,
            max_watts=config.manual.max_watts,
            debug=debug,
        )
        return manual, manual, None

    if plan is not None:
        if plan.ftp_watts != config.ftp_watts:
            raise PlanParseError(
                f"Plan was built for FTP {plan.ftp_watts} W, config uses {config.ftp_watts} W"
            )
        return AutoPlanSource(plan), None, None

    result = generate(config.generator_config(), config.seed, debug=debug)
    if result.plan is None:
        return None, None, result
    return AutoPlanSource(result.plan), None, result


def build_engine(
    config: SensorConfig, source: PlanSource, *, debug: bool = False
) -> PlaybackEngine:
    return PlaybackEngine(
        source,
        hr_base_bpm=config.hr_base_bpm,
        hr_max_bpm=config.hr_max_bpm,
        cadence_min_rpm=config.cadence_min_rpm,
        cadence_max_rpm=config.cadence_max_rpm,
        rng=random.Random(config.seed),
        debug=debug,
    )


def build_session_record(
    *,
    config: SensorConfig,
    runtime: SensorRuntime,
    generation: GenerationResult | None,
    started_at_utc: str,
) -> SessionRecord:
    plan = runtime.engine.plan
    return SessionRecord(
        started_at_utc=started_at_utc,
        ended_at_utc=now_utc_iso(),
        mode=config.mode,
        plan_name=plan.name,
        ftp_watts=config.ftp_watts,
        seed=config.seed,
        outcome=generation.outcome if generation is not None else None,
        target_tss=generation.target_tss if generation is not None else None,
        planned_tss=round(plan_stress(plan.segments), 1),
        completed=runtime.engine.state.phase != "running",
        planned_duration_sec=plan.total_duration_sec,
        elapsed_duration_sec=min(runtime.engine.state.elapsed_sec, plan.total_duration_sec),
        avg_power_watts=(
            round(runtime.stats.avg_power_watts, 1)
            if runtime.stats.avg_power_watts is not None
            else None
        ),
        peak_heart_rate_bpm=runtime.stats.peak_heart_rate_bpm,
        crank_revolutions=runtime.stats.crank_revolutions,
    )
