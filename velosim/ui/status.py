"""Human-readable status dump and ASCII plan profile (read-only observers)."""

from __future__ import annotations

from velosim.core.state import SessionState
from velosim.workout.generator import GenerationResult
from velosim.workout.model import WorkoutPlan

PROFILE_BLOCKS = " ▁▂▃▄▅▆▇█"


def fmt_duration(total_seconds: int) -> str:
    minutes, seconds = divmod(max(0, total_seconds), 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours:d}:{minutes:02d}:{seconds:02d}"
    return f"{minutes:02d}:{seconds:02d}"


def format_status(state: SessionState, plan: WorkoutPlan) -> str:
    total = plan.total_duration_sec
    clock = f"{fmt_duration(state.elapsed_sec)} / {fmt_duration(total)}"
    if state.phase != "running":
        return (
            f"[{clock}] {state.phase} | {state.power_watts} W | "
            f"{state.heart_rate_bpm} bpm | {state.cadence_rpm} rpm"
        )

    index = min(state.segment_index, len(plan.segments) - 1)
    segment = plan.segments[index]
    label = segment.label or f"Segment {index + 1}"
    ftp_pct = state.power_watts / plan.ftp_watts * 100.0
    return (
        f"[{clock}] running | {label} ({index + 1}/{len(plan.segments)}) | "
        f"{state.power_watts} W ({ftp_pct:.0f}% FTP) | {state.heart_rate_bpm} bpm | "
        f"{state.cadence_rpm} rpm | revs {state.crank_revolutions}"
    )


def format_plan_profile(plan: WorkoutPlan, width: int = 72) -> str:
    """One-line block chart of planned watts across the session, plus a scale."""
    total = plan.total_duration_sec
    if width <= 0 or total <= 0:
        return ""
    columns = [plan.ratio_at(total * (i + 0.5) / width) for i in range(width)]
    top = max(plan.max_ratio, max(columns))
    levels = len(PROFILE_BLOCKS) - 1
    bars = "".join(
        PROFILE_BLOCKS[max(1, min(levels, int(round(ratio / top * levels))))]
        for ratio in columns
    )
    peak_watts = int(round(max(columns) * plan.ftp_watts))
    return f"{bars}\n0{' ' * (width - len(fmt_duration(total)) - 1)}{fmt_duration(total)}  peak {peak_watts} W"


def format_plan_table(plan: WorkoutPlan) -> str:
    lines = [f"{plan.name} | FTP {plan.ftp_watts} W | {fmt_duration(plan.total_duration_sec)}"]
    for index, (segment, (start, _end)) in enumerate(
        zip(plan.segments, plan.segment_bounds()), start=1
    ):
        start_watts = int(round(segment.power_start_ratio * plan.ftp_watts))
        end_watts = int(round(segment.power_end_ratio * plan.ftp_watts))
        lines.append(
            f"{index:>3} {segment.label or '-':<10} at {fmt_duration(start):>8} "
            f"for {fmt_duration(segment.duration_sec):>8}  "
            f"{start_watts:>4} W -> {end_watts:>4} W"
        )
    return "\n".join(lines)


def format_generation_summary(result: GenerationResult) -> str:
    if result.outcome == "config_error":
        return "Configuration rejected: " + "; ".join(result.errors)
    summary = (
        f"Generated plan ({result.outcome}): main-block TSS {result.achieved_tss:.1f} "
        f"for target {result.target_tss:g} ({result.tss_error_pct:+.1f}%), "
        f"session TSS {result.session_tss:.1f}, scale {result.scale:.3f}"
    )
    if result.min_capacity_fraction is not None:
        summary += (
            f", lowest capacity {result.min_capacity_fraction * 100:.0f}% "
            f"after {result.attempts} attempt(s)"
        )
    return summary
