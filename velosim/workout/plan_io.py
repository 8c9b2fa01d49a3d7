"""Save, reload and export generated plans (JSON/CSV)."""

from __future__ import annotations

import csv
import json
from pathlib import Path

from velosim.workout.model import DEFAULT_MAX_RATIO, DEFAULT_MIN_RATIO, Segment, WorkoutPlan


class PlanParseError(ValueError):
    """Raised when a saved plan file is invalid."""


def save_plan(plan: WorkoutPlan, path: str | Path) -> Path:
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "name": plan.name,
        "ftp_watts": plan.ftp_watts,
        "min_ratio": plan.min_ratio,
        "max_ratio": plan.max_ratio,
        "segments": [
            {
                "duration_sec": segment.duration_sec,
                "power_start_ratio": segment.power_start_ratio,
                "power_end_ratio": segment.power_end_ratio,
                "label": segment.label,
            }
            for segment in plan.segments
        ],
    }
    out.write_text(json.dumps(payload, ensure_ascii=True, indent=2), encoding="utf-8")
    return out


def load_plan(path: str | Path) -> WorkoutPlan:
    file_path = Path(path)
    try:
        data = json.loads(file_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise PlanParseError(f"Invalid JSON: {exc}") from exc
    except OSError as exc:
        raise PlanParseError(f"Cannot read plan '{file_path}': {exc}") from exc

    if not isinstance(data, dict):
        raise PlanParseError("Plan JSON must be an object")

    name_obj = data.get("name", file_path.stem)
    if not isinstance(name_obj, str):
        raise PlanParseError("Plan field 'name' must be a string")

    ftp_obj = data.get("ftp_watts")
    if isinstance(ftp_obj, bool) or not isinstance(ftp_obj, int) or ftp_obj <= 0:
        raise PlanParseError("Plan field 'ftp_watts' must be a positive integer")

    min_ratio = _parse_ratio(data.get("min_ratio", DEFAULT_MIN_RATIO), "min_ratio")
    max_ratio = _parse_ratio(data.get("max_ratio", DEFAULT_MAX_RATIO), "max_ratio")
    if min_ratio >= max_ratio:
        raise PlanParseError("Plan min_ratio must be below max_ratio")

    segments_obj = data.get("segments")
    if not isinstance(segments_obj, list) or not segments_obj:
        raise PlanParseError("Plan field 'segments' must be a non-empty array")

    segments: list[Segment] = []
    for i, raw in enumerate(segments_obj):
        if not isinstance(raw, dict):
            raise PlanParseError(f"Segment {i + 1}: must be an object")
        duration = raw.get("duration_sec")
        if isinstance(duration, bool) or not isinstance(duration, int) or duration <= 0:
            raise PlanParseError(f"Segment {i + 1}: duration_sec must be a positive integer")
        start = _parse_ratio(raw.get("power_start_ratio"), "power_start_ratio", i)
        end = _parse_ratio(raw.get("power_end_ratio"), "power_end_ratio", i)
        for value in (start, end):
            if value < min_ratio or value > max_ratio:
                raise PlanParseError(
                    f"Segment {i + 1}: ratio {value} outside [{min_ratio}, {max_ratio}]"
                )
        label_obj = raw.get("label")
        label = None if label_obj is None else (str(label_obj).strip() or None)
        segments.append(Segment(duration, start, end, label))

    return WorkoutPlan(
        name=name_obj.strip() or file_path.stem,
        segments=tuple(segments),
        ftp_watts=ftp_obj,
        min_ratio=min_ratio,
        max_ratio=max_ratio,
    )


def export_plan_csv(plan: WorkoutPlan, path: str | Path) -> Path:
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    with out.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.writer(handle)
        writer.writerow(
            [
                "index",
                "label",
                "start_sec",
                "end_sec",
                "duration_sec",
                "power_start_ratio",
                "power_end_ratio",
                "power_start_watts",
                "power_end_watts",
            ]
        )
        for index, (segment, (start, end)) in enumerate(
            zip(plan.segments, plan.segment_bounds()), start=1
        ):
            writer.writerow(
                [
                    index,
                    segment.label or "",
                    start,
                    end,
                    segment.duration_sec,
                    segment.power_start_ratio,
                    segment.power_end_ratio,
                    int(round(segment.power_start_ratio * plan.ftp_watts)),
                    int(round(segment.power_end_ratio * plan.ftp_watts)),
                ]
            )
    return out


def _parse_ratio(raw: object, field_name: str, index: int | None = None) -> float:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        where = f"Segment {index + 1}: " if index is not None else "Plan "
        raise PlanParseError(f"{where}{field_name} must be a number")
    return float(raw)
