from __future__ import annotations

import csv
import json
from pathlib import Path

import pytest

from velosim.workout.generator import GeneratorConfig, generate
from velosim.workout.plan_io import PlanParseError, export_plan_csv, load_plan, save_plan


def test_saved_plan_reloads_identically(tmp_path: Path) -> None:
    plan = generate(GeneratorConfig(), 4).plan
    assert plan is not None
    path = save_plan(plan, tmp_path / "plans" / "auto.json")
    assert load_plan(path) == plan


def test_csv_export_lists_every_segment(tmp_path: Path) -> None:
    plan = generate(GeneratorConfig(segment_count=5), 4).plan
    assert plan is not None
    path = export_plan_csv(plan, tmp_path / "auto.csv")

    with path.open(encoding="utf-8", newline="") as handle:
        rows = list(csv.DictReader(handle))

    assert len(rows) == 7
    assert rows[0]["label"] == "Warmup"
    assert rows[0]["power_start_watts"] == "75"
    assert rows[-1]["label"] == "Cooldown"
    assert int(rows[-1]["end_sec"]) == plan.total_duration_sec


def test_load_plan_rejects_out_of_range_ratio(tmp_path: Path) -> None:
    path = tmp_path / "bad.json"
    path.write_text(
        json.dumps(
            {
                "name": "Bad",
                "ftp_watts": 250,
                "segments": [{"duration_sec": 60, "power_start_ratio": 0.5, "power_end_ratio": 2.0}],
            }
        ),
        encoding="utf-8",
    )
    with pytest.raises(PlanParseError, match="outside"):
        load_plan(path)


def test_load_plan_requires_segments_and_ftp(tmp_path: Path) -> None:
    path = tmp_path / "empty.json"
    path.write_text(json.dumps({"ftp_watts": 250, "segments": []}), encoding="utf-8")
    with pytest.raises(PlanParseError, match="segments"):
        load_plan(path)

    path.write_text(json.dumps({"segments": [{"duration_sec": 60}]}), encoding="utf-8")
    with pytest.raises(PlanParseError, match="ftp_watts"):
        load_plan(path)
