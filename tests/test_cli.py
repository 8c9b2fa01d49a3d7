from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

from velosim.cli.main import build_parser, main, resolve_config
from velosim.core.config import ConfigParseError
from velosim.workout.plan_io import load_plan


def _run(monkeypatch: pytest.MonkeyPatch, *argv: str) -> int:
    monkeypatch.setattr(sys, "argv", ["velosim", *argv])
    return main()


def test_cli_flags_override_config_file(tmp_path: Path) -> None:
    config_path = tmp_path / "sensor.json"
    config_path.write_text(json.dumps({"ftp_watts": 300, "auto": {"segment_count": 10}}), encoding="utf-8")
    args = build_parser().parse_args(
        ["--config", str(config_path), "--tss", "85", "--equal-durations", "--hr-max", "185"]
    )

    config = resolve_config(args)

    assert config.ftp_watts == 300
    assert config.hr_max_bpm == 185
    assert config.auto.segment_count == 10
    assert config.auto.target_tss == 85.0
    assert config.auto.randomize_durations is False


def test_resolve_config_checks_overrides() -> None:
    args = build_parser().parse_args(["--hr-base", "180", "--hr-max", "150"])
    with pytest.raises(ConfigParseError):
        resolve_config(args)


def test_dry_run_exports_generated_plan(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    out_path = tmp_path / "plan.json"
    code = _run(monkeypatch, "--seed", "3", "--dry-run", "--export-plan", str(out_path))

    assert code == 0
    assert load_plan(out_path).name == "Auto 60min TSS 70"
    assert "Generated plan" in capsys.readouterr().out


def test_generation_config_error_exits_with_2(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    code = _run(monkeypatch, "--segments", "0", "--dry-run")
    assert code == 2
    assert "Configuration rejected" in capsys.readouterr().out


def test_missing_plan_file_exits_with_2(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    assert _run(monkeypatch, "--plan", str(tmp_path / "absent.json"), "--dry-run") == 2


def test_short_session_is_recorded(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    plan_path = tmp_path / "tiny.json"
    plan_path.write_text(
        json.dumps(
            {
                "name": "Tiny",
                "ftp_watts": 250,
                "segments": [{"duration_sec": 3, "power_start_ratio": 0.6, "power_end_ratio": 0.6}],
            }
        ),
        encoding="utf-8",
    )

    code = _run(
        monkeypatch,
        "--plan",
        str(plan_path),
        "--tick-interval",
        "0.001",
        "--status-every",
        "0",
        "--exit-when-finished",
    )

    assert code == 0
    assert _run(monkeypatch, "--history") == 0
    out = capsys.readouterr().out
    assert "Session saved to" in out
    assert "Tiny" in out
    assert "done" in out
