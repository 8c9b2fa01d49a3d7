from __future__ import annotations

import json
from pathlib import Path

import pytest

from velosim.core.config import ConfigParseError, SensorConfig, load_config, parse_config


def test_defaults_when_sections_missing() -> None:
    config = parse_config({})
    assert config == SensorConfig()
    assert config.mode == "auto"
    assert config.generator_config().ftp_watts == 250
    assert config.manual.duration_sec == 3600


def test_load_config_from_file(tmp_path: Path) -> None:
    path = tmp_path / "sensor.json"
    path.write_text(
        json.dumps(
            {
                "ftp_watts": 280,
                "hr_base_bpm": 110,
                "hr_max_bpm": 182,
                "mode": "manual",
                "seed": 9,
                "device_name": "  Bench Bike  ",
                "auto": {"main_duration_min": 90, "target_tss": 95.5, "feasibility": True},
                "manual": {"base_power_watts": 200, "step_watts": 25},
            }
        ),
        encoding="utf-8",
    )

    config = load_config(path)

    assert config.ftp_watts == 280
    assert config.mode == "manual"
    assert config.seed == 9
    assert config.device_name == "Bench Bike"
    assert config.auto.main_duration_min == 90
    assert config.auto.target_tss == 95.5
    assert config.auto.feasibility is True
    assert config.generator_config().ftp_watts == 280
    assert config.manual.base_power_watts == 200
    assert config.manual.step_watts == 25


def test_invalid_json_raises(tmp_path: Path) -> None:
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigParseError, match="Invalid JSON"):
        load_config(path)


def test_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(ConfigParseError, match="Cannot read config"):
        load_config(tmp_path / "absent.json")


def test_type_errors_name_the_field() -> None:
    with pytest.raises(ConfigParseError, match="auto.segment_count"):
        parse_config({"auto": {"segment_count": "eight"}})
    with pytest.raises(ConfigParseError, match="ftp_watts"):
        parse_config({"ftp_watts": True})
    with pytest.raises(ConfigParseError, match="mode"):
        parse_config({"mode": "turbo"})


def test_inconsistent_heart_rates_rejected() -> None:
    with pytest.raises(ConfigParseError, match="hr_max_bpm"):
        parse_config({"hr_base_bpm": 170, "hr_max_bpm": 160})
