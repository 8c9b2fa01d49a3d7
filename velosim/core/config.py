"""Sensor configuration loaded once at process start (JSON file + defaults)."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Literal, cast

from velosim.core.playback import DEFAULT_CADENCE_MAX_RPM, DEFAULT_CADENCE_MIN_RPM
from velosim.workout.generator import GeneratorConfig
from velosim.workout.manual import MANUAL_MAX_WATTS, MANUAL_MIN_WATTS


SensorMode = Literal["auto", "manual"]

_MODES: tuple[str, ...] = ("auto", "manual")


class ConfigParseError(ValueError):
    """Raised when a configuration file is malformed."""


@dataclass(frozen=True)
class ManualConfig:
    base_power_watts: int = 150
    step_watts: int = 10
    duration_min: int = 60
    min_watts: int = MANUAL_MIN_WATTS
    max_watts: int = MANUAL_MAX_WATTS

    @property
    def duration_sec(self) -> int:
        return self.duration_min * 60


@dataclass(frozen=True)
class SensorConfig:
    ftp_watts: int = 250
    hr_base_bpm: int = 120
    hr_max_bpm: int = 175
    mode: SensorMode = "auto"
    seed: int | None = None
    device_name: str = "Velosim Sensor"
    cadence_min_rpm: int = DEFAULT_CADENCE_MIN_RPM
    cadence_max_rpm: int = DEFAULT_CADENCE_MAX_RPM
    auto: GeneratorConfig = field(default_factory=GeneratorConfig)
    manual: ManualConfig = field(default_factory=ManualConfig)

    def generator_config(self) -> GeneratorConfig:
        return replace(self.auto, ftp_watts=self.ftp_watts)


def load_config(path: str | Path) -> SensorConfig:
    file_path = Path(path)
    try:
        data = json.loads(file_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigParseError(f"Invalid JSON: {exc}") from exc
    except OSError as exc:
        raise ConfigParseError(f"Cannot read config '{file_path}': {exc}") from exc
    return parse_config(data)


def parse_config(data: object) -> SensorConfig:
    if not isinstance(data, dict):
        raise ConfigParseError("Config must be a JSON object")

    defaults = SensorConfig()
    mode_obj = data.get("mode", defaults.mode)
    if mode_obj not in _MODES:
        raise ConfigParseError(f"Config field 'mode' must be one of {', '.join(_MODES)}")

    seed_obj = data.get("seed")
    seed = None if seed_obj is None else _int_field(data, "seed", 0, section="")

    name_obj = data.get("device_name", defaults.device_name)
    if not isinstance(name_obj, str) or not name_obj.strip():
        raise ConfigParseError("Config field 'device_name' must be a non-empty string")

    config = SensorConfig(
        ftp_watts=_int_field(data, "ftp_watts", defaults.ftp_watts),
        hr_base_bpm=_int_field(data, "hr_base_bpm", defaults.hr_base_bpm),
        hr_max_bpm=_int_field(data, "hr_max_bpm", defaults.hr_max_bpm),
        mode=cast(SensorMode, mode_obj),
        seed=seed,
        device_name=name_obj.strip(),
        cadence_min_rpm=_int_field(data, "cadence_min_rpm", defaults.cadence_min_rpm),
        cadence_max_rpm=_int_field(data, "cadence_max_rpm", defaults.cadence_max_rpm),
        auto=_parse_auto(_section(data, "auto")),
        manual=_parse_manual(_section(data, "manual")),
    )
    check_config(config)
    return config


def check_config(config: SensorConfig) -> None:
    """Reject physiologically inconsistent settings.

    Generator ranges are not checked here; they surface as a
    ``config_error`` generation outcome instead.
    """
    if config.hr_max_bpm <= config.hr_base_bpm:
        raise ConfigParseError("hr_max_bpm must be greater than hr_base_bpm")
    if config.cadence_min_rpm < 0:
        raise ConfigParseError("cadence_min_rpm must be >= 0")
    if config.cadence_min_rpm > config.cadence_max_rpm:
        raise ConfigParseError("cadence_min_rpm must be <= cadence_max_rpm")


def _section(data: dict[str, Any], key: str) -> dict[str, Any]:
    raw = data.get(key, {})
    if not isinstance(raw, dict):
        raise ConfigParseError(f"Config field '{key}' must be an object")
    return raw


def _parse_auto(raw: dict[str, Any]) -> GeneratorConfig:
    defaults = GeneratorConfig()
    return GeneratorConfig(
        main_duration_min=_int_field(raw, "main_duration_min", defaults.main_duration_min, section="auto"),
        target_tss=_float_field(raw, "target_tss", defaults.target_tss, section="auto"),
        segment_count=_int_field(raw, "segment_count", defaults.segment_count, section="auto"),
        randomize_durations=_bool_field(raw, "randomize_durations", defaults.randomize_durations, section="auto"),
        feasibility=_bool_field(raw, "feasibility", defaults.feasibility, section="auto"),
        critical_power_ratio=_float_field(raw, "critical_power_ratio", defaults.critical_power_ratio, section="auto"),
        capacity_joules=_float_field(raw, "capacity_joules", defaults.capacity_joules, section="auto"),
        min_ratio=_float_field(raw, "min_ratio", defaults.min_ratio, section="auto"),
        max_ratio=_float_field(raw, "max_ratio", defaults.max_ratio, section="auto"),
    )


def _parse_manual(raw: dict[str, Any]) -> ManualConfig:
    defaults = ManualConfig()
    return ManualConfig(
        base_power_watts=_int_field(raw, "base_power_watts", defaults.base_power_watts, section="manual"),
        step_watts=_int_field(raw, "step_watts", defaults.step_watts, section="manual"),
        duration_min=_int_field(raw, "duration_min", defaults.duration_min, section="manual"),
        min_watts=_int_field(raw, "min_watts", defaults.min_watts, section="manual"),
        max_watts=_int_field(raw, "max_watts", defaults.max_watts, section="manual"),
    )


def _field_name(key: str, section: str) -> str:
    return f"{section}.{key}" if section else key


def _int_field(raw: dict[str, Any], key: str, default: int, *, section: str = "") -> int:
    value = raw.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigParseError(f"Config field '{_field_name(key, section)}' must be an integer")
    return value


def _float_field(raw: dict[str, Any], key: str, default: float, *, section: str = "") -> float:
    value = raw.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigParseError(f"Config field '{_field_name(key, section)}' must be a number")
    return float(value)


def _bool_field(raw: dict[str, Any], key: str, default: bool, *, section: str = "") -> bool:
    value = raw.get(key, default)
    if not isinstance(value, bool):
        raise ConfigParseError(f"Config field '{_field_name(key, section)}' must be true or false")
    return value
