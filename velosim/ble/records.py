"""Fixed-format sample records: encode for notification, decode for checks."""

from __future__ import annotations

import struct
from dataclasses import dataclass

from velosim.ble.constants import (
    CRANK_RECORD_SIZE,
    CSC_FLAG_CRANK_REVOLUTION_DATA,
    HEART_RATE_RECORD_FLAGS,
    HEART_RATE_RECORD_SIZE,
    POWER_RECORD_FLAGS,
    POWER_RECORD_SIZE,
)
from velosim.core.state import SensorSample


@dataclass(frozen=True)
class SampleRecords:
    power: bytes
    crank: bytes
    heart_rate: bytes


def _require_size(payload: bytes, size: int, name: str) -> None:
    if len(payload) < size:
        raise ValueError(f"{name} record too short: expected {size} bytes, got {len(payload)}")


def encode_power_record(power_watts: int) -> bytes:
    watts = min(max(power_watts, 0), 0xFFFF)
    return struct.pack("<HH", POWER_RECORD_FLAGS, watts)


def encode_crank_record(crank_revolutions: int, last_crank_event_ticks: int) -> bytes:
    return struct.pack(
        "<BHH",
        CSC_FLAG_CRANK_REVOLUTION_DATA,
        crank_revolutions & 0xFFFF,
        last_crank_event_ticks & 0xFFFF,
    )


def encode_heart_rate_record(heart_rate_bpm: int) -> bytes:
    bpm = min(max(heart_rate_bpm, 0), 0xFF)
    return struct.pack("<BB", HEART_RATE_RECORD_FLAGS, bpm)


def encode_sample(sample: SensorSample) -> SampleRecords:
    return SampleRecords(
        power=encode_power_record(sample.power_watts),
        crank=encode_crank_record(
            sample.crank_revolutions, sample.last_crank_event_ticks
        ),
        heart_rate=encode_heart_rate_record(sample.heart_rate_bpm),
    )


def decode_power_record(payload: bytes) -> int:
    _require_size(payload, POWER_RECORD_SIZE, "Power")
    return struct.unpack_from("<H", payload, 2)[0]


def decode_crank_record(payload: bytes) -> tuple[int, int]:
    """Return ``(cumulative_revolutions, last_event_ticks)``."""
    _require_size(payload, CRANK_RECORD_SIZE, "Crank")
    flags = payload[0]
    if not flags & CSC_FLAG_CRANK_REVOLUTION_DATA:
        raise ValueError(f"Crank record without crank data flag: 0x{flags:02X}")
    revolutions, event_ticks = struct.unpack_from("<HH", payload, 1)
    return revolutions, event_ticks


def decode_heart_rate_record(payload: bytes) -> int:
    _require_size(payload, HEART_RATE_RECORD_SIZE, "Heart rate")
    return payload[1]


def cadence_between(
    previous: tuple[int, int], current: tuple[int, int]
) -> float | None:
    """Cadence a receiver derives from two consecutive crank records."""
    delta_revs = (current[0] - previous[0]) & 0xFFFF
    delta_ticks = (current[1] - previous[1]) & 0xFFFF
    if delta_ticks == 0:
        return None
    return delta_revs * 60.0 * 1024.0 / delta_ticks
