from __future__ import annotations

import asyncio
import random

import pytest

from velosim.ble.gatt_sink import ConsoleSink
from velosim.ble.records import SampleRecords, decode_heart_rate_record, decode_power_record
from velosim.core.playback import AutoPlanSource, PlaybackEngine
from velosim.core.runtime import PlaybackStats, SensorRuntime
from velosim.core.state import SensorSample
from velosim.workout.manual import ManualController
from velosim.workout.model import Segment, WorkoutPlan


class RecordingSink:
    def __init__(self) -> None:
        self.started = False
        self.stopped = False
        self.published: list[SampleRecords] = []

    @property
    def consumer_attached(self) -> bool:
        return True

    async def start(self) -> None:
        self.started = True

    async def publish(self, records: SampleRecords) -> None:
        self.published.append(records)

    async def stop(self) -> None:
        self.stopped = True


def _engine(source) -> PlaybackEngine:
    return PlaybackEngine(source, hr_base_bpm=120, hr_max_bpm=175, rng=random.Random(0))


def test_runtime_publishes_until_recovery_finishes() -> None:
    plan = WorkoutPlan(name="Short", segments=(Segment(5, 0.8, 0.8),), ftp_watts=250)
    sink = RecordingSink()
    seen: list[SensorSample] = []

    async def scenario() -> SensorRuntime:
        runtime = SensorRuntime(
            _engine(AutoPlanSource(plan)),
            sink,
            tick_interval=0.001,
            exit_when_finished=True,
            on_sample=seen.append,
        )
        await runtime.run()
        return runtime

    runtime = asyncio.run(scenario())

    assert sink.started and sink.stopped
    assert len(sink.published) == 5 + 300 + 1
    assert decode_heart_rate_record(sink.published[-1].heart_rate) == 90
    assert decode_power_record(sink.published[-1].power) == 0
    assert runtime.engine.finished
    assert [s.elapsed_sec for s in seen] == list(range(306))
    assert runtime.stats.running_samples == 5
    assert runtime.stats.avg_power_watts == pytest.approx(200.0, abs=5.0)


def test_manual_inputs_are_applied_between_ticks() -> None:
    manual = ManualController(ftp_watts=250, duration_sec=600, base_power_watts=150, step_watts=10)
    sink = RecordingSink()

    async def scenario() -> SensorRuntime:
        runtime = SensorRuntime(
            _engine(manual),
            sink,
            manual=manual,
            tick_interval=0.02,
            poll_interval=0.001,
        )
        task = asyncio.create_task(runtime.run())
        await asyncio.sleep(0.05)
        runtime.post_input("increment")
        runtime.post_input("increment")
        await asyncio.sleep(0.1)
        runtime.stop()
        await task
        return runtime

    runtime = asyncio.run(scenario())

    assert manual.state.target_power_watts == 170
    assert decode_power_record(sink.published[0].power) == 150
    assert decode_power_record(sink.published[-1].power) == 170
    assert runtime.last_sample is not None


def test_inputs_ignored_outside_manual_mode() -> None:
    plan = WorkoutPlan(name="Flat", segments=(Segment(60, 0.8, 0.8),), ftp_watts=250)
    runtime = SensorRuntime(_engine(AutoPlanSource(plan)), ConsoleSink())
    runtime.post_input("increment")
    assert runtime.is_manual is False


def test_invalid_intervals_rejected() -> None:
    plan = WorkoutPlan(name="Flat", segments=(Segment(60, 0.8, 0.8),), ftp_watts=250)
    with pytest.raises(ValueError):
        SensorRuntime(_engine(AutoPlanSource(plan)), ConsoleSink(), tick_interval=0)


def test_stats_only_average_running_samples() -> None:
    stats = PlaybackStats()
    for phase, power, hr in (("running", 200, 150), ("running", 100, 140), ("recovering", 0, 160)):
        stats.observe(
            SensorSample(
                elapsed_sec=0,
                phase=phase,
                segment_index=0,
                power_watts=power,
                heart_rate_bpm=hr,
                cadence_rpm=90,
                crank_revolutions=3,
                last_crank_event_ticks=0,
            )
        )
    assert stats.samples == 3
    assert stats.avg_power_watts == pytest.approx(150.0)
    assert stats.peak_heart_rate_bpm == 150


def test_status_lines_printed_on_schedule(capsys: pytest.CaptureFixture[str]) -> None:
    plan = WorkoutPlan(name="Flat", segments=(Segment(3, 0.8, 0.8, "Steady"),), ftp_watts=250)

    async def scenario() -> None:
        runtime = SensorRuntime(
            _engine(AutoPlanSource(plan)),
            RecordingSink(),
            tick_interval=0.001,
            status_every=2,
            exit_when_finished=True,
        )
        await runtime.run()

    asyncio.run(scenario())
    out = capsys.readouterr().out
    assert "Steady (1/1)" in out
    assert "recovering" in out


def test_raw_button_levels_are_debounced_into_edges() -> None:
    manual = ManualController(ftp_watts=250, duration_sec=600, base_power_watts=150, step_watts=10)
    levels = {"increment": False, "decrement": False}

    async def scenario() -> None:
        runtime = SensorRuntime(
            _engine(manual),
            RecordingSink(),
            manual=manual,
            tick_interval=0.01,
            poll_interval=0.002,
            button_levels=lambda: (levels["increment"], levels["decrement"]),
        )
        task = asyncio.create_task(runtime.run())
        # Held long enough: one edge on release.
        levels["increment"] = True
        await asyncio.sleep(0.12)
        levels["increment"] = False
        await asyncio.sleep(0.03)
        # Blip shorter than the debounce window: ignored.
        levels["decrement"] = True
        await asyncio.sleep(0.004)
        levels["decrement"] = False
        await asyncio.sleep(0.03)
        runtime.stop()
        await task

    asyncio.run(scenario())

    assert manual.state.target_power_watts == 160
