"""Async runtime: 1 Hz playback ticks, fast input polling, sample publishing."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Callable, Optional

from velosim.ble.gatt_sink import SampleSink
from velosim.ble.records import encode_sample
from velosim.core.playback import PlaybackEngine
from velosim.core.state import SensorSample
from velosim.ui.status import format_status
from velosim.workout.manual import ButtonEdgeDetector, ManualController, StepDirection


SampleCallback = Callable[[SensorSample], None]
# Raw (increment_pressed, decrement_pressed) levels, sampled at the poll rate.
ButtonLevels = Callable[[], tuple[bool, bool]]

DEFAULT_TICK_INTERVAL_SEC = 1.0
DEFAULT_POLL_INTERVAL_SEC = 0.05


@dataclass
class PlaybackStats:
    samples: int = 0
    running_samples: int = 0
    power_sum: int = 0
    peak_heart_rate_bpm: int | None = None
    crank_revolutions: int = 0

    @property
    def avg_power_watts(self) -> float | None:
        if self.running_samples == 0:
            return None
        return self.power_sum / self.running_samples

    def observe(self, sample: SensorSample) -> None:
        self.samples += 1
        self.crank_revolutions = sample.crank_revolutions
        if sample.phase != "running":
            return
        self.running_samples += 1
        self.power_sum += sample.power_watts
        if (
            self.peak_heart_rate_bpm is None
            or sample.heart_rate_bpm > self.peak_heart_rate_bpm
        ):
            self.peak_heart_rate_bpm = sample.heart_rate_bpm


class SensorRuntime:
    def __init__(
        self,
        engine: PlaybackEngine,
        sink: SampleSink,
        *,
        manual: ManualController | None = None,
        tick_interval: float = DEFAULT_TICK_INTERVAL_SEC,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SEC,
        status_every: int = 0,
        exit_when_finished: bool = False,
        on_sample: Optional[SampleCallback] = None,
        button_levels: Optional[ButtonLevels] = None,
        debug: bool = False,
    ) -> None:
        if tick_interval <= 0 or poll_interval <= 0:
            raise ValueError("tick_interval and poll_interval must be > 0")
        self.engine = engine
        self._sink = sink
        self._manual = manual
        self._tick_interval = tick_interval
        self._poll_interval = poll_interval
        self._status_every = status_every
        self._exit_when_finished = exit_when_finished
        self._on_sample = on_sample
        self._button_levels = button_levels
        self._edge_detectors: dict[StepDirection, ButtonEdgeDetector] = {
            "increment": ButtonEdgeDetector(),
            "decrement": ButtonEdgeDetector(),
        }
        self._debug = debug
        self._inputs: asyncio.Queue[StepDirection] = asyncio.Queue()
        self._stop_event = asyncio.Event()
        self.stats = PlaybackStats()
        self.last_sample: SensorSample | None = None

    @property
    def is_manual(self) -> bool:
        return self._manual is not None

    @property
    def consumer_attached(self) -> bool:
        return self._sink.consumer_attached

    def stop(self) -> None:
        self._stop_event.set()

    def post_input(self, direction: StepDirection) -> None:
        """Queue a validated edge event; call from the event loop thread."""
        if self._manual is None:
            if self._debug:
                print(f"[MANUAL] ignored {direction}: not in manual mode")
            return
        self._inputs.put_nowait(direction)

    def post_input_threadsafe(
        self, loop: asyncio.AbstractEventLoop, direction: StepDirection
    ) -> None:
        loop.call_soon_threadsafe(self.post_input, direction)

    def handle_connection_change(self, connected: bool) -> None:
        print(f"Consumer {'connected' if connected else 'disconnected'}")

    async def run(self) -> None:
        await self._sink.start()
        poller: Optional[asyncio.Task[None]] = None
        if self._manual is not None:
            poller = asyncio.create_task(self._poll_inputs())
        try:
            while not self._stop_event.is_set():
                self._tick_once()
                assert self.last_sample is not None
                await self._sink.publish(encode_sample(self.last_sample))
                if self._exit_when_finished and self.engine.finished:
                    break
                await asyncio.sleep(self._tick_interval)
        finally:
            self._stop_event.set()
            if poller is not None:
                poller.cancel()
                try:
                    await poller
                except asyncio.CancelledError:
                    pass
            await self._sink.stop()

    def _tick_once(self) -> None:
        sample = self.engine.tick()
        self.last_sample = sample
        self.stats.observe(sample)
        if self._on_sample is not None:
            self._on_sample(sample)
        if self._status_every > 0 and sample.elapsed_sec % self._status_every == 0:
            print(format_status(self.engine.state, self.engine.plan))

    def _drain_inputs(self) -> int:
        assert self._manual is not None
        applied = 0
        while True:
            try:
                direction = self._inputs.get_nowait()
            except asyncio.QueueEmpty:
                return applied
            if self._manual.handle(direction):
                applied += 1

    def _sample_buttons(self, now_sec: float) -> None:
        assert self._button_levels is not None
        increment_pressed, decrement_pressed = self._button_levels()
        for direction, pressed in (
            ("increment", increment_pressed),
            ("decrement", decrement_pressed),
        ):
            if self._edge_detectors[direction].sample(pressed, now_sec):
                self.post_input(direction)

    async def _poll_inputs(self) -> None:
        loop = asyncio.get_running_loop()
        while not self._stop_event.is_set():
            if self._button_levels is not None:
                self._sample_buttons(loop.time())
            self._drain_inputs()
            await asyncio.sleep(self._poll_interval)
