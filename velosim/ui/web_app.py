"""NiceGUI live dashboard for the virtual sensor."""

from __future__ import annotations

import asyncio
from typing import Optional

from nicegui import app, ui

from velosim.core.runtime import SensorRuntime
from velosim.ui.status import fmt_duration
from velosim.workout.model import power_profile

PROFILE_STEP_SEC = 30
LIVE_WINDOW_SAMPLES = 300


def _plan_chart_options(runtime: SensorRuntime) -> dict:
    plan = runtime.engine.plan
    points = power_profile(plan, step_sec=PROFILE_STEP_SEC)
    return {
        "title": {"text": plan.name, "left": "center", "textStyle": {"color": "#ffffff"}},
        "tooltip": {"trigger": "axis"},
        "xAxis": {
            "type": "category",
            "data": [fmt_duration(t) for t, _ in points],
            "axisLabel": {"color": "#ffffff"},
        },
        "yAxis": {"type": "value", "name": "W", "axisLabel": {"color": "#ffffff"}},
        "series": [{"type": "line", "areaStyle": {}, "showSymbol": False, "data": [w for _, w in points]}],
        "grid": {"left": 50, "right": 20, "top": 48, "bottom": 40},
    }


def run_web_ui(
    runtime: SensorRuntime,
    *,
    host: str = "127.0.0.1",
    port: int = 8088,
) -> int:
    task: Optional[asyncio.Task[None]] = None
    live_power: list[int] = []
    live_hr: list[int] = []
    shown_plan_name = runtime.engine.plan.name

    async def start_runtime() -> None:
        nonlocal task
        task = asyncio.create_task(runtime.run())

    async def stop_runtime() -> None:
        runtime.stop()
        if task is not None:
            await task

    app.on_startup(start_runtime)
    app.on_shutdown(stop_runtime)

    ui.label("VELOSIM SENSOR").classes("text-xl font-semibold tracking-wide")
    status_label = ui.label("Status: starting").classes("text-lg font-semibold")
    with ui.row().classes("w-full gap-6"):
        kpi_power = ui.label("-- W").classes("text-2xl font-bold")
        kpi_hr = ui.label("-- bpm").classes("text-2xl font-bold")
        kpi_cadence = ui.label("-- rpm").classes("text-2xl font-bold")
        kpi_elapsed = ui.label("00:00").classes("text-2xl")

    plan_chart = ui.echart(_plan_chart_options(runtime)).classes("w-full h-72")
    live_chart = ui.echart(
        {
            "legend": {"data": ["Power", "Heart rate"], "textStyle": {"color": "#ffffff"}},
            "tooltip": {"trigger": "axis"},
            "xAxis": {"type": "category", "data": []},
            "yAxis": [{"type": "value", "name": "W"}, {"type": "value", "name": "bpm"}],
            "series": [
                {"name": "Power", "type": "line", "showSymbol": False, "data": []},
                {"name": "Heart rate", "type": "line", "showSymbol": False, "yAxisIndex": 1, "data": []},
            ],
        }
    ).classes("w-full h-72")

    if runtime.is_manual:
        with ui.row().classes("items-center gap-2"):
            ui.button("-", on_click=lambda: runtime.post_input("decrement"))
            target_label = ui.label("Target: --")
            ui.button("+", on_click=lambda: runtime.post_input("increment"))
    else:
        target_label = None

    def refresh_ui() -> None:
        nonlocal shown_plan_name
        sample = runtime.last_sample
        if sample is None:
            return
        consumer = "consumer attached" if runtime.consumer_attached else "no consumer"
        status_label.text = f"Status: {sample.phase} | {consumer}"
        kpi_power.text = f"{sample.power_watts} W"
        kpi_hr.text = f"{sample.heart_rate_bpm} bpm"
        kpi_cadence.text = f"{sample.cadence_rpm} rpm"
        kpi_elapsed.text = fmt_duration(sample.elapsed_sec)

        live_power.append(sample.power_watts)
        live_hr.append(sample.heart_rate_bpm)
        del live_power[:-LIVE_WINDOW_SAMPLES]
        del live_hr[:-LIVE_WINDOW_SAMPLES]
        live_chart.options["xAxis"]["data"] = list(range(len(live_power)))
        live_chart.options["series"][0]["data"] = list(live_power)
        live_chart.options["series"][1]["data"] = list(live_hr)
        live_chart.update()

        plan = runtime.engine.plan
        if plan.name != shown_plan_name:
            shown_plan_name = plan.name
            plan_chart.options.update(_plan_chart_options(runtime))
            plan_chart.update()
        if target_label is not None:
            target_label.text = f"Target: {plan.watts_at(0)} W"

    ui.timer(1.0, refresh_ui)
    ui.run(host=host, port=port, reload=False, title="Velosim Sensor")
    return 0
