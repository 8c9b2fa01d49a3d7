"""Terminal CLI entrypoint for the virtual cycling sensor."""

from __future__ import annotations

import argparse
import asyncio
from dataclasses import replace
from pathlib import Path

from velosim.ble.gatt_sink import ConsoleSink, GattSensorSink, SampleSink
from velosim.core.config import ConfigParseError, SensorConfig, check_config, load_config
from velosim.core.runtime import SensorRuntime
from velosim.core.session import build_engine, build_plan_source, build_session_record
from velosim.ui.keyboard import KeyboardInput
from velosim.ui.status import (
    fmt_duration,
    format_generation_summary,
    format_plan_profile,
    format_plan_table,
)
from velosim.workout.generator import GenerationResult
from velosim.workout.model import WorkoutPlan
from velosim.workout.plan_io import PlanParseError, export_plan_csv, load_plan, save_plan
from velosim.workout.session_store import append_session, load_recent_sessions, now_utc_iso


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Virtual power, cadence and heart rate sensor")
    parser.add_argument("--config", default=None, help="JSON configuration file")
    parser.add_argument("--mode", choices=("auto", "manual"), default=None, help="Session mode")
    parser.add_argument("--seed", type=int, default=None, help="Seed for plan generation and fluctuation")
    parser.add_argument("--ftp", type=int, default=None, help="Functional threshold power in watts")
    parser.add_argument("--hr-base", type=int, default=None, help="Heart rate at 50%% FTP")
    parser.add_argument("--hr-max", type=int, default=None, help="Heart rate at 127%% FTP")
    parser.add_argument("--duration", type=int, default=None, help="Main block (auto) or session (manual) minutes")
    parser.add_argument("--tss", type=float, default=None, help="Target TSS of the main block")
    parser.add_argument("--segments", type=int, default=None, help="Number of main-block segments")
    parser.add_argument(
        "--feasibility",
        action="store_true",
        help="Reject plans that drain anaerobic capacity below 20%%",
    )
    parser.add_argument(
        "--equal-durations",
        action="store_true",
        help="Split the main block into equal segment durations",
    )
    parser.add_argument("--base-power", type=int, default=None, help="Manual mode start target in watts")
    parser.add_argument("--step", type=int, default=None, help="Manual mode step in watts")
    parser.add_argument("--plan", default=None, help="Replay a saved plan JSON instead of generating one")
    parser.add_argument(
        "--export-plan",
        default=None,
        help="Write the plan to this path (.json or .csv) before playback",
    )
    parser.add_argument("--dry-run", action="store_true", help="Print the plan and exit")
    parser.add_argument("--history", action="store_true", help="List recent recorded sessions (filtered by --mode) and exit")
    parser.add_argument("--ble", action="store_true", help="Advertise as a BLE GATT peripheral (needs bless)")
    parser.add_argument("--name", default=None, help="Advertised BLE device name")
    parser.add_argument(
        "--ui-web",
        action="store_true",
        help="Launch web UI (NiceGUI) for a live dashboard",
    )
    parser.add_argument("--web-host", default="127.0.0.1", help="Host bind for --ui-web")
    parser.add_argument("--web-port", type=int, default=8088, help="Port for --ui-web")
    parser.add_argument("--tick-interval", type=float, default=1.0, help="Seconds between playback ticks")
    parser.add_argument("--status-every", type=int, default=10, help="Print status every N ticks (0 disables)")
    parser.add_argument("--exit-when-finished", action="store_true", help="Stop once recovery has finished")
    parser.add_argument("--no-record", action="store_true", help="Do not append the session to history")
    parser.add_argument("--debug", action="store_true", help="Print generator, playback and BLE diagnostics")
    return parser


def resolve_config(args: argparse.Namespace) -> SensorConfig:
    config = load_config(args.config) if args.config else SensorConfig()

    top: dict[str, object] = {}
    for attr, field_name in (
        ("mode", "mode"),
        ("seed", "seed"),
        ("ftp", "ftp_watts"),
        ("hr_base", "hr_base_bpm"),
        ("hr_max", "hr_max_bpm"),
        ("name", "device_name"),
    ):
        value = getattr(args, attr)
        if value is not None:
            top[field_name] = value

    auto: dict[str, object] = {}
    if args.duration is not None:
        auto["main_duration_min"] = args.duration
    if args.tss is not None:
        auto["target_tss"] = args.tss
    if args.segments is not None:
        auto["segment_count"] = args.segments
    if args.feasibility:
        auto["feasibility"] = True
    if args.equal_durations:
        auto["randomize_durations"] = False

    manual: dict[str, object] = {}
    if args.duration is not None:
        manual["duration_min"] = args.duration
    if args.base_power is not None:
        manual["base_power_watts"] = args.base_power
    if args.step is not None:
        manual["step_watts"] = args.step

    config = replace(
        config,
        auto=replace(config.auto, **auto),
        manual=replace(config.manual, **manual),
        **top,
    )
    check_config(config)
    return config


def export_plan(plan: WorkoutPlan, path: str) -> Path:
    if path.lower().endswith(".csv"):
        return export_plan_csv(plan, path)
    return save_plan(plan, path)


def print_history(mode: str | None = None, limit: int = 20) -> int:
    records = load_recent_sessions(limit=limit, mode=mode)
    if not records:
        print("No recorded sessions")
        return 0
    for record in records:
        avg = f"{record.avg_power_watts:.0f} W" if record.avg_power_watts is not None else "-- W"
        state = "done" if record.completed else "stopped"
        print(
            f"{record.started_at_utc[:19]}  {record.mode:<6} {record.plan_name:<28} "
            f"{fmt_duration(record.elapsed_duration_sec):>8} avg {avg:>6}  TSS {record.planned_tss:.0f}  {state}"
        )
    return 0


def build_sink(config: SensorConfig, args: argparse.Namespace, runtime_ref: list[SensorRuntime]) -> SampleSink:
    if not args.ble:
        return ConsoleSink(verbose=args.debug)

    def on_connection_change(connected: bool) -> None:
        if runtime_ref:
            runtime_ref[0].handle_connection_change(connected)

    return GattSensorSink(
        name=config.device_name,
        on_connection_change=on_connection_change,
        debug=args.debug,
    )


async def run_session(runtime: SensorRuntime) -> None:
    loop = asyncio.get_running_loop()
    if runtime.is_manual:
        KeyboardInput(loop, runtime.post_input_threadsafe).start()
    try:
        await runtime.run()
    except asyncio.CancelledError:
        runtime.stop()


def record_session(
    config: SensorConfig,
    runtime: SensorRuntime,
    generation: GenerationResult | None,
    started_at_utc: str,
) -> None:
    if runtime.last_sample is None:
        return
    record = build_session_record(
        config=config,
        runtime=runtime,
        generation=generation,
        started_at_utc=started_at_utc,
    )
    path = append_session(record)
    print(f"Session saved to {path}")


def main() -> int:
    parser = build_parser()
    args = parser.parse_args()

    if args.history:
        return print_history(args.mode)

    try:
        config = resolve_config(args)
        preloaded = load_plan(args.plan) if args.plan else None
        source, manual, generation = build_plan_source(config, plan=preloaded, debug=args.debug)
    except (ConfigParseError, PlanParseError, ValueError) as exc:
        print(f"Error: {exc}")
        return 2

    if generation is not None:
        print(format_generation_summary(generation))
    if source is None:
        return 2

    plan = source.current_plan()
    print(format_plan_table(plan) if args.debug else plan.name)
    print(format_plan_profile(plan))

    if args.export_plan:
        try:
            print(f"Plan written to {export_plan(plan, args.export_plan)}")
        except OSError as exc:
            print(f"Error: cannot write plan: {exc}")
            return 2

    if args.dry_run:
        return 0

    runtime_ref: list[SensorRuntime] = []
    sink = build_sink(config, args, runtime_ref)
    runtime = SensorRuntime(
        build_engine(config, source, debug=args.debug),
        sink,
        manual=manual,
        tick_interval=args.tick_interval,
        status_every=max(0, args.status_every),
        exit_when_finished=args.exit_when_finished,
        debug=args.debug,
    )
    runtime_ref.append(runtime)

    started_at = now_utc_iso()
    try:
        if args.ui_web:
            from velosim.ui.web_app import run_web_ui

            run_web_ui(runtime, host=args.web_host, port=args.web_port)
        else:
            asyncio.run(run_session(runtime))
    except KeyboardInterrupt:
        runtime.stop()
    except RuntimeError as exc:
        print(f"Error: {exc}")
        return 1
    finally:
        if not args.no_record:
            record_session(config, runtime, generation, started_at)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
