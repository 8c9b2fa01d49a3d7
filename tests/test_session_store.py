from __future__ import annotations

from pathlib import Path

from velosim.workout.session_store import SessionRecord, append_session, load_recent_sessions


def _record(plan_name: str, started: str, completed: bool, mode: str = "auto") -> SessionRecord:
    return SessionRecord(
        started_at_utc=started,
        ended_at_utc=started,
        mode=mode,
        plan_name=plan_name,
        ftp_watts=250,
        seed=3,
        outcome="exact",
        target_tss=70.0,
        planned_tss=88.4,
        completed=completed,
        planned_duration_sec=4800,
        elapsed_duration_sec=4800 if completed else 1200,
        avg_power_watts=181.2,
        peak_heart_rate_bpm=168,
        crank_revolutions=7100,
    )


def test_append_and_load_recent_sessions(tmp_path: Path) -> None:
    store = tmp_path / "sessions.jsonl"
    append_session(_record("Auto 60min TSS 70", "2026-02-25T10:00:00+00:00", True), path=store)
    append_session(_record("Manual 150W", "2026-02-26T10:00:00+00:00", False), path=store)

    loaded = load_recent_sessions(limit=5, path=store)

    assert len(loaded) == 2
    assert loaded[0].plan_name == "Manual 150W"
    assert loaded[1].plan_name == "Auto 60min TSS 70"
    assert loaded[1].completed is True


def test_corrupt_lines_are_skipped_and_limit_applies(tmp_path: Path) -> None:
    store = tmp_path / "sessions.jsonl"
    for i in range(3):
        append_session(_record(f"Plan {i}", f"2026-03-0{i + 1}T08:00:00+00:00", True), path=store)
    with store.open("a", encoding="utf-8") as handle:
        handle.write("{broken\n")
        handle.write('{"unexpected": 1}\n')

    loaded = load_recent_sessions(limit=2, path=store)

    assert [record.plan_name for record in loaded] == ["Plan 2", "Plan 1"]


def test_missing_store_returns_empty(tmp_path: Path) -> None:
    assert load_recent_sessions(path=tmp_path / "none.jsonl") == []


def test_filter_by_mode_applies_before_limit(tmp_path: Path) -> None:
    store = tmp_path / "sessions.jsonl"
    append_session(_record("Auto 60min TSS 70", "2026-03-01T08:00:00+00:00", True), path=store)
    append_session(_record("Manual 150W", "2026-03-02T08:00:00+00:00", False, mode="manual"), path=store)
    append_session(_record("Manual 180W", "2026-03-03T08:00:00+00:00", True, mode="manual"), path=store)

    auto_only = load_recent_sessions(limit=1, path=store, mode="auto")
    manual_only = load_recent_sessions(path=store, mode="manual")

    assert [record.plan_name for record in auto_only] == ["Auto 60min TSS 70"]
    assert [record.plan_name for record in manual_only] == ["Manual 180W", "Manual 150W"]
