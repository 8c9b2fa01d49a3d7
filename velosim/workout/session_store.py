"""Local persistence for finished or stopped sensor sessions."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path


def _default_sessions_path() -> Path:
    return Path.home() / ".velosim" / "sessions.jsonl"


@dataclass(frozen=True)
class SessionRecord:
    started_at_utc: str
    ended_at_utc: str
    mode: str
    plan_name: str
    ftp_watts: int
    seed: int | None
    outcome: str | None
    target_tss: float | None
    planned_tss: float
    completed: bool
    planned_duration_sec: int
    elapsed_duration_sec: int
    avg_power_watts: float | None
    peak_heart_rate_bpm: int | None
    crank_revolutions: int


def now_utc_iso() -> str:
    return datetime.now(tz=timezone.utc).isoformat()


def append_session(record: SessionRecord, path: Path | None = None) -> Path:
    target = path or _default_sessions_path()
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("a", encoding="utf-8") as handle:
        handle.write(json.dumps(asdict(record), ensure_ascii=True) + "\n")
    return target


def load_recent_sessions(
    limit: int = 20,
    path: Path | None = None,
    *,
    mode: str | None = None,
) -> list[SessionRecord]:
    """Newest-first records, optionally only those played in ``mode``."""
    target = path or _default_sessions_path()
    if not target.exists():
        return []

    lines = target.read_text(encoding="utf-8").splitlines()
    out: list[SessionRecord] = []
    for raw in reversed(lines):
        if not raw.strip():
            continue
        try:
            item = json.loads(raw)
            record = SessionRecord(**item)
        except (json.JSONDecodeError, TypeError):
            continue
        if mode is not None and record.mode != mode:
            continue
        out.append(record)
        if len(out) >= limit:
            break
    return out
