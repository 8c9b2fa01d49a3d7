"""Stdin step commands for manual mode, forwarded as edge events."""

from __future__ import annotations

import asyncio
import sys
import threading
from typing import Callable, Optional, TextIO

from velosim.workout.manual import StepDirection


EdgeCallback = Callable[[asyncio.AbstractEventLoop, StepDirection], None]

_INCREMENT_WORDS = {"+", "up", "u"}
_DECREMENT_WORDS = {"-", "down", "d"}


def parse_command(line: str) -> list[StepDirection]:
    """Map one input line to edge events; ``+++`` yields three increments."""
    text = line.strip().lower()
    if not text:
        return []
    if text in _INCREMENT_WORDS:
        return ["increment"]
    if text in _DECREMENT_WORDS:
        return ["decrement"]
    if set(text) == {"+"}:
        return ["increment"] * len(text)
    if set(text) == {"-"}:
        return ["decrement"] * len(text)
    return []


class KeyboardInput:
    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        on_edge: EdgeCallback,
        stream: Optional[TextIO] = None,
    ) -> None:
        self._loop = loop
        self._on_edge = on_edge
        self._stream = stream or sys.stdin
        self._thread = threading.Thread(target=self._run, daemon=True)

    def start(self) -> None:
        print("Manual mode: type '+' or '-' then Enter to change target power")
        self._thread.start()

    def _run(self) -> None:
        for line in self._stream:
            if self._loop.is_closed():
                return
            directions = parse_command(line)
            if not directions and line.strip():
                print(f"Unknown command '{line.strip()}'. Use '+' or '-'.")
            for direction in directions:
                try:
                    self._on_edge(self._loop, direction)
                except RuntimeError:
                    # Loop closed between the check and the call.
                    return
